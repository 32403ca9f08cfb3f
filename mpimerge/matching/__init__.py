"""
Duplicate detection matching engine.

This module provides candidate discovery by identifier and birth date window,
and deterministic weighted scoring with pluggable name similarity.
"""

from .matcher import CandidateLocator, MatchCandidate
from .scorer import MatchScorer, MatchResult, FactorScore, tier_for_score
from .name_similarity import (
    NameSimilarity,
    no_name_similarity,
    FuzzyNameSimilarity,
    PhoneticNameSimilarity,
    normalize_name,
)

__all__ = [
    'CandidateLocator',
    'MatchCandidate',
    'MatchScorer',
    'MatchResult',
    'FactorScore',
    'tier_for_score',
    'NameSimilarity',
    'no_name_similarity',
    'FuzzyNameSimilarity',
    'PhoneticNameSimilarity',
    'normalize_name',
]
