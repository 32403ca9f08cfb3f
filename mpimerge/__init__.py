"""MPIMerge - identity resolution, merge and reversal for a master patient index."""

__version__ = "0.1.0"

from .core.person import Person, Identifier, PersonName, AdministrativeSex
from .core.person_merge import PersonMerge, MergeStatus, MatchType
from .store.adapter import IdentityStore
from .matching import CandidateLocator, MatchScorer
from .merge import MergeExecutor, ReversalManager, resolve_canonical

__all__ = [
    'Person',
    'Identifier',
    'PersonName',
    'AdministrativeSex',
    'PersonMerge',
    'MergeStatus',
    'MatchType',
    'IdentityStore',
    'CandidateLocator',
    'MatchScorer',
    'MergeExecutor',
    'ReversalManager',
    'resolve_canonical',
]
