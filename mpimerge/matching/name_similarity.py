"""
Pluggable name similarity strategies.

A strategy is any callable taking two normalized full names and returning a
similarity in [0, 1]. The default is a no-op that always returns 0.0 until a
concrete algorithm is chosen for a deployment.
"""

from typing import Optional, Protocol

import phonetics
from rapidfuzz import fuzz


# Honorific titles to drop before comparing names
HONORIFIC_PREFIXES = {
    'en': {'mr', 'mrs', 'ms', 'miss', 'dr', 'rev', 'sir', 'lady', 'lord', 'dame'},
    'es': {'sr', 'sra', 'srta', 'don', 'doña', 'dr', 'dra'},
    'fr': {'m', 'mme', 'mlle', 'dr'},
    'de': {'herr', 'frau', 'dr', 'prof'},
}

HONORIFIC_SUFFIXES = {
    'jr', 'sr', 'ii', 'iii', 'iv', 'esq', 'md', 'phd',
}


class NameSimilarity(Protocol):
    """Similarity between two normalized full names, in [0, 1]."""

    def __call__(self, name1: str, name2: str) -> float:
        ...


def normalize_name(name: Optional[str], language: Optional[str] = None) -> str:
    """
    Normalize a name for matching by removing honorifics and punctuation.

    Args:
        name: Name to normalize
        language: Language code (en, es, fr, de); all languages if None

    Returns:
        Normalized name, lower-cased with single spaces
    """
    if not name:
        return ""

    normalized = name.lower().strip()

    for char in ['.', ',', '/', '\\', '(', ')', '[', ']', '-', "'"]:
        normalized = normalized.replace(char, ' ')

    if language and language in HONORIFIC_PREFIXES:
        prefixes = HONORIFIC_PREFIXES[language]
    else:
        prefixes = set()
        for lang_prefixes in HONORIFIC_PREFIXES.values():
            prefixes.update(lang_prefixes)

    parts = [
        part for part in normalized.split()
        if part not in prefixes and part not in HONORIFIC_SUFFIXES
    ]
    return ' '.join(parts)


def no_name_similarity(name1: str, name2: str) -> float:
    """Default strategy: contributes nothing to the match score."""
    return 0.0


class FuzzyNameSimilarity:
    """Token-order-insensitive fuzzy ratio from rapidfuzz."""

    def __call__(self, name1: str, name2: str) -> float:
        if not name1 or not name2:
            return 0.0
        return fuzz.token_sort_ratio(name1, name2) / 100.0


class PhoneticNameSimilarity:
    """
    Fraction of name tokens whose Metaphone codes agree.

    Tokens are compared as sorted lists so "perez juan" and "juan peres"
    match fully.
    """

    def __call__(self, name1: str, name2: str) -> float:
        codes1 = sorted(self.encode(name1))
        codes2 = sorted(self.encode(name2))
        if not codes1 or not codes2:
            return 0.0

        remaining = list(codes2)
        matches = 0
        for code in codes1:
            if code in remaining:
                remaining.remove(code)
                matches += 1

        return matches / max(len(codes1), len(codes2))

    @staticmethod
    def encode(name: str) -> list:
        """Metaphone code of each token in a name."""
        if not name:
            return []
        return [phonetics.metaphone(token) for token in name.split() if token.isalpha()]
