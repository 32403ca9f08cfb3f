"""
Core identity records.

Persons, their identifiers and names, merge records, and the error taxonomy.
"""

from .person import Person, Identifier, PersonName, AdministrativeSex, RUN_SYSTEM
from .person_merge import PersonMerge, MergeStatus, MatchType
from .exceptions import (
    MPIError,
    NotFoundError,
    InvalidPersonError,
    InvalidMergeError,
    MergeCycleError,
    AlreadyMergedError,
    DuplicateMergeError,
    NotReversibleError,
    MergeChainError,
    SearchCancelledError,
    StoreUnavailableError,
)

__all__ = [
    'Person',
    'Identifier',
    'PersonName',
    'AdministrativeSex',
    'RUN_SYSTEM',
    'PersonMerge',
    'MergeStatus',
    'MatchType',
    'MPIError',
    'NotFoundError',
    'InvalidPersonError',
    'InvalidMergeError',
    'MergeCycleError',
    'AlreadyMergedError',
    'DuplicateMergeError',
    'NotReversibleError',
    'MergeChainError',
    'SearchCancelledError',
    'StoreUnavailableError',
]
