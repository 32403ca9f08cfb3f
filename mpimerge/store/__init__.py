"""
Identity store.

Durable storage for persons, identifiers and merge records with atomic
read-modify-write transactions.
"""

from .adapter import IdentityStore, StoredIdentifier

__all__ = ['IdentityStore', 'StoredIdentifier']
