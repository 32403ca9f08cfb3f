"""
Merge execution and reversal.

This module applies merge decisions atomically, undoes them from snapshots,
and resolves merged persons to their canonical identity.
"""

from .merger import MergeExecutor, MergeStrategy, AutoMergeResult
from .reverser import ReversalManager
from .resolution import merge_chain, resolve_canonical, resolve_identifier

__all__ = [
    'MergeExecutor',
    'MergeStrategy',
    'AutoMergeResult',
    'ReversalManager',
    'merge_chain',
    'resolve_canonical',
    'resolve_identifier',
]
