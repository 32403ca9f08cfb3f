"""
Tests for canonical identity resolution.
"""

import pytest

from conftest import SYS, TENANT, make_person
from mpimerge.core.exceptions import MergeChainError, MergeCycleError, NotFoundError
from mpimerge.merge import MergeExecutor, merge_chain, resolve_canonical, resolve_identifier


@pytest.fixture
def chain(store):
    """a -> b -> c, each with its own identifier."""
    for pid in ('a', 'b', 'c'):
        store.save_person(make_person(pid, [(SYS, pid)]))
    executor = MergeExecutor(store)
    executor.merge('b', 'c', actor='alice')
    executor.merge('a', 'b', actor='alice')


def test_canonical_of_unmerged_person_is_itself(store, person_pair):
    assert resolve_canonical(store, 'a').id == 'a'


def test_chain_is_followed_to_the_end(store, chain):
    assert [p.id for p in merge_chain(store, 'a')] == ['a', 'b', 'c']
    assert resolve_canonical(store, 'a').id == 'c'
    assert resolve_canonical(store, 'b').id == 'c'


def test_chain_longer_than_max_depth(store, chain):
    assert resolve_canonical(store, 'a', max_depth=2).id == 'c'
    with pytest.raises(MergeChainError):
        resolve_canonical(store, 'a', max_depth=1)


def test_missing_person(store):
    with pytest.raises(NotFoundError):
        resolve_canonical(store, 'ghost')


def test_cycle_in_stored_data_is_detected(store):
    # Written directly, bypassing the executor's cycle check
    a = make_person('a')
    b = make_person('b')
    store.save_person(a)
    store.save_person(b)
    a.active, a.merged_into = False, 'b'
    b.active, b.merged_into = False, 'a'
    store.save_person(a)
    store.save_person(b)

    with pytest.raises(MergeCycleError):
        resolve_canonical(store, 'a')


def test_identifier_resolves_before_and_after_merge(store, person_pair):
    before = resolve_identifier(store, TENANT, SYS, '123')
    assert [p.id for p in before] == ['a', 'b']

    MergeExecutor(store).merge('a', 'b', actor='alice')

    after = resolve_identifier(store, TENANT, SYS, '123')
    assert [p.id for p in after] == ['b']


def test_absorbed_identifier_resolves_to_survivor(store, chain):
    assert [p.id for p in resolve_identifier(store, TENANT, SYS, 'a')] == ['c']


def test_identifier_in_other_tenant_is_ignored(store, person_pair):
    assert resolve_identifier(store, 'tenant-b', SYS, '123') == []
