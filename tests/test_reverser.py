"""
Tests for merge reversal.
"""

import threading
from datetime import date

import pytest

from conftest import SYS, FailingAuditSink, make_person
from mpimerge.core.exceptions import MPIError, NotFoundError, NotReversibleError
from mpimerge.core.person import AdministrativeSex, PersonName
from mpimerge.core.person_merge import MergeStatus
from mpimerge.matching import CandidateLocator
from mpimerge.merge import MergeExecutor, ReversalManager
from mpimerge.store.adapter import IdentityStore
from mpimerge.utils.audit_trail import AuditAction


@pytest.fixture
def executor(store, audit_sink):
    return MergeExecutor(store, audit_sink)


@pytest.fixture
def reverser(store, audit_sink):
    return ReversalManager(store, audit_sink)


def test_reverse_restores_source(store, executor, reverser, person_pair):
    merge = executor.merge('a', 'b', actor='alice')

    reversed_merge = reverser.reverse(merge.id, actor='bob', reason='different people')

    source = store.get_person('a')
    assert source.active is True
    assert source.merged_into is None
    assert source.match_score is None
    assert reversed_merge.status == MergeStatus.REVERSED
    assert reversed_merge.reversed_by == 'bob'
    assert reversed_merge.reversal_reason == 'different people'
    assert reversed_merge.reversed_at is not None

    loaded = store.get_merge(merge.id)
    assert loaded.status == MergeStatus.REVERSED
    assert loaded.merge_details['target_diverged'] is False
    assert store.count_merges(MergeStatus.ACTIVE) == 0


def test_reverse_restores_demographics_from_snapshot(store, executor, reverser):
    original = make_person('a', [(SYS, '1')], date(1980, 5, 1), AdministrativeSex.FEMALE, 'Ana Soto')
    store.save_person(original)
    store.save_person(make_person('b', [(SYS, '1')], date(1980, 5, 1)))
    merge = executor.merge('a', 'b', actor='alice')

    # Edit the absorbed record while it is merged
    absorbed = store.get_person('a')
    absorbed.names = [PersonName(text='Someone Else')]
    absorbed.identifiers = []
    store.save_person(absorbed)

    reverser.reverse(merge.id, actor='bob')

    restored = store.get_person('a')
    assert restored.get_primary_name() == 'Ana Soto'
    assert restored.sex == AdministrativeSex.FEMALE
    assert restored.identifier_keys() == {(SYS, '1')}


def test_second_reverse_is_rejected(store, executor, reverser, person_pair):
    merge = executor.merge('a', 'b', actor='alice')
    reverser.reverse(merge.id, actor='bob')
    before = store.get_stats()

    with pytest.raises(NotReversibleError):
        reverser.reverse(merge.id, actor='bob')

    assert store.get_stats() == before


def test_unknown_merge(reverser):
    with pytest.raises(NotFoundError):
        reverser.reverse('missing', actor='bob')


def test_target_divergence_is_flagged_not_rolled_back(store, executor, reverser, person_pair):
    merge = executor.merge('a', 'b', actor='alice')
    target = store.get_person('b')
    target.sex = AdministrativeSex.MALE
    store.save_person(target)

    reverser.reverse(merge.id, actor='bob')

    assert store.get_person('b').sex == AdministrativeSex.MALE
    assert store.get_merge(merge.id).merge_details['target_diverged'] is True


def test_reverse_emits_event(executor, reverser, audit_sink, person_pair):
    merge = executor.merge('a', 'b', actor='alice')

    reverser.reverse(merge.id, actor='bob', reason='wrong')

    actions = [e.action for e in audit_sink.events]
    assert actions == [AuditAction.MERGE.value, AuditAction.REVERSE.value]
    assert audit_sink.events[1].actor == 'bob'
    assert audit_sink.events[1].correlation_id == merge.correlation_id


def test_failing_sink_does_not_fail_reversal(store, executor, person_pair):
    merge = executor.merge('a', 'b', actor='alice')

    ReversalManager(store, FailingAuditSink()).reverse(merge.id, actor='bob')

    assert store.get_merge(merge.id).status == MergeStatus.REVERSED


def test_pair_can_be_merged_again(store, executor, reverser, person_pair):
    merge = executor.merge('a', 'b', actor='alice')
    reverser.reverse(merge.id, actor='bob')

    again = executor.merge('b', 'a', actor='alice')

    assert again.status == MergeStatus.ACTIVE
    assert store.get_person('b').merged_into == 'a'


def test_reversed_source_is_located_again(store, executor, reverser, person_pair):
    a, _ = person_pair
    merge = executor.merge('b', 'a', actor='alice')
    assert CandidateLocator(store).find_candidates(a) == []

    reverser.reverse(merge.id, actor='bob')

    assert [c.person_id for c in CandidateLocator(store).find_candidates(a)] == ['b']


def test_concurrent_reversals_apply_once(db_path, store, person_pair):
    merge = MergeExecutor(store).merge('a', 'b', actor='alice')
    barrier = threading.Barrier(4)
    outcomes = []
    lock = threading.Lock()

    def worker():
        own_store = IdentityStore(db_path, timeout=10.0)
        try:
            barrier.wait()
            try:
                ReversalManager(own_store).reverse(merge.id, actor='worker')
                result = 'ok'
            except MPIError as e:
                result = type(e).__name__
        finally:
            own_store.close()
        with lock:
            outcomes.append(result)

    threads = [threading.Thread(target=worker) for _ in range(4)]
    for thread in threads:
        thread.start()
    for thread in threads:
        thread.join()

    assert sorted(outcomes) == ['NotReversibleError'] * 3 + ['ok']
    assert store.get_merge(merge.id).status == MergeStatus.REVERSED
    assert store.get_person('a').active is True
