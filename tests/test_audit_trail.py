"""
Tests for the SQLite audit trail.
"""

import pytest

from mpimerge.merge import MergeExecutor, ReversalManager
from mpimerge.utils.audit_trail import AuditAction, AuditEvent, AuditTrail, get_audit_trail


@pytest.fixture
def trail(tmp_path):
    trail = AuditTrail(tmp_path / "audit.db")
    yield trail
    trail.close()


def _event(merge_id='m1', action=AuditAction.MERGE, source='a', target='b'):
    return AuditEvent(
        action=action,
        tenant_id='tenant-a',
        merge_id=merge_id,
        source_person_id=source,
        target_person_id=target,
        actor='alice',
        metadata={'match_type': 'EXACT'},
    )


def test_record_and_read_back(trail):
    event = _event()
    trail.record(event)

    history = trail.get_merge_history('m1')

    assert len(history) == 1
    assert history[0].id == event.id
    assert history[0].action == 'merge'
    assert history[0].metadata == {'match_type': 'EXACT'}


def test_person_history_matches_source_or_target(trail):
    trail.record(_event('m1', source='a', target='b'))
    trail.record(_event('m2', source='c', target='a'))
    trail.record(_event('m3', source='c', target='d'))

    assert [e.merge_id for e in trail.get_person_history('a')] == ['m1', 'm2']


def test_recent_events_limit(trail):
    for i in range(5):
        trail.record(_event(f'm{i}'))

    assert len(trail.get_recent_events(limit=3)) == 3


def test_audit_db_sits_next_to_identity_db(tmp_path):
    with get_audit_trail(tmp_path / "mpi.db") as trail:
        assert trail.audit_db_path == tmp_path / "mpi.audit.db"


def test_engine_writes_to_audit_trail(store, trail, person_pair):
    merge = MergeExecutor(store, trail).merge('a', 'b', actor='alice')
    ReversalManager(store, trail).reverse(merge.id, actor='bob')

    history = trail.get_merge_history(merge.id)

    assert [e.action for e in history] == ['merge', 'reverse']
    assert history[1].metadata == {'target_diverged': False}
