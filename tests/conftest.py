"""Shared fixtures for identity store, merge and matching tests."""

from datetime import date

import pytest

from mpimerge.core.person import Identifier, Person, PersonName
from mpimerge.store.adapter import IdentityStore

TENANT = "tenant-a"
SYS = "urn:oid:sys"


class RecordingAuditSink:
    """Audit sink that keeps events in memory."""

    def __init__(self):
        self.events = []

    def record(self, event):
        self.events.append(event)


class FailingAuditSink:
    """Audit sink that always fails."""

    def record(self, event):
        raise RuntimeError("audit backend down")


def make_person(
    person_id=None,
    identifiers=(),
    birth_date=None,
    sex=None,
    name=None,
    tenant_id=TENANT,
):
    """Build an unsaved person. identifiers is a list of (system, value)."""
    kwargs = {}
    if person_id:
        kwargs['id'] = person_id
    return Person(
        tenant_id=tenant_id,
        birth_date=birth_date,
        sex=sex,
        identifiers=[Identifier(system=s, value=v) for s, v in identifiers],
        names=[PersonName(text=name)] if name else [],
        **kwargs,
    )


@pytest.fixture
def db_path(tmp_path):
    return tmp_path / "mpi.db"


@pytest.fixture
def store(db_path):
    store = IdentityStore(db_path)
    yield store
    store.close()


@pytest.fixture
def audit_sink():
    return RecordingAuditSink()


@pytest.fixture
def person_pair(store):
    """Persons A and B sharing identifier SYS|123 and birth date 1980-05-01."""
    a = store.save_person(make_person('a', [(SYS, '123')], date(1980, 5, 1)))
    b = store.save_person(make_person('b', [(SYS, '123')], date(1980, 5, 1)))
    return a, b
