"""Tests for engine configuration."""

from pathlib import Path

import pytest

from mpimerge.core.person_merge import MatchType
from mpimerge.store.adapter import IdentityStore
from mpimerge.utils.audit_trail import AuditTrail
from mpimerge.utils.config import MPIConfig


def test_defaults():
    config = MPIConfig()

    assert config.birth_date_window_years == 1
    assert config.max_chain_depth == 16
    assert config.auto_merge_tier == MatchType.EXACT
    assert config.resolved_audit_path() == Path("mpi.audit.db")


def test_audit_path_override():
    config = MPIConfig(database_path="data/mpi.db", audit_database_path="logs/audit.db")

    assert config.database_path == Path("data/mpi.db")
    assert config.resolved_audit_path() == Path("logs/audit.db")


@pytest.mark.parametrize('kwargs', [
    {'birth_date_window_years': -1},
    {'max_chain_depth': 0},
    {'auto_merge_tier': MatchType.NO_MATCH},
    {'auto_merge_tier': MatchType.MANUAL},
])
def test_invalid_values(kwargs):
    with pytest.raises(ValueError):
        MPIConfig(**kwargs)


def test_open_store_and_audit_trail_from_config(tmp_path):
    config = MPIConfig(database_path=tmp_path / "mpi.db", store_timeout_seconds=1.0)

    with IdentityStore.from_config(config) as store, AuditTrail.from_config(config) as trail:
        assert store.db_path == str(tmp_path / "mpi.db")
        assert trail.audit_db_path == tmp_path / "mpi.audit.db"
