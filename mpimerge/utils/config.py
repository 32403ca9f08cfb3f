"""Configuration for matching, merging and storage."""

from dataclasses import dataclass
from pathlib import Path
from typing import Optional

from ..core.person_merge import MatchType


@dataclass
class MPIConfig:
    """Configuration for the identity resolution engine."""

    # Storage
    database_path: Path = Path("mpi.db")
    audit_database_path: Optional[Path] = None  # defaults to <database>.audit.db
    store_timeout_seconds: float = 5.0

    # Candidate search
    birth_date_window_years: int = 1

    # Merge chains
    max_chain_depth: int = 16

    # Automatic merging
    auto_merge_tier: MatchType = MatchType.EXACT

    # Audit
    emit_audit_events: bool = True

    def __post_init__(self):
        """Validate bounds."""
        self.database_path = Path(self.database_path)
        if self.audit_database_path is not None:
            self.audit_database_path = Path(self.audit_database_path)
        if self.birth_date_window_years < 0:
            raise ValueError("birth_date_window_years must be >= 0")
        if self.max_chain_depth < 1:
            raise ValueError("max_chain_depth must be >= 1")
        if self.auto_merge_tier in (MatchType.NO_MATCH, MatchType.MANUAL):
            raise ValueError(f"auto_merge_tier cannot be {self.auto_merge_tier.value}")

    def resolved_audit_path(self) -> Path:
        """Audit database path, next to the main database unless overridden."""
        if self.audit_database_path is not None:
            return self.audit_database_path
        return self.database_path.parent / f"{self.database_path.stem}.audit.db"


# Global configuration instance
default_config = MPIConfig()
