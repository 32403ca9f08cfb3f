"""
Audit trail for merge and reversal operations.

The engine emits one AuditEvent per merge or reversal to an AuditSink.
AuditTrail is the bundled sink: a separate SQLite database that stores
every event for later review.
"""

import json
import sqlite3
import uuid
from datetime import datetime, timezone
from typing import List, Dict, Any, Optional, Protocol
from dataclasses import dataclass, field, asdict
from pathlib import Path
from enum import Enum

from .config import MPIConfig


class AuditAction(Enum):
    """Types of audited operations."""
    MERGE = "merge"
    REVERSE = "reverse"


@dataclass
class AuditEvent:
    """Single audit log entry."""
    action: str
    tenant_id: str
    merge_id: str
    source_person_id: str
    target_person_id: str
    actor: str
    reason: Optional[str] = None
    correlation_id: Optional[str] = None
    id: str = field(default_factory=lambda: str(uuid.uuid4()))
    timestamp: str = field(default_factory=lambda: datetime.now(timezone.utc).isoformat())
    metadata: Dict[str, Any] = field(default_factory=dict)

    def __post_init__(self):
        if isinstance(self.action, AuditAction):
            self.action = self.action.value

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary."""
        result = asdict(self)
        result['metadata'] = json.dumps(self.metadata)
        return result

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'AuditEvent':
        """Create from dictionary."""
        data = dict(data)
        if isinstance(data.get('metadata'), str):
            data['metadata'] = json.loads(data['metadata'])
        return cls(**data)


class AuditSink(Protocol):
    """Write-only receiver of audit events."""

    def record(self, event: AuditEvent) -> None:
        ...


class AuditTrail:
    """SQLite-backed audit sink.

    Events are stored in their own database so the identity store schema
    never depends on audit storage.
    """

    def __init__(self, audit_db_path: str | Path):
        """Initialize the audit trail.

        Args:
            audit_db_path: Path to the audit database file
        """
        self.audit_db_path = Path(audit_db_path)
        self.conn = sqlite3.connect(str(self.audit_db_path), check_same_thread=False)
        self.conn.row_factory = sqlite3.Row
        self._create_schema()

    @classmethod
    def from_config(cls, config: MPIConfig) -> 'AuditTrail':
        """Open the audit database named by a configuration."""
        return cls(config.resolved_audit_path())

    def _create_schema(self):
        """Create audit trail database schema."""
        cursor = self.conn.cursor()

        cursor.execute("""
            CREATE TABLE IF NOT EXISTS audit_event (
                id TEXT PRIMARY KEY,
                timestamp TEXT NOT NULL,
                action TEXT NOT NULL,
                tenant_id TEXT NOT NULL,
                merge_id TEXT NOT NULL,
                source_person_id TEXT NOT NULL,
                target_person_id TEXT NOT NULL,
                actor TEXT NOT NULL,
                reason TEXT,
                correlation_id TEXT,
                metadata TEXT
            )
        """)

        cursor.execute("""
            CREATE INDEX IF NOT EXISTS idx_audit_timestamp
            ON audit_event(timestamp DESC)
        """)

        cursor.execute("""
            CREATE INDEX IF NOT EXISTS idx_audit_merge
            ON audit_event(merge_id)
        """)

        cursor.execute("""
            CREATE INDEX IF NOT EXISTS idx_audit_person
            ON audit_event(source_person_id, target_person_id)
        """)

        self.conn.commit()

    def record(self, event: AuditEvent) -> None:
        """Store one audit event.

        Args:
            event: The event to store
        """
        row = event.to_dict()
        self.conn.execute("""
            INSERT INTO audit_event (
                id, timestamp, action, tenant_id, merge_id,
                source_person_id, target_person_id, actor, reason,
                correlation_id, metadata
            )
            VALUES (:id, :timestamp, :action, :tenant_id, :merge_id,
                    :source_person_id, :target_person_id, :actor, :reason,
                    :correlation_id, :metadata)
        """, row)
        self.conn.commit()

    def get_merge_history(self, merge_id: str) -> List[AuditEvent]:
        """Get all events for a merge, oldest first.

        Args:
            merge_id: The merge ID

        Returns:
            List of audit events
        """
        cursor = self.conn.execute("""
            SELECT * FROM audit_event
            WHERE merge_id = ?
            ORDER BY timestamp, rowid
        """, (merge_id,))
        return [self._row_to_event(row) for row in cursor.fetchall()]

    def get_person_history(self, person_id: str) -> List[AuditEvent]:
        """Get all events where a person was source or target.

        Args:
            person_id: Person ID

        Returns:
            List of audit events
        """
        cursor = self.conn.execute("""
            SELECT * FROM audit_event
            WHERE source_person_id = ? OR target_person_id = ?
            ORDER BY timestamp, rowid
        """, (person_id, person_id))
        return [self._row_to_event(row) for row in cursor.fetchall()]

    def get_recent_events(self, limit: int = 100) -> List[AuditEvent]:
        """Get recent events, newest first.

        Args:
            limit: Maximum number of events to return

        Returns:
            List of audit events
        """
        cursor = self.conn.execute("""
            SELECT * FROM audit_event
            ORDER BY timestamp DESC, rowid DESC
            LIMIT ?
        """, (limit,))
        return [self._row_to_event(row) for row in cursor.fetchall()]

    def _row_to_event(self, row: sqlite3.Row) -> AuditEvent:
        """Convert database row to AuditEvent."""
        return AuditEvent.from_dict(dict(row))

    def close(self):
        """Close the audit database connection."""
        if self.conn:
            self.conn.close()

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()


def get_audit_trail(database_path: str | Path) -> AuditTrail:
    """Get the audit trail that sits next to an identity database.

    Args:
        database_path: Path to the main identity database

    Returns:
        AuditTrail instance
    """
    database_path = Path(database_path)
    return AuditTrail(database_path.parent / f"{database_path.stem}.audit.db")
