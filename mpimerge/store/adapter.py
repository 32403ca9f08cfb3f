"""SQLite identity store for persons, identifiers and merge records."""

import json
import logging
import sqlite3
import threading
from contextlib import contextmanager
from dataclasses import dataclass
from datetime import date, datetime, timezone
from decimal import Decimal
from pathlib import Path
from typing import Callable, Dict, Iterator, List, Optional

from ..core.exceptions import (
    DuplicateMergeError,
    InvalidMergeError,
    InvalidPersonError,
    NotFoundError,
    StoreUnavailableError,
)
from ..core.person import AdministrativeSex, Identifier, Person, PersonName, normalize_identifier_value
from ..core.person_merge import MatchType, MergeStatus, PersonMerge, unordered_pair
from ..utils.config import MPIConfig

logger = logging.getLogger(__name__)


SCHEMA = """
CREATE TABLE IF NOT EXISTS person (
    id TEXT PRIMARY KEY,
    tenant_id TEXT NOT NULL,
    birth_date TEXT,
    sex TEXT CHECK (sex IS NULL OR sex IN ('male', 'female', 'other', 'unknown')),
    active INTEGER NOT NULL DEFAULT 1,
    merged_into TEXT REFERENCES person(id),
    match_score TEXT,
    created_at TEXT NOT NULL,
    updated_at TEXT NOT NULL,
    CHECK (merged_into IS NULL OR active = 0),
    CHECK (merged_into IS NULL OR merged_into != id)
);

CREATE INDEX IF NOT EXISTS idx_person_tenant_birth ON person(tenant_id, active, birth_date);
CREATE INDEX IF NOT EXISTS idx_person_merged_into ON person(merged_into);

CREATE TABLE IF NOT EXISTS person_identifier (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    person_id TEXT NOT NULL REFERENCES person(id) ON DELETE CASCADE,
    system TEXT NOT NULL,
    value TEXT NOT NULL,
    use TEXT,
    UNIQUE (system, value, person_id)
);

CREATE INDEX IF NOT EXISTS idx_identifier_value ON person_identifier(system, value);

CREATE TABLE IF NOT EXISTS person_name (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    person_id TEXT NOT NULL REFERENCES person(id) ON DELETE CASCADE,
    position INTEGER NOT NULL,
    family TEXT,
    given_json TEXT,
    prefix TEXT,
    suffix TEXT,
    text TEXT,
    use TEXT
);

CREATE INDEX IF NOT EXISTS idx_name_person ON person_name(person_id, position);

CREATE TABLE IF NOT EXISTS person_merge (
    id TEXT PRIMARY KEY,
    tenant_id TEXT NOT NULL,
    source_person_id TEXT NOT NULL REFERENCES person(id) ON DELETE RESTRICT,
    target_person_id TEXT NOT NULL REFERENCES person(id) ON DELETE RESTRICT,
    pair_low TEXT NOT NULL,
    pair_high TEXT NOT NULL,
    match_score TEXT,
    match_type TEXT NOT NULL,
    status TEXT NOT NULL DEFAULT 'ACTIVE',
    merged_at TEXT NOT NULL,
    merged_by TEXT NOT NULL,
    merged_by_role TEXT,
    reason TEXT,
    is_automatic INTEGER NOT NULL DEFAULT 0,
    source_snapshot_json TEXT NOT NULL,
    target_snapshot_json TEXT NOT NULL,
    merge_details_json TEXT,
    reversed_at TEXT,
    reversed_by TEXT,
    reversal_reason TEXT,
    correlation_id TEXT,
    CHECK (match_type IN ('EXACT', 'PROBABLE', 'POSSIBLE', 'MANUAL')),
    CHECK (status IN ('ACTIVE', 'REVERSED', 'SUPERSEDED')),
    CHECK (match_score IS NULL OR (CAST(match_score AS REAL) >= 0 AND CAST(match_score AS REAL) <= 1)),
    CHECK (source_person_id != target_person_id)
);

CREATE UNIQUE INDEX IF NOT EXISTS ux_person_merge_active_pair
    ON person_merge(pair_low, pair_high) WHERE status = 'ACTIVE';
CREATE INDEX IF NOT EXISTS idx_person_merge_source ON person_merge(source_person_id, status);
CREATE INDEX IF NOT EXISTS idx_person_merge_target ON person_merge(target_person_id, status);
CREATE INDEX IF NOT EXISTS idx_person_merge_tenant ON person_merge(tenant_id, status);
CREATE INDEX IF NOT EXISTS idx_person_merge_correlation ON person_merge(correlation_id);
"""


@dataclass(slots=True)
class StoredIdentifier:
    """An identifier row together with the person that owns it."""
    person_id: str
    identifier: Identifier


def _iso(value: Optional[datetime]) -> Optional[str]:
    return value.isoformat() if value else None


def _parse_datetime(value: Optional[str]) -> Optional[datetime]:
    return datetime.fromisoformat(value) if value else None


def _as_utc(value: datetime) -> datetime:
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


class IdentityStore:
    """Adapter for the SQLite identity database.

    This class handles:
    - SQLite connection management and schema creation
    - Point lookups and predicate scans for persons and merges
    - Atomic read-modify-write transactions

    Each instance owns one connection. Concurrent callers should use their
    own instance over the same database file; writers serialize on the
    database write lock taken by transaction().
    """

    def __init__(self, db_path: str | Path, timeout: float = 5.0):
        """Open (and create if needed) an identity database.

        Args:
            db_path: Path to the database file, or ":memory:"
            timeout: Seconds to wait for the write lock before failing
        """
        self.db_path = str(db_path)
        try:
            self.conn = sqlite3.connect(
                self.db_path,
                timeout=timeout,
                isolation_level=None,  # transactions are managed explicitly
                check_same_thread=False,
            )
        except sqlite3.Error as e:
            raise StoreUnavailableError(f"Cannot open identity store {self.db_path}: {e}") from e

        self.conn.row_factory = sqlite3.Row
        self._lock = threading.RLock()
        self._tx_depth = 0

        self._execute("PRAGMA foreign_keys = ON")
        try:
            self.conn.executescript(SCHEMA)
        except sqlite3.OperationalError as e:
            raise StoreUnavailableError(f"Cannot initialize schema: {e}") from e

    @classmethod
    def from_config(cls, config: MPIConfig) -> "IdentityStore":
        """Open the store named by a configuration."""
        return cls(config.database_path, timeout=config.store_timeout_seconds)

    def close(self):
        """Close the database connection."""
        if self.conn:
            self.conn.close()

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()

    # ========== Transactions ==========

    @property
    def in_transaction(self) -> bool:
        return self._tx_depth > 0

    @contextmanager
    def transaction(self):
        """Run the enclosed block as one atomic read-modify-write scope.

        The write lock is taken when the transaction begins, so reads made
        inside the block cannot be invalidated by another writer before
        commit. Nested calls join the outer transaction. Any exception rolls
        back the whole transaction and propagates.
        """
        with self._lock:
            if self._tx_depth:
                self._tx_depth += 1
                try:
                    yield self
                finally:
                    self._tx_depth -= 1
                return

            self._execute("BEGIN IMMEDIATE")
            self._tx_depth = 1
            try:
                yield self
            except BaseException:
                self._tx_depth = 0
                if self.conn.in_transaction:
                    self.conn.execute("ROLLBACK")
                raise
            self._tx_depth = 0
            try:
                self.conn.execute("COMMIT")
            except sqlite3.OperationalError as e:
                if self.conn.in_transaction:
                    self.conn.execute("ROLLBACK")
                raise StoreUnavailableError(f"Commit failed: {e}") from e

    def _execute(self, sql: str, params=()) -> sqlite3.Cursor:
        """Execute a statement, surfacing lock and I/O failures as retryable."""
        try:
            return self.conn.execute(sql, params)
        except sqlite3.OperationalError as e:
            raise StoreUnavailableError(f"Identity store error: {e}") from e

    # ========== Statistics Methods ==========

    def get_stats(self, tenant_id: Optional[str] = None) -> Dict[str, int]:
        """Get record counts.

        Args:
            tenant_id: Restrict counts to one tenant

        Returns:
            Dictionary with counts of persons and merges by state
        """
        where = "WHERE tenant_id = ?" if tenant_id else ""
        params = (tenant_id,) if tenant_id else ()

        stats = {}
        row = self._execute(f"""
            SELECT COUNT(*) AS total, COALESCE(SUM(active), 0) AS active
            FROM person {where}
        """, params).fetchone()
        stats['persons'] = row['total']
        stats['active_persons'] = row['active']

        for status in MergeStatus:
            stats[f'merges_{status.value.lower()}'] = self.count_merges(status, tenant_id)

        return stats

    # ========== Person Methods ==========

    def get_person(self, person_id: str) -> Optional[Person]:
        """Get a person by ID.

        Args:
            person_id: The person ID to retrieve

        Returns:
            Person object or None if not found
        """
        row = self._execute("SELECT * FROM person WHERE id = ?", (person_id,)).fetchone()
        if not row:
            return None
        return self._load_person(row)

    def require_person(self, person_id: str) -> Person:
        """Get a person by ID, raising NotFoundError if absent."""
        person = self.get_person(person_id)
        if person is None:
            raise NotFoundError(f"Person not found: {person_id}")
        return person

    def list_persons_by_tenant(
        self,
        tenant_id: str,
        predicate: Optional[Callable[[Person], bool]] = None,
        active_only: bool = False,
    ) -> List[Person]:
        """List persons of a tenant matching an optional predicate.

        Args:
            tenant_id: Tenant to scan
            predicate: Filter applied to each loaded person
            active_only: Skip inactive (merged) persons

        Returns:
            List of Person objects ordered by id
        """
        query = "SELECT * FROM person WHERE tenant_id = ?"
        if active_only:
            query += " AND active = 1"
        query += " ORDER BY id"

        rows = self._execute(query, (tenant_id,)).fetchall()
        persons = [self._load_person(row) for row in rows]
        if predicate is not None:
            persons = [p for p in persons if predicate(p)]
        return persons

    def iter_persons_in_birth_window(
        self,
        tenant_id: str,
        start: date,
        end: date,
        active_only: bool = True,
    ) -> Iterator[Person]:
        """Yield persons whose birth date falls within [start, end].

        Persons are loaded lazily so the caller can stop scanning early.

        Args:
            tenant_id: Tenant to scan
            start: First birth date in the window (inclusive)
            end: Last birth date in the window (inclusive)
            active_only: Skip inactive (merged) persons
        """
        query = """
            SELECT * FROM person
            WHERE tenant_id = ? AND birth_date IS NOT NULL
              AND birth_date >= ? AND birth_date <= ?
        """
        if active_only:
            query += " AND active = 1"
        query += " ORDER BY id"

        rows = self._execute(query, (tenant_id, start.isoformat(), end.isoformat())).fetchall()
        for row in rows:
            yield self._load_person(row)

    def list_identifiers_by_value(self, system: str, value: str) -> List[StoredIdentifier]:
        """Find every identifier row with the given (system, value).

        Args:
            system: Identifier system URI
            value: Identifier value (normalized before lookup)

        Returns:
            List of StoredIdentifier ordered by person id
        """
        value = normalize_identifier_value(system, value)
        rows = self._execute("""
            SELECT person_id, system, value, use FROM person_identifier
            WHERE system = ? AND value = ?
            ORDER BY person_id
        """, (system, value)).fetchall()
        return [
            StoredIdentifier(
                person_id=row['person_id'],
                identifier=Identifier(system=row['system'], value=row['value'], use=row['use']),
            )
            for row in rows
        ]

    def find_merged_persons(self, target_id: str) -> List[Person]:
        """List persons merged directly into a target.

        Args:
            target_id: The surviving person

        Returns:
            List of absorbed Person objects
        """
        rows = self._execute(
            "SELECT * FROM person WHERE merged_into = ? ORDER BY id", (target_id,)
        ).fetchall()
        return [self._load_person(row) for row in rows]

    def save_person(self, person: Person) -> Person:
        """Insert or update a person with its identifiers and names.

        Identifier values are normalized before they are written.

        Args:
            person: The person to persist

        Returns:
            The persisted person
        """
        person.normalize_identifiers()
        person.updated_at = datetime.now(timezone.utc)

        with self.transaction():
            try:
                self._write_person(person)
            except sqlite3.IntegrityError as e:
                raise InvalidPersonError(f"Person {person.id} rejected: {e}") from e

        return person

    def _write_person(self, person: Person) -> None:
        """Write the person row and replace its identifier and name rows."""
        self._execute("""
            INSERT INTO person (
                id, tenant_id, birth_date, sex, active, merged_into,
                match_score, created_at, updated_at
            )
            VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?)
            ON CONFLICT(id) DO UPDATE SET
                tenant_id = excluded.tenant_id,
                birth_date = excluded.birth_date,
                sex = excluded.sex,
                active = excluded.active,
                merged_into = excluded.merged_into,
                match_score = excluded.match_score,
                updated_at = excluded.updated_at
        """, (
            person.id,
            person.tenant_id,
            person.birth_date.isoformat() if person.birth_date else None,
            person.sex.value if person.sex else None,
            1 if person.active else 0,
            person.merged_into,
            str(person.match_score) if person.match_score is not None else None,
            _iso(person.created_at),
            _iso(person.updated_at),
        ))

        self._execute("DELETE FROM person_identifier WHERE person_id = ?", (person.id,))
        for identifier in person.identifiers:
            self._execute("""
                INSERT INTO person_identifier (person_id, system, value, use)
                VALUES (?, ?, ?, ?)
            """, (person.id, identifier.system, identifier.value, identifier.use))

        self._execute("DELETE FROM person_name WHERE person_id = ?", (person.id,))
        for position, name in enumerate(person.names):
            self._execute("""
                INSERT INTO person_name (
                    person_id, position, family, given_json, prefix, suffix, text, use
                )
                VALUES (?, ?, ?, ?, ?, ?, ?, ?)
            """, (
                person.id, position, name.family, json.dumps(name.given),
                name.prefix, name.suffix, name.text, name.use,
            ))

    # ========== Merge Methods ==========

    def get_merge(self, merge_id: str) -> Optional[PersonMerge]:
        """Get a merge record by ID.

        Args:
            merge_id: The merge ID

        Returns:
            PersonMerge or None if not found
        """
        row = self._execute("SELECT * FROM person_merge WHERE id = ?", (merge_id,)).fetchone()
        return self._row_to_merge(row) if row else None

    def save_merge(self, merge: PersonMerge) -> PersonMerge:
        """Insert or update a merge record.

        Raises:
            DuplicateMergeError: another ACTIVE merge links the same pair
            InvalidMergeError: the record violates a table constraint
        """
        low, high = merge.pair
        params = {
            'id': merge.id,
            'tenant_id': merge.tenant_id,
            'source_person_id': merge.source_person_id,
            'target_person_id': merge.target_person_id,
            'pair_low': low,
            'pair_high': high,
            'match_score': str(merge.match_score) if merge.match_score is not None else None,
            'match_type': merge.match_type.value,
            'status': merge.status.value,
            'merged_at': _iso(merge.merged_at),
            'merged_by': merge.merged_by,
            'merged_by_role': merge.merged_by_role,
            'reason': merge.reason,
            'is_automatic': 1 if merge.is_automatic else 0,
            'source_snapshot_json': json.dumps(merge.source_snapshot),
            'target_snapshot_json': json.dumps(merge.target_snapshot),
            'merge_details_json': json.dumps(merge.merge_details) if merge.merge_details else None,
            'reversed_at': _iso(merge.reversed_at),
            'reversed_by': merge.reversed_by,
            'reversal_reason': merge.reversal_reason,
            'correlation_id': merge.correlation_id,
        }

        with self.transaction():
            try:
                self._execute("""
                    INSERT INTO person_merge (
                        id, tenant_id, source_person_id, target_person_id,
                        pair_low, pair_high, match_score, match_type, status,
                        merged_at, merged_by, merged_by_role, reason, is_automatic,
                        source_snapshot_json, target_snapshot_json, merge_details_json,
                        reversed_at, reversed_by, reversal_reason, correlation_id
                    )
                    VALUES (
                        :id, :tenant_id, :source_person_id, :target_person_id,
                        :pair_low, :pair_high, :match_score, :match_type, :status,
                        :merged_at, :merged_by, :merged_by_role, :reason, :is_automatic,
                        :source_snapshot_json, :target_snapshot_json, :merge_details_json,
                        :reversed_at, :reversed_by, :reversal_reason, :correlation_id
                    )
                    ON CONFLICT(id) DO UPDATE SET
                        status = excluded.status,
                        reversed_at = excluded.reversed_at,
                        reversed_by = excluded.reversed_by,
                        reversal_reason = excluded.reversal_reason,
                        merge_details_json = excluded.merge_details_json
                """, params)
            except sqlite3.IntegrityError as e:
                if 'pair_low' in str(e) or 'ux_person_merge_active_pair' in str(e):
                    raise DuplicateMergeError(
                        f"An active merge already links {low} and {high}"
                    ) from e
                raise InvalidMergeError(f"Merge record rejected: {e}") from e

        return merge

    def find_active_merge_between(self, person_id1: str, person_id2: str) -> Optional[PersonMerge]:
        """Find the ACTIVE merge linking two persons, in either direction."""
        low, high = unordered_pair(person_id1, person_id2)
        row = self._execute("""
            SELECT * FROM person_merge
            WHERE pair_low = ? AND pair_high = ? AND status = 'ACTIVE'
        """, (low, high)).fetchone()
        return self._row_to_merge(row) if row else None

    def list_merges_for_pair(
        self,
        person_id1: str,
        person_id2: str,
        status: Optional[MergeStatus] = None,
    ) -> List[PersonMerge]:
        """List merges linking two persons in either direction, oldest first."""
        low, high = unordered_pair(person_id1, person_id2)
        query = "SELECT * FROM person_merge WHERE pair_low = ? AND pair_high = ?"
        params = [low, high]
        if status is not None:
            query += " AND status = ?"
            params.append(status.value)
        query += " ORDER BY merged_at, id"
        return [self._row_to_merge(row) for row in self._execute(query, params).fetchall()]

    def list_merges_by_source(
        self,
        source_person_id: str,
        status: Optional[MergeStatus] = None,
    ) -> List[PersonMerge]:
        """List merges where a person was absorbed, newest first."""
        return self._list_merges('source_person_id', source_person_id, status)

    def list_merges_by_target(
        self,
        target_person_id: str,
        status: Optional[MergeStatus] = None,
    ) -> List[PersonMerge]:
        """List merges where a person survived, newest first."""
        return self._list_merges('target_person_id', target_person_id, status)

    def list_merges_by_correlation_id(self, correlation_id: str) -> List[PersonMerge]:
        """List merges sharing a correlation id, oldest first."""
        rows = self._execute("""
            SELECT * FROM person_merge WHERE correlation_id = ?
            ORDER BY merged_at, id
        """, (correlation_id,)).fetchall()
        return [self._row_to_merge(row) for row in rows]

    def list_merges_by_tenant(
        self,
        tenant_id: str,
        limit: Optional[int] = None,
        offset: int = 0,
    ) -> List[PersonMerge]:
        """List a tenant's merges, newest first, one page at a time."""
        query = "SELECT * FROM person_merge WHERE tenant_id = ? ORDER BY merged_at DESC, id"
        params = [tenant_id]
        if limit is not None:
            query += " LIMIT ? OFFSET ?"
            params.extend([limit, offset])
        return [self._row_to_merge(row) for row in self._execute(query, params).fetchall()]

    def list_merges_by_match_type(self, tenant_id: str, match_type: MatchType) -> List[PersonMerge]:
        """List a tenant's merges of one match type, newest first."""
        return self._query_merges(
            "tenant_id = ? AND match_type = ?", [tenant_id, match_type.value]
        )

    def list_merges_by_automatic(self, tenant_id: str) -> List[PersonMerge]:
        """List a tenant's automatic merges, newest first."""
        return self._query_merges("tenant_id = ? AND is_automatic = 1", [tenant_id])

    def list_merges_by_actor(self, merged_by: str) -> List[PersonMerge]:
        """List merges performed by one user or process, newest first."""
        return self._query_merges("merged_by = ?", [merged_by])

    def list_merges_by_date_range(
        self,
        tenant_id: str,
        start: datetime,
        end: datetime,
    ) -> List[PersonMerge]:
        """List a tenant's merges with merged_at in [start, end], newest first.

        Naive datetimes are taken as UTC.
        """
        return self._query_merges(
            "tenant_id = ? AND merged_at >= ? AND merged_at <= ?",
            [tenant_id, _iso(_as_utc(start)), _iso(_as_utc(end))],
        )

    def list_merges_by_reversal(self, tenant_id: str) -> List[PersonMerge]:
        """List a tenant's REVERSED merges, most recently reversed first."""
        return self._query_merges(
            "tenant_id = ? AND status = ?",
            [tenant_id, MergeStatus.REVERSED.value],
            order="reversed_at DESC, id",
        )

    def count_merges(self, status: MergeStatus, tenant_id: Optional[str] = None) -> int:
        """Count merges in a given state, optionally within one tenant."""
        query = "SELECT COUNT(*) FROM person_merge WHERE status = ?"
        params = [status.value]
        if tenant_id:
            query += " AND tenant_id = ?"
            params.append(tenant_id)
        return self._execute(query, params).fetchone()[0]

    def count_automatic_merges(self, tenant_id: str, status: MergeStatus) -> int:
        """Count a tenant's automatic merges in a given state."""
        return self._execute("""
            SELECT COUNT(*) FROM person_merge
            WHERE tenant_id = ? AND is_automatic = 1 AND status = ?
        """, (tenant_id, status.value)).fetchone()[0]

    def _query_merges(
        self,
        where: str,
        params: list,
        order: str = "merged_at DESC, id",
    ) -> List[PersonMerge]:
        rows = self._execute(
            f"SELECT * FROM person_merge WHERE {where} ORDER BY {order}", params
        ).fetchall()
        return [self._row_to_merge(row) for row in rows]

    def _list_merges(
        self,
        column: str,
        person_id: str,
        status: Optional[MergeStatus],
    ) -> List[PersonMerge]:
        query = f"SELECT * FROM person_merge WHERE {column} = ?"
        params = [person_id]
        if status is not None:
            query += " AND status = ?"
            params.append(status.value)
        query += " ORDER BY merged_at DESC, id"
        return [self._row_to_merge(row) for row in self._execute(query, params).fetchall()]

    # ========== Helper Methods ==========

    def _load_person(self, row: sqlite3.Row) -> Person:
        """Convert a person row to a Person with identifiers and names."""
        person = Person(
            id=row['id'],
            tenant_id=row['tenant_id'],
            birth_date=date.fromisoformat(row['birth_date']) if row['birth_date'] else None,
            sex=AdministrativeSex(row['sex']) if row['sex'] else None,
            active=bool(row['active']),
            merged_into=row['merged_into'],
            match_score=Decimal(row['match_score']) if row['match_score'] is not None else None,
            created_at=_parse_datetime(row['created_at']),
            updated_at=_parse_datetime(row['updated_at']),
        )

        person.identifiers = [
            Identifier(system=r['system'], value=r['value'], use=r['use'])
            for r in self._execute("""
                SELECT system, value, use FROM person_identifier
                WHERE person_id = ? ORDER BY id
            """, (person.id,)).fetchall()
        ]

        person.names = [
            PersonName(
                family=r['family'],
                given=json.loads(r['given_json']) if r['given_json'] else [],
                prefix=r['prefix'],
                suffix=r['suffix'],
                text=r['text'],
                use=r['use'],
            )
            for r in self._execute("""
                SELECT * FROM person_name
                WHERE person_id = ? ORDER BY position
            """, (person.id,)).fetchall()
        ]

        return person

    def _row_to_merge(self, row: sqlite3.Row) -> PersonMerge:
        """Convert a person_merge row to a PersonMerge."""
        return PersonMerge(
            id=row['id'],
            tenant_id=row['tenant_id'],
            source_person_id=row['source_person_id'],
            target_person_id=row['target_person_id'],
            match_score=Decimal(row['match_score']) if row['match_score'] is not None else None,
            match_type=MatchType(row['match_type']),
            status=MergeStatus(row['status']),
            merged_at=_parse_datetime(row['merged_at']),
            merged_by=row['merged_by'],
            merged_by_role=row['merged_by_role'],
            reason=row['reason'],
            is_automatic=bool(row['is_automatic']),
            source_snapshot=json.loads(row['source_snapshot_json']),
            target_snapshot=json.loads(row['target_snapshot_json']),
            merge_details=json.loads(row['merge_details_json']) if row['merge_details_json'] else {},
            reversed_at=_parse_datetime(row['reversed_at']),
            reversed_by=row['reversed_by'],
            reversal_reason=row['reversal_reason'],
            correlation_id=row['correlation_id'],
        )
