"""Merge records: the audit and undo trail of merge decisions."""

import uuid
from dataclasses import dataclass, field
from datetime import datetime, timezone
from decimal import Decimal, ROUND_HALF_UP
from enum import Enum
from typing import Optional, Dict, Any, Tuple


MERGE_SCORE_QUANTUM = Decimal('0.0001')


class MatchType(Enum):
    """Tier of a match, or MANUAL for operator-initiated merges."""
    EXACT = "EXACT"  # >= 0.95
    PROBABLE = "PROBABLE"  # >= 0.80
    POSSIBLE = "POSSIBLE"  # >= 0.60
    NO_MATCH = "NO_MATCH"  # < 0.60, never recorded on a merge
    MANUAL = "MANUAL"


MERGEABLE_MATCH_TYPES = frozenset({
    MatchType.EXACT, MatchType.PROBABLE, MatchType.POSSIBLE, MatchType.MANUAL,
})


class MergeStatus(Enum):
    """Lifecycle state of a merge."""
    ACTIVE = "ACTIVE"
    REVERSED = "REVERSED"
    SUPERSEDED = "SUPERSEDED"


def quantize_merge_score(score: Optional[Decimal]) -> Optional[Decimal]:
    """Quantize a merge score to 4 decimal places, or pass None through."""
    if score is None:
        return None
    return Decimal(str(score)).quantize(MERGE_SCORE_QUANTUM, rounding=ROUND_HALF_UP)


def unordered_pair(person_id1: str, person_id2: str) -> Tuple[str, str]:
    """Return the pair of ids as (lowest, highest)."""
    return (person_id1, person_id2) if person_id1 <= person_id2 else (person_id2, person_id1)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


@dataclass
class PersonMerge:
    """One merge decision: source absorbed into target.

    Created only by the merge executor and updated only once, by the
    reversal manager (ACTIVE -> REVERSED), or by a later merge of the same
    pair (REVERSED -> SUPERSEDED). Never deleted.
    """
    tenant_id: str
    source_person_id: str
    target_person_id: str
    merged_by: str
    id: str = field(default_factory=lambda: str(uuid.uuid4()))
    match_score: Optional[Decimal] = None
    match_type: MatchType = MatchType.MANUAL
    status: MergeStatus = MergeStatus.ACTIVE
    merged_at: datetime = field(default_factory=_utcnow)
    merged_by_role: Optional[str] = None
    reason: Optional[str] = None
    is_automatic: bool = False
    source_snapshot: Dict[str, Any] = field(default_factory=dict)
    target_snapshot: Dict[str, Any] = field(default_factory=dict)
    merge_details: Dict[str, Any] = field(default_factory=dict)
    reversed_at: Optional[datetime] = None
    reversed_by: Optional[str] = None
    reversal_reason: Optional[str] = None
    correlation_id: Optional[str] = None

    def __post_init__(self):
        self.match_score = quantize_merge_score(self.match_score)

    def __str__(self) -> str:
        score = f"{self.match_score}" if self.match_score is not None else "manual"
        return (
            f"Merge {self.id}: {self.source_person_id} -> {self.target_person_id} "
            f"[{self.status.value}, {self.match_type.value}, score={score}]"
        )

    @property
    def pair(self) -> Tuple[str, str]:
        """The unordered pair of person ids linked by this merge."""
        return unordered_pair(self.source_person_id, self.target_person_id)

    @property
    def is_active(self) -> bool:
        return self.status == MergeStatus.ACTIVE

    @property
    def is_reversible(self) -> bool:
        """Only ACTIVE merges can be reversed."""
        return self.status == MergeStatus.ACTIVE and self.reversed_at is None
