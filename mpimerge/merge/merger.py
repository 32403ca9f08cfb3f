"""
Merge executor for duplicate person records.

Applies a merge decision atomically: the source person is deactivated and
redirected to the target, and a reversible PersonMerge is recorded with
snapshots of both persons.
"""

import logging
import uuid
from dataclasses import dataclass
from datetime import datetime, timezone
from decimal import Decimal, InvalidOperation
from enum import Enum
from typing import Any, Dict, List, Optional

from ..core.exceptions import (
    AlreadyMergedError,
    DuplicateMergeError,
    InvalidMergeError,
    MergeCycleError,
    MPIError,
)
from ..core.person import Person, quantize_person_score
from ..core.person_merge import (
    MERGEABLE_MATCH_TYPES,
    MatchType,
    MergeStatus,
    PersonMerge,
)
from ..matching.matcher import MatchCandidate
from ..store.adapter import IdentityStore
from ..utils.audit_trail import AuditAction, AuditEvent, AuditSink
from ..utils.config import MPIConfig, default_config
from .resolution import merge_chain

logger = logging.getLogger(__name__)


TIER_RANK = {
    MatchType.NO_MATCH: 0,
    MatchType.POSSIBLE: 1,
    MatchType.PROBABLE: 2,
    MatchType.EXACT: 3,
}


class MergeStrategy(Enum):
    """Strategy for merging located candidates."""
    AUTOMATIC = "automatic"  # Merge candidates at or above the configured tier
    MANUAL = "manual"  # Require operator confirmation for all


@dataclass
class AutoMergeResult:
    """Outcome of one candidate in an automatic merge batch."""
    candidate_id: str
    success: bool
    merge: Optional[PersonMerge] = None
    error: Optional[str] = None

    def __str__(self) -> str:
        if self.success:
            return f"Merged {self.candidate_id} ({self.merge.id})"
        return f"Not merged {self.candidate_id}: {self.error}"


def _coerce_score(match_score) -> Optional[Decimal]:
    if match_score is None:
        return None
    try:
        score = Decimal(str(match_score))
    except InvalidOperation as e:
        raise InvalidMergeError(f"Match score is not a number: {match_score!r}") from e
    if not score.is_finite() or score < 0 or score > 1:
        raise InvalidMergeError(f"Match score must be within [0, 1], got {match_score}")
    return score


class MergeExecutor:
    """
    Merges duplicate person records.

    Merge Process:
    1. Validate the pair inside one store transaction
    2. Snapshot both persons
    3. Deactivate the source and point it at the target
    4. Record an ACTIVE PersonMerge
    5. Emit an audit event after commit (best-effort)
    """

    def __init__(
        self,
        store: IdentityStore,
        audit_sink: Optional[AuditSink] = None,
        config: Optional[MPIConfig] = None,
    ):
        """
        Initialize the executor.

        Args:
            store: Identity store
            audit_sink: Receiver of merge audit events
            config: Engine configuration
        """
        self.store = store
        self.audit_sink = audit_sink
        self.config = config or default_config

    def merge(
        self,
        source_id: str,
        target_id: str,
        actor: str,
        reason: Optional[str] = None,
        match_score=None,
        match_type: MatchType = MatchType.MANUAL,
        is_automatic: bool = False,
        correlation_id: Optional[str] = None,
        actor_role: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None,
    ) -> PersonMerge:
        """
        Merge the source person into the target person.

        Args:
            source_id: Person to absorb
            target_id: Surviving person
            actor: User or process performing the merge
            reason: Free-text justification
            match_score: Score that justified the merge, None for manual merges
            match_type: EXACT, PROBABLE, POSSIBLE or MANUAL
            is_automatic: True when no operator confirmed the merge
            correlation_id: Tracing id, generated when omitted
            actor_role: Role of the actor
            details: Extra data stored with the merge record

        Returns:
            The persisted PersonMerge

        Raises:
            InvalidMergeError: self-merge, bad score or type, tenant mismatch
            MergeCycleError: the target's chain already leads to the source
            NotFoundError: either person does not exist
            AlreadyMergedError: the source has already been absorbed
            DuplicateMergeError: an ACTIVE merge already links the pair
            StoreUnavailableError: the store could not complete the transaction
        """
        if source_id == target_id:
            raise InvalidMergeError(f"Cannot merge person {source_id} with itself")
        if match_type not in MERGEABLE_MATCH_TYPES:
            raise InvalidMergeError(f"Cannot merge with match type {match_type.value}")
        score = _coerce_score(match_score)
        correlation_id = correlation_id or uuid.uuid4().hex

        logger.info(f"Merging person {source_id} into {target_id} ({match_type.value})")

        with self.store.transaction():
            source = self.store.require_person(source_id)
            target = self.store.require_person(target_id)

            if source.tenant_id != target.tenant_id:
                raise InvalidMergeError(
                    f"Persons {source_id} and {target_id} belong to different tenants"
                )

            existing = self.store.find_active_merge_between(source_id, target_id)
            if existing is not None:
                raise DuplicateMergeError(
                    f"Merge {existing.id} already links {source_id} and {target_id}"
                )

            if source.merged_into is not None:
                raise AlreadyMergedError(
                    f"Person {source_id} is already merged into {source.merged_into}"
                )

            self._check_cycle(source, target)

            source_snapshot = source.to_dict()
            target_snapshot = target.to_dict()

            source.active = False
            source.merged_into = target.id
            source.match_score = quantize_person_score(score)

            self.store.save_person(source)
            self.store.save_person(target)

            superseded = self._supersede_reversed(source_id, target_id)

            merge_details = dict(details or {})
            if superseded:
                merge_details['superseded_merge_ids'] = superseded

            merge = PersonMerge(
                tenant_id=source.tenant_id,
                source_person_id=source.id,
                target_person_id=target.id,
                merged_by=actor,
                merged_by_role=actor_role,
                match_score=score,
                match_type=match_type,
                status=MergeStatus.ACTIVE,
                merged_at=datetime.now(timezone.utc),
                reason=reason,
                is_automatic=is_automatic,
                source_snapshot=source_snapshot,
                target_snapshot=target_snapshot,
                merge_details=merge_details,
                correlation_id=correlation_id,
            )
            # The store's active-pair index re-checks the invariant at commit time.
            self.store.save_merge(merge)

        logger.info(f"Person {source_id} merged into {target_id} successfully (merge {merge.id})")

        self._emit(AuditEvent(
            action=AuditAction.MERGE,
            tenant_id=merge.tenant_id,
            merge_id=merge.id,
            source_person_id=merge.source_person_id,
            target_person_id=merge.target_person_id,
            actor=actor,
            reason=reason,
            correlation_id=correlation_id,
            metadata={
                'match_type': match_type.value,
                'match_score': str(merge.match_score) if merge.match_score is not None else None,
                'is_automatic': is_automatic,
            },
        ))
        return merge

    def auto_merge(
        self,
        person: Person,
        candidates: List[MatchCandidate],
        actor: str,
        strategy: MergeStrategy = MergeStrategy.AUTOMATIC,
        auto_merge_tier: Optional[MatchType] = None,
        correlation_id: Optional[str] = None,
    ) -> List[AutoMergeResult]:
        """
        Merge located candidates into a person.

        Args:
            person: Surviving person the candidates were located for
            candidates: Output of CandidateLocator.find_candidates
            actor: Batch process or user performing the merges
            strategy: AUTOMATIC merges qualifying candidates, MANUAL none
            auto_merge_tier: Lowest tier merged automatically
            correlation_id: Shared tracing id for the batch

        Returns:
            One AutoMergeResult per candidate, in candidate order
        """
        tier = auto_merge_tier or self.config.auto_merge_tier
        correlation_id = correlation_id or uuid.uuid4().hex
        results = []

        for candidate in candidates:
            if strategy == MergeStrategy.MANUAL:
                results.append(AutoMergeResult(
                    candidate_id=candidate.person_id,
                    success=False,
                    error="Manual confirmation required",
                ))
                continue

            if TIER_RANK.get(candidate.match_type, 0) < TIER_RANK[tier]:
                results.append(AutoMergeResult(
                    candidate_id=candidate.person_id,
                    success=False,
                    error=f"Tier {candidate.match_type.value} below {tier.value}",
                ))
                continue

            try:
                merge = self.merge(
                    source_id=candidate.person_id,
                    target_id=person.id,
                    actor=actor,
                    reason=f"Automatic {candidate.match_type.value} match",
                    match_score=candidate.score,
                    match_type=candidate.match_type,
                    is_automatic=True,
                    correlation_id=correlation_id,
                )
            except MPIError as e:
                logger.warning(f"Automatic merge of {candidate.person_id} into {person.id} failed: {e}")
                results.append(AutoMergeResult(
                    candidate_id=candidate.person_id,
                    success=False,
                    error=str(e),
                ))
                continue

            results.append(AutoMergeResult(
                candidate_id=candidate.person_id,
                success=True,
                merge=merge,
            ))

        return results

    def _check_cycle(self, source: Person, target: Person) -> None:
        """Reject a merge whose target already resolves to the source."""
        chain = merge_chain(self.store, target.id, self.config.max_chain_depth)
        if any(p.id == source.id for p in chain):
            raise MergeCycleError(
                f"Merging {source.id} into {target.id} would create a merge cycle"
            )

    def _supersede_reversed(self, source_id: str, target_id: str) -> List[str]:
        """Mark earlier REVERSED merges of the pair as SUPERSEDED."""
        superseded = []
        for previous in self.store.list_merges_for_pair(
            source_id, target_id, status=MergeStatus.REVERSED
        ):
            previous.status = MergeStatus.SUPERSEDED
            self.store.save_merge(previous)
            superseded.append(previous.id)
        return superseded

    def _emit(self, event: AuditEvent) -> None:
        """Send an audit event; failures are logged and never raised."""
        if self.audit_sink is None or not self.config.emit_audit_events:
            return
        try:
            self.audit_sink.record(event)
        except Exception as e:
            logger.error(f"Audit emission failed for merge {event.merge_id}: {e}", exc_info=True)
