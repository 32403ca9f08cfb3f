"""Reversal of previously applied merges from their snapshots."""

import logging
from datetime import datetime, timezone
from typing import Any, Dict, Optional

from ..core.exceptions import NotFoundError, NotReversibleError
from ..core.person import Person
from ..core.person_merge import MergeStatus, PersonMerge
from ..store.adapter import IdentityStore
from ..utils.audit_trail import AuditAction, AuditEvent, AuditSink
from ..utils.config import MPIConfig, default_config

logger = logging.getLogger(__name__)


# Bookkeeping fields ignored when comparing a person to its snapshot
VOLATILE_FIELDS = ('created_at', 'updated_at')


def _comparable(state: Dict[str, Any]) -> Dict[str, Any]:
    return {k: v for k, v in state.items() if k not in VOLATILE_FIELDS}


class ReversalManager:
    """
    Undoes merges.

    The source person is restored from the snapshot captured at merge time.
    The target person is left as it is; if it changed since the merge, the
    divergence is logged and recorded on the merge for operator review.
    """

    def __init__(
        self,
        store: IdentityStore,
        audit_sink: Optional[AuditSink] = None,
        config: Optional[MPIConfig] = None,
    ):
        self.store = store
        self.audit_sink = audit_sink
        self.config = config or default_config

    def reverse(self, merge_id: str, actor: str, reason: Optional[str] = None) -> PersonMerge:
        """
        Reverse an ACTIVE merge.

        Args:
            merge_id: The merge to undo
            actor: User or process performing the reversal
            reason: Free-text justification

        Returns:
            The updated PersonMerge, now REVERSED

        Raises:
            NotFoundError: the merge or its source person does not exist
            NotReversibleError: the merge is not ACTIVE
            StoreUnavailableError: the store could not complete the transaction
        """
        logger.info(f"Reversing merge {merge_id}")

        with self.store.transaction():
            # Status is re-read under the write lock.
            merge = self.store.get_merge(merge_id)
            if merge is None:
                raise NotFoundError(f"Merge not found: {merge_id}")
            if not merge.is_reversible:
                raise NotReversibleError(
                    f"Merge {merge_id} is {merge.status.value} and cannot be reversed"
                )

            source = self.store.require_person(merge.source_person_id)
            restored = self.restore_from_snapshot(source, merge.source_snapshot)
            self.store.save_person(restored)

            target = self.store.get_person(merge.target_person_id)
            target_diverged = target is not None and (
                _comparable(target.to_dict()) != _comparable(merge.target_snapshot)
            )

            merge.status = MergeStatus.REVERSED
            merge.reversed_at = datetime.now(timezone.utc)
            merge.reversed_by = actor
            merge.reversal_reason = reason
            merge.merge_details = {**merge.merge_details, 'target_diverged': target_diverged}
            self.store.save_merge(merge)

        if target_diverged:
            logger.warning(
                f"Target {merge.target_person_id} changed after merge {merge_id}; "
                f"its current state was kept"
            )
        logger.info(f"Merge {merge_id} reversed; person {merge.source_person_id} restored")

        self._emit(AuditEvent(
            action=AuditAction.REVERSE,
            tenant_id=merge.tenant_id,
            merge_id=merge.id,
            source_person_id=merge.source_person_id,
            target_person_id=merge.target_person_id,
            actor=actor,
            reason=reason,
            correlation_id=merge.correlation_id,
            metadata={'target_diverged': target_diverged},
        ))
        return merge

    @staticmethod
    def restore_from_snapshot(current: Person, snapshot: Dict[str, Any]) -> Person:
        """
        Rebuild a person from its pre-merge snapshot.

        Identity fields (id, tenant, creation time) are kept from the current
        record, and the merge pointer is always cleared.
        """
        restored = Person.from_dict({**snapshot, 'id': current.id, 'tenant_id': current.tenant_id})
        restored.created_at = current.created_at
        restored.active = True
        restored.merged_into = None
        restored.match_score = None
        return restored

    def _emit(self, event: AuditEvent) -> None:
        """Send an audit event; failures are logged and never raised."""
        if self.audit_sink is None or not self.config.emit_audit_events:
            return
        try:
            self.audit_sink.record(event)
        except Exception as e:
            logger.error(f"Audit emission failed for reversal of {event.merge_id}: {e}", exc_info=True)
