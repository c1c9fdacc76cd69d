"""
AuditRecorder -- append-only, hash-chained audit trail.

Responsibility:
    Writes one AuditEntry per status change of a leave request, in the
    same transaction as the change, and validates the chain on demand.

Architecture position:
    Kernel > Services -- flush-only, runs inside the caller's AtomicUnit.
    DecisionService calls ``record`` explicitly; there are no lifecycle
    hooks writing audit rows behind its back.

Invariants enforced:
    - seq comes from SequenceService's locked counter, so entries are
      totally ordered and the chain has no forks.
    - hash = H(entity_type | entity_id | action | payload_hash | prev_hash);
      payload_hash covers actor, old/new snapshots, correlation id and time.
    - Entries are never updated or deleted (ORM listener).

Failure modes:
    - AuditChainBrokenError from ``validate_chain`` when a stored entry no
      longer matches its recomputed hash or its predecessor link.
"""

from datetime import timezone
from typing import Any
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.orm import Session

from leave_kernel.domain.clock import Clock
from leave_kernel.domain.dtos import AuditEntryRecord
from leave_kernel.exceptions import AuditChainBrokenError
from leave_kernel.logging_config import get_logger
from leave_kernel.models.audit_entry import AuditAction, AuditEntry
from leave_kernel.selectors.audit_selector import AuditSelector
from leave_kernel.services.base import BaseService
from leave_kernel.services.sequence_service import SequenceService
from leave_kernel.utils.hashing import hash_audit_entry, hash_payload, to_json_safe

logger = get_logger("services.audit_recorder")


def _payload_for(
    actor_id: UUID,
    old_value: dict | None,
    new_value: dict | None,
    correlation_id: str,
    occurred_at: str,
) -> dict[str, Any]:
    return {
        "actor_id": str(actor_id),
        "old_value": old_value,
        "new_value": new_value,
        "correlation_id": correlation_id,
        "occurred_at": occurred_at,
    }


class AuditRecorder(BaseService[AuditEntry]):
    """Write side of the audit trail."""

    def __init__(self, session: Session, clock: Clock):
        super().__init__(session)
        self._clock = clock
        self._sequence_service = SequenceService(session)

    def _get_last_hash(self) -> str | None:
        return self.session.execute(
            select(AuditEntry.hash).order_by(AuditEntry.seq.desc()).limit(1)
        ).scalar_one_or_none()

    def record(
        self,
        actor_id: UUID,
        action: AuditAction,
        entity_type: str,
        entity_id: UUID,
        old_value: dict | None,
        new_value: dict | None,
        correlation_id: str,
    ) -> AuditEntryRecord:
        """
        Append one entry to the chain and flush it.

        Postconditions:
            - entry.seq is greater than every seq committed before it.
            - entry.prev_hash is the hash of the previous entry (None for
              the first one).
        """
        # Locking the counter first serializes chain extension.
        seq = self._sequence_service.next_value(SequenceService.AUDIT_ENTRY)
        prev_hash = self._get_last_hash()

        occurred_at = self._clock.now().astimezone(timezone.utc)
        old_json = to_json_safe(old_value) if old_value is not None else None
        new_json = to_json_safe(new_value) if new_value is not None else None
        payload_hash = hash_payload(
            _payload_for(actor_id, old_json, new_json, correlation_id, occurred_at.isoformat())
        )
        entry_hash = hash_audit_entry(
            entity_type=entity_type,
            entity_id=str(entity_id),
            action=action.value,
            payload_hash=payload_hash,
            prev_hash=prev_hash,
        )

        entry = AuditEntry(
            seq=seq,
            actor_id=actor_id,
            action=action.value,
            entity_type=entity_type,
            entity_id=entity_id,
            old_value=old_json,
            new_value=new_json,
            correlation_id=correlation_id,
            occurred_at=occurred_at,
            payload_hash=payload_hash,
            prev_hash=prev_hash,
            hash=entry_hash,
        )
        self.session.add(entry)
        self.session.flush()

        logger.info(
            "audit_entry_created",
            extra={
                "entity_type": entity_type,
                "entity_id": str(entity_id),
                "action": action.value,
                "seq": seq,
            },
        )
        return entry.to_dto()

    def entries_for(self, entity_type: str, entity_id: UUID) -> tuple[AuditEntryRecord, ...]:
        return AuditSelector(self.session).entries_for(entity_type, entity_id)

    def validate_chain(self) -> bool:
        """
        Validate the entire audit chain.

        Recomputes every payload hash from the stored columns, every entry
        hash from its fields, and checks each prev_hash link.

        Raises:
            AuditChainBrokenError: at the first entry that fails.
        """
        entries = self.session.execute(
            select(AuditEntry).order_by(AuditEntry.seq)
        ).scalars().all()

        prev: AuditEntry | None = None
        for entry in entries:
            expected_prev = prev.hash if prev is not None else None
            if entry.prev_hash != expected_prev:
                logger.critical("audit_chain_broken", extra={"seq": entry.seq})
                raise AuditChainBrokenError(
                    str(entry.id), expected_prev or "None", entry.prev_hash or "None",
                )

            payload_hash = hash_payload(
                _payload_for(
                    entry.actor_id,
                    entry.old_value,
                    entry.new_value,
                    entry.correlation_id,
                    entry.occurred_at.isoformat(),
                )
            )
            expected_hash = hash_audit_entry(
                entity_type=entry.entity_type,
                entity_id=str(entry.entity_id),
                action=entry.action,
                payload_hash=payload_hash,
                prev_hash=entry.prev_hash,
            )
            if entry.hash != expected_hash:
                logger.critical("audit_chain_broken", extra={"seq": entry.seq})
                raise AuditChainBrokenError(str(entry.id), expected_hash, entry.hash)
            prev = entry

        logger.info("audit_chain_valid", extra={"entry_count": len(entries)})
        return True
