"""
Module: leave_kernel.models.audit_entry
Responsibility: ORM persistence for the tamper-evident audit trail.
Architecture position: Kernel > Models.  May import from db/base.py only.

Invariants enforced:
    - Audit rows are append-only; no UPDATE or DELETE (ORM listener).
    - Hash chain: hash = H(entity_type | entity_id | action | payload_hash |
      prev_hash).  Validated by AuditRecorder.validate_chain().
    - seq is unique and monotonically increasing, allocated by SequenceService.

Failure modes:
    - ImmutabilityViolationError on any UPDATE/DELETE attempt.
    - AuditChainBrokenError when chain validation detects a hash mismatch.

Every status change of a leave request produces exactly one AuditEntry in
the same transaction as the change itself.
"""

from __future__ import annotations

from datetime import datetime
from enum import Enum
from typing import TYPE_CHECKING
from uuid import UUID

from sqlalchemy import JSON, BigInteger, Index, String
from sqlalchemy.orm import Mapped, mapped_column

from leave_kernel.db.base import Base, UUIDString

if TYPE_CHECKING:
    from leave_kernel.domain.dtos import AuditEntryRecord


class AuditAction(str, Enum):
    """Action labels written to the audit trail."""

    REQUEST_ENQUEUED = "request_enqueued"
    REQUEST_ADVANCED = "request_advanced"
    REQUEST_APPROVED = "request_approved"
    REQUEST_REJECTED = "request_rejected"


class AuditEntry(Base):
    """Audit entry with hash chain for tamper evidence."""

    __tablename__ = "audit_entries"

    __table_args__ = (
        Index("idx_audit_entity", "entity_type", "entity_id"),
        Index("idx_audit_correlation", "correlation_id"),
    )

    seq: Mapped[int] = mapped_column(BigInteger, nullable=False, unique=True)
    actor_id: Mapped[UUID] = mapped_column(UUIDString(), nullable=False)
    action: Mapped[str] = mapped_column(String(50), nullable=False)
    entity_type: Mapped[str] = mapped_column(String(50), nullable=False)
    entity_id: Mapped[UUID] = mapped_column(UUIDString(), nullable=False)
    old_value: Mapped[dict | None] = mapped_column(JSON, nullable=True)
    new_value: Mapped[dict | None] = mapped_column(JSON, nullable=True)
    correlation_id: Mapped[str] = mapped_column(String(64), nullable=False)
    occurred_at: Mapped[datetime] = mapped_column(nullable=False)
    payload_hash: Mapped[str] = mapped_column(String(64), nullable=False)
    # "GENESIS" input for the first entry; stored as NULL.
    prev_hash: Mapped[str | None] = mapped_column(String(64), nullable=True)
    hash: Mapped[str] = mapped_column(String(64), nullable=False)

    def __repr__(self) -> str:
        return f"<AuditEntry #{self.seq} {self.action} on {self.entity_type}:{self.entity_id}>"

    @property
    def is_genesis(self) -> bool:
        return self.prev_hash is None

    def to_dto(self) -> AuditEntryRecord:
        from leave_kernel.domain.dtos import AuditEntryRecord

        return AuditEntryRecord(
            seq=self.seq,
            actor_id=self.actor_id,
            action=self.action,
            entity_type=self.entity_type,
            entity_id=self.entity_id,
            old_value=self.old_value,
            new_value=self.new_value,
            correlation_id=self.correlation_id,
            occurred_at=self.occurred_at,
            hash=self.hash,
        )
