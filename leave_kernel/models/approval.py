"""
Module: leave_kernel.models.approval
Responsibility: ORM persistence for individual approval decisions.

Architecture position: Kernel > Models.  May import from db/base.py only.

Invariants enforced:
    - Decision uniqueness: UNIQUE(request_id, level_id, approver_id) stops
      the same approver voting twice at the same level, even when two
      identical calls race.
    - Append-only: no UPDATE, no DELETE (ORM listener, see db/immutability.py).

Failure modes:
    - IntegrityError on a duplicate decision (surfaced as DuplicateDecisionError
      by ApprovalLedger).
    - ImmutabilityViolationError on UPDATE/DELETE.
"""

from __future__ import annotations

from datetime import datetime
from typing import TYPE_CHECKING
from uuid import UUID

from sqlalchemy import CheckConstraint, ForeignKey, Index, String, Text, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from leave_kernel.db.base import Base, UUIDString

if TYPE_CHECKING:
    from leave_kernel.domain.dtos import ApprovalRecord

APPROVAL_UNIQUE_CONSTRAINT = "uq_approvals_request_level_approver"


class Approval(Base):
    """Persistent approval decision. Append-only."""

    __tablename__ = "approvals"

    __table_args__ = (
        UniqueConstraint(
            "request_id", "level_id", "approver_id",
            name=APPROVAL_UNIQUE_CONSTRAINT,
        ),
        CheckConstraint(
            "decision IN ('APPROVED', 'REJECTED', 'OPINION_POSITIVE', 'OPINION_NEGATIVE')",
            name="ck_approvals_decision",
        ),
        Index("ix_approvals_request_id", "request_id"),
    )

    request_id: Mapped[UUID] = mapped_column(
        UUIDString(), ForeignKey("leave_requests.id"), nullable=False,
    )
    level_id: Mapped[UUID] = mapped_column(
        UUIDString(), ForeignKey("approval_levels.id"), nullable=False,
    )
    # Denormalized so history reads need no join.
    level_role: Mapped[str] = mapped_column(String(20), nullable=False)
    level_rank: Mapped[int] = mapped_column(nullable=False)
    approver_id: Mapped[UUID] = mapped_column(UUIDString(), nullable=False)
    decision: Mapped[str] = mapped_column(String(20), nullable=False)
    comment: Mapped[str | None] = mapped_column(Text, nullable=True)
    decided_at: Mapped[datetime] = mapped_column(nullable=False)

    def __repr__(self) -> str:
        return (
            f"<Approval {self.id} request={self.request_id} "
            f"level={self.level_role} decision={self.decision}>"
        )

    def to_dto(self) -> ApprovalRecord:
        """Convert ORM model to frozen domain DTO."""
        from leave_kernel.domain.dtos import ApprovalRecord
        from leave_kernel.domain.workflow import DecisionKind, LevelRole

        return ApprovalRecord(
            approval_id=self.id,
            request_id=self.request_id,
            level_id=self.level_id,
            level_role=LevelRole(self.level_role),
            approver_id=self.approver_id,
            decision=DecisionKind(self.decision),
            comment=self.comment,
            decided_at=self.decided_at,
        )

    @classmethod
    def from_dto(cls, dto: ApprovalRecord, level_rank: int) -> Approval:
        """Create ORM model from domain DTO."""
        return cls(
            id=dto.approval_id,
            request_id=dto.request_id,
            level_id=dto.level_id,
            level_role=dto.level_role.value,
            level_rank=level_rank,
            approver_id=dto.approver_id,
            decision=dto.decision.value,
            comment=dto.comment,
            decided_at=dto.decided_at,
        )
