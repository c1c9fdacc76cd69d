"""
Module: leave_kernel.models.leave_request
Responsibility: ORM persistence for leave requests.
Architecture position: Kernel > Models.  May import from db/base.py only.

Invariants enforced:
    - status is one of the eight workflow states (CHECK constraint).
    - ``version`` is the SQLAlchemy version_id_col: every UPDATE carries
      ``WHERE version = <read version>`` and a zero-row match raises
      StaleDataError (surfaced as ConcurrencyConflictError).
    - Status only moves along the transition graph and never changes once
      terminal (ORM listener, see db/immutability.py).
    - final_decided_by/final_decided_at are set only with a terminal status.

Failure modes:
    - StaleDataError when another transaction updated the row first.
    - ImmutabilityViolationError on an illegal status move or on DELETE.

Rows are created by the request intake collaborator in CREATED; after
that only DecisionService mutates them.
"""

from __future__ import annotations

from collections.abc import Iterable
from datetime import date, datetime
from typing import TYPE_CHECKING
from uuid import UUID

from sqlalchemy import CheckConstraint, Date, Index, Integer, String
from sqlalchemy.orm import Mapped, mapped_column

from leave_kernel.db.base import Base, UUIDString

if TYPE_CHECKING:
    from leave_kernel.domain.dtos import ApprovalRecord, LeaveRequestSnapshot


class LeaveRequest(Base):
    """Persistent leave request."""

    __tablename__ = "leave_requests"

    __table_args__ = (
        CheckConstraint(
            "status IN ('CREATED', 'PENDING_SERVICE_HEAD', 'PENDING_HIERARCHY', "
            "'PENDING_DGA_OPINION', 'PENDING_DG_OPINION', 'PENDING_HR_DECISION', "
            "'APPROVED', 'REJECTED')",
            name="ck_leave_requests_status",
        ),
        CheckConstraint("days_requested > 0", name="ck_leave_requests_days_positive"),
        CheckConstraint("end_date >= start_date", name="ck_leave_requests_date_order"),
        Index("ix_leave_requests_employee", "employee_id"),
        Index("ix_leave_requests_status", "status"),
    )

    employee_id: Mapped[UUID] = mapped_column(UUIDString(), nullable=False)
    leave_type: Mapped[str] = mapped_column(String(50), nullable=False)
    start_date: Mapped[date] = mapped_column(Date, nullable=False)
    end_date: Mapped[date] = mapped_column(Date, nullable=False)
    days_requested: Mapped[int] = mapped_column(Integer, nullable=False)
    status: Mapped[str] = mapped_column(String(30), nullable=False, default="CREATED")
    # Rank of the level that owns the request; 0 before enqueue, and the
    # deciding level's rank once terminal.
    current_level_rank: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    final_decided_by: Mapped[UUID | None] = mapped_column(UUIDString(), nullable=True)
    final_decided_at: Mapped[datetime | None] = mapped_column(nullable=True)
    created_at: Mapped[datetime] = mapped_column(nullable=False)
    version: Mapped[int] = mapped_column(Integer, nullable=False)

    __mapper_args__ = {"version_id_col": version}

    def __repr__(self) -> str:
        return f"<LeaveRequest {self.id} status={self.status} v{self.version}>"

    def to_dto(self, approvals: Iterable[ApprovalRecord] = ()) -> LeaveRequestSnapshot:
        """Convert ORM model to a frozen snapshot carrying ``approvals``."""
        from leave_kernel.domain.dtos import LeaveRequestSnapshot
        from leave_kernel.domain.workflow import LeaveStatus

        return LeaveRequestSnapshot(
            request_id=self.id,
            employee_id=self.employee_id,
            leave_type=self.leave_type,
            start_date=self.start_date,
            end_date=self.end_date,
            days_requested=self.days_requested,
            status=LeaveStatus(self.status),
            current_level_rank=self.current_level_rank,
            final_decided_by=self.final_decided_by,
            final_decided_at=self.final_decided_at,
            version=self.version,
            approvals=tuple(approvals),
        )
