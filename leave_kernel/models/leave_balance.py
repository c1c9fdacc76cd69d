"""
Module: leave_kernel.models.leave_balance
Responsibility: ORM persistence for per-employee, per-year leave balances and
    the append-only log of deductions applied to them.
Architecture position: Kernel > Models.  May import from db/base.py only.

Invariants enforced:
    - One balance per (employee_id, year).
    - remaining_days = total_days - used_days, never negative (CHECK
      constraints; BalanceLedger also rejects underflow before flushing).
    - ``version`` is the version_id_col for optimistic checks.
    - At most one BalanceAdjustment per request (UNIQUE request_id): a
      request can never be deducted twice, even across retries.
    - BalanceAdjustment rows are append-only.
"""

from __future__ import annotations

from datetime import datetime
from typing import TYPE_CHECKING
from uuid import UUID

from sqlalchemy import CheckConstraint, ForeignKey, Integer, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from leave_kernel.db.base import Base, UUIDString

if TYPE_CHECKING:
    from leave_kernel.domain.dtos import BalanceSnapshot

BALANCE_ADJUSTMENT_UNIQUE_CONSTRAINT = "uq_balance_adjustments_request"


class LeaveBalance(Base):
    """Day counters for one employee and year."""

    __tablename__ = "leave_balances"

    __table_args__ = (
        UniqueConstraint("employee_id", "year", name="uq_leave_balances_employee_year"),
        CheckConstraint("total_days >= 0", name="ck_leave_balances_total"),
        CheckConstraint("used_days >= 0", name="ck_leave_balances_used"),
        CheckConstraint("remaining_days >= 0", name="ck_leave_balances_remaining"),
        CheckConstraint(
            "remaining_days = total_days - used_days",
            name="ck_leave_balances_consistent",
        ),
    )

    employee_id: Mapped[UUID] = mapped_column(UUIDString(), nullable=False)
    year: Mapped[int] = mapped_column(Integer, nullable=False)
    total_days: Mapped[int] = mapped_column(Integer, nullable=False)
    used_days: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    remaining_days: Mapped[int] = mapped_column(Integer, nullable=False)
    last_adjusted_by: Mapped[UUID | None] = mapped_column(UUIDString(), nullable=True)
    last_adjusted_at: Mapped[datetime | None] = mapped_column(nullable=True)
    version: Mapped[int] = mapped_column(Integer, nullable=False)

    __mapper_args__ = {"version_id_col": version}

    def __repr__(self) -> str:
        return (
            f"<LeaveBalance {self.employee_id}/{self.year} "
            f"remaining={self.remaining_days}/{self.total_days}>"
        )

    def to_dto(self) -> BalanceSnapshot:
        from leave_kernel.domain.dtos import BalanceSnapshot

        return BalanceSnapshot(
            employee_id=self.employee_id,
            year=self.year,
            total_days=self.total_days,
            used_days=self.used_days,
            remaining_days=self.remaining_days,
            last_adjusted_by=self.last_adjusted_by,
            last_adjusted_at=self.last_adjusted_at,
        )


class BalanceAdjustment(Base):
    """One deduction applied to a balance for an approved request."""

    __tablename__ = "balance_adjustments"

    __table_args__ = (
        UniqueConstraint("request_id", name=BALANCE_ADJUSTMENT_UNIQUE_CONSTRAINT),
        CheckConstraint("days > 0", name="ck_balance_adjustments_days"),
    )

    balance_id: Mapped[UUID] = mapped_column(
        UUIDString(), ForeignKey("leave_balances.id"), nullable=False,
    )
    request_id: Mapped[UUID] = mapped_column(
        UUIDString(), ForeignKey("leave_requests.id"), nullable=False,
    )
    days: Mapped[int] = mapped_column(Integer, nullable=False)
    remaining_after: Mapped[int] = mapped_column(Integer, nullable=False)
    actor_id: Mapped[UUID] = mapped_column(UUIDString(), nullable=False)
    applied_at: Mapped[datetime] = mapped_column(nullable=False)

    def __repr__(self) -> str:
        return f"<BalanceAdjustment request={self.request_id} days={self.days}>"
