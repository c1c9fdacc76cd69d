"""
BalanceLedger -- per-employee, per-year leave day counters.

Responsibility:
    Opens balances and applies the single deduction an approved request
    causes.  Every deduction is also written to ``balance_adjustments``.

Architecture position:
    Kernel > Services -- flush-only, runs inside the caller's AtomicUnit.

Invariants enforced:
    - remaining_days never goes below zero: an underflow is rejected
      before anything is written.
    - A request is deducted at most once: the adjustment row's
      UNIQUE(request_id) rejects a second deduction even if a caller
      retries a decision that already committed.
    - The balance row is locked (PostgreSQL) and version-checked (all
      backends) so concurrent approvals for the same employee serialize.

Failure modes:
    - LeaveBalanceNotFoundError: no balance for (employee, year).
    - InsufficientBalanceError: remaining_days < days.
    - DuplicateBalanceAdjustmentError: request already deducted.
"""

from datetime import datetime
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError

from leave_kernel.domain.dtos import BalanceSnapshot
from leave_kernel.exceptions import (
    DuplicateBalanceAdjustmentError,
    InsufficientBalanceError,
    LeaveBalanceNotFoundError,
)
from leave_kernel.logging_config import get_logger
from leave_kernel.models.leave_balance import (
    BALANCE_ADJUSTMENT_UNIQUE_CONSTRAINT,
    BalanceAdjustment,
    LeaveBalance,
)
from leave_kernel.services.base import BaseService

logger = get_logger("services.balance_ledger")


class BalanceLedger(BaseService[LeaveBalance]):
    """Write side of the balance ledger."""

    def __init__(self, session, nowait: bool = False):
        super().__init__(session)
        self._nowait = nowait

    def _find(self, employee_id: UUID, year: int, lock: bool) -> LeaveBalance | None:
        stmt = select(LeaveBalance).where(
            LeaveBalance.employee_id == employee_id,
            LeaveBalance.year == year,
        )
        if lock:
            stmt = stmt.with_for_update(nowait=self._nowait).execution_options(
                populate_existing=True,
            )
        return self.session.execute(stmt).scalar_one_or_none()

    def open_balance(
        self,
        employee_id: UUID,
        year: int,
        total_days: int,
        actor_id: UUID,
        opened_at: datetime,
    ) -> BalanceSnapshot:
        """Create the balance for (employee, year) with nothing used yet."""
        if total_days < 0:
            raise ValueError(f"total_days must be >= 0, got {total_days}")
        balance = LeaveBalance(
            employee_id=employee_id,
            year=year,
            total_days=total_days,
            used_days=0,
            remaining_days=total_days,
            last_adjusted_by=actor_id,
            last_adjusted_at=opened_at,
        )
        self.session.add(balance)
        self.session.flush()
        logger.info(
            "balance_opened",
            extra={
                "employee_id": str(employee_id),
                "year": year,
                "total_days": total_days,
            },
        )
        return balance.to_dto()

    def get(self, employee_id: UUID, year: int) -> BalanceSnapshot | None:
        balance = self._find(employee_id, year, lock=False)
        return balance.to_dto() if balance is not None else None

    def deduct(
        self,
        employee_id: UUID,
        year: int,
        days: int,
        request_id: UUID,
        actor_id: UUID,
        applied_at: datetime,
    ) -> BalanceSnapshot:
        """
        Deduct ``days`` for ``request_id`` and flush.

        Preconditions:
            - Called only on the transition into APPROVED.
            - ``days`` > 0.
        """
        if days <= 0:
            raise ValueError(f"days must be > 0, got {days}")

        balance = self._find(employee_id, year, lock=True)
        if balance is None:
            raise LeaveBalanceNotFoundError(employee_id, year, request_id, actor_id)

        if balance.remaining_days < days:
            logger.warning(
                "balance_underflow_blocked",
                extra={
                    "employee_id": str(employee_id),
                    "year": year,
                    "remaining_days": balance.remaining_days,
                    "requested_days": days,
                },
            )
            raise InsufficientBalanceError(
                employee_id, year, balance.remaining_days, days, request_id, actor_id,
            )

        balance.used_days += days
        balance.remaining_days -= days
        balance.last_adjusted_by = actor_id
        balance.last_adjusted_at = applied_at
        self.session.add(
            BalanceAdjustment(
                balance_id=balance.id,
                request_id=request_id,
                days=days,
                remaining_after=balance.remaining_days,
                actor_id=actor_id,
                applied_at=applied_at,
            )
        )
        try:
            self.session.flush()
        except IntegrityError as exc:
            message = str(exc.orig)
            if (
                BALANCE_ADJUSTMENT_UNIQUE_CONSTRAINT in message
                or "balance_adjustments.request_id" in message
            ):
                raise DuplicateBalanceAdjustmentError(request_id, actor_id) from exc
            raise

        logger.info(
            "balance_deducted",
            extra={
                "employee_id": str(employee_id),
                "year": year,
                "days": days,
                "remaining_days": balance.remaining_days,
            },
        )
        return balance.to_dto()
