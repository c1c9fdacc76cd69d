"""BalanceSelector -- read-only access to leave balances."""

from uuid import UUID

from sqlalchemy import func, select

from leave_kernel.domain.dtos import BalanceSnapshot
from leave_kernel.models.leave_balance import BalanceAdjustment, LeaveBalance
from leave_kernel.selectors.base import BaseSelector


class BalanceSelector(BaseSelector[LeaveBalance]):
    """Read side of the balance ledger."""

    def get(self, employee_id: UUID, year: int) -> BalanceSnapshot | None:
        row = self.session.execute(
            select(LeaveBalance).where(
                LeaveBalance.employee_id == employee_id,
                LeaveBalance.year == year,
            )
        ).scalar_one_or_none()
        return row.to_dto() if row is not None else None

    def adjustment_count(self, request_id: UUID) -> int:
        """Number of deductions recorded for a request (0 or 1)."""
        return self.session.execute(
            select(func.count(BalanceAdjustment.id))
            .where(BalanceAdjustment.request_id == request_id)
        ).scalar_one()
