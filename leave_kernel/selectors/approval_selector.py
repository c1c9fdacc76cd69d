"""
ApprovalSelector -- read-only access to the approval ledger.

History is ordered by decision timestamp; decisions sharing a timestamp
fall back to pipeline rank, then to approval id, so the order is total
and stable across reads.
"""

from uuid import UUID

from sqlalchemy import func, select

from leave_kernel.domain.dtos import ApprovalRecord
from leave_kernel.models.approval import Approval
from leave_kernel.selectors.base import BaseSelector


class ApprovalSelector(BaseSelector[Approval]):
    """Read side of the approval ledger."""

    def history_for(self, request_id: UUID) -> tuple[ApprovalRecord, ...]:
        """All approvals of a request, oldest first."""
        rows = self.session.execute(
            select(Approval)
            .where(Approval.request_id == request_id)
            .order_by(Approval.decided_at, Approval.level_rank, Approval.id)
        ).scalars().all()
        return tuple(row.to_dto() for row in rows)

    def count_for(self, request_id: UUID) -> int:
        return self.session.execute(
            select(func.count(Approval.id)).where(Approval.request_id == request_id)
        ).scalar_one()
