"""
AuditSelector -- read-only export of the audit trail.

``trace(request_id)`` bundles everything a report needs about one leave
request: its current snapshot, the approval history and every audit entry
written for it, in sequence order.
"""

from dataclasses import dataclass
from uuid import UUID

from sqlalchemy import select

from leave_kernel.domain.dtos import (
    ApprovalRecord,
    AuditEntryRecord,
    LeaveRequestSnapshot,
)
from leave_kernel.exceptions import LeaveRequestNotFoundError
from leave_kernel.models.audit_entry import AuditEntry
from leave_kernel.models.leave_request import LeaveRequest
from leave_kernel.selectors.approval_selector import ApprovalSelector
from leave_kernel.selectors.base import BaseSelector


@dataclass(frozen=True)
class RequestTrace:
    """Complete decision trail of one leave request."""

    request: LeaveRequestSnapshot
    approvals: tuple[ApprovalRecord, ...]
    audit_entries: tuple[AuditEntryRecord, ...]

    @property
    def status_path(self) -> tuple[str, ...]:
        """Statuses the request went through, in order, starting at CREATED."""
        path = []
        for entry in self.audit_entries:
            if entry.old_value and not path:
                path.append(entry.old_value.get("status"))
            if entry.new_value:
                path.append(entry.new_value.get("status"))
        return tuple(path)


class AuditSelector(BaseSelector[AuditEntry]):
    """Read side of the audit trail."""

    def entries_for(self, entity_type: str, entity_id: UUID) -> tuple[AuditEntryRecord, ...]:
        rows = self.session.execute(
            select(AuditEntry)
            .where(
                AuditEntry.entity_type == entity_type,
                AuditEntry.entity_id == entity_id,
            )
            .order_by(AuditEntry.seq)
        ).scalars().all()
        return tuple(row.to_dto() for row in rows)

    def entries_for_correlation(self, correlation_id: str) -> tuple[AuditEntryRecord, ...]:
        rows = self.session.execute(
            select(AuditEntry)
            .where(AuditEntry.correlation_id == correlation_id)
            .order_by(AuditEntry.seq)
        ).scalars().all()
        return tuple(row.to_dto() for row in rows)

    def trace(self, request_id: UUID) -> RequestTrace:
        """
        Raises:
            LeaveRequestNotFoundError: unknown request id.
        """
        row = self.session.get(LeaveRequest, request_id)
        if row is None:
            raise LeaveRequestNotFoundError(request_id)
        approvals = ApprovalSelector(self.session).history_for(request_id)
        return RequestTrace(
            request=row.to_dto(approvals),
            approvals=approvals,
            audit_entries=self.entries_for("LeaveRequest", request_id),
        )
