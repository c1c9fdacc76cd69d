"""ORM models for the leave workflow kernel."""

from leave_kernel.models.approval import Approval
from leave_kernel.models.approval_level import ApprovalLevel
from leave_kernel.models.audit_entry import AuditAction, AuditEntry
from leave_kernel.models.leave_balance import BalanceAdjustment, LeaveBalance
from leave_kernel.models.leave_request import LeaveRequest
from leave_kernel.models.sequence_counter import SequenceCounter

__all__ = [
    "Approval",
    "ApprovalLevel",
    "AuditAction",
    "AuditEntry",
    "BalanceAdjustment",
    "LeaveBalance",
    "LeaveRequest",
    "SequenceCounter",
]
