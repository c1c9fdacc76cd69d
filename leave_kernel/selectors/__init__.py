"""Selectors for the leave workflow kernel (read side)."""

from leave_kernel.selectors.approval_selector import ApprovalSelector
from leave_kernel.selectors.audit_selector import AuditSelector, RequestTrace
from leave_kernel.selectors.balance_selector import BalanceSelector

__all__ = [
    "ApprovalSelector",
    "AuditSelector",
    "BalanceSelector",
    "RequestTrace",
]
