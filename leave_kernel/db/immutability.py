"""
ORM-Level Immutability Enforcement.

===============================================================================
WHAT IS PROTECTED
===============================================================================

SQLAlchemy fires mapper events before UPDATE/DELETE statements reach the
database.  The listeners below intercept them and raise
ImmutabilityViolationError, which aborts the flush and therefore the whole
atomic unit:

    session.flush()
         |
         v
    [before_update] --> _check_*() --> ImmutabilityViolationError
    [before_delete] --> _check_*() --> ImmutabilityViolationError
         |
         v
    SQL sent to database (only if checks pass)

Entity              | Rule
--------------------|----------------------------------------------------------
Approval            | ALWAYS immutable (no UPDATE, no DELETE)
AuditEntry          | ALWAYS immutable (no UPDATE, no DELETE)
BalanceAdjustment   | ALWAYS immutable (no UPDATE, no DELETE)
LeaveRequest        | status moves only along the transition graph; no change
                    | at all once APPROVED/REJECTED; never deleted

LeaveBalance is deliberately absent: its counters are mutable, guarded by
the version column and BalanceLedger's underflow check.

===============================================================================
USAGE
===============================================================================

Called by ``create_tables()``; safe to call more than once:

    from leave_kernel.db.immutability import register_immutability_listeners
    register_immutability_listeners()

To temporarily disable (TESTS ONLY):

    unregister_immutability_listeners()
    ...
    register_immutability_listeners()
"""

from sqlalchemy import event
from sqlalchemy.orm.attributes import get_history

from leave_kernel.exceptions import ImmutabilityViolationError
from leave_kernel.logging_config import get_logger

logger = get_logger("db.immutability")


def _block(entity_type: str, target, operation: str, reason: str) -> None:
    logger.error(
        "immutability_violation_blocked",
        extra={
            "entity_type": entity_type,
            "entity_id": str(target.id),
            "operation": operation,
        },
    )
    raise ImmutabilityViolationError(
        entity_type=entity_type,
        entity_id=str(target.id),
        reason=reason,
    )


def _check_approval_update(mapper, connection, target):
    _block("Approval", target, "UPDATE", "Approvals are immutable and cannot be modified")


def _check_approval_delete(mapper, connection, target):
    _block("Approval", target, "DELETE", "Approvals cannot be deleted")


def _check_audit_entry_update(mapper, connection, target):
    _block("AuditEntry", target, "UPDATE", "Audit entries are immutable and cannot be modified")


def _check_audit_entry_delete(mapper, connection, target):
    _block("AuditEntry", target, "DELETE", "Audit entries cannot be deleted")


def _check_adjustment_update(mapper, connection, target):
    _block(
        "BalanceAdjustment", target, "UPDATE",
        "Balance adjustments are immutable and cannot be modified",
    )


def _check_adjustment_delete(mapper, connection, target):
    _block("BalanceAdjustment", target, "DELETE", "Balance adjustments cannot be deleted")


def _check_leave_request_update(mapper, connection, target):
    """
    Allow only status moves that are edges of the transition graph.

    Uses attribute history: ``deleted`` holds the value loaded from the
    database, ``added`` the value about to be written.
    """
    from leave_kernel.domain.workflow import STATUS_EDGES, LeaveStatus, is_terminal

    history = get_history(target, "status")
    if history.added and history.deleted:
        old_status = LeaveStatus(history.deleted[0])
        new_status = LeaveStatus(history.added[0])
        if (old_status, new_status) not in STATUS_EDGES:
            _block(
                "LeaveRequest", target, "UPDATE",
                f"status cannot move from {old_status.value} to {new_status.value}",
            )
        return

    if is_terminal(LeaveStatus(target.status)):
        _block(
            "LeaveRequest", target, "UPDATE",
            f"request is closed with status {target.status}",
        )


def _check_leave_request_delete(mapper, connection, target):
    _block("LeaveRequest", target, "DELETE", "Leave requests cannot be deleted")


def _listeners():
    from leave_kernel.models.approval import Approval
    from leave_kernel.models.audit_entry import AuditEntry
    from leave_kernel.models.leave_balance import BalanceAdjustment
    from leave_kernel.models.leave_request import LeaveRequest

    return (
        (Approval, "before_update", _check_approval_update),
        (Approval, "before_delete", _check_approval_delete),
        (AuditEntry, "before_update", _check_audit_entry_update),
        (AuditEntry, "before_delete", _check_audit_entry_delete),
        (BalanceAdjustment, "before_update", _check_adjustment_update),
        (BalanceAdjustment, "before_delete", _check_adjustment_delete),
        (LeaveRequest, "before_update", _check_leave_request_update),
        (LeaveRequest, "before_delete", _check_leave_request_delete),
    )


def register_immutability_listeners():
    """
    Register all immutability enforcement event listeners.

    Call after the models are imported and before any write happens.
    Listeners already registered are left alone.
    """
    for target, event_name, listener_fn in _listeners():
        if not event.contains(target, event_name, listener_fn):
            event.listen(target, event_name, listener_fn)

    logger.debug("immutability_listeners_registered")


def _safe_remove_listener(target, event_name, listener_fn):
    if event.contains(target, event_name, listener_fn):
        event.remove(target, event_name, listener_fn)


def unregister_immutability_listeners():
    """
    Remove immutability enforcement event listeners.

    WARNING: only for tests that need to simulate out-of-band tampering.
    """
    for target, event_name, listener_fn in _listeners():
        _safe_remove_listener(target, event_name, listener_fn)

    logger.debug("immutability_listeners_unregistered")
