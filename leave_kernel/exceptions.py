"""
Typed Exception Hierarchy for the Leave Workflow Kernel.

===============================================================================
WHY TYPED EXCEPTIONS
===============================================================================

A caller of the decision engine must tell a permanent rejection ("you are
not the HR approver") apart from a transient one ("someone else decided
first, re-read and try again") without parsing message strings.

Every error therefore:
  1. Has its own class (catch by type, not message)
  2. Carries a CODE class attribute (machine-readable, API-safe)
  3. Carries a RETRYABLE class attribute (retry vs. user-facing rejection)
  4. Stores structured context (request_id, actor_id, ...) as attributes

Example:
    try:
        result = decisions.decide(request_id, actor_id, DecisionKind.APPROVED)
    except ConcurrencyConflictError:
        # Lost a race on the same request: re-read state, do NOT resubmit blindly
        refresh_and_show(request_id)
    except LeaveKernelError as e:
        api_response(code=e.code, request_id=e.request_id)

===============================================================================
EXCEPTION HIERARCHY
===============================================================================

    LeaveKernelError (base)
    |
    +-- WorkflowError
    |   +-- InvalidTransitionError
    |   +-- TerminalStateViolationError
    |   +-- DecisionInputError
    |
    +-- AuthorizationError
    |   +-- UnauthorizedActorError
    |
    +-- ApprovalError
    |   +-- DuplicateDecisionError
    |
    +-- NotFoundError
    |   +-- LeaveRequestNotFoundError
    |   +-- ApprovalLevelNotFoundError
    |
    +-- ConcurrencyError
    |   +-- ConcurrencyConflictError
    |
    +-- PersistenceError
    |   +-- PersistenceFailureError
    |       +-- LeaveBalanceNotFoundError
    |       +-- InsufficientBalanceError
    |       +-- DuplicateBalanceAdjustmentError
    |
    +-- ImmutabilityError
    |   +-- ImmutabilityViolationError
    |
    +-- AuditError
        +-- AuditChainBrokenError

===============================================================================
ERROR CODES - QUICK REFERENCE
===============================================================================

Category     | Code                        | Retryable | When Raised
-------------|-----------------------------|-----------|-------------------------------
Workflow     | INVALID_TRANSITION          | no        | Kind not valid for status/level
             | TERMINAL_STATE_VIOLATION    | no        | Request already APPROVED/REJECTED
             | INVALID_DECISION_INPUT      | no        | Unknown kind, comment too long
Authorization| UNAUTHORIZED_ACTOR          | no        | Wrong role, not in chain, inactive
Approval     | DUPLICATE_DECISION          | no        | Actor already decided at level
Not found    | LEAVE_REQUEST_NOT_FOUND     | no        | Unknown request id
             | APPROVAL_LEVEL_NOT_FOUND    | no        | Reference level missing
Concurrency  | CONCURRENCY_CONFLICT        | yes       | Lost race on the same request
Persistence  | PERSISTENCE_FAILURE         | yes       | Storage-layer fault
             | LEAVE_BALANCE_NOT_FOUND     | yes       | No balance row for employee/year
             | INSUFFICIENT_BALANCE        | yes       | Deduction would go below zero
             | DUPLICATE_BALANCE_ADJUSTMENT| yes       | Request already deducted
Immutability | IMMUTABILITY_VIOLATION      | no        | Mutating an append-only record
Audit        | AUDIT_CHAIN_BROKEN          | no        | Hash chain validation failed

None of these are retried by the engine itself; retry policy belongs to
the caller.
"""

from uuid import UUID


def _str_or_none(value: UUID | str | None) -> str | None:
    return str(value) if value is not None else None


class LeaveKernelError(Exception):
    """
    Base exception for all leave kernel errors.

    All subclasses must have a `code` class attribute for machine-readable
    error identification and a `retryable` flag for the caller's policy.
    """

    code: str = "LEAVE_KERNEL_ERROR"
    retryable: bool = False


# Workflow exceptions


class WorkflowError(LeaveKernelError):
    """Base exception for state machine errors."""

    code: str = "WORKFLOW_ERROR"


class InvalidTransitionError(WorkflowError):
    """The trigger is not valid for the request's current status and level."""

    code: str = "INVALID_TRANSITION"

    def __init__(
        self,
        status: str,
        trigger: str,
        role: str | None,
        request_id: UUID | str | None = None,
        actor_id: UUID | str | None = None,
    ):
        self.status = status
        self.trigger = trigger
        self.role = role
        self.request_id = _str_or_none(request_id)
        self.actor_id = _str_or_none(actor_id)
        super().__init__(
            f"Invalid transition from {status} on {trigger} "
            f"at level {role or '-'} (request {self.request_id})"
        )


class TerminalStateViolationError(WorkflowError):
    """The request is already APPROVED or REJECTED."""

    code: str = "TERMINAL_STATE_VIOLATION"

    def __init__(
        self,
        request_id: UUID | str,
        status: str,
        actor_id: UUID | str | None = None,
    ):
        self.request_id = str(request_id)
        self.status = status
        self.actor_id = _str_or_none(actor_id)
        super().__init__(
            f"Leave request {request_id} is closed with status {status}"
        )


class DecisionInputError(WorkflowError):
    """Decision arguments failed validation before any work started."""

    code: str = "INVALID_DECISION_INPUT"

    def __init__(
        self,
        field: str,
        reason: str,
        request_id: UUID | str | None = None,
        actor_id: UUID | str | None = None,
    ):
        self.field = field
        self.reason = reason
        self.request_id = _str_or_none(request_id)
        self.actor_id = _str_or_none(actor_id)
        super().__init__(f"Invalid decision input '{field}': {reason}")


# Authorization exceptions


class AuthorizationError(LeaveKernelError):
    """Base exception for authorization errors."""

    code: str = "AUTHORIZATION_ERROR"


class UnauthorizedActorError(AuthorizationError):
    """Actor lacks the role or relationship required at the current level."""

    code: str = "UNAUTHORIZED_ACTOR"

    def __init__(
        self,
        request_id: UUID | str,
        actor_id: UUID | str,
        required_role: str | None,
        reason: str,
    ):
        self.request_id = str(request_id)
        self.actor_id = str(actor_id)
        self.required_role = required_role
        self.reason = reason
        super().__init__(
            f"Actor {actor_id} may not decide on request {request_id} "
            f"(required role {required_role or '-'}): {reason}"
        )


# Approval ledger exceptions


class ApprovalError(LeaveKernelError):
    """Base exception for approval ledger errors."""

    code: str = "APPROVAL_ERROR"


class DuplicateDecisionError(ApprovalError):
    """An approval already exists for (request, level, approver)."""

    code: str = "DUPLICATE_DECISION"

    def __init__(
        self,
        request_id: UUID | str,
        actor_id: UUID | str,
        level_role: str,
    ):
        self.request_id = str(request_id)
        self.actor_id = str(actor_id)
        self.level_role = level_role
        super().__init__(
            f"Actor {actor_id} already decided on request {request_id} "
            f"at level {level_role}"
        )


# Lookup exceptions


class NotFoundError(LeaveKernelError):
    """Base exception for missing entities."""

    code: str = "NOT_FOUND"


class LeaveRequestNotFoundError(NotFoundError):
    """Leave request with given ID was not found."""

    code: str = "LEAVE_REQUEST_NOT_FOUND"

    def __init__(self, request_id: UUID | str, actor_id: UUID | str | None = None):
        self.request_id = str(request_id)
        self.actor_id = _str_or_none(actor_id)
        super().__init__(f"Leave request not found: {request_id}")


class ApprovalLevelNotFoundError(NotFoundError):
    """No approval level reference row exists for the role."""

    code: str = "APPROVAL_LEVEL_NOT_FOUND"

    def __init__(self, role: str):
        self.role = role
        super().__init__(f"Approval level not configured for role {role}")


# Concurrency exceptions


class ConcurrencyError(LeaveKernelError):
    """Base exception for concurrency-related errors."""

    code: str = "CONCURRENCY_ERROR"
    retryable: bool = True


class ConcurrencyConflictError(ConcurrencyError):
    """
    Lost a race against another decision on the same request.

    Retry by re-reading the request state, not by resubmitting the same
    decision blindly.
    """

    code: str = "CONCURRENCY_CONFLICT"

    def __init__(
        self,
        request_id: UUID | str | None,
        actor_id: UUID | str | None,
        detail: str = "request was modified by another transaction",
    ):
        self.request_id = _str_or_none(request_id)
        self.actor_id = _str_or_none(actor_id)
        self.detail = detail
        super().__init__(
            f"Concurrency conflict on request {self.request_id} "
            f"(actor {self.actor_id}): {detail}"
        )


# Persistence exceptions


class PersistenceError(LeaveKernelError):
    """Base exception for storage-layer errors."""

    code: str = "PERSISTENCE_ERROR"
    retryable: bool = True


class PersistenceFailureError(PersistenceError):
    """The storage layer failed; the atomic unit was rolled back."""

    code: str = "PERSISTENCE_FAILURE"

    def __init__(
        self,
        request_id: UUID | str | None,
        actor_id: UUID | str | None,
        detail: str,
    ):
        self.request_id = _str_or_none(request_id)
        self.actor_id = _str_or_none(actor_id)
        self.detail = detail
        super().__init__(
            f"Persistence failure on request {self.request_id} "
            f"(actor {self.actor_id}): {detail}"
        )


class LeaveBalanceNotFoundError(PersistenceFailureError):
    """No balance row exists for the employee and year."""

    code: str = "LEAVE_BALANCE_NOT_FOUND"

    def __init__(
        self,
        employee_id: UUID | str,
        year: int,
        request_id: UUID | str | None = None,
        actor_id: UUID | str | None = None,
    ):
        self.employee_id = str(employee_id)
        self.year = year
        super().__init__(
            request_id,
            actor_id,
            f"no leave balance for employee {employee_id} in {year}",
        )


class InsufficientBalanceError(PersistenceFailureError):
    """Deduction would drive remaining days below zero."""

    code: str = "INSUFFICIENT_BALANCE"

    def __init__(
        self,
        employee_id: UUID | str,
        year: int,
        remaining_days: int,
        requested_days: int,
        request_id: UUID | str | None = None,
        actor_id: UUID | str | None = None,
    ):
        self.employee_id = str(employee_id)
        self.year = year
        self.remaining_days = remaining_days
        self.requested_days = requested_days
        super().__init__(
            request_id,
            actor_id,
            f"balance underflow for employee {employee_id} in {year}: "
            f"remaining={remaining_days}, requested={requested_days}",
        )


class DuplicateBalanceAdjustmentError(PersistenceFailureError):
    """The request has already been deducted from a balance."""

    code: str = "DUPLICATE_BALANCE_ADJUSTMENT"

    def __init__(
        self,
        request_id: UUID | str,
        actor_id: UUID | str | None = None,
    ):
        super().__init__(
            request_id,
            actor_id,
            f"balance already adjusted for request {request_id}",
        )


# Immutability exceptions


class ImmutabilityError(LeaveKernelError):
    """Base exception for immutability-related errors."""

    code: str = "IMMUTABILITY_ERROR"


class ImmutabilityViolationError(ImmutabilityError):
    """
    Attempted to modify or delete an append-only record.

    Approvals, audit entries and balance adjustments are immutable from
    creation; leave requests may only move along the transition graph.
    """

    code: str = "IMMUTABILITY_VIOLATION"

    def __init__(self, entity_type: str, entity_id: str, reason: str):
        self.entity_type = entity_type
        self.entity_id = entity_id
        self.reason = reason
        super().__init__(
            f"Immutability violation on {entity_type} {entity_id}: {reason}"
        )


# Audit exceptions


class AuditError(LeaveKernelError):
    """Base exception for audit-related errors."""

    code: str = "AUDIT_ERROR"


class AuditChainBrokenError(AuditError):
    """Audit hash chain validation failed."""

    code: str = "AUDIT_CHAIN_BROKEN"

    def __init__(self, audit_entry_id: str, expected_hash: str, actual_hash: str):
        self.audit_entry_id = audit_entry_id
        self.expected_hash = expected_hash
        self.actual_hash = actual_hash
        super().__init__(
            f"Audit chain broken at entry {audit_entry_id}: "
            f"expected {expected_hash}, got {actual_hash}"
        )
