"""
Pure domain layer.

Transition table, authorization predicate, value objects and the clock
abstraction.  Nothing here touches the ORM, the database or the network.
"""

from leave_kernel.domain.authorization import authorize, is_authorized
from leave_kernel.domain.clock import Clock, DeterministicClock, SystemClock
from leave_kernel.domain.dtos import (
    ActorProfile,
    ActorProvider,
    ApprovalLevelDef,
    ApprovalRecord,
    AuditEntryRecord,
    BalanceSnapshot,
    DecisionResult,
    LeaveRequestSnapshot,
    NotificationDispatcher,
    NotificationEvent,
)
from leave_kernel.domain.workflow import (
    BLOCKING_ROLES,
    CONSULTATIVE_ROLES,
    PIPELINE,
    STATUS_LEVEL,
    TERMINAL_STATUSES,
    TRANSITIONS,
    DecisionKind,
    LeaveStatus,
    LevelRole,
    SystemAction,
    next_status,
)

__all__ = [
    "ActorProfile",
    "ActorProvider",
    "ApprovalLevelDef",
    "ApprovalRecord",
    "AuditEntryRecord",
    "BLOCKING_ROLES",
    "BalanceSnapshot",
    "CONSULTATIVE_ROLES",
    "Clock",
    "DecisionKind",
    "DecisionResult",
    "DeterministicClock",
    "LeaveRequestSnapshot",
    "LeaveStatus",
    "LevelRole",
    "NotificationDispatcher",
    "NotificationEvent",
    "PIPELINE",
    "STATUS_LEVEL",
    "SystemAction",
    "SystemClock",
    "TERMINAL_STATUSES",
    "TRANSITIONS",
    "authorize",
    "is_authorized",
    "next_status",
]
