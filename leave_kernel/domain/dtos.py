"""
Frozen value objects exchanged between the kernel layers.

ORM models convert to these via ``to_dto()``; services and selectors
return them so callers never hold live ORM rows.  The entity graph is
addressed by identifiers only (request -> employee, approval -> level and
approver); nothing here lazy-loads.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date, datetime
from typing import Any, Protocol
from uuid import UUID

from leave_kernel.domain.workflow import DecisionKind, LeaveStatus, LevelRole


@dataclass(frozen=True)
class ApprovalLevelDef:
    """Static reference data for one approval stage."""

    level_id: UUID
    role: LevelRole
    rank: int
    is_consultative: bool
    label: str = ""

    @property
    def is_blocking(self) -> bool:
        return not self.is_consultative


@dataclass(frozen=True)
class ApprovalRecord:
    """A single recorded decision. Immutable."""

    approval_id: UUID
    request_id: UUID
    level_id: UUID
    level_role: LevelRole
    approver_id: UUID
    decision: DecisionKind
    comment: str | None
    decided_at: datetime


@dataclass(frozen=True)
class LeaveRequestSnapshot:
    """Immutable view of a leave request and its approval history."""

    request_id: UUID
    employee_id: UUID
    leave_type: str
    start_date: date
    end_date: date
    days_requested: int
    status: LeaveStatus
    current_level_rank: int
    final_decided_by: UUID | None = None
    final_decided_at: datetime | None = None
    version: int = 1
    approvals: tuple[ApprovalRecord, ...] = ()

    @property
    def is_terminal(self) -> bool:
        return self.status in (LeaveStatus.APPROVED, LeaveStatus.REJECTED)

    @property
    def balance_year(self) -> int:
        """Balance year charged by this request: the year it starts in."""
        return self.start_date.year


@dataclass(frozen=True)
class BalanceSnapshot:
    """Per-employee, per-year day counters."""

    employee_id: UUID
    year: int
    total_days: int
    used_days: int
    remaining_days: int
    last_adjusted_by: UUID | None = None
    last_adjusted_at: datetime | None = None


@dataclass(frozen=True)
class AuditEntryRecord:
    """One row of the audit trail, as exported to readers."""

    seq: int
    actor_id: UUID
    action: str
    entity_type: str
    entity_id: UUID
    old_value: dict[str, Any] | None
    new_value: dict[str, Any] | None
    correlation_id: str
    occurred_at: datetime
    hash: str


@dataclass(frozen=True)
class ActorProfile:
    """What the Actor/Role provider knows about an actor."""

    actor_id: UUID
    role: str | None
    manager_id: UUID | None = None
    is_active: bool = True


@dataclass(frozen=True)
class NotificationEvent:
    """Post-commit event handed to the Notification Dispatcher."""

    request_id: UUID
    new_status: LeaveStatus
    actor_id: UUID
    occurred_at: datetime
    correlation_id: str

    @property
    def dedupe_key(self) -> str:
        """Stable key for at-least-once consumers."""
        return f"{self.request_id}:{self.new_status.value}"


@dataclass(frozen=True)
class DecisionResult:
    """Outcome of one committed decision (or system transition)."""

    request: LeaveRequestSnapshot
    previous_status: LeaveStatus
    approval: ApprovalRecord | None
    audit_seq: int
    correlation_id: str
    balance: BalanceSnapshot | None = None
    notification: NotificationEvent | None = None

    @property
    def history(self) -> tuple[ApprovalRecord, ...]:
        return self.request.approvals


# =========================================================================
# Collaborator protocols
# =========================================================================


class ActorProvider(Protocol):
    """Read-only ground truth about actors, roles and reporting lines."""

    def get_actor(self, actor_id: UUID) -> ActorProfile | None:
        """Return the actor's profile, or None if unknown."""
        ...

    def get_management_chain(self, employee_id: UUID) -> tuple[UUID, ...]:
        """Return the employee's managers, nearest first."""
        ...


class NotificationDispatcher(Protocol):
    """Accepts post-commit events; delivery guarantees are its own concern."""

    def dispatch(self, event: NotificationEvent) -> None:
        ...
