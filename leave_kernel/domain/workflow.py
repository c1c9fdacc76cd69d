"""
Leave approval state machine (``leave_kernel.domain.workflow``).

Responsibility
--------------
Pure transition table for the five-level leave approval pipeline::

    CREATED -> PENDING_SERVICE_HEAD -> PENDING_HIERARCHY
            -> PENDING_DGA_OPINION -> PENDING_DG_OPINION
            -> PENDING_HR_DECISION -> APPROVED | REJECTED

Architecture position
---------------------
**Kernel domain layer** -- pure value objects.  ZERO I/O.  No imports
from ``db/``, ``models/``, ``services/`` or outer layers.

Invariants enforced
-------------------
* ``TRANSITIONS`` lists every legal ``(status, trigger, role)`` edge.
  Anything not listed raises ``InvalidTransitionError``.
* Terminal statuses have no outgoing edges.
* Blocking levels (SERVICE_HEAD, HIERARCHY) are the only levels besides HR
  whose REJECTED edge exists; consultative levels (DGA, DG) only accept
  opinions and can never produce REJECTED.
* APPROVED is reachable only through an HR-level APPROVED decision.
"""

from __future__ import annotations

from enum import Enum

from leave_kernel.exceptions import InvalidTransitionError


class LeaveStatus(str, Enum):
    """Leave request lifecycle states."""

    CREATED = "CREATED"
    PENDING_SERVICE_HEAD = "PENDING_SERVICE_HEAD"
    PENDING_HIERARCHY = "PENDING_HIERARCHY"
    PENDING_DGA_OPINION = "PENDING_DGA_OPINION"
    PENDING_DG_OPINION = "PENDING_DG_OPINION"
    PENDING_HR_DECISION = "PENDING_HR_DECISION"
    APPROVED = "APPROVED"
    REJECTED = "REJECTED"


class DecisionKind(str, Enum):
    """Decision kinds an approver can submit."""

    APPROVED = "APPROVED"
    REJECTED = "REJECTED"
    OPINION_POSITIVE = "OPINION_POSITIVE"
    OPINION_NEGATIVE = "OPINION_NEGATIVE"


class SystemAction(str, Enum):
    """Triggers issued by the engine itself, never by an approver."""

    ENQUEUE = "ENQUEUE"


class LevelRole(str, Enum):
    """Role codes of the approval levels, in pipeline order."""

    SERVICE_HEAD = "SERVICE_HEAD"
    HIERARCHY = "HIERARCHY"
    DGA = "DGA"
    DG = "DG"
    HR = "HR"


Trigger = DecisionKind | SystemAction

PIPELINE: tuple[LevelRole, ...] = (
    LevelRole.SERVICE_HEAD,
    LevelRole.HIERARCHY,
    LevelRole.DGA,
    LevelRole.DG,
    LevelRole.HR,
)

BLOCKING_ROLES: frozenset[LevelRole] = frozenset({
    LevelRole.SERVICE_HEAD,
    LevelRole.HIERARCHY,
})

CONSULTATIVE_ROLES: frozenset[LevelRole] = frozenset({
    LevelRole.DGA,
    LevelRole.DG,
})

TERMINAL_STATUSES: frozenset[LeaveStatus] = frozenset({
    LeaveStatus.APPROVED,
    LeaveStatus.REJECTED,
})

# Which level owns each pending status.
STATUS_LEVEL: dict[LeaveStatus, LevelRole] = {
    LeaveStatus.PENDING_SERVICE_HEAD: LevelRole.SERVICE_HEAD,
    LeaveStatus.PENDING_HIERARCHY: LevelRole.HIERARCHY,
    LeaveStatus.PENDING_DGA_OPINION: LevelRole.DGA,
    LeaveStatus.PENDING_DG_OPINION: LevelRole.DG,
    LeaveStatus.PENDING_HR_DECISION: LevelRole.HR,
}

_S = LeaveStatus
_D = DecisionKind
_R = LevelRole

TRANSITIONS: dict[tuple[LeaveStatus, Trigger, LevelRole | None], LeaveStatus] = {
    (_S.CREATED, SystemAction.ENQUEUE, None): _S.PENDING_SERVICE_HEAD,
    # Blocking levels
    (_S.PENDING_SERVICE_HEAD, _D.APPROVED, _R.SERVICE_HEAD): _S.PENDING_HIERARCHY,
    (_S.PENDING_SERVICE_HEAD, _D.REJECTED, _R.SERVICE_HEAD): _S.REJECTED,
    (_S.PENDING_HIERARCHY, _D.APPROVED, _R.HIERARCHY): _S.PENDING_DGA_OPINION,
    (_S.PENDING_HIERARCHY, _D.REJECTED, _R.HIERARCHY): _S.REJECTED,
    # Consultative levels: either opinion advances the pipeline
    (_S.PENDING_DGA_OPINION, _D.OPINION_POSITIVE, _R.DGA): _S.PENDING_DG_OPINION,
    (_S.PENDING_DGA_OPINION, _D.OPINION_NEGATIVE, _R.DGA): _S.PENDING_DG_OPINION,
    (_S.PENDING_DG_OPINION, _D.OPINION_POSITIVE, _R.DG): _S.PENDING_HR_DECISION,
    (_S.PENDING_DG_OPINION, _D.OPINION_NEGATIVE, _R.DG): _S.PENDING_HR_DECISION,
    # Final authority
    (_S.PENDING_HR_DECISION, _D.APPROVED, _R.HR): _S.APPROVED,
    (_S.PENDING_HR_DECISION, _D.REJECTED, _R.HR): _S.REJECTED,
}

# Directed edges of the status graph, used by the persistence guard.
STATUS_EDGES: frozenset[tuple[LeaveStatus, LeaveStatus]] = frozenset(
    (status, target) for (status, _trigger, _role), target in TRANSITIONS.items()
)


def next_status(
    status: LeaveStatus,
    trigger: Trigger,
    role: LevelRole | None,
) -> LeaveStatus:
    """Return the status reached from ``status`` on ``trigger`` at ``role``.

    Raises:
        InvalidTransitionError: for every combination not in ``TRANSITIONS``,
            including any trigger on a terminal status.
    """
    try:
        return TRANSITIONS[(status, trigger, role)]
    except KeyError:
        raise InvalidTransitionError(
            status=status.value,
            trigger=trigger.value,
            role=role.value if role is not None else None,
        ) from None


def is_terminal(status: LeaveStatus) -> bool:
    return status in TERMINAL_STATUSES


def level_for_status(status: LeaveStatus) -> LevelRole | None:
    """Level that must act on a request in ``status`` (None when nobody can)."""
    return STATUS_LEVEL.get(status)


def pipeline_index(role: LevelRole) -> int:
    return PIPELINE.index(role)
