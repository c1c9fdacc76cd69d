"""
Authorization check (``leave_kernel.domain.authorization``).

Responsibility
--------------
Decides whether an actor may act on a leave request at its current level.
A pure predicate over (actor, request, level, management chain, levels the
actor already decided); all lookups are done by the caller and passed in.

Architecture position
---------------------
**Kernel domain layer** -- ZERO I/O.

Evaluation order (first failure wins)
-------------------------------------
1. Request already APPROVED/REJECTED -> TerminalStateViolationError
2. Request not enqueued yet (no level owns it) -> InvalidTransitionError
3. Actor unknown or inactive -> UnauthorizedActorError
4. Actor is the requesting employee -> UnauthorizedActorError
5. Actor's role is a level the request already passed -> InvalidTransitionError
6. Actor's role is not the current level's role -> UnauthorizedActorError
7. HIERARCHY level and actor outside the employee's management chain ->
   UnauthorizedActorError
8. Actor already decided at the current level -> DuplicateDecisionError
"""

from __future__ import annotations

from collections.abc import Collection
from uuid import UUID

from leave_kernel.domain.dtos import (
    ActorProfile,
    ApprovalLevelDef,
    LeaveRequestSnapshot,
)
from leave_kernel.domain.workflow import (
    LevelRole,
    is_terminal,
    level_for_status,
    pipeline_index,
)
from leave_kernel.exceptions import (
    DuplicateDecisionError,
    InvalidTransitionError,
    LeaveKernelError,
    TerminalStateViolationError,
    UnauthorizedActorError,
)


def _actor_level_role(actor: ActorProfile) -> LevelRole | None:
    try:
        return LevelRole(actor.role)
    except ValueError:
        return None


def authorize(
    actor_id: UUID,
    actor: ActorProfile | None,
    request: LeaveRequestSnapshot,
    level: ApprovalLevelDef | None,
    management_chain: Collection[UUID] = (),
    decided_levels: Collection[LevelRole] = (),
) -> None:
    """Raise unless ``actor`` may decide on ``request`` at ``level``.

    Args:
        actor_id: Identifier the caller acted under.
        actor: Profile from the Actor/Role provider (None if unknown).
        request: Current snapshot of the leave request.
        level: Reference row for the level owning the request's status.
        management_chain: Managers of the requesting employee.
        decided_levels: Levels at which this actor already has an approval
            on this request.
    """
    request_id = request.request_id

    if is_terminal(request.status):
        raise TerminalStateViolationError(request_id, request.status.value, actor_id)

    current_role = level_for_status(request.status)
    if current_role is None or level is None:
        raise InvalidTransitionError(
            status=request.status.value,
            trigger="DECISION",
            role=None,
            request_id=request_id,
            actor_id=actor_id,
        )

    if actor is None:
        raise UnauthorizedActorError(
            request_id, actor_id, current_role.value, "unknown actor",
        )
    if not actor.is_active:
        raise UnauthorizedActorError(
            request_id, actor_id, current_role.value, "actor is inactive",
        )
    if actor_id == request.employee_id:
        raise UnauthorizedActorError(
            request_id, actor_id, current_role.value,
            "actor cannot decide on their own request",
        )

    actor_role = _actor_level_role(actor)
    if actor_role is not None and actor_role != current_role:
        if pipeline_index(actor_role) < pipeline_index(current_role):
            # A decision aimed at a level the request has already left,
            # whether or not this actor decided there.
            raise InvalidTransitionError(
                status=request.status.value,
                trigger="DECISION",
                role=actor_role.value,
                request_id=request_id,
                actor_id=actor_id,
            )

    if actor_role != current_role:
        raise UnauthorizedActorError(
            request_id, actor_id, current_role.value,
            f"actor holds role {actor.role or '-'}",
        )

    if current_role is LevelRole.HIERARCHY and actor_id not in management_chain:
        raise UnauthorizedActorError(
            request_id, actor_id, current_role.value,
            "actor is not in the employee's management chain",
        )

    if current_role in decided_levels:
        raise DuplicateDecisionError(request_id, actor_id, current_role.value)


def is_authorized(
    actor_id: UUID,
    actor: ActorProfile | None,
    request: LeaveRequestSnapshot,
    level: ApprovalLevelDef | None,
    management_chain: Collection[UUID] = (),
    decided_levels: Collection[LevelRole] = (),
) -> bool:
    """Predicate form of :func:`authorize`."""
    try:
        authorize(actor_id, actor, request, level, management_chain, decided_levels)
    except LeaveKernelError:
        return False
    return True

