"""
DecisionService -- the only writer of leave request status.

Responsibility:
    Runs one decision (or the system enqueue transition) end to end:
    validate input, re-read the request under lock, authorize, consult the
    transition table, record the approval, move the request, deduct the
    balance on final approval, write the audit entry -- all inside one
    AtomicUnit -- and, only after commit, hand a notification event to the
    dispatcher.

Architecture position:
    Kernel > Services -- the orchestrator.  Owns its transaction through
    AtomicUnit; every service it calls is flush-only.

Invariants enforced:
    - Validation failures (input, authorization, transition) are raised
      before the first write; nothing of a failed call is ever committed.
    - One audit entry per status change, in the same transaction.
    - The balance is touched only on the edge into APPROVED, and the
      adjustment ledger's unique request_id makes that exactly-once even
      when a caller retries.
    - Concurrent decisions on one request serialize: the request row is
      read FOR UPDATE (PostgreSQL) and written with a version check (all
      backends).  The loser sees ConcurrencyConflictError or, if it was
      serialized behind the winner, a domain error against the new state.
    - Notification failures are logged and never undo or fail a committed
      decision.

Flush order inside the unit:
    approval INSERT -> request UPDATE (+ balance UPDATE, adjustment INSERT)
    -> audit sequence + entry
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any
from uuid import UUID, uuid4

from sqlalchemy import select
from sqlalchemy.orm import Session, sessionmaker

from leave_kernel.db.atomic import AtomicUnit
from leave_kernel.domain.authorization import authorize
from leave_kernel.domain.clock import Clock, SystemClock
from leave_kernel.domain.dtos import (
    ActorProvider,
    ApprovalRecord,
    DecisionResult,
    LeaveRequestSnapshot,
    NotificationDispatcher,
    NotificationEvent,
)
from leave_kernel.domain.workflow import (
    DecisionKind,
    LeaveStatus,
    LevelRole,
    SystemAction,
    is_terminal,
    level_for_status,
    next_status,
)
from leave_kernel.exceptions import (
    DecisionInputError,
    InvalidTransitionError,
    LeaveKernelError,
    LeaveRequestNotFoundError,
    TerminalStateViolationError,
)
from leave_kernel.logging_config import LogContext, get_logger
from leave_kernel.models.audit_entry import AuditAction
from leave_kernel.models.leave_request import LeaveRequest
from leave_kernel.services.approval_ledger import ApprovalLedger
from leave_kernel.services.audit_recorder import AuditRecorder
from leave_kernel.services.balance_ledger import BalanceLedger
from leave_kernel.services.level_registry import ApprovalLevelRegistry

logger = get_logger("services.decision")

SYSTEM_ACTOR_ID = UUID("00000000-0000-0000-0000-000000000000")

_ENTITY_TYPE = "LeaveRequest"


@dataclass(frozen=True)
class DecisionSettings:
    """Engine knobs the decision path needs."""

    comment_max_length: int = 2000
    row_lock_nowait: bool = False
    system_actor_id: UUID = SYSTEM_ACTOR_ID


def _state_of(row: LeaveRequest) -> dict[str, Any]:
    return {
        "status": row.status,
        "current_level_rank": row.current_level_rank,
        "final_decided_by": row.final_decided_by,
        "final_decided_at": row.final_decided_at,
        "version": row.version,
    }


def _approval_payload(approval: ApprovalRecord) -> dict[str, Any]:
    return {
        "approval_id": approval.approval_id,
        "level_role": approval.level_role,
        "approver_id": approval.approver_id,
        "decision": approval.decision,
        "comment": approval.comment,
        "decided_at": approval.decided_at,
    }


def _audit_action(new_status: LeaveStatus) -> AuditAction:
    if new_status is LeaveStatus.APPROVED:
        return AuditAction.REQUEST_APPROVED
    if new_status is LeaveStatus.REJECTED:
        return AuditAction.REQUEST_REJECTED
    return AuditAction.REQUEST_ADVANCED


class DecisionService:
    """
    Entry point for decisions on leave requests.

    Each call opens its own AtomicUnit from ``session_factory``, so one
    service instance can be shared by many threads.
    """

    def __init__(
        self,
        session_factory: sessionmaker[Session],
        actor_provider: ActorProvider,
        dispatcher: NotificationDispatcher | None = None,
        clock: Clock | None = None,
        config: DecisionSettings | None = None,
    ):
        self._session_factory = session_factory
        self._actors = actor_provider
        self._dispatcher = dispatcher
        self._clock = clock or SystemClock()
        self._config = config or DecisionSettings()

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    def enqueue(
        self,
        request_id: UUID | str,
        correlation_id: str | None = None,
    ) -> DecisionResult:
        """
        System transition CREATED -> PENDING_SERVICE_HEAD.

        Raises:
            LeaveRequestNotFoundError, TerminalStateViolationError,
            InvalidTransitionError (request already enqueued),
            ConcurrencyConflictError, PersistenceFailureError.
        """
        actor_id = self._config.system_actor_id
        correlation_id = correlation_id or str(uuid4())

        with LogContext.bind(
            correlation_id=correlation_id, request_id=request_id, actor_id=actor_id,
        ):
            try:
                request_id = self._coerce_uuid("request_id", request_id, None, actor_id)
                with AtomicUnit(self._session_factory, request_id, actor_id) as session:
                    result = self._enqueue_in_unit(session, request_id, actor_id, correlation_id)
            except LeaveKernelError as exc:
                self._log_rejection(exc, "ENQUEUE")
                raise

            logger.info(
                "request_enqueued",
                extra={
                    "new_status": result.request.status.value,
                    "audit_seq": result.audit_seq,
                },
            )
            self._dispatch(result.notification)
            return result

    def decide(
        self,
        request_id: UUID | str,
        actor_id: UUID | str,
        decision: DecisionKind | str,
        comment: str | None = None,
        correlation_id: str | None = None,
    ) -> DecisionResult:
        """
        Record one decision and move the request.

        Args:
            request_id: Leave request to decide on.
            actor_id: Approver submitting the decision.
            decision: A DecisionKind or its string value.
            comment: Optional, at most ``comment_max_length`` characters.
            correlation_id: Carried into the audit entry, the logs and the
                notification; generated when omitted.

        Returns:
            DecisionResult with the updated request and its full approval
            history, freshly read inside the committed unit.

        Raises:
            DecisionInputError: malformed ids, unknown kind, comment too long.
            LeaveRequestNotFoundError: unknown request.
            TerminalStateViolationError, InvalidTransitionError,
            UnauthorizedActorError, DuplicateDecisionError: rejected decision.
            ConcurrencyConflictError: lost a race; re-read and retry.
            PersistenceFailureError: storage fault (including balance errors).
        """
        correlation_id = correlation_id or str(uuid4())

        with LogContext.bind(
            correlation_id=correlation_id, request_id=request_id, actor_id=actor_id,
        ):
            try:
                request_id = self._coerce_uuid("request_id", request_id, None, actor_id)
                actor_id = self._coerce_uuid("actor_id", actor_id, request_id, None)
                kind = self._validate_decision(decision, comment, request_id, actor_id)
                with AtomicUnit(self._session_factory, request_id, actor_id) as session:
                    result = self._decide_in_unit(
                        session, request_id, actor_id, kind, comment, correlation_id,
                    )
            except LeaveKernelError as exc:
                self._log_rejection(exc, str(getattr(decision, "value", decision)))
                raise

            logger.info(
                "decision_committed",
                extra={
                    "decision": kind.value,
                    "previous_status": result.previous_status.value,
                    "new_status": result.request.status.value,
                    "audit_seq": result.audit_seq,
                    "balance_deducted": result.balance is not None,
                },
            )
            self._dispatch(result.notification)
            return result

    def get_request(self, request_id: UUID) -> LeaveRequestSnapshot:
        """Current snapshot of a request with its approval history."""
        with self._session_factory() as session:
            row = session.get(LeaveRequest, request_id)
            if row is None:
                raise LeaveRequestNotFoundError(request_id)
            return row.to_dto(ApprovalLedger(session).history_for(request_id))

    # ------------------------------------------------------------------
    # Inside the atomic unit
    # ------------------------------------------------------------------

    def _load_for_update(
        self, session: Session, request_id: UUID, actor_id: UUID,
    ) -> LeaveRequest:
        row = session.execute(
            select(LeaveRequest)
            .where(LeaveRequest.id == request_id)
            .with_for_update(nowait=self._config.row_lock_nowait)
            .execution_options(populate_existing=True)
        ).scalar_one_or_none()
        if row is None:
            raise LeaveRequestNotFoundError(request_id, actor_id)
        return row

    def _enqueue_in_unit(
        self,
        session: Session,
        request_id: UUID,
        actor_id: UUID,
        correlation_id: str,
    ) -> DecisionResult:
        row = self._load_for_update(session, request_id, actor_id)
        previous_status = LeaveStatus(row.status)
        if is_terminal(previous_status):
            raise TerminalStateViolationError(request_id, previous_status.value, actor_id)

        try:
            new_status = next_status(previous_status, SystemAction.ENQUEUE, None)
        except InvalidTransitionError as exc:
            raise InvalidTransitionError(
                exc.status, exc.trigger, exc.role, request_id, actor_id,
            ) from None

        level = ApprovalLevelRegistry(session).get(level_for_status(new_status))
        old_value = _state_of(row)
        row.status = new_status.value
        row.current_level_rank = level.rank
        session.flush()

        audit = AuditRecorder(session, self._clock).record(
            actor_id=actor_id,
            action=AuditAction.REQUEST_ENQUEUED,
            entity_type=_ENTITY_TYPE,
            entity_id=request_id,
            old_value=old_value,
            new_value=_state_of(row),
            correlation_id=correlation_id,
        )

        return DecisionResult(
            request=row.to_dto(ApprovalLedger(session).history_for(request_id)),
            previous_status=previous_status,
            approval=None,
            audit_seq=audit.seq,
            correlation_id=correlation_id,
            notification=NotificationEvent(
                request_id=request_id,
                new_status=new_status,
                actor_id=actor_id,
                occurred_at=audit.occurred_at,
                correlation_id=correlation_id,
            ),
        )

    def _decide_in_unit(
        self,
        session: Session,
        request_id: UUID,
        actor_id: UUID,
        kind: DecisionKind,
        comment: str | None,
        correlation_id: str,
    ) -> DecisionResult:
        row = self._load_for_update(session, request_id, actor_id)
        snapshot = row.to_dto()
        registry = ApprovalLevelRegistry(session)
        ledger = ApprovalLedger(session)

        current_role = level_for_status(snapshot.status)
        level = registry.get(current_role) if current_role is not None else None
        actor = self._actors.get_actor(actor_id)
        chain: tuple[UUID, ...] = ()
        if current_role is LevelRole.HIERARCHY:
            chain = tuple(self._actors.get_management_chain(snapshot.employee_id))

        authorize(
            actor_id,
            actor,
            snapshot,
            level,
            management_chain=chain,
            decided_levels=ledger.decided_levels(request_id, actor_id),
        )
        assert level is not None

        try:
            new_status = next_status(snapshot.status, kind, level.role)
        except InvalidTransitionError as exc:
            raise InvalidTransitionError(
                exc.status, exc.trigger, exc.role, request_id, actor_id,
            ) from None

        # Validation is complete; writes start here.
        now = self._clock.now()
        approval = ledger.record(request_id, level, actor_id, kind, comment, now)

        old_value = _state_of(row)
        row.status = new_status.value
        if is_terminal(new_status):
            row.final_decided_by = actor_id
            row.final_decided_at = now
        else:
            row.current_level_rank = registry.get(level_for_status(new_status)).rank
        session.flush()

        balance = None
        if new_status is LeaveStatus.APPROVED:
            balance = BalanceLedger(session, nowait=self._config.row_lock_nowait).deduct(
                employee_id=snapshot.employee_id,
                year=snapshot.balance_year,
                days=snapshot.days_requested,
                request_id=request_id,
                actor_id=actor_id,
                applied_at=now,
            )

        new_value = _state_of(row)
        new_value["approval"] = _approval_payload(approval)
        if balance is not None:
            new_value["balance"] = {
                "year": balance.year,
                "days_deducted": snapshot.days_requested,
                "remaining_days": balance.remaining_days,
            }

        audit = AuditRecorder(session, self._clock).record(
            actor_id=actor_id,
            action=_audit_action(new_status),
            entity_type=_ENTITY_TYPE,
            entity_id=request_id,
            old_value=old_value,
            new_value=new_value,
            correlation_id=correlation_id,
        )

        return DecisionResult(
            request=row.to_dto(ledger.history_for(request_id)),
            previous_status=snapshot.status,
            approval=approval,
            audit_seq=audit.seq,
            correlation_id=correlation_id,
            balance=balance,
            notification=NotificationEvent(
                request_id=request_id,
                new_status=new_status,
                actor_id=actor_id,
                occurred_at=now,
                correlation_id=correlation_id,
            ),
        )

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    @staticmethod
    def _coerce_uuid(
        field: str,
        value: UUID | str,
        request_id: UUID | None,
        actor_id: UUID | None,
    ) -> UUID:
        if isinstance(value, UUID):
            return value
        try:
            return UUID(str(value))
        except ValueError:
            raise DecisionInputError(field, f"not a UUID: {value!r}", request_id, actor_id) from None

    def _validate_decision(
        self,
        decision: DecisionKind | str,
        comment: str | None,
        request_id: UUID,
        actor_id: UUID,
    ) -> DecisionKind:
        try:
            kind = DecisionKind(decision)
        except ValueError:
            raise DecisionInputError(
                "decision", f"unknown decision kind {decision!r}", request_id, actor_id,
            ) from None

        if comment is not None:
            if not isinstance(comment, str):
                raise DecisionInputError("comment", "must be a string", request_id, actor_id)
            limit = self._config.comment_max_length
            if len(comment) > limit:
                raise DecisionInputError(
                    "comment",
                    f"length {len(comment)} exceeds {limit}",
                    request_id,
                    actor_id,
                )
        return kind

    def _log_rejection(self, exc: LeaveKernelError, decision: str) -> None:
        logger.info(
            "decision_rejected",
            extra={
                "decision": decision,
                "error_code": exc.code,
                "retryable": exc.retryable,
            },
        )

    def _dispatch(self, event: NotificationEvent | None) -> None:
        if self._dispatcher is None or event is None:
            return
        try:
            self._dispatcher.dispatch(event)
        except Exception:
            # The decision is committed; delivery is the dispatcher's problem.
            logger.error(
                "notification_dispatch_failed",
                exc_info=True,
                extra={
                    "new_status": event.new_status.value,
                    "dedupe_key": event.dedupe_key,
                },
            )
