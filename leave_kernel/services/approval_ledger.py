"""
ApprovalLedger -- append-only store of individual decisions.

Responsibility:
    Records one Approval per (request, level, approver) and answers the
    questions the authorization check needs: has this approver already
    decided, and at which levels.

Architecture position:
    Kernel > Services -- flush-only, runs inside the caller's AtomicUnit.

Invariants enforced:
    - Exactly one Approval per (request, level, approver): the unique
      constraint is the final guard, so two identical calls racing past
      the authorization check still cannot both commit.
    - Approvals are never updated or deleted (ORM listener).

Failure modes:
    - DuplicateDecisionError when the approver already has a row at that
      level, or when the unique constraint fires on flush after a race.
"""

from datetime import datetime
from uuid import UUID, uuid4

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError

from leave_kernel.domain.dtos import ApprovalLevelDef, ApprovalRecord
from leave_kernel.domain.workflow import DecisionKind, LevelRole
from leave_kernel.exceptions import DuplicateDecisionError
from leave_kernel.logging_config import get_logger
from leave_kernel.models.approval import APPROVAL_UNIQUE_CONSTRAINT, Approval
from leave_kernel.selectors.approval_selector import ApprovalSelector
from leave_kernel.services.base import BaseService

logger = get_logger("services.approval_ledger")


def _is_duplicate(exc: IntegrityError) -> bool:
    message = str(exc.orig)
    # PostgreSQL names the constraint; SQLite lists the columns.
    return (
        APPROVAL_UNIQUE_CONSTRAINT in message
        or "approvals.request_id, approvals.level_id, approvals.approver_id" in message
    )


class ApprovalLedger(BaseService[Approval]):
    """Write side of the approval ledger."""

    def record(
        self,
        request_id: UUID,
        level: ApprovalLevelDef,
        approver_id: UUID,
        decision: DecisionKind,
        comment: str | None,
        decided_at: datetime,
    ) -> ApprovalRecord:
        """
        Append one decision and flush it.

        Raises:
            DuplicateDecisionError: an Approval already exists for
                (request_id, level, approver_id).
        """
        if self.exists(request_id, level.level_id, approver_id):
            self._log_duplicate(request_id, approver_id, level)
            raise DuplicateDecisionError(request_id, approver_id, level.role.value)

        record = ApprovalRecord(
            approval_id=uuid4(),
            request_id=request_id,
            level_id=level.level_id,
            level_role=level.role,
            approver_id=approver_id,
            decision=decision,
            comment=comment,
            decided_at=decided_at,
        )
        self.session.add(Approval.from_dto(record, level_rank=level.rank))
        try:
            self.session.flush()
        except IntegrityError as exc:
            if not _is_duplicate(exc):
                raise
            self._log_duplicate(request_id, approver_id, level)
            raise DuplicateDecisionError(request_id, approver_id, level.role.value) from exc

        logger.info(
            "approval_recorded",
            extra={
                "approval_id": str(record.approval_id),
                "level_role": level.role.value,
                "decision": decision.value,
            },
        )
        return record

    def exists(self, request_id: UUID, level_id: UUID, approver_id: UUID) -> bool:
        found = self.session.execute(
            select(Approval.id).where(
                Approval.request_id == request_id,
                Approval.level_id == level_id,
                Approval.approver_id == approver_id,
            )
        ).first()
        return found is not None

    def decided_levels(self, request_id: UUID, approver_id: UUID) -> frozenset[LevelRole]:
        """Levels at which ``approver_id`` already decided on ``request_id``."""
        roles = self.session.execute(
            select(Approval.level_role).where(
                Approval.request_id == request_id,
                Approval.approver_id == approver_id,
            )
        ).scalars().all()
        return frozenset(LevelRole(role) for role in roles)

    @staticmethod
    def _log_duplicate(request_id: UUID, approver_id: UUID, level: ApprovalLevelDef) -> None:
        logger.warning(
            "duplicate_decision_blocked",
            extra={
                "request_id": str(request_id),
                "approver_id": str(approver_id),
                "level_role": level.role.value,
            },
        )

    def history_for(self, request_id: UUID) -> tuple[ApprovalRecord, ...]:
        return ApprovalSelector(self.session).history_for(request_id)
