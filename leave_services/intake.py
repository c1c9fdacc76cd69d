"""
Request intake.

Creates a leave request in CREATED and immediately hands it to the engine
for the CREATED -> PENDING_SERVICE_HEAD system transition.  Checks that
belong to submission time (date order, positive day count) live here;
balance sufficiency and overlapping requests are left to the caller's
policy.
"""

from __future__ import annotations

from datetime import date
from uuid import UUID

from sqlalchemy.orm import Session, sessionmaker

from leave_kernel.domain.clock import Clock, SystemClock
from leave_kernel.domain.dtos import DecisionResult
from leave_kernel.domain.workflow import LeaveStatus
from leave_kernel.logging_config import get_logger
from leave_kernel.models.leave_request import LeaveRequest
from leave_kernel.services.decision_service import DecisionService

logger = get_logger("services.intake")


class RequestIntakeError(ValueError):
    """Submission rejected before any row was written."""

    code: str = "INVALID_LEAVE_REQUEST"


class RequestIntake:
    def __init__(
        self,
        session_factory: sessionmaker[Session],
        decisions: DecisionService,
        clock: Clock | None = None,
    ) -> None:
        self._session_factory = session_factory
        self._decisions = decisions
        self._clock = clock or SystemClock()

    def create(
        self,
        employee_id: UUID,
        leave_type: str,
        start_date: date,
        end_date: date,
        days_requested: int,
    ) -> UUID:
        """Persist a CREATED request and return its id (no enqueue)."""
        if end_date < start_date:
            raise RequestIntakeError(f"end_date {end_date} is before start_date {start_date}")
        if days_requested <= 0:
            raise RequestIntakeError(f"days_requested must be positive, got {days_requested}")
        if not leave_type:
            raise RequestIntakeError("leave_type is required")

        with self._session_factory() as session:
            row = LeaveRequest(
                employee_id=employee_id,
                leave_type=leave_type,
                start_date=start_date,
                end_date=end_date,
                days_requested=days_requested,
                status=LeaveStatus.CREATED.value,
                current_level_rank=0,
                created_at=self._clock.now(),
            )
            session.add(row)
            session.commit()
            request_id = row.id

        logger.info(
            "leave_request_created",
            extra={
                "request_id": str(request_id),
                "employee_id": str(employee_id),
                "days_requested": days_requested,
            },
        )
        return request_id

    def submit(
        self,
        employee_id: UUID,
        leave_type: str,
        start_date: date,
        end_date: date,
        days_requested: int,
        correlation_id: str | None = None,
    ) -> DecisionResult:
        """Create the request and run the enqueue transition."""
        request_id = self.create(employee_id, leave_type, start_date, end_date, days_requested)
        return self._decisions.enqueue(request_id, correlation_id=correlation_id)
