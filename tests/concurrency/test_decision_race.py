"""
Concurrent decisions on the same leave request.

Two approvers (or one approver clicking twice) submit at the same moment.
Exactly one decision may commit; the other must fail with an error the
caller can act on, and nothing of the losing attempt may be persisted.

On SQLite the database writer lock serializes the two units and the
version check on leave_requests rejects the loser with
ConcurrencyConflictError.  On PostgreSQL the request row is locked FOR
UPDATE, so the loser waits and is then rejected against the new state.

Expected Behavior:
- Exactly one success
- Loser: ConcurrencyConflictError, or the domain error of the new state
- One approval row, one audit entry and at most one balance deduction
  from the race
"""

from concurrent.futures import ThreadPoolExecutor
from threading import Barrier

import pytest

from leave_kernel.domain.workflow import DecisionKind, LeaveStatus
from leave_kernel.exceptions import (
    ConcurrencyConflictError,
    DuplicateDecisionError,
    InvalidTransitionError,
    LeaveKernelError,
    TerminalStateViolationError,
)
from leave_kernel.selectors.approval_selector import ApprovalSelector
from leave_kernel.selectors.audit_selector import AuditSelector
from leave_kernel.selectors.balance_selector import BalanceSelector
from leave_kernel.services.audit_recorder import AuditRecorder

pytestmark = pytest.mark.concurrency


def _race(decisions, request_id, attempts):
    """Run ``attempts`` [(actor_id, kind), ...] behind a barrier; return outcomes."""
    barrier = Barrier(len(attempts))

    def _attempt(actor_id, kind):
        barrier.wait()
        try:
            return decisions.decide(request_id, actor_id, kind)
        except LeaveKernelError as exc:
            return exc

    with ThreadPoolExecutor(max_workers=len(attempts)) as pool:
        futures = [pool.submit(_attempt, actor_id, kind) for actor_id, kind in attempts]
        return [f.result(timeout=60) for f in futures]


def _split(outcomes):
    errors = [o for o in outcomes if isinstance(o, Exception)]
    successes = [o for o in outcomes if not isinstance(o, Exception)]
    return successes, errors


class TestSameLevelRace:
    def test_two_service_heads_only_one_wins(self, decisions, submit_request, session_factory, org, deterministic_clock):
        request_id = submit_request()

        outcomes = _race(decisions, request_id, [
            (org.service_head, DecisionKind.APPROVED),
            (org.second_service_head, DecisionKind.REJECTED),
        ])
        successes, errors = _split(outcomes)

        assert len(successes) == 1
        assert len(errors) == 1
        assert isinstance(errors[0], (ConcurrencyConflictError, InvalidTransitionError, TerminalStateViolationError))

        winner = successes[0]
        with session_factory() as sess:
            approvals = ApprovalSelector(sess).history_for(request_id)
            entries = AuditSelector(sess).entries_for("LeaveRequest", request_id)
            assert AuditRecorder(sess, deterministic_clock).validate_chain()

        assert approvals == winner.history
        assert len(entries) == 2
        assert decisions.get_request(request_id).status is winner.request.status

    def test_conflict_is_retryable(self, decisions, submit_request, org):
        request_id = submit_request()

        attempts = [
            (org.service_head, DecisionKind.APPROVED),
            (org.second_service_head, DecisionKind.APPROVED),
        ]
        outcomes = _race(decisions, request_id, attempts)
        _, errors = _split(outcomes)

        assert len(errors) == 1
        loser_id = next(
            actor_id for (actor_id, _), outcome in zip(attempts, outcomes)
            if isinstance(outcome, Exception)
        )
        if isinstance(errors[0], ConcurrencyConflictError):
            assert errors[0].retryable
        # Re-reading shows the winner's state; resubmitting is now stale.
        assert decisions.get_request(request_id).status is LeaveStatus.PENDING_HIERARCHY
        with pytest.raises(InvalidTransitionError):
            decisions.decide(request_id, loser_id, DecisionKind.APPROVED)


class TestFinalApprovalRace:
    def test_double_submit_deducts_once(
        self, decisions, submit_request, advance_to, open_balance, session_factory, org,
    ):
        open_balance(total=20)
        request_id = submit_request(days=6)
        advance_to(request_id, LeaveStatus.PENDING_HR_DECISION)

        outcomes = _race(decisions, request_id, [
            (org.hr, DecisionKind.APPROVED),
            (org.hr, DecisionKind.APPROVED),
        ])
        successes, errors = _split(outcomes)

        assert len(successes) == 1
        assert isinstance(
            errors[0],
            (ConcurrencyConflictError, DuplicateDecisionError, TerminalStateViolationError),
        )
        with session_factory() as sess:
            balance = BalanceSelector(sess).get(org.employee, 2025)
            assert BalanceSelector(sess).adjustment_count(request_id) == 1
        assert balance.remaining_days == 14
        assert decisions.get_request(request_id).status is LeaveStatus.APPROVED


class TestIndependentRequests:
    def test_parallel_requests_all_commit(self, decisions, submit_request, session_factory, org, deterministic_clock):
        request_ids = [submit_request() for _ in range(6)]
        barrier = Barrier(len(request_ids))

        def _approve(request_id):
            barrier.wait()
            # Caller retry policy: re-read and retry on a conflict.
            for _ in range(5):
                try:
                    return decisions.decide(request_id, org.service_head, DecisionKind.APPROVED)
                except ConcurrencyConflictError:
                    continue
            raise AssertionError(f"request {request_id} kept conflicting")

        with ThreadPoolExecutor(max_workers=len(request_ids)) as pool:
            results = list(pool.map(_approve, request_ids, timeout=120))

        assert all(r.request.status is LeaveStatus.PENDING_HIERARCHY for r in results)
        seqs = [r.audit_seq for r in results]
        assert len(set(seqs)) == len(seqs)
        with session_factory() as sess:
            assert AuditRecorder(sess, deterministic_clock).validate_chain()


@pytest.mark.postgres
class TestRowLockNowait:
    def test_nowait_conflict_on_locked_request(
        self, skip_unless_postgres, session_factory, levels, actors, submit_request, org, deterministic_clock,
    ):
        from sqlalchemy import select

        from leave_kernel.models.leave_request import LeaveRequest
        from leave_kernel.services.decision_service import DecisionService, DecisionSettings

        service = DecisionService(
            session_factory, actors, clock=deterministic_clock,
            config=DecisionSettings(row_lock_nowait=True),
        )
        request_id = submit_request()

        with session_factory() as holder:
            holder.execute(
                select(LeaveRequest).where(LeaveRequest.id == request_id).with_for_update()
            ).scalar_one()
            with pytest.raises(ConcurrencyConflictError):
                service.decide(request_id, org.service_head, DecisionKind.APPROVED)
            holder.rollback()

        assert service.get_request(request_id).status is LeaveStatus.PENDING_SERVICE_HEAD
