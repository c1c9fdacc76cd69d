"""
ApprovalLedger tests.

Verifies:
- A recorded decision round-trips through history_for
- The (request, level, approver) unique constraint surfaces as
  DuplicateDecisionError
- decided_levels / exists answer per approver
- History is ordered by decision time then level rank
"""

from datetime import date
from uuid import uuid4

import pytest

from leave_kernel.domain.workflow import DecisionKind, LeaveStatus, LevelRole
from leave_kernel.exceptions import DuplicateDecisionError
from leave_kernel.models.leave_request import LeaveRequest
from leave_kernel.selectors.approval_selector import ApprovalSelector
from leave_kernel.services.approval_ledger import ApprovalLedger


@pytest.fixture
def request_row(session, org, deterministic_clock):
    row = LeaveRequest(
        employee_id=org.employee,
        leave_type="annual",
        start_date=date(2025, 6, 2),
        end_date=date(2025, 6, 6),
        days_requested=5,
        status=LeaveStatus.PENDING_SERVICE_HEAD.value,
        current_level_rank=1,
        created_at=deterministic_clock.now(),
    )
    session.add(row)
    session.flush()
    return row


class TestRecord:
    def test_record_returns_immutable_record(self, session, levels, org, request_row, deterministic_clock):
        ledger = ApprovalLedger(session)
        record = ledger.record(
            request_row.id,
            levels[LevelRole.SERVICE_HEAD],
            org.service_head,
            DecisionKind.APPROVED,
            "ok",
            deterministic_clock.now(),
        )

        assert record.level_role is LevelRole.SERVICE_HEAD
        assert record.decision is DecisionKind.APPROVED
        assert ledger.history_for(request_row.id) == (record,)

    def test_same_approver_same_level_is_duplicate(self, session, levels, org, request_row, deterministic_clock):
        ledger = ApprovalLedger(session)
        level = levels[LevelRole.SERVICE_HEAD]
        ledger.record(request_row.id, level, org.service_head, DecisionKind.APPROVED, None, deterministic_clock.now())

        with pytest.raises(DuplicateDecisionError) as exc_info:
            ledger.record(
                request_row.id, level, org.service_head, DecisionKind.REJECTED, None, deterministic_clock.tick(),
            )
        assert exc_info.value.level_role == "SERVICE_HEAD"

    def test_duplicate_caught_before_insert(self, session, levels, org, request_row, deterministic_clock):
        ledger = ApprovalLedger(session)
        level = levels[LevelRole.SERVICE_HEAD]
        ledger.record(request_row.id, level, org.service_head, DecisionKind.APPROVED, None, deterministic_clock.now())

        with pytest.raises(DuplicateDecisionError):
            ledger.record(
                request_row.id, level, org.service_head, DecisionKind.APPROVED, None, deterministic_clock.tick(),
            )

        # No failed flush, so the same session keeps working.
        ledger.record(
            request_row.id, level, org.second_service_head, DecisionKind.APPROVED, None, deterministic_clock.tick(),
        )
        assert ApprovalSelector(session).count_for(request_row.id) == 2

    def test_different_approvers_same_level_both_recorded(self, session, levels, org, request_row, deterministic_clock):
        ledger = ApprovalLedger(session)
        level = levels[LevelRole.SERVICE_HEAD]
        ledger.record(request_row.id, level, org.service_head, DecisionKind.APPROVED, None, deterministic_clock.now())
        ledger.record(
            request_row.id, level, org.second_service_head, DecisionKind.APPROVED, None, deterministic_clock.tick(),
        )

        assert ApprovalSelector(session).count_for(request_row.id) == 2


class TestQueries:
    def test_decided_levels_per_approver(self, session, levels, org, request_row, deterministic_clock):
        ledger = ApprovalLedger(session)
        ledger.record(
            request_row.id, levels[LevelRole.SERVICE_HEAD], org.service_head,
            DecisionKind.APPROVED, None, deterministic_clock.now(),
        )

        assert ledger.decided_levels(request_row.id, org.service_head) == {LevelRole.SERVICE_HEAD}
        assert ledger.decided_levels(request_row.id, org.hr) == frozenset()

    def test_exists(self, session, levels, org, request_row, deterministic_clock):
        ledger = ApprovalLedger(session)
        level = levels[LevelRole.SERVICE_HEAD]
        assert not ledger.exists(request_row.id, level.level_id, org.service_head)
        ledger.record(request_row.id, level, org.service_head, DecisionKind.APPROVED, None, deterministic_clock.now())
        assert ledger.exists(request_row.id, level.level_id, org.service_head)

    def test_history_ordered_by_time_then_rank(self, session, levels, org, request_row, deterministic_clock):
        ledger = ApprovalLedger(session)
        same_time = deterministic_clock.now()
        ledger.record(
            request_row.id, levels[LevelRole.HIERARCHY], org.manager,
            DecisionKind.APPROVED, None, same_time,
        )
        ledger.record(
            request_row.id, levels[LevelRole.SERVICE_HEAD], org.service_head,
            DecisionKind.APPROVED, None, same_time,
        )
        later = deterministic_clock.tick()
        ledger.record(
            request_row.id, levels[LevelRole.DGA], org.dga,
            DecisionKind.OPINION_NEGATIVE, None, later,
        )

        roles = [r.level_role for r in ledger.history_for(request_row.id)]
        assert roles == [LevelRole.SERVICE_HEAD, LevelRole.HIERARCHY, LevelRole.DGA]

    def test_history_empty_for_unknown_request(self, session, levels):
        assert ApprovalLedger(session).history_for(uuid4()) == ()
