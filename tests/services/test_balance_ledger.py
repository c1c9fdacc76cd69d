"""
BalanceLedger tests.

Verifies:
- open_balance starts with nothing used
- deduct moves days from remaining to used and logs an adjustment
- Underflow is rejected before anything is written
- A request can be deducted only once
"""

from datetime import date
from uuid import uuid4

import pytest

from leave_kernel.domain.workflow import LeaveStatus
from leave_kernel.exceptions import (
    DuplicateBalanceAdjustmentError,
    InsufficientBalanceError,
    LeaveBalanceNotFoundError,
    PersistenceFailureError,
)
from leave_kernel.models.leave_request import LeaveRequest
from leave_kernel.selectors.balance_selector import BalanceSelector
from leave_kernel.services.balance_ledger import BalanceLedger

YEAR = 2025


def _request(session, employee_id, clock, days=5) -> LeaveRequest:
    row = LeaveRequest(
        employee_id=employee_id,
        leave_type="annual",
        start_date=date(YEAR, 6, 2),
        end_date=date(YEAR, 6, 2 + days - 1),
        days_requested=days,
        status=LeaveStatus.PENDING_HR_DECISION.value,
        current_level_rank=5,
        created_at=clock.now(),
    )
    session.add(row)
    session.flush()
    return row


class TestOpenBalance:
    def test_new_balance_is_untouched(self, session, org, deterministic_clock):
        snapshot = BalanceLedger(session).open_balance(org.employee, YEAR, 25, org.hr, deterministic_clock.now())

        assert (snapshot.total_days, snapshot.used_days, snapshot.remaining_days) == (25, 0, 25)
        assert BalanceLedger(session).get(org.employee, YEAR) == snapshot

    def test_negative_total_rejected(self, session, org, deterministic_clock):
        with pytest.raises(ValueError):
            BalanceLedger(session).open_balance(org.employee, YEAR, -1, org.hr, deterministic_clock.now())

    def test_get_unknown_balance_is_none(self, session, org):
        assert BalanceLedger(session).get(org.employee, 1999) is None


class TestDeduct:
    def test_deduct_updates_counters(self, session, org, deterministic_clock):
        ledger = BalanceLedger(session)
        ledger.open_balance(org.employee, YEAR, 30, org.hr, deterministic_clock.now())
        request = _request(session, org.employee, deterministic_clock, days=5)

        snapshot = ledger.deduct(org.employee, YEAR, 5, request.id, org.hr, deterministic_clock.tick())

        assert snapshot.used_days == 5
        assert snapshot.remaining_days == 25
        assert snapshot.last_adjusted_by == org.hr
        assert BalanceSelector(session).adjustment_count(request.id) == 1

    def test_exact_remaining_can_be_used(self, session, org, deterministic_clock):
        ledger = BalanceLedger(session)
        ledger.open_balance(org.employee, YEAR, 5, org.hr, deterministic_clock.now())
        request = _request(session, org.employee, deterministic_clock, days=5)

        assert ledger.deduct(org.employee, YEAR, 5, request.id, org.hr, deterministic_clock.now()).remaining_days == 0

    def test_underflow_rejected_and_nothing_written(self, session, org, deterministic_clock, captured_logs):
        ledger = BalanceLedger(session)
        ledger.open_balance(org.employee, YEAR, 3, org.hr, deterministic_clock.now())
        request = _request(session, org.employee, deterministic_clock, days=5)

        with pytest.raises(InsufficientBalanceError) as exc_info:
            ledger.deduct(org.employee, YEAR, 5, request.id, org.hr, deterministic_clock.now())

        assert exc_info.value.remaining_days == 3
        assert exc_info.value.requested_days == 5
        assert isinstance(exc_info.value, PersistenceFailureError)
        assert ledger.get(org.employee, YEAR).remaining_days == 3
        assert BalanceSelector(session).adjustment_count(request.id) == 0
        assert any(r["message"] == "balance_underflow_blocked" for r in captured_logs())

    def test_missing_balance(self, session, org, deterministic_clock):
        with pytest.raises(LeaveBalanceNotFoundError) as exc_info:
            BalanceLedger(session).deduct(org.employee, YEAR, 1, uuid4(), org.hr, deterministic_clock.now())
        assert exc_info.value.year == YEAR

    def test_second_deduction_for_same_request_rejected(self, session, org, deterministic_clock):
        ledger = BalanceLedger(session)
        ledger.open_balance(org.employee, YEAR, 30, org.hr, deterministic_clock.now())
        request = _request(session, org.employee, deterministic_clock, days=2)
        ledger.deduct(org.employee, YEAR, 2, request.id, org.hr, deterministic_clock.now())

        with pytest.raises(DuplicateBalanceAdjustmentError):
            ledger.deduct(org.employee, YEAR, 2, request.id, org.hr, deterministic_clock.tick())

    @pytest.mark.parametrize("days", [0, -3])
    def test_non_positive_days_rejected(self, session, org, deterministic_clock, days):
        with pytest.raises(ValueError):
            BalanceLedger(session).deduct(org.employee, YEAR, days, uuid4(), org.hr, deterministic_clock.now())
