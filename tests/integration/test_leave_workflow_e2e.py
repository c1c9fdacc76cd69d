"""
End-to-end leave workflow scenarios.

Both scenarios run through the public surface only: RequestIntake,
DecisionService, the selectors and the audit chain validator.

Scenario 1: rejected at a blocking level
    SERVICE_HEAD approves, HIERARCHY rejects -> REJECTED, two approvals,
    balance untouched.

Scenario 2: full approval
    Every level passes (DGA with a negative opinion), HR approves ->
    APPROVED, balance reduced by days_requested, one audit entry per
    status change.
"""

from datetime import date

from leave_kernel.domain.workflow import DecisionKind, LeaveStatus, LevelRole
from leave_kernel.models.audit_entry import AuditAction
from leave_kernel.selectors.audit_selector import AuditSelector
from leave_kernel.selectors.balance_selector import BalanceSelector
from leave_kernel.services.audit_recorder import AuditRecorder

YEAR = 2025


class TestRejectedAtHierarchy:
    def test_scenario(self, intake, decisions, open_balance, session_factory, dispatcher, org, deterministic_clock):
        open_balance(total=30)
        submitted = intake.submit(org.employee, "annual", date(YEAR, 4, 7), date(YEAR, 4, 11), 5)
        request_id = submitted.request.request_id

        deterministic_clock.tick()
        decisions.decide(request_id, org.service_head, DecisionKind.APPROVED)
        deterministic_clock.tick()
        final = decisions.decide(request_id, org.manager, DecisionKind.REJECTED, comment="Understaffed")

        assert final.request.status is LeaveStatus.REJECTED
        assert final.request.final_decided_by == org.manager
        assert final.request.final_decided_at == deterministic_clock.now()
        assert [(a.level_role, a.decision) for a in final.history] == [
            (LevelRole.SERVICE_HEAD, DecisionKind.APPROVED),
            (LevelRole.HIERARCHY, DecisionKind.REJECTED),
        ]

        with session_factory() as sess:
            trace = AuditSelector(sess).trace(request_id)
            balance = BalanceSelector(sess).get(org.employee, YEAR)
            assert BalanceSelector(sess).adjustment_count(request_id) == 0

        assert balance.remaining_days == 30
        assert balance.used_days == 0
        assert trace.status_path == (
            "CREATED", "PENDING_SERVICE_HEAD", "PENDING_HIERARCHY", "REJECTED",
        )
        assert trace.audit_entries[-1].action == AuditAction.REQUEST_REJECTED.value
        assert [e.new_status for e in dispatcher.events] == [
            LeaveStatus.PENDING_SERVICE_HEAD, LeaveStatus.PENDING_HIERARCHY, LeaveStatus.REJECTED,
        ]


class TestFullApproval:
    def test_scenario(self, intake, decisions, open_balance, session_factory, org, deterministic_clock):
        open_balance(total=30)
        submitted = intake.submit(org.employee, "annual", date(YEAR, 7, 14), date(YEAR, 7, 18), 5)
        request_id = submitted.request.request_id

        steps = [
            (org.service_head, DecisionKind.APPROVED, LeaveStatus.PENDING_HIERARCHY),
            (org.manager, DecisionKind.APPROVED, LeaveStatus.PENDING_DGA_OPINION),
            (org.dga, DecisionKind.OPINION_NEGATIVE, LeaveStatus.PENDING_DG_OPINION),
            (org.dg, DecisionKind.OPINION_POSITIVE, LeaveStatus.PENDING_HR_DECISION),
            (org.hr, DecisionKind.APPROVED, LeaveStatus.APPROVED),
        ]
        result = None
        for actor_id, kind, expected in steps:
            deterministic_clock.tick()
            result = decisions.decide(request_id, actor_id, kind)
            assert result.request.status is expected

        assert result.balance.remaining_days == 25
        assert result.request.final_decided_by == org.hr
        assert len(result.history) == 5

        with session_factory() as sess:
            trace = AuditSelector(sess).trace(request_id)
            balance = BalanceSelector(sess).get(org.employee, YEAR)
            assert AuditRecorder(sess, deterministic_clock).validate_chain()

        assert balance.used_days == 5
        assert balance.remaining_days == 25
        assert balance.last_adjusted_by == org.hr

        entries = trace.audit_entries
        assert len(entries) == 6
        assert [e.action for e in entries] == [
            AuditAction.REQUEST_ENQUEUED.value,
            AuditAction.REQUEST_ADVANCED.value,
            AuditAction.REQUEST_ADVANCED.value,
            AuditAction.REQUEST_ADVANCED.value,
            AuditAction.REQUEST_ADVANCED.value,
            AuditAction.REQUEST_APPROVED.value,
        ]
        assert [e.seq for e in entries] == sorted(e.seq for e in entries)
        assert entries[-1].new_value["balance"]["remaining_days"] == 25
        assert entries[-1].new_value["approval"]["decision"] == "APPROVED"
        assert trace.status_path[-1] == "APPROVED"

    def test_two_requests_same_year_share_balance(
        self, submit_request, advance_to, open_balance, session_factory, org,
    ):
        open_balance(total=10)
        first = submit_request(days=4)
        second = submit_request(days=6, start=date(YEAR, 9, 1))
        advance_to(first, LeaveStatus.APPROVED)
        advance_to(second, LeaveStatus.APPROVED)

        with session_factory() as sess:
            balance = BalanceSelector(sess).get(org.employee, YEAR)
        assert (balance.used_days, balance.remaining_days) == (10, 0)

    def test_request_charged_to_start_year(self, submit_request, advance_to, open_balance, session_factory, org):
        open_balance(total=10, year=YEAR)
        open_balance(total=10, year=YEAR + 1)
        request_id = submit_request(days=3, start=date(YEAR, 12, 30))
        advance_to(request_id, LeaveStatus.APPROVED)

        with session_factory() as sess:
            selector = BalanceSelector(sess)
            assert selector.get(org.employee, YEAR).remaining_days == 7
            assert selector.get(org.employee, YEAR + 1).remaining_days == 10
