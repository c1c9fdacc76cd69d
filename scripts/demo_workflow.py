#!/usr/bin/env python3
"""
Leave workflow scenarios using the real engine.

Loads the YAML config, seeds the approval levels into an in-process
database, and runs two requests through DecisionService:

  - rejected: Service Head approves, Hierarchy rejects (balance untouched)
  - approved: all five levels pass, HR approves (balance deducted once)

Prints the approval history and audit trail of each request.

Usage:
    python3 scripts/demo_workflow.py
    python3 scripts/demo_workflow.py --db-url sqlite:///demo.db
    python3 scripts/demo_workflow.py --config path/to/config.yaml --verbose
"""

import argparse
import logging
import sys
from datetime import date
from pathlib import Path
from uuid import uuid4

ROOT = Path(__file__).resolve().parent.parent
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from leave_config import build_decision_settings, build_level_seeds, get_active_config
from leave_kernel.db.engine import create_tables, init_engine_from_url, session_scope, get_session_factory
from leave_kernel.domain.clock import DeterministicClock
from leave_kernel.domain.dtos import ActorProfile
from leave_kernel.domain.workflow import DecisionKind, LevelRole
from leave_kernel.logging_config import configure_logging
from leave_kernel.selectors.audit_selector import AuditSelector
from leave_kernel.selectors.balance_selector import BalanceSelector
from leave_kernel.services.audit_recorder import AuditRecorder
from leave_kernel.services.balance_ledger import BalanceLedger
from leave_kernel.services.decision_service import DecisionService
from leave_kernel.services.level_registry import seed_approval_levels
from leave_services import InMemoryNotificationDispatcher, RequestIntake, StaticActorProvider


def _build_org():
    """Employee -> manager -> director chain plus one actor per level."""
    ids = {name: uuid4() for name in (
        "employee", "manager", "director", "service_head", "dga", "dg", "hr",
    )}
    profiles = [
        ActorProfile(ids["employee"], role=None, manager_id=ids["manager"]),
        ActorProfile(ids["manager"], role=LevelRole.HIERARCHY.value, manager_id=ids["director"]),
        ActorProfile(ids["director"], role=LevelRole.HIERARCHY.value),
        ActorProfile(ids["service_head"], role=LevelRole.SERVICE_HEAD.value),
        ActorProfile(ids["dga"], role=LevelRole.DGA.value),
        ActorProfile(ids["dg"], role=LevelRole.DG.value),
        ActorProfile(ids["hr"], role=LevelRole.HR.value),
    ]
    return ids, StaticActorProvider(profiles)


def _print_trace(label, request_id, session_factory):
    with session_factory() as session:
        trace = AuditSelector(session).trace(request_id)
    print(f"\n=== {label}: {trace.request.status.value} ===")
    print("  approvals:")
    for approval in trace.approvals:
        print(
            f"    {approval.level_role.value:<13} {approval.decision.value:<17} "
            f"{approval.decided_at.isoformat()}  {approval.comment or ''}"
        )
    print("  audit trail:")
    for entry in trace.audit_entries:
        old = (entry.old_value or {}).get("status")
        new = (entry.new_value or {}).get("status")
        print(f"    #{entry.seq:<3} {entry.action:<17} {old} -> {new}  {entry.hash[:12]}")


def main(argv=None) -> int:
    parser = argparse.ArgumentParser(description="Run the leave approval scenarios.")
    parser.add_argument("--config", type=Path, default=None, help="YAML config file")
    parser.add_argument("--db-url", default=None, help="Database URL (defaults to config)")
    parser.add_argument("--days", type=int, default=5, help="Days requested per scenario")
    parser.add_argument("--verbose", action="store_true", help="Print JSON logs to stderr")
    args = parser.parse_args(argv)

    configure_logging(level=logging.DEBUG if args.verbose else logging.WARNING)

    config = get_active_config(args.config)
    init_engine_from_url(args.db_url or config.database.url, echo=config.database.echo)
    create_tables()

    clock = DeterministicClock()
    ids, actors = _build_org()
    year = 2025

    with session_scope() as session:
        seed_approval_levels(session, build_level_seeds(config))
        BalanceLedger(session).open_balance(ids["employee"], year, 30, ids["hr"], clock.now())

    session_factory = get_session_factory()
    dispatcher = InMemoryNotificationDispatcher()
    decisions = DecisionService(
        session_factory,
        actors,
        dispatcher=dispatcher,
        clock=clock,
        config=build_decision_settings(config),
    )
    intake = RequestIntake(session_factory, decisions, clock)

    # Scenario 1: rejected at a blocking level
    rejected = intake.submit(
        ids["employee"], "annual", date(year, 4, 7), date(year, 4, 11), args.days,
    ).request.request_id
    clock.tick()
    decisions.decide(rejected, ids["service_head"], DecisionKind.APPROVED)
    clock.tick()
    decisions.decide(rejected, ids["manager"], DecisionKind.REJECTED, comment="Team at minimum staffing")
    _print_trace("rejected at HIERARCHY", rejected, session_factory)

    # Scenario 2: full approval
    approved = intake.submit(
        ids["employee"], "annual", date(year, 7, 14), date(year, 7, 18), args.days,
    ).request.request_id
    steps = (
        (ids["service_head"], DecisionKind.APPROVED, None),
        (ids["director"], DecisionKind.APPROVED, None),
        (ids["dga"], DecisionKind.OPINION_NEGATIVE, "Overlaps the budget review"),
        (ids["dg"], DecisionKind.OPINION_POSITIVE, None),
        (ids["hr"], DecisionKind.APPROVED, "Approved"),
    )
    for actor_id, kind, comment in steps:
        clock.tick()
        decisions.decide(approved, actor_id, kind, comment=comment)
    _print_trace("full approval", approved, session_factory)

    with session_factory() as session:
        balance = BalanceSelector(session).get(ids["employee"], year)
        AuditRecorder(session, clock).validate_chain()
    print(f"\nbalance {year}: {balance.remaining_days}/{balance.total_days} days remaining")
    print(f"notifications emitted: {len(dispatcher.events)}")
    print("audit chain: valid")
    return 0


if __name__ == "__main__":
    sys.exit(main())
