"""
AtomicUnit tests: commit/rollback exactly once and storage error translation.
"""

import pytest
from sqlalchemy import select
from sqlalchemy.exc import IntegrityError, OperationalError
from sqlalchemy.orm.exc import StaleDataError

from leave_kernel.db.atomic import AtomicUnit, is_conflict
from leave_kernel.db.engine import build_engine, is_postgres
from leave_kernel.exceptions import (
    ConcurrencyConflictError,
    DuplicateDecisionError,
    PersistenceFailureError,
)
from leave_kernel.models.sequence_counter import SequenceCounter


class _PgError(Exception):
    def __init__(self, sqlstate):
        super().__init__(f"sqlstate {sqlstate}")
        self.sqlstate = sqlstate


class TestTranslate:
    def test_stale_data_is_conflict(self):
        translated = AtomicUnit(None, "r-1", "a-1").translate(StaleDataError("0 rows matched"))
        assert isinstance(translated, ConcurrencyConflictError)
        assert translated.request_id == "r-1"

    @pytest.mark.parametrize("sqlstate", ["55P03", "40001", "40P01"])
    def test_postgres_lock_states_are_conflicts(self, sqlstate):
        exc = OperationalError("SELECT", {}, _PgError(sqlstate))
        assert is_conflict(exc)

    def test_sqlite_locked_is_conflict(self):
        exc = OperationalError("INSERT", {}, Exception("database is locked"))
        assert isinstance(AtomicUnit(None).translate(exc), ConcurrencyConflictError)

    def test_other_storage_errors_are_persistence_failures(self):
        exc = IntegrityError("INSERT", {}, Exception("NOT NULL constraint failed"))
        translated = AtomicUnit(None, "r-2").translate(exc)
        assert isinstance(translated, PersistenceFailureError)
        assert translated.retryable

    def test_kernel_errors_pass_through(self):
        exc = DuplicateDecisionError("r", "a", "HR")
        assert AtomicUnit(None).translate(exc) is exc

    def test_unrelated_errors_untouched(self):
        exc = KeyError("x")
        assert AtomicUnit(None).translate(exc) is exc


class TestOutcome:
    def test_commit(self, session_factory):
        unit = AtomicUnit(session_factory)
        with unit as session:
            session.add(SequenceCounter(name="scratch", current_value=7))

        assert unit.outcome == "committed"
        with session_factory() as sess:
            assert sess.execute(
                select(SequenceCounter.current_value).where(SequenceCounter.name == "scratch")
            ).scalar_one() == 7

    def test_rollback_on_kernel_error(self, session_factory):
        unit = AtomicUnit(session_factory)
        with pytest.raises(DuplicateDecisionError):
            with unit as session:
                session.add(SequenceCounter(name="scratch", current_value=1))
                session.flush()
                raise DuplicateDecisionError("r", "a", "HR")

        assert unit.outcome == "rolled_back"
        with session_factory() as sess:
            assert sess.execute(
                select(SequenceCounter).where(SequenceCounter.name == "scratch")
            ).scalar_one_or_none() is None

    def test_integrity_error_translated(self, session_factory):
        unit = AtomicUnit(session_factory, "r-3", "a-3")
        with pytest.raises(PersistenceFailureError) as exc_info:
            with unit as session:
                # audit_entry counter already exists
                session.add(SequenceCounter(name="audit_entry", current_value=0))
                session.flush()

        assert isinstance(exc_info.value.__cause__, IntegrityError)
        assert unit.outcome == "rolled_back"

    def test_not_reentrant(self, session_factory):
        unit = AtomicUnit(session_factory)
        with unit:
            with pytest.raises(RuntimeError):
                unit.__enter__()


def test_in_memory_sqlite_engine_is_not_postgres():
    engine = build_engine("sqlite:///:memory:")
    try:
        assert not is_postgres(engine)
    finally:
        engine.dispose()
