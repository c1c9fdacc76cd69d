"""
Module: leave_kernel.db.atomic
Responsibility: The atomic unit a decision runs in.  Opens one session from
    the factory, hands it to the caller, then commits or rolls back exactly
    once and always closes the session.
Architecture position: Kernel > DB.  Imports exceptions and logging only.

Error translation (applied after rollback):

    StaleDataError (version mismatch)             -> ConcurrencyConflictError
    PostgreSQL 55P03 lock_not_available           -> ConcurrencyConflictError
    PostgreSQL 40001 serialization_failure        -> ConcurrencyConflictError
    PostgreSQL 40P01 deadlock_detected            -> ConcurrencyConflictError
    SQLite "database is locked"                   -> ConcurrencyConflictError
    any other SQLAlchemyError                     -> PersistenceFailureError
    LeaveKernelError                              -> re-raised unchanged

Nothing else is caught; the unit never retries.
"""

from __future__ import annotations

from types import TracebackType
from uuid import UUID

from sqlalchemy.exc import DBAPIError, SQLAlchemyError
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.orm.exc import StaleDataError

from leave_kernel.exceptions import (
    ConcurrencyConflictError,
    LeaveKernelError,
    PersistenceFailureError,
)
from leave_kernel.logging_config import get_logger

logger = get_logger("db.atomic")

_CONFLICT_SQLSTATES = frozenset({"55P03", "40001", "40P01"})


def _sqlstate(exc: DBAPIError) -> str | None:
    orig = exc.orig
    # psycopg2 exposes .pgcode, psycopg 3 .sqlstate
    return getattr(orig, "sqlstate", None) or getattr(orig, "pgcode", None)


def is_conflict(exc: BaseException) -> bool:
    """True when ``exc`` means another transaction got to the row first."""
    if isinstance(exc, StaleDataError):
        return True
    if isinstance(exc, DBAPIError):
        if _sqlstate(exc) in _CONFLICT_SQLSTATES:
            return True
        if "database is locked" in str(exc.orig).lower():
            return True
    return False


class AtomicUnit:
    """
    Context manager wrapping one decision's writes in one transaction.

    Usage:
        with AtomicUnit(session_factory, request_id=rid, actor_id=aid) as session:
            ...  # flush-only services

    After exit, ``outcome`` is ``"committed"`` or ``"rolled_back"``.
    """

    def __init__(
        self,
        session_factory: sessionmaker[Session],
        request_id: UUID | str | None = None,
        actor_id: UUID | str | None = None,
    ):
        self._session_factory = session_factory
        self.request_id = request_id
        self.actor_id = actor_id
        self.outcome: str | None = None
        self._session: Session | None = None

    def __enter__(self) -> Session:
        if self._session is not None:
            raise RuntimeError("AtomicUnit is not re-entrant")
        self._session = self._session_factory()
        return self._session

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> bool:
        session = self._session
        assert session is not None
        try:
            if exc is None:
                try:
                    session.commit()
                except SQLAlchemyError as commit_exc:
                    self._rollback(session, commit_exc)
                    raise self.translate(commit_exc) from commit_exc
                self.outcome = "committed"
                logger.debug("atomic_unit_committed")
                return False

            self._rollback(session, exc)
            translated = self.translate(exc)
            if translated is not exc:
                raise translated from exc
            return False
        finally:
            session.close()

    def _rollback(self, session: Session, exc: BaseException) -> None:
        session.rollback()
        self.outcome = "rolled_back"
        if isinstance(exc, LeaveKernelError):
            logger.debug(
                "atomic_unit_rolled_back",
                extra={"error_code": exc.code},
            )
        else:
            logger.warning(
                "atomic_unit_rolled_back",
                extra={"error_type": type(exc).__name__},
            )

    def translate(self, exc: BaseException) -> BaseException:
        """Map a storage exception to the kernel taxonomy."""
        if isinstance(exc, LeaveKernelError):
            return exc
        if is_conflict(exc):
            return ConcurrencyConflictError(
                self.request_id,
                self.actor_id,
                detail=f"{type(exc).__name__}: {exc}",
            )
        if isinstance(exc, SQLAlchemyError):
            return PersistenceFailureError(
                self.request_id,
                self.actor_id,
                f"{type(exc).__name__}: {exc}",
            )
        return exc
