"""
BaseService -- abstract base for all kernel write services.

Responsibility:
    Provides the common constructor and session-handling contract for
    every write service in the kernel.  Concrete services receive the
    Session of the caller's atomic unit and use ``session.flush()`` --
    never ``session.commit()``.

Architecture position:
    Kernel > Services -- imperative shell infrastructure.

Invariants enforced:
    Services flush within the caller's transaction and never commit or
    roll back themselves.  ``AtomicUnit`` (db/atomic.py) owns both, so the
    approval, status change, balance deduction and audit entry of one
    decision land together or not at all.
"""

from abc import ABC
from typing import Generic, TypeVar

from sqlalchemy.orm import Session

from leave_kernel.db.base import Base

ModelType = TypeVar("ModelType", bound=Base)


class BaseService(ABC, Generic[ModelType]):
    """
    Abstract base class for all kernel write services.

    Non-goals:
        - Does NOT manage transaction lifecycle (commit/rollback).
        - Does NOT provide read-only export methods -- those belong
          in ``leave_kernel/selectors/``.
    """

    def __init__(self, session: Session):
        self.session = session
