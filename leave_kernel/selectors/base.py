"""
Module: leave_kernel.selectors.base
Responsibility: Abstract base class for all read-only query selectors.
    Selectors are the audit-export read path: reporting and PDF generation
    read approvals and audit entries through them and never get write access.
Architecture position: Kernel > Selectors.  May import from db/base.py,
    models/ and domain/dtos.py.  MUST NOT import from services/.

Invariants enforced:
    - Read-only access: selectors never call session.add(), session.delete(),
      session.flush() or session.commit().
    - DTO return convention: selectors return frozen dataclasses, not ORM rows.
    - Session ownership: the caller owns the session and its transaction.
"""

from abc import ABC
from typing import Generic, TypeVar

from sqlalchemy.orm import Session

from leave_kernel.db.base import Base

ModelType = TypeVar("ModelType", bound=Base)


class BaseSelector(ABC, Generic[ModelType]):
    """Abstract base class for all selectors."""

    def __init__(self, session: Session):
        self.session = session
