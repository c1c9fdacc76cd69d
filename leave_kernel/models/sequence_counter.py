"""
Module: leave_kernel.models.sequence_counter
Responsibility: Named counter rows backing SequenceService.
Architecture position: Kernel > Models.  May import from db/base.py only.

Each row holds the last value handed out for one named sequence; the row is
locked (SELECT ... FOR UPDATE) while it is incremented.
"""

from sqlalchemy import BigInteger, String
from sqlalchemy.orm import Mapped, mapped_column

from leave_kernel.db.base import Base


class SequenceCounter(Base):
    """Sequence counter table."""

    __tablename__ = "sequence_counters"

    name: Mapped[str] = mapped_column(String(50), nullable=False, unique=True)
    current_value: Mapped[int] = mapped_column(BigInteger, nullable=False, default=0)

    def __repr__(self) -> str:
        return f"<SequenceCounter {self.name}={self.current_value}>"
