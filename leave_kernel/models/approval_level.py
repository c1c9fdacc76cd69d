"""
Module: leave_kernel.models.approval_level
Responsibility: ORM persistence for the static approval level reference rows.
Architecture position: Kernel > Models.  May import from db/base.py only.

Invariants enforced:
    - One row per role code (UNIQUE role).
    - Ranks are strictly ordered (UNIQUE rank, positive).

The engine reads these rows; seeding is done once at setup by
``seed_approval_levels``.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

from sqlalchemy import Boolean, CheckConstraint, Integer, String
from sqlalchemy.orm import Mapped, mapped_column

from leave_kernel.db.base import Base

if TYPE_CHECKING:
    from leave_kernel.domain.dtos import ApprovalLevelDef


class ApprovalLevel(Base):
    """One stage of the approval pipeline."""

    __tablename__ = "approval_levels"

    __table_args__ = (
        CheckConstraint(
            "role IN ('SERVICE_HEAD', 'HIERARCHY', 'DGA', 'DG', 'HR')",
            name="ck_approval_levels_role",
        ),
        CheckConstraint("rank > 0", name="ck_approval_levels_rank_positive"),
    )

    role: Mapped[str] = mapped_column(String(20), nullable=False, unique=True)
    rank: Mapped[int] = mapped_column(Integer, nullable=False, unique=True)
    is_consultative: Mapped[bool] = mapped_column(
        Boolean, nullable=False, default=False,
    )
    label: Mapped[str] = mapped_column(String(100), nullable=False, default="")

    def __repr__(self) -> str:
        return f"<ApprovalLevel {self.role} rank={self.rank}>"

    def to_dto(self) -> ApprovalLevelDef:
        from leave_kernel.domain.dtos import ApprovalLevelDef
        from leave_kernel.domain.workflow import LevelRole

        return ApprovalLevelDef(
            level_id=self.id,
            role=LevelRole(self.role),
            rank=self.rank,
            is_consultative=self.is_consultative,
            label=self.label,
        )
