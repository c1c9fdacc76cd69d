"""
ApprovalLevelRegistry -- lookup of the static approval level reference rows.

Levels are reference data: the engine reads them and never changes them
while deciding.  ``seed_approval_levels`` installs the configured levels
once at setup and is a no-op for levels that already exist with the same
definition.
"""

from collections.abc import Iterable
from dataclasses import dataclass

from sqlalchemy import select
from sqlalchemy.orm import Session

from leave_kernel.domain.dtos import ApprovalLevelDef
from leave_kernel.domain.workflow import LevelRole
from leave_kernel.exceptions import ApprovalLevelNotFoundError
from leave_kernel.logging_config import get_logger
from leave_kernel.models.approval_level import ApprovalLevel

logger = get_logger("services.level_registry")


@dataclass(frozen=True)
class LevelSeed:
    """Definition of one level to install."""

    role: LevelRole
    rank: int
    is_consultative: bool
    label: str = ""


class ApprovalLevelRegistry:
    """Reads ApprovalLevel rows by role."""

    def __init__(self, session: Session):
        self._session = session

    def get(self, role: LevelRole) -> ApprovalLevelDef:
        """
        Raises:
            ApprovalLevelNotFoundError: no row for ``role``.
        """
        row = self._session.execute(
            select(ApprovalLevel).where(ApprovalLevel.role == role.value)
        ).scalar_one_or_none()
        if row is None:
            raise ApprovalLevelNotFoundError(role.value)
        return row.to_dto()

    def find(self, role: LevelRole | None) -> ApprovalLevelDef | None:
        if role is None:
            return None
        try:
            return self.get(role)
        except ApprovalLevelNotFoundError:
            return None

    def all(self) -> tuple[ApprovalLevelDef, ...]:
        rows = self._session.execute(
            select(ApprovalLevel).order_by(ApprovalLevel.rank)
        ).scalars().all()
        return tuple(row.to_dto() for row in rows)


def seed_approval_levels(
    session: Session,
    levels: Iterable[LevelSeed],
) -> tuple[ApprovalLevelDef, ...]:
    """
    Install ``levels`` that are not present yet and flush.

    Existing rows are left untouched; a row whose rank or consultative flag
    differs from the seed is reported with a warning, not rewritten.
    """
    for seed in levels:
        existing = session.execute(
            select(ApprovalLevel).where(ApprovalLevel.role == seed.role.value)
        ).scalar_one_or_none()
        if existing is None:
            session.add(
                ApprovalLevel(
                    role=seed.role.value,
                    rank=seed.rank,
                    is_consultative=seed.is_consultative,
                    label=seed.label,
                )
            )
            logger.info(
                "approval_level_seeded",
                extra={"role": seed.role.value, "rank": seed.rank},
            )
        elif (existing.rank, existing.is_consultative) != (seed.rank, seed.is_consultative):
            logger.warning(
                "approval_level_seed_mismatch",
                extra={
                    "role": seed.role.value,
                    "stored_rank": existing.rank,
                    "seed_rank": seed.rank,
                },
            )

    session.flush()
    return ApprovalLevelRegistry(session).all()
