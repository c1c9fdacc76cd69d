"""
Bridges from configuration to kernel inputs.

The kernel never imports ``leave_config``; these helpers translate a
validated configuration set into the plain objects kernel services take.
"""

from __future__ import annotations

from uuid import UUID

from leave_config.schema import LeaveConfigurationSet
from leave_kernel.domain.workflow import LevelRole
from leave_kernel.services.decision_service import DecisionSettings
from leave_kernel.services.level_registry import LevelSeed


def build_decision_settings(config: LeaveConfigurationSet) -> DecisionSettings:
    return DecisionSettings(
        comment_max_length=config.engine.comment_max_length,
        row_lock_nowait=config.engine.row_lock == "nowait",
        system_actor_id=UUID(config.engine.system_actor_id),
    )


def build_level_seeds(config: LeaveConfigurationSet) -> tuple[LevelSeed, ...]:
    return tuple(
        LevelSeed(
            role=LevelRole(level.role),
            rank=level.rank,
            is_consultative=level.consultative,
            label=level.label,
        )
        for level in sorted(config.approval_levels, key=lambda lvl: lvl.rank)
    )
