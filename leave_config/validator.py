"""
Configuration Validator (``leave_config.validator``).

Checks a ``LeaveConfigurationSet`` before it is handed to the engine.

Rules
-----
* Exactly the five pipeline roles are declared, each once.
* Ranks are positive and strictly increasing in pipeline order
  (SERVICE_HEAD < HIERARCHY < DGA < DG < HR).
* DGA and DG are consultative; SERVICE_HEAD, HIERARCHY and HR are not.
* ``engine.comment_max_length`` is positive.
* ``engine.row_lock`` is ``wait`` or ``nowait``.
* ``engine.system_actor_id`` is a UUID.

A configuration with errors MUST NOT be used.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from uuid import UUID

from leave_config.schema import ROW_LOCK_MODES, LeaveConfigurationSet
from leave_kernel.domain.workflow import CONSULTATIVE_ROLES, PIPELINE


@dataclass
class ConfigValidationResult:
    """``is_valid`` is True only when ``errors`` is empty."""

    errors: list[str] = field(default_factory=list)
    warnings: list[str] = field(default_factory=list)

    @property
    def is_valid(self) -> bool:
        return len(self.errors) == 0

    def add_error(self, msg: str) -> None:
        self.errors.append(msg)

    def add_warning(self, msg: str) -> None:
        self.warnings.append(msg)


def validate_configuration(config: LeaveConfigurationSet) -> ConfigValidationResult:
    result = ConfigValidationResult()

    _validate_levels(config, result)
    _validate_engine(config, result)

    return result


def _validate_levels(config: LeaveConfigurationSet, result: ConfigValidationResult) -> None:
    expected = [role.value for role in PIPELINE]
    declared = [level.role for level in config.approval_levels]

    for role in sorted(set(declared)):
        if declared.count(role) > 1:
            result.add_error(f"approval level {role} declared more than once")
    unknown = set(declared) - set(expected)
    for role in sorted(unknown):
        result.add_error(f"unknown approval level role {role}")
    missing = [role for role in expected if role not in declared]
    for role in missing:
        result.add_error(f"approval level {role} is missing")
    if unknown or missing:
        return

    by_role = {level.role: level for level in config.approval_levels}
    previous_rank = 0
    for role in expected:
        level = by_role[role]
        if level.rank <= previous_rank:
            result.add_error(
                f"approval level {role} rank {level.rank} must be greater than {previous_rank}"
            )
        previous_rank = level.rank

        should_consult = role in {r.value for r in CONSULTATIVE_ROLES}
        if level.consultative != should_consult:
            kind = "consultative" if should_consult else "blocking"
            result.add_error(f"approval level {role} must be {kind}")
        if not level.label:
            result.add_warning(f"approval level {role} has no label")


def _validate_engine(config: LeaveConfigurationSet, result: ConfigValidationResult) -> None:
    engine = config.engine
    if engine.comment_max_length <= 0:
        result.add_error("engine.comment_max_length must be positive")
    if engine.row_lock not in ROW_LOCK_MODES:
        result.add_error(
            f"engine.row_lock must be one of {', '.join(ROW_LOCK_MODES)}, got {engine.row_lock!r}"
        )
    try:
        UUID(engine.system_actor_id)
    except ValueError:
        result.add_error(f"engine.system_actor_id is not a UUID: {engine.system_actor_id!r}")
