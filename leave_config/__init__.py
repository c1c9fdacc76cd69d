"""
leave_config -- single public entrypoint for engine configuration.

Responsibility:
    ``get_active_config()`` is the only way runtime code obtains
    configuration.  It loads a YAML set (the shipped default unless a path
    is given), validates it, and logs a ``LEAVE_CONFIG_TRACE`` entry
    carrying the set id, version and checksum.

Architecture position:
    Configuration -- sits above ``leave_kernel``.  The kernel MUST NEVER
    import from ``leave_config``; ``leave_config.bridges`` turns a set into
    kernel inputs (DecisionSettings, LevelSeed tuples).

Failure modes:
    - ``FileNotFoundError`` -- the configuration file does not exist.
    - ``ValueError`` -- parse or validation failures.
"""

from __future__ import annotations

import logging
from pathlib import Path

from leave_config.bridges import build_decision_settings, build_level_seeds
from leave_config.loader import load_configuration
from leave_config.schema import (
    ApprovalLevelConfig,
    DatabaseConfig,
    EngineConfig,
    LeaveConfigurationSet,
)
from leave_config.validator import validate_configuration

_logger = logging.getLogger("leave_kernel.config")

DEFAULT_CONFIG_PATH = Path(__file__).parent / "sets" / "default.yaml"


def get_active_config(config_path: Path | str | None = None) -> LeaveConfigurationSet:
    """The ONLY public configuration entrypoint.

    Args:
        config_path: YAML file to load.  Defaults to the shipped
            ``sets/default.yaml``.

    Raises:
        FileNotFoundError: If the file does not exist.
        ValueError: If the configuration fails validation.
    """
    path = Path(config_path) if config_path is not None else DEFAULT_CONFIG_PATH
    config = load_configuration(path)

    validation = validate_configuration(config)
    if not validation.is_valid:
        raise ValueError(
            "Configuration validation failed:\n"
            + "\n".join(f"  - {e}" for e in validation.errors)
        )
    for warning in validation.warnings:
        _logger.warning("leave_config_warning", extra={"detail": warning})

    _logger.info(
        "LEAVE_CONFIG_TRACE",
        extra={
            "trace_type": "LEAVE_CONFIG_TRACE",
            "config_set_id": config.config_id,
            "config_set_version": config.version,
            "checksum": config.checksum,
            "level_count": len(config.approval_levels),
            "row_lock": config.engine.row_lock,
        },
    )
    return config


__all__ = [
    "ApprovalLevelConfig",
    "DatabaseConfig",
    "DEFAULT_CONFIG_PATH",
    "EngineConfig",
    "LeaveConfigurationSet",
    "build_decision_settings",
    "build_level_seeds",
    "get_active_config",
]
