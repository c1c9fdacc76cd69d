"""
Configuration Loader (``leave_config.loader``).

Responsibility
--------------
Loads a YAML configuration file and parses it into the frozen dataclasses
of ``leave_config.schema``.  Runtime callers go through
``leave_config.get_active_config()`` instead.

Failure modes
-------------
* Missing YAML file  -> ``FileNotFoundError`` propagates.
* Malformed YAML  -> ``yaml.YAMLError`` propagates.
* Missing required keys  -> ``KeyError`` propagates.
* Wrongly typed values  -> ``ValueError``.
"""

from __future__ import annotations

import hashlib
import json
from pathlib import Path
from typing import Any

import yaml

from leave_config.schema import (
    ApprovalLevelConfig,
    DatabaseConfig,
    EngineConfig,
    LeaveConfigurationSet,
)


def load_yaml_file(path: Path) -> dict[str, Any]:
    """Load a single YAML file and return its contents as a dict."""
    with open(path) as f:
        return yaml.safe_load(f) or {}


def _as_int(value: Any, key: str) -> int:
    if isinstance(value, bool) or not isinstance(value, int):
        raise ValueError(f"{key} must be an integer, got {value!r}")
    return value


def parse_engine_config(data: dict[str, Any]) -> EngineConfig:
    defaults = EngineConfig()
    return EngineConfig(
        comment_max_length=_as_int(
            data.get("comment_max_length", defaults.comment_max_length),
            "engine.comment_max_length",
        ),
        row_lock=str(data.get("row_lock", defaults.row_lock)),
        system_actor_id=str(data.get("system_actor_id", defaults.system_actor_id)),
    )


def parse_database_config(data: dict[str, Any]) -> DatabaseConfig:
    defaults = DatabaseConfig()
    return DatabaseConfig(
        url=str(data.get("url", defaults.url)),
        echo=bool(data.get("echo", defaults.echo)),
    )


def parse_approval_level(data: dict[str, Any]) -> ApprovalLevelConfig:
    return ApprovalLevelConfig(
        role=str(data["role"]),
        rank=_as_int(data["rank"], f"approval_levels[{data['role']}].rank"),
        consultative=bool(data.get("consultative", False)),
        label=str(data.get("label", "")),
    )


def compute_checksum(data: dict[str, Any]) -> str:
    """SHA-256 of the canonical JSON form of ``data``."""
    canonical = json.dumps(data, sort_keys=True, default=str)
    return hashlib.sha256(canonical.encode()).hexdigest()


def parse_configuration(data: dict[str, Any]) -> LeaveConfigurationSet:
    """Parse an already-loaded YAML document."""
    return LeaveConfigurationSet(
        config_id=str(data["config_id"]),
        version=_as_int(data.get("version", 1), "version"),
        engine=parse_engine_config(data.get("engine") or {}),
        database=parse_database_config(data.get("database") or {}),
        approval_levels=tuple(
            parse_approval_level(level) for level in data.get("approval_levels") or ()
        ),
        checksum=compute_checksum(data),
    )


def load_configuration(path: Path) -> LeaveConfigurationSet:
    return parse_configuration(load_yaml_file(path))
