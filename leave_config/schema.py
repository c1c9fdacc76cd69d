"""
Configuration Schema (``leave_config.schema``).

Frozen dataclasses describing one engine configuration set.  Produced by
``leave_config.loader`` and checked by ``leave_config.validator``; no
behaviour lives here.
"""

from __future__ import annotations

from dataclasses import dataclass, field

ROW_LOCK_MODES = ("wait", "nowait")


@dataclass(frozen=True)
class ApprovalLevelConfig:
    """One approval stage as declared in YAML."""

    role: str
    rank: int
    consultative: bool
    label: str = ""


@dataclass(frozen=True)
class EngineConfig:
    """Knobs of the decision path."""

    comment_max_length: int = 2000
    # "wait" blocks on a locked request row; "nowait" fails fast with a
    # concurrency conflict (PostgreSQL only).
    row_lock: str = "wait"
    system_actor_id: str = "00000000-0000-0000-0000-000000000000"


@dataclass(frozen=True)
class DatabaseConfig:
    url: str = "sqlite:///:memory:"
    echo: bool = False


@dataclass(frozen=True)
class LeaveConfigurationSet:
    """A complete, parsed configuration set."""

    config_id: str
    version: int
    engine: EngineConfig
    database: DatabaseConfig
    approval_levels: tuple[ApprovalLevelConfig, ...] = field(default_factory=tuple)
    checksum: str = ""
