"""Database layer - engine, base classes, atomic unit and immutability guards."""

from leave_kernel.db.atomic import AtomicUnit
from leave_kernel.db.base import Base, UTCDateTime, UUIDString
from leave_kernel.db.engine import (
    build_engine,
    create_tables,
    get_engine,
    get_session,
    get_session_factory,
    init_engine_from_url,
)

__all__ = [
    "AtomicUnit",
    "Base",
    "UTCDateTime",
    "UUIDString",
    "build_engine",
    "create_tables",
    "get_engine",
    "get_session",
    "get_session_factory",
    "init_engine_from_url",
]
