"""
Engine and session setup for the leave kernel.

Two ways to get a database:

* ``build_engine(url)`` returns a configured Engine and touches no global
  state; tests and embedding applications build their own session
  factory from it.
* ``init_engine_from_url(url)`` installs a process-wide engine and session
  factory for scripts (``get_session_factory()``, ``session_scope()``).

Backends:
    PostgreSQL runs at READ COMMITTED; decisions lock the request and the
    balance row with SELECT ... FOR UPDATE.  SQLite ignores FOR UPDATE, so
    there the database writer lock (waited on for ``sqlite_busy_timeout``
    seconds) and the version columns on leave_requests / leave_balances
    keep concurrent decisions apart.

Schema setup (``create_tables``) also installs the ORM immutability
listeners and the audit sequence counter; it may be called repeatedly.
"""

import atexit
from contextlib import contextmanager
from typing import Iterator

from sqlalchemy import create_engine
from sqlalchemy.engine import Engine, make_url
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

from leave_kernel.logging_config import configure_logging, get_logger

logger = get_logger("db.engine")

_engine: Engine | None = None
_session_factory: sessionmaker[Session] | None = None

_NOT_INITIALIZED = "No engine installed; call init_engine_from_url() first."


def _is_memory_sqlite(database: str | None) -> bool:
    return database in (None, "", ":memory:")


def build_engine(
    database_url: str,
    echo: bool = False,
    pool_size: int = 20,
    max_overflow: int = 10,
    pool_pre_ping: bool = True,
    pool_timeout: int = 30,
    sqlite_busy_timeout: float = 15.0,
) -> Engine:
    """Engine for ``database_url``; the pool settings apply to server databases only."""
    url = make_url(database_url)

    if url.get_backend_name() != "sqlite":
        return create_engine(
            url,
            echo=echo,
            isolation_level="READ COMMITTED",
            pool_size=pool_size,
            max_overflow=max_overflow,
            pool_pre_ping=pool_pre_ping,
            pool_timeout=pool_timeout,
        )

    sqlite_args = {"check_same_thread": False, "timeout": sqlite_busy_timeout}
    if _is_memory_sqlite(url.database):
        # One shared connection, otherwise every session sees an empty database.
        return create_engine(url, echo=echo, connect_args=sqlite_args, poolclass=StaticPool)
    return create_engine(url, echo=echo, connect_args=sqlite_args)


def init_engine_from_url(database_url: str, echo: bool = False, **kwargs) -> Engine:
    """Install the process-wide engine, replacing (and disposing) any previous one."""
    global _engine, _session_factory

    configure_logging()
    if _engine is not None:
        _engine.dispose()

    _engine = build_engine(database_url, echo=echo, **kwargs)
    _session_factory = sessionmaker(bind=_engine, expire_on_commit=False)
    logger.info("engine_initialized", extra={"dialect": _engine.dialect.name, "echo": echo})
    return _engine


def get_engine() -> Engine:
    if _engine is None:
        raise RuntimeError(_NOT_INITIALIZED)
    return _engine


def get_session_factory() -> sessionmaker[Session]:
    """The factory DecisionService opens its atomic units from."""
    if _session_factory is None:
        raise RuntimeError(_NOT_INITIALIZED)
    return _session_factory


def get_session() -> Session:
    return get_session_factory()()


@contextmanager
def session_scope() -> Iterator[Session]:
    """Commit-or-rollback scope for setup work such as seeding levels.

    Decisions do not use this; they run in ``AtomicUnit``, which also maps
    storage errors to kernel exceptions.
    """
    session = get_session()
    try:
        yield session
        session.commit()
    except Exception:
        session.rollback()
        logger.warning("setup_scope_rolled_back", exc_info=True)
        raise
    finally:
        session.close()


def create_tables(engine: Engine | None = None) -> None:
    """Create the schema, install immutability listeners and sequence counters."""
    from leave_kernel.db.base import Base
    from leave_kernel.db.immutability import register_immutability_listeners
    import leave_kernel.models  # noqa: F401
    from leave_kernel.services.sequence_service import SequenceService

    target = engine or get_engine()
    Base.metadata.create_all(target)
    register_immutability_listeners()

    with Session(target) as session:
        SequenceService(session).initialize_sequences()
        session.commit()

    logger.info("schema_ready", extra={"tables": sorted(Base.metadata.tables)})


def drop_tables(engine: Engine | None = None) -> None:
    """Drop the whole schema. Tests only."""
    from leave_kernel.db.base import Base
    import leave_kernel.models  # noqa: F401

    Base.metadata.drop_all(engine or get_engine())


def reset_engine() -> None:
    """Dispose and forget the process-wide engine."""
    global _engine, _session_factory

    if _engine is not None:
        _engine.dispose()
    _engine = None
    _session_factory = None


def is_postgres(engine: Engine | None = None) -> bool:
    engine = engine or _engine
    return engine is not None and engine.dialect.name == "postgresql"


atexit.register(reset_engine)
