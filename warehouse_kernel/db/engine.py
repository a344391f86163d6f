"""
Engine and session management.

One process-wide engine, configured from a URL.  PostgreSQL is the
production backend: READ COMMITTED, a pre-pinged QueuePool and the
append-only triggers from ``db.triggers``.  SQLite is accepted for local
runs and the test suite; there the ORM listeners in ``db.immutability``
are the only guard on history rows.

Services never commit.  ``session_scope`` is the unit of work the facade
wraps around each call, so an item update and its history entry land in
the same transaction or not at all.
"""

import atexit
from contextlib import contextmanager
from typing import Any, Generator

from sqlalchemy import create_engine
from sqlalchemy.engine import Engine, make_url
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import QueuePool

from warehouse_kernel.logging_config import configure_logging, get_logger

logger = get_logger("db.engine")

_engine: Engine | None = None
_SessionFactory: sessionmaker[Session] | None = None

_NOT_READY = "database engine is not initialized; call init_engine_from_url()"


def _engine_options(dialect: str, **pool: Any) -> dict[str, Any]:
    if dialect == "sqlite":
        # Test threads share one file; SQLite has no real pool to tune.
        return {"connect_args": {"check_same_thread": False}}
    return {
        "poolclass": QueuePool,
        "isolation_level": "READ COMMITTED",
        **pool,
    }


def init_engine_from_url(
    database_url: str,
    echo: bool = False,
    pool_size: int = 10,
    max_overflow: int = 10,
    pool_pre_ping: bool = True,
    pool_timeout: int = 30,
    pool_recycle: int = 1800,
) -> Engine:
    """
    Create the engine and session factory, replacing any previous ones.

    Also registers the ORM immutability listeners, the only guard on
    history rows under SQLite.  Pool arguments only apply to server
    backends.
    """
    global _engine, _SessionFactory

    dialect = make_url(database_url).get_backend_name()
    options = _engine_options(
        dialect,
        pool_size=pool_size,
        max_overflow=max_overflow,
        pool_pre_ping=pool_pre_ping,
        pool_timeout=pool_timeout,
        pool_recycle=pool_recycle,
    )
    if _engine is not None:
        _engine.dispose()
    _engine = create_engine(database_url, echo=echo, **options)
    # Snapshots are read after commit; keep loaded attributes valid.
    _SessionFactory = sessionmaker(bind=_engine, expire_on_commit=False)

    configure_logging()
    from warehouse_kernel.db.immutability import register_immutability_listeners

    register_immutability_listeners()
    logger.info("engine_initialized", extra={"dialect": dialect, "echo": echo})
    return _engine


def get_engine() -> Engine:
    if _engine is None:
        raise RuntimeError(_NOT_READY)
    return _engine


def get_session_factory() -> sessionmaker[Session]:
    if _SessionFactory is None:
        raise RuntimeError(_NOT_READY)
    return _SessionFactory


def get_session() -> Session:
    return get_session_factory()()


def is_postgres() -> bool:
    return _engine is not None and _engine.dialect.name == "postgresql"


@contextmanager
def session_scope(
    factory: sessionmaker[Session] | None = None,
) -> Generator[Session, None, None]:
    """
    Yield a session that commits on success and rolls back on any error.

    The error is re-raised after rollback; the session is always closed.
    """
    session = (factory or get_session_factory())()
    try:
        yield session
        session.commit()
    except Exception:
        session.rollback()
        logger.warning("transaction_rolled_back", exc_info=True)
        raise
    finally:
        session.close()


def _metadata():
    from warehouse_kernel.db.base import Base
    import warehouse_kernel.models  # noqa: F401  (registers tables)

    return Base.metadata


def create_tables(install_triggers: bool = True) -> None:
    """Create the schema; on PostgreSQL also install the append-only triggers."""
    metadata = _metadata()
    engine = get_engine()
    metadata.create_all(engine)

    if install_triggers and is_postgres():
        from warehouse_kernel.db.triggers import install_immutability_triggers

        install_immutability_triggers(engine)

    logger.info("tables_created", extra={"table_count": len(metadata.tables)})


def drop_tables() -> None:
    """Drop the schema and its triggers.  Tests only."""
    metadata = _metadata()
    engine = get_engine()
    if is_postgres():
        from warehouse_kernel.db.triggers import uninstall_immutability_triggers

        uninstall_immutability_triggers(engine)
    metadata.drop_all(engine)


def reset_engine() -> None:
    global _engine, _SessionFactory

    if _engine is not None:
        _engine.dispose()
    _engine = None
    _SessionFactory = None


atexit.register(reset_engine)
