"""
Module: registry_kernel.db.engine
Responsibility: the process-wide engine and session factory, plus the
    ``session_scope`` unit of work every caller goes through.
Architecture position: Kernel > DB.  Imports only db/base.py and, inside
    create_tables/drop_tables, the models package so metadata is complete.

Invariants enforced:
    - PostgreSQL runs at READ COMMITTED; status transitions take their own
      row locks (SELECT ... FOR UPDATE).
    - On SQLite every connection has foreign keys on and issues an explicit
      BEGIN, otherwise pysqlite's implicit transactions break SAVEPOINT.
    - A session_scope either commits everything it did or nothing.

Failure modes:
    - RuntimeError from the accessors before init_engine_from_url().
"""

import atexit
from collections.abc import Iterator
from contextlib import contextmanager

from sqlalchemy import create_engine, event
from sqlalchemy.engine import URL, Engine, make_url
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import QueuePool, StaticPool

from registry_kernel.logging_config import configure_logging, get_logger

logger = get_logger("db.engine")

_engine: Engine | None = None
_SessionFactory: sessionmaker[Session] | None = None

_NOT_INITIALIZED = "Database not initialized; call init_engine_from_url() first."


def _sqlite_engine(url: URL, echo: bool, busy_timeout: int) -> Engine:
    if url.database in (None, "", ":memory:"):
        # One shared connection, or every checkout would see an empty database.
        engine = create_engine(
            url, echo=echo, poolclass=StaticPool,
            connect_args={"check_same_thread": False},
        )
    else:
        engine = create_engine(
            url, echo=echo,
            connect_args={"check_same_thread": False, "timeout": busy_timeout},
        )

    @event.listens_for(engine, "connect")
    def _on_connect(dbapi_connection, _record):
        dbapi_connection.isolation_level = None
        dbapi_connection.execute("PRAGMA foreign_keys=ON")

    @event.listens_for(engine, "begin")
    def _on_begin(conn):
        conn.exec_driver_sql("BEGIN")

    return engine


def init_engine_from_url(
    database_url: str,
    echo: bool = False,
    pool_size: int = 20,
    max_overflow: int = 10,
    pool_timeout: int = 30,
    pool_recycle: int = 1800,
) -> Engine:
    """
    Create the engine and session factory for ``database_url``.

    Calling it again replaces the previous engine without disposing it;
    use reset_engine() for that.  Pool settings apply to PostgreSQL only;
    on SQLite ``pool_timeout`` becomes the busy timeout.
    """
    global _engine, _SessionFactory

    url = make_url(database_url)
    backend = url.get_backend_name()
    if backend == "sqlite":
        _engine = _sqlite_engine(url, echo, pool_timeout)
    else:
        _engine = create_engine(
            url,
            echo=echo,
            poolclass=QueuePool,
            pool_size=pool_size,
            max_overflow=max_overflow,
            pool_pre_ping=True,
            pool_timeout=pool_timeout,
            pool_recycle=pool_recycle,
            isolation_level="READ COMMITTED",
        )
    _SessionFactory = sessionmaker(bind=_engine, expire_on_commit=False)

    configure_logging()
    logger.info(
        "engine_initialized",
        extra={"backend": backend, "database": url.database, "echo": echo},
    )
    return _engine


def get_engine() -> Engine:
    if _engine is None:
        raise RuntimeError(_NOT_INITIALIZED)
    return _engine


def get_session_factory() -> sessionmaker[Session]:
    """Factory for callers that manage their own sessions (one per thread)."""
    if _SessionFactory is None:
        raise RuntimeError(_NOT_INITIALIZED)
    return _SessionFactory


def get_session() -> Session:
    return get_session_factory()()


@contextmanager
def session_scope() -> Iterator[Session]:
    """
    Unit of work: commit on normal exit, roll back and re-raise otherwise.

        with session_scope() as session:
            registry = build_registry(session)
            registry.engine.apply(app_id, WorkflowAction.SUBMIT, owner_id)
    """
    session = get_session()
    try:
        yield session
        session.commit()
    except Exception:
        session.rollback()
        logger.warning("session_rolled_back", exc_info=True)
        raise
    finally:
        session.close()


def create_tables() -> None:
    from registry_kernel.db.base import Base
    import registry_kernel.models  # noqa: F401  registers every table

    Base.metadata.create_all(get_engine())
    logger.info("tables_created", extra={"table_count": len(Base.metadata.tables)})


def drop_tables() -> None:
    """Drop every registry table (tests and local resets)."""
    from registry_kernel.db.base import Base
    import registry_kernel.models  # noqa: F401

    Base.metadata.drop_all(get_engine())


def reset_engine() -> None:
    """Dispose the engine and forget the session factory."""
    global _engine, _SessionFactory
    if _engine is not None:
        _engine.dispose()
    _engine = None
    _SessionFactory = None


@atexit.register
def _dispose_on_exit() -> None:
    if _engine is not None:
        _engine.dispose()
