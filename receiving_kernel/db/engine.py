"""
Module: receiving_kernel.db.engine
Responsibility: Process-wide engine and session factory for the receiving
    database, plus the table bootstrap used by tests and local tooling.
Architecture position: Kernel > DB.  Imported by services and tests; the only
    upward imports are the ORM registrations inside create_tables/drop_tables.

Isolation:
    - PostgreSQL: READ COMMITTED.  Services take row locks
      (SELECT ... FOR UPDATE) on the purchase order before reading its
      reception history.
    - SQLite: no row locks exist, so every transaction opens with
      BEGIN IMMEDIATE and writers queue at transaction start instead.  A
      writer that waits past the busy timeout gets "database is locked",
      which the reconciliation service treats as a retryable conflict.

Failure modes:
    - RuntimeError when the engine is used before init_engine_from_url().
"""

import atexit
import os
from contextlib import contextmanager
from typing import Generator

from sqlalchemy import create_engine, event
from sqlalchemy.engine import Engine
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

from receiving_kernel.logging_config import configure_logging, get_logger

logger = get_logger("db.engine")

DATABASE_URL_ENV = "DATABASE_URL"

_engine: Engine | None = None
_SessionFactory: sessionmaker[Session] | None = None


def database_url_from_env(default: str | None = None) -> str:
    """``$DATABASE_URL``, else ``default``; RuntimeError when neither is set."""
    url = os.environ.get(DATABASE_URL_ENV) or default
    if not url:
        raise RuntimeError(f"{DATABASE_URL_ENV} is not set")
    return url


def _sqlite_engine(database_url: str, echo: bool, busy_timeout: float) -> Engine:
    in_memory = database_url in ("sqlite://", "sqlite:///:memory:")
    engine = create_engine(
        database_url,
        echo=echo,
        connect_args={"timeout": busy_timeout, "check_same_thread": False},
        **({"poolclass": StaticPool} if in_memory else {}),
    )

    @event.listens_for(engine, "connect")
    def _manual_transactions(dbapi_connection, connection_record):
        # pysqlite would otherwise emit its own deferred BEGIN.
        dbapi_connection.isolation_level = None

    @event.listens_for(engine, "begin")
    def _begin_immediate(conn):
        conn.exec_driver_sql("BEGIN IMMEDIATE")

    return engine


def init_engine_from_url(
    database_url: str,
    echo: bool = False,
    pool_size: int = 20,
    max_overflow: int = 10,
    pool_timeout: int = 30,
    pool_recycle: int = 1800,
    sqlite_busy_timeout: float = 30.0,
) -> Engine:
    """
    Create the process-wide engine and session factory.

    A second call replaces the first.  Sessions do not expire objects on
    commit, so DTOs can be built from models after the transaction ends.
    """
    global _engine, _SessionFactory

    if database_url.startswith("sqlite"):
        _engine = _sqlite_engine(database_url, echo, sqlite_busy_timeout)
    else:
        _engine = create_engine(
            database_url,
            echo=echo,
            pool_size=pool_size,
            max_overflow=max_overflow,
            pool_pre_ping=True,
            pool_timeout=pool_timeout,
            pool_recycle=pool_recycle,
            isolation_level="READ COMMITTED",
        )
    _SessionFactory = sessionmaker(bind=_engine, expire_on_commit=False)

    configure_logging()
    logger.info("engine_initialized", extra={
        "dialect": _engine.dialect.name,
        "database": _engine.url.database,
        "pool_size": pool_size if _engine.dialect.name != "sqlite" else None,
    })
    return _engine


def init_engine_from_env(default_url: str | None = None, **kwargs) -> Engine:
    """``init_engine_from_url`` using ``$DATABASE_URL``."""
    return init_engine_from_url(database_url_from_env(default_url), **kwargs)


def get_engine() -> Engine:
    if _engine is None:
        raise RuntimeError("Engine not initialized. Call init_engine_from_url() first.")
    return _engine


def get_session_factory() -> sessionmaker[Session]:
    """Session factory; concurrent workers each take their own session from it."""
    if _SessionFactory is None:
        raise RuntimeError("Engine not initialized. Call init_engine_from_url() first.")
    return _SessionFactory


def get_session() -> Session:
    return get_session_factory()()


@contextmanager
def session_scope() -> Generator[Session, None, None]:
    """
    Commit on normal exit, roll back and re-raise on error, always close.

    Usage:
        with session_scope() as session:
            session.add(order_model)
    """
    session = get_session()
    try:
        yield session
        session.commit()
    except Exception:
        session.rollback()
        logger.warning("session_scope_rolled_back", exc_info=True)
        raise
    finally:
        session.close()


def create_tables() -> None:
    """Create every table and register the order-line immutability listener."""
    from receiving_kernel.db.base import Base
    from receiving_modules.reception.orm import register_order_line_listeners

    engine = get_engine()
    Base.metadata.create_all(engine)
    register_order_line_listeners()
    logger.info("tables_created", extra={"tables": sorted(Base.metadata.tables)})


def drop_tables() -> None:
    """Drop every table. Tests only."""
    from receiving_kernel.db.base import Base
    import receiving_modules.reception.orm  # noqa: F401  (registers the module tables)

    Base.metadata.drop_all(get_engine())


def reset_engine() -> None:
    """Dispose the engine and forget the session factory."""
    global _engine, _SessionFactory
    if _engine is not None:
        _engine.dispose()
    _engine = None
    _SessionFactory = None


def is_postgres() -> bool:
    return _engine is not None and _engine.dialect.name == "postgresql"


atexit.register(lambda: _engine.dispose() if _engine is not None else None)
