"""Database connection and session management."""
from __future__ import annotations

from contextlib import contextmanager
from typing import Callable, Generator, List, Optional

from sqlalchemy import Engine, create_engine, event, inspect
from sqlalchemy.orm import DeclarativeBase, Session, sessionmaker
from sqlalchemy.pool import NullPool, StaticPool

from .config import get_settings
from .logging_config import get_logger

LOGGER = get_logger(__name__)


_engine: Optional[Engine] = None
_session_factory: Optional[sessionmaker] = None


class Base(DeclarativeBase):
    """Base class for all SQLAlchemy models."""
    pass


def create_db_engine(database_url: str) -> Engine:
    """
    Create an engine with settings appropriate for the backend.

    In-memory SQLite shares one connection so every session sees the same
    database; file SQLite uses NullPool with WAL mode.
    """
    if database_url.startswith("sqlite"):
        if ":memory:" in database_url or database_url in ("sqlite://", "sqlite:///"):
            return create_engine(
                database_url,
                connect_args={"check_same_thread": False},
                poolclass=StaticPool,
            )

        engine = create_engine(
            database_url,
            connect_args={"check_same_thread": False},  # Allow multi-threaded access
            poolclass=NullPool,
        )

        @event.listens_for(engine, "connect")
        def set_sqlite_pragma(dbapi_connection, connection_record):
            cursor = dbapi_connection.cursor()
            cursor.execute("PRAGMA journal_mode=WAL")
            cursor.execute("PRAGMA busy_timeout=30000")  # 30 second timeout
            cursor.close()

        return engine

    return create_engine(database_url, pool_pre_ping=True)


def get_engine() -> Engine:
    """Process-wide engine for ``DATABASE_URL``, created on first use."""
    global _engine
    if _engine is None:
        _engine = create_db_engine(get_settings().database_url)
    return _engine


def get_session_factory(engine: Optional[Engine] = None) -> Callable[[], Session]:
    """
    Return a session factory bound to ``engine`` (default: the shared engine).

    Usage:
        session_factory = get_session_factory()
        with session_factory() as session:
            ...
    """
    global _session_factory
    if engine is not None:
        return sessionmaker(autocommit=False, autoflush=False, bind=engine)
    if _session_factory is None:
        _session_factory = sessionmaker(autocommit=False, autoflush=False, bind=get_engine())
    return _session_factory


@contextmanager
def get_session(
    session_factory: Optional[Callable[[], Session]] = None,
) -> Generator[Session, None, None]:
    """
    Context manager for database sessions.

    Commits on success, rolls back on error.

    Yields:
        SQLAlchemy Session object.
    """
    session = (session_factory or get_session_factory())()
    try:
        yield session
        session.commit()
    except Exception:
        session.rollback()
        raise
    finally:
        session.close()


def init_db(engine: Optional[Engine] = None) -> List[str]:
    """
    Create missing tables.

    Returns:
        Names of the tables that were created.
    """
    # Import models to ensure they are registered with Base
    from . import models  # noqa: F401

    engine = engine or get_engine()
    existing = set(inspect(engine).get_table_names())
    Base.metadata.create_all(bind=engine)
    created = sorted(set(inspect(engine).get_table_names()) - existing)
    if created:
        LOGGER.info(f"Created tables: {created}")
    return created


def reset_engine() -> None:
    """Dispose the shared engine, e.g. after DATABASE_URL changed."""
    global _engine, _session_factory
    if _engine is not None:
        _engine.dispose()
    _engine = None
    _session_factory = None


__all__ = [
    "Base",
    "create_db_engine",
    "get_engine",
    "get_session",
    "get_session_factory",
    "init_db",
    "reset_engine",
]
