"""
Database session management for kickerrank.

Provides SQLAlchemy engine and session factory with proper
connection pooling configuration. Uses the settings from config.py.

Usage:
    # As a context manager (recommended)
    from kickerrank.db import get_session

    with get_session() as session:
        tournament = TournamentSyncService(session).sync(payload)
        # Commits automatically on exit, rolls back on exception
"""

from contextlib import contextmanager
from typing import Generator

from sqlalchemy import create_engine
from sqlalchemy.engine import Engine
from sqlalchemy.orm import Session, sessionmaker

from kickerrank.config import settings


def get_engine(database_url: str | None = None) -> Engine:
    """
    Create SQLAlchemy engine with connection pooling.

    The engine is configured with:
    - Connection pool for efficient reuse (server databases only)
    - Echo mode disabled (set LOG_LEVEL=DEBUG for SQL logging)
    - Pre-ping to verify connections before use (handles stale connections)
    """
    url = database_url or settings.database_url
    kwargs = {
        "pool_pre_ping": True,
        "echo": settings.log_level == "DEBUG",
    }
    if not url.startswith("sqlite"):
        kwargs["pool_size"] = settings.db_pool_size
        kwargs["max_overflow"] = settings.db_max_overflow
    return create_engine(url, **kwargs)


# Created on first use so importing the package never opens a connection
_engine: Engine | None = None


def _get_engine() -> Engine:
    """Get or create the singleton engine instance."""
    global _engine
    if _engine is None:
        _engine = get_engine()
        SessionLocal.configure(bind=_engine)
    return _engine


# Session factory - bound to the engine on first get_session() call
SessionLocal = sessionmaker(
    autoflush=False,  # Don't auto-flush before queries (more control)
    expire_on_commit=False,  # Returned tournaments stay readable after commit
)


@contextmanager
def get_session() -> Generator[Session, None, None]:
    """
    Context manager for database sessions.

    Automatically commits on successful exit, rolls back on exception.
    One tournament import should run in exactly one of these blocks.

    Raises:
        Any exception from the database operation (after rollback)
    """
    _get_engine()
    session = SessionLocal()
    try:
        yield session
        session.commit()
    except Exception:
        session.rollback()
        raise
    finally:
        session.close()
