"""
Pytest configuration and fixtures.

This file is automatically loaded by pytest and provides
shared fixtures for all tests.
"""

import pytest
from sqlalchemy import create_engine, event
from sqlalchemy.orm import Session
from sqlalchemy.pool import StaticPool

from kickerrank.db.models import Base

from tests.factories import match, standing, tournament


@pytest.fixture(scope="session")
def test_engine():
    """
    Create a test database engine.

    Uses SQLite in-memory for fast tests that don't need
    PostgreSQL-specific features. Foreign keys are switched on so
    ON DELETE CASCADE behaves like PostgreSQL, and pysqlite's own
    transaction handling is disabled so SAVEPOINTs work.
    """
    engine = create_engine(
        "sqlite:///:memory:",
        echo=False,
        poolclass=StaticPool,
        connect_args={"check_same_thread": False},
    )

    @event.listens_for(engine, "connect")
    def _on_connect(dbapi_connection, connection_record):
        dbapi_connection.isolation_level = None
        cursor = dbapi_connection.cursor()
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.close()

    @event.listens_for(engine, "begin")
    def _on_begin(connection):
        connection.exec_driver_sql("BEGIN")

    return engine


@pytest.fixture(scope="session")
def tables(test_engine):
    """
    Create all tables for testing.

    This fixture runs once per test session.
    """
    Base.metadata.create_all(test_engine)
    yield
    Base.metadata.drop_all(test_engine)


@pytest.fixture
def db_session(test_engine, tables):
    """
    Create a database session for a test.

    Each test runs inside an outer transaction that is rolled back at the
    end; the session itself works on a SAVEPOINT, so code under test may
    commit or use begin_nested() freely.
    """
    connection = test_engine.connect()
    transaction = connection.begin()

    session = Session(
        bind=connection,
        join_transaction_mode="create_savepoint",
        autoflush=False,
        expire_on_commit=False,
    )

    yield session

    session.close()
    transaction.rollback()
    connection.close()


@pytest.fixture
def make_match():
    return match


@pytest.fixture
def make_standing():
    return standing


@pytest.fixture
def make_tournament():
    return tournament


@pytest.fixture
def weekly_payload():
    """Small complete tournament: two qualifying rounds and a final."""
    return tournament(
        "t-weekly-1",
        rounds=[
            [
                match("m1", ["Anna", "Ben"], ["Cara", "Dan"], (5, 3)),
                match("m2", ["Eva", "Finn"], ["Gina", "Hugo"], (2, 5)),
            ],
            [
                match("m3", ["Anna", "Gina"], ["Ben", "Eva"], (5, 4)),
                match("m4", ["Cara", "Hugo"], ["Dan", "Finn"], (5, 1)),
            ],
        ],
        qualifying_standings=[
            standing("Anna", 1, points=6, matches=2, won=2, goals=10, goals_in=7),
            standing("Cara", 2, points=3, matches=2, won=1, lost=1, goals=8, goals_in=6),
            standing("Hugo", 3, points=6, matches=2, won=2, goals=10, goals_in=3),
            standing("Gina", 4, points=3, matches=2, won=1, lost=1, goals=9, goals_in=7),
            standing("Ben", 5, points=3, matches=2, won=1, lost=1, goals=9, goals_in=8),
            standing("Dan", 6, points=0, matches=2, lost=2, goals=4, goals_in=10),
            standing("Eva", 7, points=0, matches=2, lost=2, goals=6, goals_in=10),
            standing("Finn", 8, points=0, matches=2, lost=2, goals=3, goals_in=10),
        ],
        levels=[[match("m5", ["Anna", "Cara"], ["Hugo", "Gina"], (6, 4))]],
        elimination_standings=[
            standing("Anna / Cara", 1, points=3, matches=1, won=1, goals=6, goals_in=4),
            standing("Hugo / Gina", 2, points=0, matches=1, lost=1, goals=4, goals_in=6),
        ],
    )
