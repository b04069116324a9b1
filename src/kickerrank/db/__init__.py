"""
Database module for kickerrank.

Provides SQLAlchemy ORM models, session management and the
per-tournament locks used by the sync engine.

Usage:
    from kickerrank.db import get_session, Tournament

    with get_session() as session:
        tournaments = session.query(Tournament).all()
"""

from kickerrank.db.models import (
    Base,
    Match,
    Player,
    PlayerAlias,
    Standing,
    Team,
    TeamPlayer,
    Tournament,
)
from kickerrank.db.session import SessionLocal, get_engine, get_session

__all__ = [
    # Base
    "Base",
    # Models
    "Tournament",
    "Match",
    "Team",
    "TeamPlayer",
    "Player",
    "PlayerAlias",
    "Standing",
    # Session
    "get_session",
    "get_engine",
    "SessionLocal",
]
