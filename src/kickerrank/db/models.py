"""
SQLAlchemy ORM models for kickerrank.

This module defines all database tables and their relationships.
The schema is designed around a canonical player identity keyed by
display name, with operator-curated aliases mapping spelling variants.

Key design decisions:
- Tournaments, matches are keyed by the external id of the export tool
- Teams are rebuilt from the payload on every sync, never patched
- Standings are unique per (tournament, player, stage type)
- The normalized (and possibly merged) payload is kept as raw_data for
  display and debugging

Tables:
- tournaments: One row per real-world event
- matches: Played matches (only valid, complete ones are persisted)
- teams: The two sides of a match
- team_players: Which players were on which team
- players: Canonical player records
- player_aliases: Spelling variants mapped to canonical names
- standings: Qualifying and elimination standings per player
"""

from datetime import datetime
from typing import Optional

from sqlalchemy import (
    JSON,
    Boolean,
    CheckConstraint,
    DateTime,
    Float,
    ForeignKey,
    Index,
    Integer,
    String,
    UniqueConstraint,
)
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column, relationship


# JSONB on PostgreSQL, plain JSON elsewhere (SQLite in tests)
JsonType = JSON().with_variant(JSONB(), "postgresql")

TOURNAMENT_TYPE_DOUBLES = "doubles"
DEFAULT_SCHEMA_VERSION = 14

STANDING_QUALIFYING = "qualifying"
STANDING_ELIMINATION = "elimination"
STANDING_TYPES = (STANDING_QUALIFYING, STANDING_ELIMINATION)


class Base(DeclarativeBase):
    """Base class for all SQLAlchemy models."""
    pass


# =============================================================================
# Player Models
# =============================================================================

class Player(Base):
    """
    Canonical player record.

    Each player has exactly one record, keyed by the canonical display name.
    Names are run through the alias table before lookup, so spelling variants
    end up on the same row. Metadata from the export (club, licence, country)
    is filled in when the export carries it.
    """
    __tablename__ = "players"

    id: Mapped[int] = mapped_column(primary_key=True)

    name: Mapped[str] = mapped_column(String(255), nullable=False, unique=True)

    # Identifier of the player inside the export tool (not stable across events)
    external_id: Mapped[Optional[str]] = mapped_column(String(64), nullable=True)

    first_name: Mapped[Optional[str]] = mapped_column(String(120), nullable=True)
    last_name: Mapped[Optional[str]] = mapped_column(String(120), nullable=True)
    national_id: Mapped[Optional[str]] = mapped_column(String(64), nullable=True)
    international_id: Mapped[Optional[str]] = mapped_column(String(64), nullable=True)
    club: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    license: Mapped[Optional[str]] = mapped_column(String(64), nullable=True)
    country: Mapped[Optional[str]] = mapped_column(String(64), nullable=True)

    is_guest: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    is_external: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)

    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime, default=datetime.utcnow, onupdate=datetime.utcnow
    )

    # Relationships
    aliases: Mapped[list["PlayerAlias"]] = relationship(back_populates="player")
    standings: Mapped[list["Standing"]] = relationship(back_populates="player")

    def __repr__(self) -> str:
        return f"<Player(id={self.id}, name='{self.name}')>"


class PlayerAlias(Base):
    """
    Observed spelling of a player name mapped to its canonical name.

    Curated by operators; read-only for the sync, rating and ranking code.
    The player reference is optional because an alias may be created before
    the canonical player has ever appeared in an import.
    """
    __tablename__ = "player_aliases"

    id: Mapped[int] = mapped_column(primary_key=True)

    # The literal spelling as it appears in exports
    alias: Mapped[str] = mapped_column(String(255), nullable=False, unique=True)
    canonical_name: Mapped[str] = mapped_column(String(255), nullable=False)

    player_id: Mapped[Optional[int]] = mapped_column(
        ForeignKey("players.id", ondelete="SET NULL"), nullable=True
    )

    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow)

    # Relationships
    player: Mapped[Optional["Player"]] = relationship(back_populates="aliases")

    __table_args__ = (
        Index("idx_player_aliases_canonical", "canonical_name"),
    )

    def __repr__(self) -> str:
        return f"<PlayerAlias(alias='{self.alias}', canonical='{self.canonical_name}')>"


# =============================================================================
# Tournament Models
# =============================================================================

class Tournament(Base):
    """
    One real-world tournament.

    Created or updated on every import. A season final that was exported as
    two payloads (qualifying only, elimination only) ends up as a single row;
    the external ids of the absorbed exports are kept in merged_external_ids
    so re-importing either half lands on the same row.
    """
    __tablename__ = "tournaments"

    id: Mapped[int] = mapped_column(primary_key=True)

    external_id: Mapped[str] = mapped_column(String(64), nullable=False, unique=True)
    name: Mapped[str] = mapped_column(String(255), nullable=False)

    # Creation time reported by the export tool (drives season/year logic)
    created_at: Mapped[datetime] = mapped_column(DateTime, nullable=False, default=datetime.utcnow)

    mode: Mapped[Optional[str]] = mapped_column(String(50), nullable=True)
    sport: Mapped[Optional[str]] = mapped_column(String(50), nullable=True)

    # Always 'doubles' in this domain
    tournament_type: Mapped[str] = mapped_column(
        String(20), nullable=False, default=TOURNAMENT_TYPE_DOUBLES
    )
    version: Mapped[int] = mapped_column(Integer, nullable=False, default=DEFAULT_SCHEMA_VERSION)

    is_season_final: Mapped[bool] = mapped_column(
        Boolean, nullable=False, default=False, server_default="false"
    )

    # Normalized (and possibly merged) payload
    raw_data: Mapped[Optional[dict]] = mapped_column(JsonType, nullable=True)

    merged_external_ids: Mapped[Optional[list]] = mapped_column(JsonType, nullable=True)

    updated_at: Mapped[datetime] = mapped_column(
        DateTime, default=datetime.utcnow, onupdate=datetime.utcnow
    )

    # Relationships
    matches: Mapped[list["Match"]] = relationship(
        back_populates="tournament",
        cascade="all, delete-orphan",
        passive_deletes=True,
    )
    standings: Mapped[list["Standing"]] = relationship(
        back_populates="tournament",
        cascade="all, delete-orphan",
        passive_deletes=True,
    )

    __table_args__ = (
        Index("idx_tournaments_season_final", "is_season_final", "created_at"),
    )

    def __repr__(self) -> str:
        return f"<Tournament(id={self.id}, external_id='{self.external_id}', name='{self.name}')>"


# =============================================================================
# Match Models
# =============================================================================

class Match(Base):
    """
    A played match.

    Only matches that are valid, not skipped, carry a result and have players
    on both sides are ever stored. Upserted by external_id; deleted when a
    later import of the same tournament no longer contains it.
    """
    __tablename__ = "matches"

    id: Mapped[int] = mapped_column(primary_key=True)

    external_id: Mapped[str] = mapped_column(String(64), nullable=False, unique=True)
    tournament_id: Mapped[int] = mapped_column(
        ForeignKey("tournaments.id", ondelete="CASCADE"), nullable=False
    )

    # Round context from the export
    round_id: Mapped[Optional[str]] = mapped_column(String(64), nullable=True)
    round_name: Mapped[Optional[str]] = mapped_column(String(120), nullable=True)
    group_id: Mapped[Optional[str]] = mapped_column(String(64), nullable=True)

    is_elimination: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    # Level name for knockout matches ('Final', 'Semifinal', 'third', ...)
    elimination_level: Mapped[Optional[str]] = mapped_column(String(120), nullable=True)

    team1_score: Mapped[int] = mapped_column(Integer, nullable=False)
    team2_score: Mapped[int] = mapped_column(Integer, nullable=False)

    time_start: Mapped[Optional[datetime]] = mapped_column(DateTime, nullable=True)
    time_end: Mapped[Optional[datetime]] = mapped_column(DateTime, nullable=True)

    valid: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    skipped: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)

    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime, default=datetime.utcnow, onupdate=datetime.utcnow
    )

    # Relationships
    tournament: Mapped["Tournament"] = relationship(back_populates="matches")
    teams: Mapped[list["Team"]] = relationship(
        back_populates="match",
        cascade="all, delete-orphan",
        passive_deletes=True,
        order_by="Team.team_number",
    )

    __table_args__ = (
        Index("idx_matches_tournament", "tournament_id"),
        Index("idx_matches_time_start", "time_start"),
    )

    def __repr__(self) -> str:
        return (
            f"<Match(id={self.id}, external_id='{self.external_id}', "
            f"score={self.team1_score}:{self.team2_score})>"
        )


class Team(Base):
    """
    One side of a match.

    Rebuilt from scratch whenever the parent match is synced, so the roster
    always reflects the latest export.
    """
    __tablename__ = "teams"

    id: Mapped[int] = mapped_column(primary_key=True)
    match_id: Mapped[int] = mapped_column(
        ForeignKey("matches.id", ondelete="CASCADE"), nullable=False
    )
    team_number: Mapped[int] = mapped_column(Integer, nullable=False)  # 1 or 2
    name: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    score: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    won: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)

    # Relationships
    match: Mapped["Match"] = relationship(back_populates="teams")
    players: Mapped[list["TeamPlayer"]] = relationship(
        back_populates="team",
        cascade="all, delete-orphan",
        passive_deletes=True,
        order_by="TeamPlayer.id",
    )

    __table_args__ = (
        UniqueConstraint("match_id", "team_number", name="uq_team_match_number"),
        CheckConstraint("team_number IN (1, 2)", name="ck_team_number"),
    )

    def __repr__(self) -> str:
        return f"<Team(match_id={self.match_id}, number={self.team_number}, won={self.won})>"


class TeamPlayer(Base):
    """Link row: this player was on this team in this match."""
    __tablename__ = "team_players"

    id: Mapped[int] = mapped_column(primary_key=True)
    team_id: Mapped[int] = mapped_column(
        ForeignKey("teams.id", ondelete="CASCADE"), nullable=False
    )
    player_id: Mapped[int] = mapped_column(ForeignKey("players.id"), nullable=False)

    # Relationships
    team: Mapped["Team"] = relationship(back_populates="players")
    player: Mapped["Player"] = relationship()

    __table_args__ = (
        UniqueConstraint("team_id", "player_id", name="uq_team_player"),
        Index("idx_team_players_player", "player_id"),
    )

    def __repr__(self) -> str:
        return f"<TeamPlayer(team_id={self.team_id}, player_id={self.player_id})>"


# =============================================================================
# Standing Models
# =============================================================================

class Standing(Base):
    """
    Standing of one player in one stage of a tournament.

    type is 'qualifying' or 'elimination'. Rows whose (player, type) key is
    missing from a later import are deleted, not flagged.
    """
    __tablename__ = "standings"

    id: Mapped[int] = mapped_column(primary_key=True)
    tournament_id: Mapped[int] = mapped_column(
        ForeignKey("tournaments.id", ondelete="CASCADE"), nullable=False
    )
    player_id: Mapped[int] = mapped_column(ForeignKey("players.id"), nullable=False)
    type: Mapped[str] = mapped_column(String(20), nullable=False)

    place: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    points: Mapped[float] = mapped_column(Float, nullable=False, default=0)
    matches: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    matches_won: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    matches_lost: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    matches_drawn: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    sets_won: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    sets_lost: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    # Goals scored / conceded
    balls_won: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    balls_lost: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    # Tie-break numbers as reported by the export tool
    bh1: Mapped[float] = mapped_column(Float, nullable=False, default=0)
    bh2: Mapped[float] = mapped_column(Float, nullable=False, default=0)

    deactivated: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    removed: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)

    updated_at: Mapped[datetime] = mapped_column(
        DateTime, default=datetime.utcnow, onupdate=datetime.utcnow
    )

    # Relationships
    tournament: Mapped["Tournament"] = relationship(back_populates="standings")
    player: Mapped["Player"] = relationship(back_populates="standings")

    __table_args__ = (
        UniqueConstraint("tournament_id", "player_id", "type", name="uq_standing_key"),
        CheckConstraint("type IN ('qualifying', 'elimination')", name="ck_standing_type"),
        Index("idx_standings_player", "player_id"),
    )

    def __repr__(self) -> str:
        return (
            f"<Standing(tournament_id={self.tournament_id}, player_id={self.player_id}, "
            f"type='{self.type}', place={self.place})>"
        )
