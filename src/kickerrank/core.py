"""
Public operations of kickerrank.

Each operation takes an optional SQLAlchemy session. Without one, it opens
its own get_session() unit of work, which commits on success and rolls back
on any error.

Usage:
    from kickerrank import core

    tournament = core.sync(export_json)
    rankings = core.compute_season_rankings(season="2025")
    result = core.compute_trueskill()
    matches = core.player_history("Anna Schmidt")
"""

import logging
from contextlib import contextmanager
from typing import Any, Generator, Iterable, Optional

from sqlalchemy.orm import Session

from kickerrank.config import Settings, settings as default_settings
from kickerrank.db.models import Player, Tournament
from kickerrank.db.session import get_session
from kickerrank.players.aliases import AliasResolver
from kickerrank.players.aliases import resolve_alias as _resolve_alias
from kickerrank.players.registry import get_player as _get_player
from kickerrank.rankings.player_results import PlayerMatch, match_history
from kickerrank.rankings.season import RankedPlayer
from kickerrank.rankings.season import compute_season_rankings as _rank_players
from kickerrank.rankings.season import select_season_tournaments
from kickerrank.rankings.snapshots import TournamentSnapshot, load_snapshots, snapshot_from_payload
from kickerrank.rating.pipeline import TrueSkillResult
from kickerrank.rating.pipeline import compute_trueskill as _compute_trueskill
from kickerrank.services.tournament_sync import TournamentSyncService

logger = logging.getLogger(__name__)


@contextmanager
def _unit_of_work(session: Optional[Session]) -> Generator[Session, None, None]:
    if session is not None:
        yield session
        return
    with get_session() as own_session:
        yield own_session


def sync(payload: Any, session: Optional[Session] = None) -> Tournament:
    """
    Import one tournament export (either shape) idempotently.

    Raises:
        ValidationError, ConflictError, IngestionTimeoutError, IngestionError
    """
    with _unit_of_work(session) as s:
        return TournamentSyncService(s).sync(payload)


def _as_snapshots(tournaments: Iterable[Any]) -> list[TournamentSnapshot]:
    snapshots = []
    for tournament in tournaments:
        if isinstance(tournament, TournamentSnapshot):
            snapshots.append(tournament)
        else:
            snapshots.append(snapshot_from_payload(tournament))
    return snapshots


def compute_season_rankings(
    tournaments: Optional[Iterable[Any]] = None,
    season: Optional[str] = None,
    session: Optional[Session] = None,
    aliases: Optional[AliasResolver] = None,
    config: Optional[Settings] = None,
) -> list[RankedPlayer]:
    """
    Season ranking with finale status.

    Args:
        tournaments: Snapshots or export payloads; loaded from the database when omitted
        season: Season year; when given only that season's tournaments count,
            otherwise every non-final tournament passed in does
        session: Database session for loading tournaments and aliases
        aliases: Alias snapshot; loaded from the database when omitted and a
            database is used
        config: Settings override

    Returns:
        Ranked players; skill is the conservative TrueSkill rating over the
        same tournaments
    """
    config = config or default_settings

    if tournaments is None:
        with _unit_of_work(session) as s:
            snapshots = load_snapshots(s)
            if aliases is None:
                aliases = AliasResolver.load(s)
    else:
        snapshots = _as_snapshots(tournaments)
        if aliases is None:
            if session is not None:
                aliases = AliasResolver.load(session)
            else:
                aliases = AliasResolver()

    if season is not None:
        selected = select_season_tournaments(snapshots, season, config)
    else:
        selected = [s for s in snapshots if not s.is_season_final]

    ratings = _compute_trueskill(selected, aliases, config)
    rankings = _rank_players(
        selected,
        aliases=aliases,
        skill_by_name=ratings.skill_map(),
        config=config,
    )
    logger.info(
        "Season ranking%s: %d players over %d tournaments",
        f" {season}" if season else "", len(rankings), len(selected),
    )
    return rankings


def compute_trueskill(
    session: Optional[Session] = None,
    tournaments: Optional[Iterable[Any]] = None,
    config: Optional[Settings] = None,
) -> TrueSkillResult:
    """
    Ratings over the full match history.

    Reads the database unless tournaments (snapshots or payloads) are passed.
    """
    if tournaments is not None:
        aliases = AliasResolver.load(session) if session is not None else AliasResolver()
        return _compute_trueskill(_as_snapshots(tournaments), aliases, config)

    with _unit_of_work(session) as s:
        snapshots = load_snapshots(s)
        aliases = AliasResolver.load(s)
    return _compute_trueskill(snapshots, aliases, config)


def resolve_alias(name: str, session: Optional[Session] = None) -> str:
    """Canonical name for `name`, or `name` itself when no alias exists."""
    with _unit_of_work(session) as s:
        return _resolve_alias(s, name)


def get_player(name: str, session: Optional[Session] = None) -> Player:
    """
    Player row for `name` (aliases resolved).

    Raises:
        NotFoundError: no such player
    """
    with _unit_of_work(session) as s:
        return _get_player(s, name)


def player_history(name: str, session: Optional[Session] = None) -> list[PlayerMatch]:
    """
    Every stored match of one player, newest first.

    Raises:
        NotFoundError: no such player
    """
    with _unit_of_work(session) as s:
        player = _get_player(s, name)
        snapshots = load_snapshots(s)
        aliases = AliasResolver.load(s)
        return match_history(snapshots, player.name, aliases)
