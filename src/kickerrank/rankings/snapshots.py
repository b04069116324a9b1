"""
In-memory tournament snapshots shared by the ranking and rating code.

A TournamentSnapshot is the same view whether it was built from a payload
(before or without persistence) or loaded from the database, so placement,
tie-breaks, season aggregation and ratings each have exactly one
implementation that works for both sources.
"""

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Iterable, Optional

from sqlalchemy import select
from sqlalchemy.orm import Session, selectinload

from kickerrank.config import settings
from kickerrank.db.models import (
    STANDING_ELIMINATION,
    STANDING_QUALIFYING,
    Match,
    Standing,
    Team,
    TeamPlayer,
    Tournament,
)
from kickerrank.payloads.merge import is_season_final_name
from kickerrank.payloads.normalizer import normalize_payload
from kickerrank.payloads.schema import MatchPayload, StandingPayload, parse_payload


@dataclass(frozen=True)
class StandingLine:
    """One standing row; name may be a composite team label in elimination."""
    name: str
    place: int = 0
    points: float = 0
    matches: int = 0
    won: int = 0
    lost: int = 0
    drawn: int = 0
    goals: int = 0
    goals_in: int = 0
    deactivated: bool = False
    removed: bool = False


@dataclass(frozen=True)
class MatchLine:
    """One complete match with the player names of both sides."""
    key: str
    team1: tuple[str, ...]
    team2: tuple[str, ...]
    score1: int
    score2: int
    is_elimination: bool = False
    round_name: Optional[str] = None
    time_start: Optional[datetime] = None
    sequence: int = 0

    @property
    def is_draw(self) -> bool:
        return self.score1 == self.score2


@dataclass
class TournamentSnapshot:
    key: str
    name: str
    created_at: datetime
    is_season_final: bool = False
    qualifying: list[StandingLine] = field(default_factory=list)
    elimination: list[StandingLine] = field(default_factory=list)
    matches: list[MatchLine] = field(default_factory=list)

    @property
    def qualifying_matches(self) -> list[MatchLine]:
        return [m for m in self.matches if not m.is_elimination]

    @property
    def year(self) -> int:
        return self.created_at.year


# =============================================================================
# From payloads
# =============================================================================

def _standing_line(standing: StandingPayload) -> Optional[StandingLine]:
    if not standing.name or not standing.name.strip():
        return None
    stats = standing.stats
    return StandingLine(
        name=standing.name.strip(),
        place=stats.place,
        points=stats.points,
        matches=stats.matches,
        won=stats.matchesWon,
        lost=stats.matchesLost,
        drawn=stats.matchesDrawn,
        goals=stats.ballsWon,
        goals_in=stats.ballsLost,
        deactivated=standing.deactivated,
        removed=standing.removed,
    )


def _match_line(
    match: MatchPayload,
    is_elimination: bool,
    round_name: Optional[str],
    sequence: int,
) -> Optional[MatchLine]:
    if not match.is_complete():
        return None
    score1, score2 = match.scores()
    return MatchLine(
        key=match.id,
        team1=tuple(match.team1.player_names()),
        team2=tuple(match.team2.player_names()),
        score1=score1,
        score2=score2,
        is_elimination=is_elimination,
        round_name=round_name,
        time_start=match.timeStart,
        sequence=sequence,
    )


def snapshot_from_payload(payload: Any, patterns: Optional[Iterable[str]] = None) -> TournamentSnapshot:
    """
    Build a snapshot straight from an export payload (either shape).

    Only matches that the sync engine would persist are included.

    Raises:
        ValidationError: the payload has no name or external id
    """
    parsed = parse_payload(normalize_payload(payload))
    if patterns is None:
        patterns = settings.season_final_patterns

    matches: list[MatchLine] = []

    def add(match: MatchPayload, is_elimination: bool, round_name: Optional[str]) -> None:
        line = _match_line(match, is_elimination, round_name, len(matches))
        if line is not None:
            matches.append(line)

    qualifying_standings: list[StandingLine] = []
    elimination_standings: list[StandingLine] = []

    section = parsed.qualifying_section
    if section is not None:
        for round_ in section.rounds:
            for match in round_.matches:
                add(match, False, round_.name)
        qualifying_standings = [
            line for line in map(_standing_line, section.standings) if line is not None
        ]

    for elimination in parsed.eliminations:
        for level in elimination.levels:
            for match in level.matches:
                add(match, True, level.name)
        if elimination.third is not None:
            for match in elimination.third.matches:
                add(match, True, "third")
        elimination_standings.extend(
            line for line in map(_standing_line, elimination.standings) if line is not None
        )

    return TournamentSnapshot(
        key=parsed.id,
        name=parsed.name,
        created_at=parsed.created_at,
        is_season_final=is_season_final_name(parsed.name, patterns),
        qualifying=qualifying_standings,
        elimination=elimination_standings,
        matches=matches,
    )


# =============================================================================
# From the database
# =============================================================================

def _standing_line_from_row(row: Standing) -> StandingLine:
    return StandingLine(
        name=row.player.name,
        place=row.place,
        points=row.points,
        matches=row.matches,
        won=row.matches_won,
        lost=row.matches_lost,
        drawn=row.matches_drawn,
        goals=row.balls_won,
        goals_in=row.balls_lost,
        deactivated=row.deactivated,
        removed=row.removed,
    )


def _team_names(match: Match, number: int) -> tuple[str, ...]:
    for team in match.teams:
        if team.team_number == number:
            return tuple(link.player.name for link in team.players)
    return ()


def snapshot_from_row(tournament: Tournament) -> TournamentSnapshot:
    """Snapshot of a persisted tournament (relationships must be loadable)."""
    matches = []
    for sequence, match in enumerate(sorted(tournament.matches, key=lambda m: m.id)):
        team1 = _team_names(match, 1)
        team2 = _team_names(match, 2)
        if not team1 or not team2 or not match.valid or match.skipped:
            continue
        matches.append(MatchLine(
            key=match.external_id,
            team1=team1,
            team2=team2,
            score1=match.team1_score,
            score2=match.team2_score,
            is_elimination=match.is_elimination,
            round_name=match.round_name,
            time_start=match.time_start,
            sequence=sequence,
        ))

    standings = sorted(tournament.standings, key=lambda s: (s.place, s.id))
    return TournamentSnapshot(
        key=tournament.external_id,
        name=tournament.name,
        created_at=tournament.created_at,
        is_season_final=tournament.is_season_final,
        qualifying=[
            _standing_line_from_row(s) for s in standings if s.type == STANDING_QUALIFYING
        ],
        elimination=[
            _standing_line_from_row(s) for s in standings if s.type == STANDING_ELIMINATION
        ],
        matches=matches,
    )


def load_snapshots(session: Session) -> list[TournamentSnapshot]:
    """Load every persisted tournament as a snapshot, oldest first."""
    tournaments = session.scalars(
        select(Tournament)
        .options(
            selectinload(Tournament.matches)
            .selectinload(Match.teams)
            .selectinload(Team.players)
            .selectinload(TeamPlayer.player),
            selectinload(Tournament.standings).selectinload(Standing.player),
        )
        .order_by(Tournament.created_at, Tournament.id)
    ).all()
    return [snapshot_from_row(t) for t in tournaments]
