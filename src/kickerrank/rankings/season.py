"""
Season points, season rankings and finale qualification.

Season points depend only on a player's final placement in a tournament:

    place:   1   2   3   4   5..16   17+
    points: 25  20  16  13    10      0     (+1 attendance point for everyone)

Places 5 to 16 all count as place 5. The season ranking sums season points
over every non-final tournament of a season and orders players by season
points, then skill (conservative rating), then raw tournament points.

Finale qualification: players with at least 10 tournaments are eligible;
the first 20 eligible players are "qualified", the next 5 "successor".
"""

from dataclasses import dataclass, field
from datetime import date, datetime, time
from typing import Iterable, Mapping, Optional

from kickerrank.config import Settings, settings as default_settings
from kickerrank.players.aliases import AliasResolver
from kickerrank.rankings.placement import compute_tournament_placements
from kickerrank.rankings.snapshots import TournamentSnapshot

SEASON_POINTS_MAP = {1: 25, 2: 20, 3: 16, 4: 13, 5: 10}
ATTENDANCE_POINT = 1
# 1st place plus attendance
MAX_TOURNAMENT_POINTS = 26
EFFECTIVE_PLACE_FLOOR = 5
EFFECTIVE_PLACE_CEILING = 16

FINALE_QUALIFIED = "qualified"
FINALE_SUCCESSOR = "successor"


def effective_place(place: int) -> int:
    """Places 5 to 16 share the place-5 value."""
    if EFFECTIVE_PLACE_FLOOR <= place <= EFFECTIVE_PLACE_CEILING:
        return EFFECTIVE_PLACE_FLOOR
    return place


def season_points(place: int) -> int:
    """
    Season points for one tournament result, attendance point included.

    Examples:
        >>> season_points(1)
        26
        >>> season_points(16)
        11
        >>> season_points(17)
        1
    """
    effective = effective_place(place)
    placement_points = SEASON_POINTS_MAP.get(effective, 0) if effective <= EFFECTIVE_PLACE_FLOOR else 0
    return placement_points + ATTENDANCE_POINT


@dataclass
class RankedPlayer:
    """A player's aggregate over a set of tournaments."""
    name: str
    tournaments: int = 0
    matches: int = 0
    points: float = 0
    won: int = 0
    lost: int = 0
    goals: int = 0
    goals_in: int = 0
    best_place: Optional[int] = None
    places: list[int] = field(default_factory=list)
    season_points: int = 0
    skill: float = 0.0
    finale_status: Optional[str] = None
    surely_qualified: bool = False

    @property
    def goal_diff(self) -> int:
        return self.goals - self.goals_in

    @property
    def avg_place(self) -> float:
        return round(sum(self.places) / len(self.places), 1) if self.places else 0.0

    @property
    def win_rate(self) -> float:
        return round(self.won / self.matches * 100, 1) if self.matches else 0.0

    @property
    def points_per_game(self) -> float:
        return round(self.points / self.matches, 2) if self.matches else 0.0


def _ranking_key(player: RankedPlayer, season_points_value: Optional[float] = None):
    points = player.season_points if season_points_value is None else season_points_value
    return (-points, -player.skill, -player.points, player.name)


# =============================================================================
# Aggregation
# =============================================================================

def aggregate_player_stats(
    snapshots: Iterable[TournamentSnapshot],
    aliases: Optional[AliasResolver] = None,
) -> dict[str, RankedPlayer]:
    """
    Sum placements over tournaments.

    Players who played no match in a tournament (walk-ins listed with zero
    matches) are not counted for it. Missing stats count as zero.
    """
    aliases = aliases or AliasResolver()
    players: dict[str, RankedPlayer] = {}

    for snapshot in snapshots:
        for placement in compute_tournament_placements(snapshot, aliases):
            if placement.matches <= 0:
                continue
            player = players.setdefault(placement.name, RankedPlayer(name=placement.name))
            player.tournaments += 1
            player.matches += placement.matches
            player.points += placement.points
            player.won += placement.won
            player.lost += placement.lost
            player.goals += placement.goals
            player.goals_in += placement.goals_in
            player.places.append(placement.final_place)
            if player.best_place is None or placement.final_place < player.best_place:
                player.best_place = placement.final_place
            player.season_points += season_points(placement.final_place)
    return players


def compute_season_rankings(
    snapshots: Iterable[TournamentSnapshot],
    aliases: Optional[AliasResolver] = None,
    skill_by_name: Optional[Mapping[str, float]] = None,
    config: Optional[Settings] = None,
) -> list[RankedPlayer]:
    """
    Rank players over a set of tournaments.

    Args:
        snapshots: Tournaments to aggregate (usually select_season_tournaments())
        aliases: Alias snapshot
        skill_by_name: Conservative rating per canonical name; missing players count as 0
        config: Settings for the finale thresholds

    Returns:
        Players sorted by season points, skill, raw points (then name),
        with finale status and the surely-qualified flag filled in
    """
    config = config or default_settings
    skills = skill_by_name or {}

    players = [p for p in aggregate_player_stats(snapshots, aliases).values() if p.matches > 0]
    for player in players:
        player.skill = float(skills.get(player.name, 0.0))
    players.sort(key=_ranking_key)

    finale_status(players, config)
    surely = calculate_surely_qualified(
        players,
        min_tournaments=config.finale_min_tournaments,
        slots=config.finale_qualified_slots,
    )
    for player in players:
        player.surely_qualified = player.name in surely
    return players


# =============================================================================
# Finale qualification
# =============================================================================

def finale_status(players: list[RankedPlayer], config: Optional[Settings] = None) -> list[RankedPlayer]:
    """
    Set finale_status on already-sorted players, in place.

    Only eligible players (enough tournaments) take part in the count.
    """
    config = config or default_settings
    qualified = config.finale_qualified_slots
    successors = qualified + config.finale_successor_slots

    eligible_index = 0
    for player in players:
        player.finale_status = None
        if player.tournaments < config.finale_min_tournaments:
            continue
        if eligible_index < qualified:
            player.finale_status = FINALE_QUALIFIED
        elif eligible_index < successors:
            player.finale_status = FINALE_SUCCESSOR
        eligible_index += 1
    return players


def calculate_surely_qualified(
    players: Iterable[RankedPlayer],
    min_tournaments: int = 10,
    slots: int = 20,
    max_points: int = MAX_TOURNAMENT_POINTS,
) -> set[str]:
    """
    Eligible players who stay in the top slots even in the worst case.

    Worst case: every current top player attends no further tournament,
    every other eligible player attends one more and wins it (max_points).
    A current top player who is still in the top after re-sorting is
    surely qualified. With no more eligible players than slots, all of
    them are.
    """
    eligible = [p for p in players if p.tournaments >= min_tournaments]
    if len(eligible) <= slots:
        return {p.name for p in eligible}

    ranked = sorted(eligible, key=_ranking_key)
    current_top = {p.name for p in ranked[:slots]}

    def simulated(player: RankedPlayer) -> int:
        if player.name in current_top:
            return player.season_points
        return player.season_points + max_points

    resorted = sorted(ranked, key=lambda p: _ranking_key(p, simulated(p)))
    new_top = {p.name for p in resorted[:slots]}
    return current_top & new_top


# =============================================================================
# Season selection
# =============================================================================

def available_seasons(snapshots: Iterable[TournamentSnapshot]) -> list[str]:
    """Season years that have tournaments, most recent first."""
    return sorted({str(s.year) for s in snapshots}, key=int, reverse=True)


def season_final_for(snapshots: Iterable[TournamentSnapshot], season: str) -> Optional[TournamentSnapshot]:
    for snapshot in snapshots:
        if snapshot.is_season_final and str(snapshot.year) == str(season):
            return snapshot
    return None


def season_window(season: str, config: Optional[Settings] = None) -> tuple[datetime, datetime]:
    """
    First and last instant of a season.

    Defaults to the calendar year; a configured override replaces either end.
    """
    config = config or default_settings
    year = int(season)
    start = date(year, 1, 1)
    end = date(year, 12, 31)

    override = config.season_window_override(str(season)) or {}
    if override.get("start"):
        start = date.fromisoformat(override["start"])
    if override.get("end"):
        end = date.fromisoformat(override["end"])
    return datetime.combine(start, time.min), datetime.combine(end, time.max)


def select_season_tournaments(
    snapshots: Iterable[TournamentSnapshot],
    season: str,
    config: Optional[Settings] = None,
) -> list[TournamentSnapshot]:
    """
    Tournaments that count for a season's ranking.

    Season finals are excluded, as is anything held after the season's
    final or outside the season window.
    """
    snapshots = list(snapshots)
    start, end = season_window(season, config)
    final = season_final_for(snapshots, season)

    selected = []
    for snapshot in snapshots:
        if snapshot.is_season_final:
            continue
        if str(snapshot.year) != str(season):
            continue
        if not start <= snapshot.created_at <= end:
            continue
        if final is not None and snapshot.created_at > final.created_at:
            continue
        selected.append(snapshot)
    return selected
