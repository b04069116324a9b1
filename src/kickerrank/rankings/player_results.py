"""
One player's results across tournaments: match history, tournament list
and best knockout places.

tournament_list and best_ranking reuse compute_tournament_placements, so the
place and the season points listed per tournament are exactly what the
season ranking credits for it. Tournaments in which the player played no
match are left out.
"""

from collections import defaultdict
from dataclasses import dataclass, field
from datetime import datetime
from typing import Iterable, Optional

from kickerrank.players.aliases import AliasResolver
from kickerrank.rankings.placement import compute_tournament_placements
from kickerrank.rankings.season import season_points
from kickerrank.rankings.snapshots import TournamentSnapshot

BEST_RANKING_LIMIT = 3


@dataclass
class TournamentResult:
    key: str
    name: str
    date: datetime
    qualifying_place: Optional[int]
    elimination_place: Optional[int]
    final_place: int
    season_points: int


@dataclass
class BestPlace:
    """A knockout place and the tournaments in which it was reached."""
    place: int
    tournaments: list[TournamentResult] = field(default_factory=list)

    @property
    def count(self) -> int:
        return len(self.tournaments)


@dataclass(frozen=True)
class PlayerMatch:
    """One match seen from the player's side."""
    tournament_key: str
    tournament_name: str
    match_key: str
    played_at: datetime
    is_elimination: bool
    round_name: Optional[str]
    teammates: tuple[str, ...]
    opponents: tuple[str, ...]
    score: int
    opponent_score: int

    @property
    def won(self) -> bool:
        return self.score > self.opponent_score

    @property
    def is_draw(self) -> bool:
        return self.score == self.opponent_score


def match_history(
    snapshots: Iterable[TournamentSnapshot],
    player: str,
    aliases: Optional[AliasResolver] = None,
) -> list[PlayerMatch]:
    """
    Every complete match the player took part in, newest first.

    Matches are ordered by start time, falling back to the tournament's
    creation time, then by position within the tournament.
    """
    aliases = aliases or AliasResolver()
    name = aliases.resolve(player)
    found = []

    for snapshot in snapshots:
        for line in snapshot.matches:
            team1 = tuple(aliases.resolve(n) for n in line.team1)
            team2 = tuple(aliases.resolve(n) for n in line.team2)
            if name in team1:
                own, other, score, opponent_score = team1, team2, line.score1, line.score2
            elif name in team2:
                own, other, score, opponent_score = team2, team1, line.score2, line.score1
            else:
                continue
            played_at = line.time_start or snapshot.created_at
            entry = PlayerMatch(
                tournament_key=snapshot.key,
                tournament_name=snapshot.name,
                match_key=line.key,
                played_at=played_at,
                is_elimination=line.is_elimination,
                round_name=line.round_name,
                teammates=tuple(n for n in own if n != name),
                opponents=other,
                score=score,
                opponent_score=opponent_score,
            )
            found.append(((played_at, snapshot.created_at, snapshot.key, line.sequence), entry))

    found.sort(key=lambda item: item[0], reverse=True)
    return [entry for _, entry in found]


def tournament_list(
    snapshots: Iterable[TournamentSnapshot],
    player: str,
    aliases: Optional[AliasResolver] = None,
) -> list[TournamentResult]:
    """
    Every tournament the player took part in, newest first.

    Args:
        snapshots: Tournaments to search
        player: Player name; resolved through the alias snapshot
        aliases: Alias snapshot

    Returns:
        One TournamentResult per tournament with qualifying, knockout and
        final place plus the season points earned there
    """
    aliases = aliases or AliasResolver()
    name = aliases.resolve(player)
    results = []

    for snapshot in snapshots:
        for placement in compute_tournament_placements(snapshot, aliases):
            if placement.name != name or placement.matches <= 0:
                continue
            results.append(TournamentResult(
                key=snapshot.key,
                name=snapshot.name,
                date=snapshot.created_at,
                qualifying_place=placement.qualifying_place,
                elimination_place=placement.elimination_place,
                final_place=placement.final_place,
                season_points=season_points(placement.final_place),
            ))
            break

    results.sort(key=lambda r: (r.date, r.key), reverse=True)
    return results


def best_ranking(
    snapshots: Iterable[TournamentSnapshot],
    player: str,
    aliases: Optional[AliasResolver] = None,
    limit: int = BEST_RANKING_LIMIT,
) -> list[BestPlace]:
    """
    The player's best distinct knockout places, best first.

    Only knockout places count; a qualifying place is never a tournament
    result on its own.
    """
    by_place: dict[int, list[TournamentResult]] = defaultdict(list)
    for result in tournament_list(snapshots, player, aliases):
        if result.elimination_place:
            by_place[result.elimination_place].append(result)

    return [BestPlace(place=place, tournaments=by_place[place]) for place in sorted(by_place)[:limit]]
