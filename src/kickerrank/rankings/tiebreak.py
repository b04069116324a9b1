"""
Qualifying tie-breakers: Buchholz and Sonneborn-Berger.

Computed from the individual qualifying matches, not from the standings'
own bh1/bh2 columns. Knockout matches never count.

For doubles, every player of team 1 has faced every player of team 2.
"""

from collections import defaultdict
from dataclasses import dataclass, field
from typing import Optional

from kickerrank.players.aliases import AliasResolver
from kickerrank.rankings.snapshots import TournamentSnapshot

WIN = 1.0
DRAW = 0.5
LOSS = 0.0


@dataclass
class TieBreak:
    name: str
    buchholz: float = 0.0
    sonneborn_berger: float = 0.0
    # opponent name -> summed results against them (1 win, 0.5 draw, 0 loss)
    opponents: dict[str, float] = field(default_factory=dict)


def _match_result(own: int, other: int) -> float:
    if own > other:
        return WIN
    if own == other:
        return DRAW
    return LOSS


def compute_tiebreakers(
    snapshot: TournamentSnapshot,
    aliases: Optional[AliasResolver] = None,
) -> dict[str, TieBreak]:
    """
    Buchholz and Sonneborn-Berger for every player of the qualifying stage.

    Buchholz is the sum of the final qualifying points of every distinct
    opponent. Sonneborn-Berger weights each opponent's points by the result
    scored against them. Opponents without a qualifying standing count as
    zero points.

    Returns:
        Mapping of canonical player name to TieBreak
    """
    aliases = aliases or AliasResolver()

    qualifying_points: dict[str, float] = {}
    for line in snapshot.qualifying:
        name = aliases.resolve(line.name)
        if name and not line.removed:
            qualifying_points[name] = line.points

    results: dict[str, dict[str, float]] = defaultdict(lambda: defaultdict(float))
    for match in snapshot.qualifying_matches:
        side1 = [aliases.resolve(n) for n in match.team1]
        side2 = [aliases.resolve(n) for n in match.team2]
        result1 = _match_result(match.score1, match.score2)
        result2 = _match_result(match.score2, match.score1)
        for player in side1:
            for opponent in side2:
                results[player][opponent] += result1
        for player in side2:
            for opponent in side1:
                results[player][opponent] += result2

    tiebreaks: dict[str, TieBreak] = {}
    for player, against in results.items():
        buchholz = sum(qualifying_points.get(opponent, 0.0) for opponent in against)
        sonneborn_berger = sum(
            qualifying_points.get(opponent, 0.0) * score for opponent, score in against.items()
        )
        tiebreaks[player] = TieBreak(
            name=player,
            buchholz=buchholz,
            sonneborn_berger=sonneborn_berger,
            opponents=dict(against),
        )
    return tiebreaks
