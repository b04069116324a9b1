"""
Per-player match statistics from the rating history.

All functions take one player's history list (TrueSkillResult.history[name])
and ignore its prior entry. Names are expected to be canonical already;
the pipeline resolves aliases before rating.

A draw counts as neither a win nor a loss, except in top_partners and
opponent_stats where every match that was not won counts as lost.
"""

from dataclasses import dataclass
from typing import TYPE_CHECKING, Iterable

if TYPE_CHECKING:
    from kickerrank.rating.pipeline import RatingSnapshot

TOP_LIMIT = 3
MIN_OPPONENT_MATCHES = 2


@dataclass
class PairRecord:
    """Matches against (or with) one other player."""
    name: str
    matches: int = 0
    wins: int = 0
    losses: int = 0

    @property
    def win_rate(self) -> float:
        return round(self.wins / self.matches * 100, 1) if self.matches else 0.0


def _played(entries: Iterable["RatingSnapshot"]) -> list["RatingSnapshot"]:
    return [entry for entry in entries if entry.context is not None]


def _scores(entry: "RatingSnapshot") -> tuple[int, int]:
    context = entry.context
    if entry.team == 1:
        return context.score1, context.score2
    return context.score2, context.score1


def head_to_head(entries: Iterable["RatingSnapshot"], other: str) -> dict[str, int]:
    """
    Record against `other`, counting only matches where the two were on
    opposite sides.
    """
    total = wins = other_wins = 0
    for entry in _played(entries):
        if other not in entry.opponents:
            continue
        total += 1
        own, opposing = _scores(entry)
        if own > opposing:
            wins += 1
        elif opposing > own:
            other_wins += 1
    return {"total_matches": total, "player_wins": wins, "other_wins": other_wins}


def teammate_stats(entries: Iterable["RatingSnapshot"], other: str) -> dict[str, int]:
    """Record together with `other`."""
    total = wins = losses = 0
    for entry in _played(entries):
        if other not in entry.teammates:
            continue
        total += 1
        own, opposing = _scores(entry)
        if own > opposing:
            wins += 1
        elif opposing > own:
            losses += 1
    return {"total_matches": total, "wins": wins, "losses": losses}


def top_partners(
    entries: Iterable["RatingSnapshot"],
    limit: int = TOP_LIMIT,
) -> list[PairRecord]:
    """Teammates sorted by wins together, then win rate."""
    records: dict[str, PairRecord] = {}
    for entry in _played(entries):
        for partner in entry.teammates:
            record = records.setdefault(partner, PairRecord(name=partner))
            record.matches += 1
            if entry.won:
                record.wins += 1
            else:
                record.losses += 1
    ranked = sorted(records.values(), key=lambda r: (-r.wins, -r.win_rate, r.name))
    return ranked[:limit]


def opponent_stats(
    entries: Iterable["RatingSnapshot"],
    min_matches: int = MIN_OPPONENT_MATCHES,
    limit: int = TOP_LIMIT,
) -> dict[str, list[PairRecord]]:
    """
    Opponents beaten most often and lost to most often.

    Only opponents met at least min_matches times are listed.
    """
    records: dict[str, PairRecord] = {}
    for entry in _played(entries):
        for opponent in entry.opponents:
            record = records.setdefault(opponent, PairRecord(name=opponent))
            record.matches += 1
            if entry.won:
                record.wins += 1
            else:
                record.losses += 1

    frequent = [r for r in records.values() if r.matches >= min_matches]
    won_most = sorted(frequent, key=lambda r: (-r.wins, -r.win_rate, r.name))
    lost_most = sorted(frequent, key=lambda r: (-r.losses, r.win_rate, r.name))
    return {
        "won_most_against": won_most[:limit],
        "lost_most_against": lost_most[:limit],
    }
