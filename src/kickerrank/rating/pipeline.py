"""
TrueSkill pipeline: replays every match in chronological order.

Ratings are never stored; they are recomputed from the full match history
whenever they are needed. The replay order is fixed so two runs over the
same data give identical ratings:

    (match start or tournament date, tournament date, tournament id, match order)

Every player's history starts with the prior (index -1, stamped with the
time of their first match) followed by one entry per match they played.
A match whose update is numerically undefined (a draw with a zero draw
margin, for instance) leaves every rating unchanged; it still produces a
history entry, flagged rated=False, and a RatingComputationWarning.
"""

import logging
from dataclasses import dataclass, field
from datetime import datetime
from typing import Iterable, Optional

from kickerrank.config import Settings
from kickerrank.errors import RatingComputationWarning
from kickerrank.players.aliases import AliasResolver
from kickerrank.rankings.snapshots import TournamentSnapshot
from kickerrank.rating.trueskill import Rating, TrueSkill

logger = logging.getLogger(__name__)

PRIOR_INDEX = -1


@dataclass(frozen=True)
class RatedMatch:
    """One match ready for rating, names already canonical."""
    key: str
    tournament_key: str
    tournament_name: str
    team1: tuple[str, ...]
    team2: tuple[str, ...]
    score1: int
    score2: int
    timestamp: datetime
    is_elimination: bool = False
    round_name: Optional[str] = None

    @property
    def ranks(self) -> tuple[int, int]:
        if self.score1 == self.score2:
            return (1, 1)
        return (1, 2) if self.score1 > self.score2 else (2, 1)

    @property
    def players(self) -> tuple[str, ...]:
        return self.team1 + self.team2


@dataclass(frozen=True)
class MatchContext:
    """What a history entry refers to."""
    match_key: str
    tournament_key: str
    tournament_name: str
    team1: tuple[str, ...]
    team2: tuple[str, ...]
    score1: int
    score2: int
    is_elimination: bool = False
    round_name: Optional[str] = None


@dataclass(frozen=True)
class RatingSnapshot:
    """A player's rating right after one match (or the prior)."""
    player: str
    match_index: int
    timestamp: datetime
    mu: float
    sigma: float
    context: Optional[MatchContext] = None
    team: Optional[int] = None
    won: Optional[bool] = None
    rated: bool = True

    @property
    def skill(self) -> float:
        return Rating(self.mu, self.sigma).conservative

    @property
    def is_prior(self) -> bool:
        return self.context is None

    @property
    def teammates(self) -> tuple[str, ...]:
        if self.context is None:
            return ()
        own = self.context.team1 if self.team == 1 else self.context.team2
        return tuple(name for name in own if name != self.player)

    @property
    def opponents(self) -> tuple[str, ...]:
        if self.context is None:
            return ()
        return self.context.team2 if self.team == 1 else self.context.team1


@dataclass
class TrueSkillResult:
    ratings: dict[str, Rating] = field(default_factory=dict)
    history: dict[str, list[RatingSnapshot]] = field(default_factory=dict)
    warnings: list[RatingComputationWarning] = field(default_factory=list)
    matches_rated: int = 0
    matches_skipped: int = 0

    def skill_map(self) -> dict[str, float]:
        """Conservative skill per player, as used by the season ranking."""
        return {name: rating.conservative for name, rating in self.ratings.items()}

    def to_dict(self) -> dict[str, dict[str, float]]:
        return {name: rating.to_dict() for name, rating in self.ratings.items()}

    def leaderboard(self) -> list[tuple[str, Rating]]:
        return sorted(self.ratings.items(), key=lambda item: (-item[1].conservative, item[0]))


# =============================================================================
# Match collection
# =============================================================================

def _canonical_side(names: Iterable[str], aliases: AliasResolver) -> tuple[str, ...]:
    side: list[str] = []
    for name in names:
        resolved = aliases.resolve(name)
        if resolved and resolved not in side:
            side.append(resolved)
    return tuple(side)


def collect_rated_matches(
    snapshots: Iterable[TournamentSnapshot],
    aliases: Optional[AliasResolver] = None,
) -> list[RatedMatch]:
    """
    Flatten tournaments into the chronological match list.

    Matches with an empty side after alias resolution are dropped, as are
    matches where one player ends up on both sides.
    """
    aliases = aliases or AliasResolver()
    keyed: list[tuple[tuple, RatedMatch]] = []

    for snapshot in snapshots:
        for match in snapshot.matches:
            team1 = _canonical_side(match.team1, aliases)
            team2 = _canonical_side(match.team2, aliases)
            if not team1 or not team2:
                continue
            if set(team1) & set(team2):
                logger.debug("Skipping match %s: a player is listed on both sides", match.key)
                continue
            timestamp = match.time_start or snapshot.created_at
            rated = RatedMatch(
                key=match.key,
                tournament_key=snapshot.key,
                tournament_name=snapshot.name,
                team1=team1,
                team2=team2,
                score1=match.score1,
                score2=match.score2,
                timestamp=timestamp,
                is_elimination=match.is_elimination,
                round_name=match.round_name,
            )
            sort_key = (timestamp, snapshot.created_at, snapshot.key, match.sequence)
            keyed.append((sort_key, rated))

    keyed.sort(key=lambda item: item[0])
    return [rated for _, rated in keyed]


# =============================================================================
# Pipeline
# =============================================================================

class TrueSkillPipeline:
    """
    Replays matches through a TrueSkill environment.

    Usage:
        pipeline = TrueSkillPipeline.from_settings()
        result = pipeline.run(collect_rated_matches(snapshots, aliases))
        result.ratings["Alice"].conservative
    """

    def __init__(self, env: Optional[TrueSkill] = None):
        self.env = env or TrueSkill.from_settings()

    @classmethod
    def from_settings(cls, config: Optional[Settings] = None) -> "TrueSkillPipeline":
        return cls(TrueSkill.from_settings(config))

    def run(self, matches: Iterable[RatedMatch]) -> TrueSkillResult:
        result = TrueSkillResult()
        ratings = result.ratings
        history = result.history

        for index, match in enumerate(matches):
            for name in match.players:
                if name not in ratings:
                    prior = self.env.create_rating()
                    ratings[name] = prior
                    history[name] = [RatingSnapshot(
                        player=name,
                        match_index=PRIOR_INDEX,
                        timestamp=match.timestamp,
                        mu=prior.mu,
                        sigma=prior.sigma,
                    )]

            before1 = [ratings[name] for name in match.team1]
            before2 = [ratings[name] for name in match.team2]
            rated = True
            try:
                after1, after2 = self.env.rate_two_teams(before1, before2, ranks=match.ranks)
            except (FloatingPointError, ZeroDivisionError, ValueError, OverflowError) as e:
                warning = RatingComputationWarning(
                    f"Could not rate match {match.key} "
                    f"({match.score1}:{match.score2}): {e}",
                    match_key=match.key,
                )
                logger.warning(str(warning))
                result.warnings.append(warning)
                result.matches_skipped += 1
                after1, after2 = before1, before2
                rated = False
            else:
                result.matches_rated += 1

            context = MatchContext(
                match_key=match.key,
                tournament_key=match.tournament_key,
                tournament_name=match.tournament_name,
                team1=match.team1,
                team2=match.team2,
                score1=match.score1,
                score2=match.score2,
                is_elimination=match.is_elimination,
                round_name=match.round_name,
            )
            for team_number, names, new_ratings in ((1, match.team1, after1), (2, match.team2, after2)):
                own, other = (match.score1, match.score2) if team_number == 1 else (match.score2, match.score1)
                for name, rating in zip(names, new_ratings):
                    ratings[name] = rating
                    history[name].append(RatingSnapshot(
                        player=name,
                        match_index=index,
                        timestamp=match.timestamp,
                        mu=rating.mu,
                        sigma=rating.sigma,
                        context=context,
                        team=team_number,
                        won=own > other,
                        rated=rated,
                    ))

        logger.info(
            "TrueSkill: rated %d matches for %d players (%d skipped)",
            result.matches_rated, len(ratings), result.matches_skipped,
        )
        return result


def compute_trueskill(
    snapshots: Iterable[TournamentSnapshot],
    aliases: Optional[AliasResolver] = None,
    config: Optional[Settings] = None,
) -> TrueSkillResult:
    """Ratings over a set of tournaments."""
    matches = collect_rated_matches(snapshots, aliases)
    return TrueSkillPipeline.from_settings(config).run(matches)
