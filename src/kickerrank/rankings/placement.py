"""
Combined per-tournament placement.

Qualifying standings give every player a qualifying place and stats. The
knockout standings are layered on top: their names may be composite team
labels ("A / B"), so each member gets the elimination place and the team's
knockout stats added to their own. The final placement ranks everyone who
reached the knockout by knockout place, followed by the qualifying-only
players in qualifying order.
"""

from dataclasses import dataclass
from typing import Optional

from kickerrank.players.aliases import AliasResolver, split_team_name
from kickerrank.rankings.snapshots import StandingLine, TournamentSnapshot


@dataclass
class PlayerPlacement:
    """One player's combined result in one tournament."""
    name: str
    qualifying_place: Optional[int] = None
    elimination_place: Optional[int] = None
    final_place: int = 0
    matches: int = 0
    points: float = 0
    won: int = 0
    lost: int = 0
    goals: int = 0
    goals_in: int = 0

    @property
    def reached_knockout(self) -> bool:
        return self.elimination_place is not None

    @property
    def goal_diff(self) -> int:
        return self.goals - self.goals_in

    @property
    def win_rate(self) -> float:
        """Share of matches won, as a percentage."""
        return round(self.won / self.matches * 100, 1) if self.matches else 0.0

    @property
    def points_per_game(self) -> float:
        return round(self.points / self.matches, 2) if self.matches else 0.0

    def add_stats(self, line: StandingLine) -> None:
        self.matches += line.matches
        self.points += line.points
        self.won += line.won
        self.lost += line.lost
        self.goals += line.goals
        self.goals_in += line.goals_in


def _counts(line: StandingLine) -> bool:
    return not (line.deactivated or line.removed)


def compute_tournament_placements(
    snapshot: TournamentSnapshot,
    aliases: Optional[AliasResolver] = None,
) -> list[PlayerPlacement]:
    """
    Combine qualifying and knockout standings into one placement per player.

    Args:
        snapshot: The tournament
        aliases: Alias snapshot; names are canonicalized before keying

    Returns:
        Placements sorted by final place (ties broken by name)
    """
    aliases = aliases or AliasResolver()
    players: dict[str, PlayerPlacement] = {}

    for line in snapshot.qualifying:
        if not _counts(line):
            continue
        name = aliases.resolve(line.name)
        if not name:
            continue
        placement = players.get(name)
        if placement is None:
            placement = players[name] = PlayerPlacement(name=name, qualifying_place=line.place)
        placement.add_stats(line)

    credited: set[tuple[str, int]] = set()
    for team_index, line in enumerate(snapshot.elimination):
        if not _counts(line):
            continue
        for member in split_team_name(line.name):
            name = aliases.resolve(member)
            # A team's stats count once per member, even if a label repeats a name
            if not name or (name, team_index) in credited:
                continue
            credited.add((name, team_index))
            placement = players.setdefault(name, PlayerPlacement(name=name))
            if placement.elimination_place is None or line.place < placement.elimination_place:
                placement.elimination_place = line.place
            placement.add_stats(line)

    knockout = sorted(
        (p for p in players.values() if p.reached_knockout),
        key=lambda p: (p.elimination_place, p.name),
    )
    qualifying_only = sorted(
        (p for p in players.values() if not p.reached_knockout),
        key=lambda p: (p.qualifying_place if p.qualifying_place is not None else 0, p.name),
    )

    for placement in knockout:
        placement.final_place = placement.elimination_place
    for offset, placement in enumerate(qualifying_only, start=1):
        placement.final_place = len(knockout) + offset

    return knockout + qualifying_only
