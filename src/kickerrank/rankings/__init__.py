"""
Ranking aggregation over tournament snapshots.

Snapshots are built either from export payloads or from persisted rows;
everything downstream works on the snapshot only.
"""

from kickerrank.rankings.head_to_head import (
    head_to_head,
    opponent_stats,
    teammate_stats,
    top_partners,
)
from kickerrank.rankings.placement import PlayerPlacement, compute_tournament_placements
from kickerrank.rankings.player_results import (
    BestPlace,
    PlayerMatch,
    TournamentResult,
    best_ranking,
    match_history,
    tournament_list,
)
from kickerrank.rankings.season import (
    RankedPlayer,
    available_seasons,
    calculate_surely_qualified,
    compute_season_rankings,
    season_points,
    select_season_tournaments,
)
from kickerrank.rankings.snapshots import (
    MatchLine,
    StandingLine,
    TournamentSnapshot,
    load_snapshots,
    snapshot_from_payload,
    snapshot_from_row,
)
from kickerrank.rankings.tiebreak import TieBreak, compute_tiebreakers

__all__ = [
    "TournamentSnapshot",
    "StandingLine",
    "MatchLine",
    "snapshot_from_payload",
    "snapshot_from_row",
    "load_snapshots",
    "PlayerPlacement",
    "compute_tournament_placements",
    "TieBreak",
    "compute_tiebreakers",
    "RankedPlayer",
    "season_points",
    "compute_season_rankings",
    "calculate_surely_qualified",
    "available_seasons",
    "select_season_tournaments",
    "head_to_head",
    "teammate_stats",
    "top_partners",
    "opponent_stats",
    "PlayerMatch",
    "TournamentResult",
    "BestPlace",
    "match_history",
    "tournament_list",
    "best_ranking",
]
