"""
Tournament export payloads: canonical schema, format normalization and
the season-final merge.
"""

from kickerrank.payloads.merge import (
    are_complementary,
    is_season_final_name,
    merge_season_final,
)
from kickerrank.payloads.normalizer import (
    detect_format,
    detect_tournament_type,
    normalize_payload,
)
from kickerrank.payloads.schema import (
    MatchPayload,
    StandingPayload,
    TournamentPayload,
    parse_payload,
    parse_timestamp,
)

__all__ = [
    "normalize_payload",
    "detect_format",
    "detect_tournament_type",
    "parse_payload",
    "parse_timestamp",
    "TournamentPayload",
    "MatchPayload",
    "StandingPayload",
    "is_season_final_name",
    "are_complementary",
    "merge_season_final",
]
