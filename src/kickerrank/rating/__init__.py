"""
TrueSkill rating engine.

Ratings are derived data: they are recomputed from the full match history
on demand and never persisted.
"""

from kickerrank.rating.constants import TRUESKILL_DEFAULTS
from kickerrank.rating.pipeline import (
    RatedMatch,
    RatingSnapshot,
    TrueSkillPipeline,
    TrueSkillResult,
    collect_rated_matches,
    compute_trueskill,
)
from kickerrank.rating.trueskill import Rating, TrueSkill

__all__ = [
    "TRUESKILL_DEFAULTS",
    "Rating",
    "TrueSkill",
    "RatedMatch",
    "RatingSnapshot",
    "TrueSkillPipeline",
    "TrueSkillResult",
    "collect_rated_matches",
    "compute_trueskill",
]
