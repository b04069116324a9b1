"""
Season-final merge.

The season final is sometimes exported twice: once after the qualifying
(qualifying matches only) and once after the knockout (elimination matches
only). Both exports describe one real event, so they are merged into one
payload before persistence.

All functions here work on normalized (canonical) payload dicts and are
pure; finding merge candidates in the database is the sync engine's job.
"""

import copy
from datetime import datetime
from typing import Iterable, Optional

from kickerrank.config import settings
from kickerrank.db.models import DEFAULT_SCHEMA_VERSION
from kickerrank.payloads.schema import parse_timestamp

PREFER_EXISTING = "existing"
PREFER_INCOMING = "incoming"


def is_season_final_name(name: Optional[str], patterns: Optional[Iterable[str]] = None) -> bool:
    """Case-insensitive substring match of the name against the season-final patterns."""
    if not name:
        return False
    lowered = name.lower()
    if patterns is None:
        patterns = settings.season_final_patterns
    return any(pattern.lower() in lowered for pattern in patterns if pattern)


# =============================================================================
# Payload classification
# =============================================================================

def _has_matches(container: Optional[dict], key: str) -> bool:
    if not isinstance(container, dict):
        return False
    return any(
        isinstance(item, dict) and bool(item.get("matches"))
        for item in container.get(key) or []
    )


def has_qualifying_matches(data: Optional[dict]) -> bool:
    """True if the first qualifying section has at least one round with matches."""
    sections = (data or {}).get("qualifying") or []
    return bool(sections) and _has_matches(sections[0], "rounds")


def has_elimination_matches(data: Optional[dict]) -> bool:
    """True if any elimination section has a level with matches."""
    return any(_has_matches(section, "levels") for section in (data or {}).get("eliminations") or [])


def is_qualifying_only(data: Optional[dict]) -> bool:
    return has_qualifying_matches(data) and not has_elimination_matches(data)


def is_elimination_only(data: Optional[dict]) -> bool:
    return has_elimination_matches(data) and not has_qualifying_matches(data)


def are_complementary(first: Optional[dict], second: Optional[dict]) -> bool:
    """One payload is qualifying-only and the other elimination-only."""
    return (
        (is_qualifying_only(first) and is_elimination_only(second))
        or (is_elimination_only(first) and is_qualifying_only(second))
    )


# =============================================================================
# Merge
# =============================================================================

def _pick_section(existing: dict, incoming: dict, key: str, has_matches, prefer: str):
    """
    Choose which payload supplies one section.

    The side with match data wins; if both have matches the preferred side
    wins; if neither has matches, whichever side has the section at all.
    """
    existing_has = has_matches(existing)
    incoming_has = has_matches(incoming)
    if existing_has and incoming_has:
        source = incoming if prefer == PREFER_INCOMING else existing
    elif existing_has:
        source = existing
    elif incoming_has:
        source = incoming
    elif existing.get(key):
        source = existing
    else:
        source = incoming
    return copy.deepcopy(source.get(key) or [])


def _newer_timestamp(first, second):
    first_at = _safe_timestamp(first)
    second_at = _safe_timestamp(second)
    if second_at is not None and (first_at is None or second_at > first_at):
        return second
    return first if first_at is not None else second


def _safe_timestamp(value) -> Optional[datetime]:
    try:
        return parse_timestamp(value)
    except ValueError:
        return None


def merge_season_final(existing: dict, incoming: dict, prefer: str = PREFER_EXISTING) -> dict:
    """
    Merge two halves of one season final into a single payload.

    Args:
        existing: Payload already stored on the target tournament row
        incoming: Payload being imported
        prefer: Which side wins a section when both carry matches for it.
            A first merge prefers the stored data; re-importing one half of
            an already merged event prefers the incoming half.

    Returns:
        New merged payload; neither input is modified
    """
    merged = copy.deepcopy(existing)
    merged["qualifying"] = _pick_section(
        existing, incoming, "qualifying", has_qualifying_matches, prefer
    )
    merged["eliminations"] = _pick_section(
        existing, incoming, "eliminations", has_elimination_matches, prefer
    )

    updated_at = _newer_timestamp(existing.get("updatedAt"), incoming.get("updatedAt"))
    if updated_at is not None:
        merged["updatedAt"] = updated_at

    merged["version"] = incoming.get("version") or existing.get("version") or DEFAULT_SCHEMA_VERSION
    for key in ("name", "mode", "sport"):
        merged[key] = incoming.get(key) or existing.get(key)
    return merged
