"""
Export format normalization.

The export tool has shipped two payload shapes over time:

- canonical: top-level "qualifying" / "eliminations" arrays holding rounds,
  elimination levels and standings
- disciplines: "disciplines" -> "stages" -> "groups" -> "rounds" -> "matches",
  with players referenced by entry id against a participants table

normalize_payload() turns either into the canonical shape so that nothing
downstream ever branches on which export version produced the data. Inputs
that match neither shape are handed back untouched; this function never
raises on an unrecognized payload.

Usage:
    from kickerrank.payloads.normalizer import normalize_payload

    canonical = normalize_payload(raw_json)
"""

import copy
import logging
from datetime import datetime, timezone
from numbers import Number
from typing import Any, Optional

from kickerrank.payloads.schema import to_epoch_ms

logger = logging.getLogger(__name__)

FORMAT_CANONICAL = "canonical"
FORMAT_DISCIPLINES = "disciplines"
FORMAT_UNKNOWN = "unknown"

# Display names for elimination levels exported without one, by level index
LEVEL_NAME_FALLBACKS = ("Quarterfinal", "Semifinal", "Final", "Third Place")

ELIMINATION_STAGE_KEYWORDS = ("elimination", "final")
ELIMINATION_GROUP_KEYWORDS = ("final", "semifinal", "quarterfinal")


def detect_format(data: Any) -> str:
    """Classify a payload as canonical, disciplines, or unknown."""
    if not isinstance(data, dict):
        return FORMAT_UNKNOWN
    if data.get("qualifying") is not None or data.get("eliminations") is not None:
        return FORMAT_CANONICAL
    disciplines = data.get("disciplines")
    if isinstance(disciplines, list) and disciplines:
        return FORMAT_DISCIPLINES
    return FORMAT_UNKNOWN


def normalize_payload(data: Any) -> Any:
    """
    Return the canonical form of an export payload.

    The input is never mutated. Canonical payloads are deep-copied and get
    missing elimination level names filled in; discipline payloads are
    converted; anything else comes back as-is.
    """
    fmt = detect_format(data)
    if fmt == FORMAT_CANONICAL:
        normalized = copy.deepcopy(data)
        backfill_level_names(normalized)
        return normalized
    if fmt == FORMAT_DISCIPLINES:
        return convert_disciplines(data)
    return data


def fallback_level_name(index: int) -> str:
    if index < len(LEVEL_NAME_FALLBACKS):
        return LEVEL_NAME_FALLBACKS[index]
    return f"Round {index + 1}"


def backfill_level_names(data: dict) -> None:
    """Give every unnamed elimination level a display name, in place."""
    for elimination in data.get("eliminations") or []:
        if not isinstance(elimination, dict):
            continue
        levels = elimination.get("levels")
        if not isinstance(levels, list):
            continue
        for index, level in enumerate(levels):
            if isinstance(level, dict) and not level.get("name"):
                level["name"] = level.get("groupName") or fallback_level_name(index)


# =============================================================================
# Disciplines -> canonical conversion
# =============================================================================

def _participant_names(participant: Optional[dict]) -> list[str]:
    """Teams expose every member name, single players only their first name."""
    if not participant:
        return []
    names = participant.get("name")
    if isinstance(names, str):
        names = [names]
    if not isinstance(names, list):
        return []
    names = [n for n in names if n]
    if participant.get("type") == "team":
        return names
    if participant.get("type") == "player":
        return names[:1]
    return []


def _is_elimination_group(stage: dict, group: dict) -> bool:
    stage_name = (stage.get("name") or "").lower()
    group_name = (group.get("name") or "").lower()
    if any(word in stage_name for word in ELIMINATION_STAGE_KEYWORDS):
        return True
    return any(word in group_name for word in ELIMINATION_GROUP_KEYWORDS)


def _numeric_pair(points: Any) -> bool:
    if not isinstance(points, list) or len(points) != 2:
        return False
    return all(isinstance(p, Number) and not isinstance(p, bool) for p in points)


def _side_entry_ids(match: dict) -> tuple[list, list]:
    """Entry ids per side: 'entries' holds two sides, 'entryIds' is split in half."""
    entries = match.get("entries")
    if isinstance(entries, list) and len(entries) >= 2:
        first, second = entries[0], entries[1]
        return (
            first if isinstance(first, list) else [first],
            second if isinstance(second, list) else [second],
        )
    entry_ids = match.get("entryIds")
    if isinstance(entry_ids, list):
        middle = len(entry_ids) // 2
        return entry_ids[:middle], entry_ids[middle:]
    return [], []


def _epoch_ms(value: Any) -> Optional[int]:
    try:
        return to_epoch_ms(value)
    except ValueError:
        logger.debug("Ignoring unparseable match time %r", value)
        return None


def _convert_match(match: dict, round_: dict, group: dict, participants: dict) -> Optional[dict]:
    if not isinstance(match, dict):
        return None
    if match.get("state") != "played" or not _numeric_pair(match.get("points")):
        return None

    team1_ids, team2_ids = _side_entry_ids(match)
    team1 = [name for eid in team1_ids for name in _participant_names(participants.get(eid))]
    team2 = [name for eid in team2_ids for name in _participant_names(participants.get(eid))]
    if not team1 or not team2:
        return None

    return {
        "_id": match.get("_id"),
        "valid": True,
        "skipped": False,
        "timeStart": _epoch_ms(match.get("startTime")),
        "timeEnd": _epoch_ms(match.get("endTime")),
        "result": list(match["points"]),
        "team1": {"players": [{"name": n} for n in team1], "name": " / ".join(team1)},
        "team2": {"players": [{"name": n} for n in team2], "name": " / ".join(team2)},
        "roundId": round_.get("_id"),
        "groupId": group.get("_id"),
    }


def _convert_standing(standing: dict, participants: dict) -> Optional[dict]:
    participant = participants.get(standing.get("entryId"))
    names = _participant_names(participant)
    if not names:
        return None
    return {
        "_id": standing.get("_id") or standing.get("entryId"),
        # Team names are joined so the ranking code can split them again
        "name": " / ".join(names),
        "deactivated": bool(standing.get("deactivated")),
        "removed": bool(standing.get("removed")),
        "stats": {
            "place": standing.get("rank") or standing.get("result") or 0,
            "matches": standing.get("matches") or 0,
            "points": standing.get("points") or 0,
            "won": standing.get("matchesWon") or 0,
            "lost": standing.get("matchesLost") or 0,
            "goals": standing.get("goals") or 0,
            "goals_in": standing.get("goalsIn") or 0,
            "goal_diff": standing.get("goalsDiff") or 0,
            "points_per_game": standing.get("pointsPerMatch") or 0,
            "corrected_points_per_game": standing.get("correctedPointsPerMatch") or 0,
            "bh1": standing.get("bh1") or 0,
            "bh2": standing.get("bh2") or 0,
        },
        "external": bool(participant.get("guest")),
    }


def convert_disciplines(data: dict) -> dict:
    """
    Convert a disciplines-shaped export into the canonical shape.

    All elimination groups land in a single elimination section and all
    qualifying rounds in a single qualifying section, in export order.
    The original keys stay on the result next to the converted ones.
    """
    source = copy.deepcopy(data)
    participant_list = source.get("participants") or source.get("entries") or []
    participants = {
        p.get("_id"): p for p in participant_list if isinstance(p, dict)
    }

    converted = dict(source)
    converted["createdAt"] = (
        source.get("createdAt")
        or source.get("startTime")
        or datetime.now(timezone.utc).isoformat()
    )
    qualifying: list[dict] = []
    eliminations: list[dict] = []
    converted["qualifying"] = qualifying
    converted["eliminations"] = eliminations

    dropped = 0
    for discipline in source.get("disciplines") or []:
        for stage in (discipline or {}).get("stages") or []:
            for group in (stage or {}).get("groups") or []:
                is_elimination = _is_elimination_group(stage, group)

                for round_ in group.get("rounds") or []:
                    raw_matches = round_.get("matches") or []
                    matches = []
                    for raw in raw_matches:
                        converted_match = _convert_match(raw, round_, group, participants)
                        if converted_match is None:
                            dropped += 1
                        else:
                            matches.append(converted_match)
                    if not matches:
                        continue

                    if is_elimination:
                        if not eliminations:
                            eliminations.append({
                                "levels": [],
                                "name": stage.get("name") or group.get("name") or "Knockout Stage",
                            })
                        elimination = eliminations[0]
                        elimination.setdefault("levels", [])
                        if not elimination.get("name") and (stage.get("name") or group.get("name")):
                            elimination["name"] = stage.get("name") or group.get("name")
                        elimination["levels"].append({
                            "matches": matches,
                            "name": round_.get("name") or group.get("name"),
                            "groupName": group.get("name"),
                        })
                    else:
                        if not qualifying:
                            qualifying.append({"rounds": []})
                        qualifying[0].setdefault("rounds", []).append({"matches": matches})

                standings = group.get("standings")
                if isinstance(standings, list):
                    target = eliminations if is_elimination else qualifying
                    if not target:
                        target.append({"standings": []})
                    section = target[0]
                    section.setdefault("standings", [])
                    for standing in standings:
                        if not isinstance(standing, dict):
                            continue
                        row = _convert_standing(standing, participants)
                        if row is not None:
                            section["standings"].append(row)

    backfill_level_names(converted)
    if dropped:
        logger.debug("Dropped %d unplayed or incomplete matches during conversion", dropped)
    return converted


def detect_tournament_type(data: Any) -> str:
    """
    Guess 'singles' or 'doubles' from the largest side seen in any match.

    Only used for diagnostics; persisted tournaments are always doubles.
    """
    largest = 0
    for match in _iter_canonical_matches(data if isinstance(data, dict) else {}):
        if not isinstance(match, dict):
            continue
        for side in ("team1", "team2"):
            players = (match.get(side) or {}).get("players") or []
            largest = max(largest, len(players))
    return "singles" if largest == 1 else "doubles"


def _iter_canonical_matches(data: dict):
    for section in data.get("qualifying") or []:
        for round_ in (section or {}).get("rounds") or []:
            yield from (round_ or {}).get("matches") or []
    for elimination in data.get("eliminations") or []:
        for level in (elimination or {}).get("levels") or []:
            yield from (level or {}).get("matches") or []
        third = (elimination or {}).get("third") or {}
        yield from third.get("matches") or []
