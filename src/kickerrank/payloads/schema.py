"""
Canonical tournament payload schema.

After normalization every export has the "qualifying / eliminations" shape:

    {
        "_id": "...", "name": "...", "createdAt": ..., "updatedAt": ...,
        "qualifying": [{"rounds": [{"matches": [...]}], "standings": [...]}],
        "eliminations": [{"levels": [{"name": "Final", "matches": [...]}],
                          "third": {"matches": [...]},
                          "standings": [...]}]
    }

These models validate that shape and give the sync engine typed access to
it. Unknown keys are kept so nothing from the export is silently lost.
"""

from datetime import datetime, timezone
from numbers import Number
from typing import Any, Optional, Union

from pydantic import (
    AliasChoices,
    BaseModel,
    ConfigDict,
    Field,
    PrivateAttr,
    field_validator,
)
from pydantic import ValidationError as PydanticValidationError

from kickerrank.errors import ValidationError

# Epoch values above this are treated as milliseconds
_EPOCH_MS_THRESHOLD = 1e11


def parse_timestamp(value: Any) -> Optional[datetime]:
    """
    Parse an export timestamp into a naive UTC datetime.

    Accepts ISO 8601 strings (with or without offset), epoch seconds,
    epoch milliseconds and datetime objects. Blank values give None.

    Raises:
        ValueError: if the value cannot be interpreted as a timestamp
    """
    if value is None or value == "":
        return None
    if isinstance(value, bool):
        raise ValueError(f"Invalid timestamp: {value!r}")
    if isinstance(value, datetime):
        parsed = value
    elif isinstance(value, Number):
        seconds = float(value)
        if abs(seconds) > _EPOCH_MS_THRESHOLD:
            seconds /= 1000.0
        return datetime.fromtimestamp(seconds, tz=timezone.utc).replace(tzinfo=None)
    elif isinstance(value, str):
        text = value.strip()
        try:
            return parse_timestamp(float(text))
        except ValueError:
            pass
        parsed = datetime.fromisoformat(text.replace("Z", "+00:00"))
    else:
        raise ValueError(f"Invalid timestamp: {value!r}")

    if parsed.tzinfo is not None:
        parsed = parsed.astimezone(timezone.utc).replace(tzinfo=None)
    return parsed


def to_epoch_ms(value: Any) -> Optional[int]:
    """Timestamp in epoch milliseconds, the way exports encode match times."""
    parsed = parse_timestamp(value)
    if parsed is None:
        return None
    return int(round(parsed.replace(tzinfo=timezone.utc).timestamp() * 1000))


def _coerce_id(value: Any) -> Optional[str]:
    if value is None or value == "":
        return None
    return str(value)


def _none_to_list(value: Any) -> Any:
    return [] if value is None else value


class _ExportModel(BaseModel):
    """Base for export models: keep unknown keys, allow field names and aliases."""
    model_config = ConfigDict(extra="allow", populate_by_name=True)

    # Exports write null where a list is empty
    @field_validator(
        "clubMemberships", "players", "rounds", "levels",
        "standings", "qualifying", "eliminations",
        mode="before",
        check_fields=False,
    )
    @classmethod
    def _null_lists(cls, v: Any) -> Any:
        return _none_to_list(v)

    @field_validator("id", "roundId", "groupId", mode="before", check_fields=False)
    @classmethod
    def _string_ids(cls, v: Any) -> Optional[str]:
        return _coerce_id(v)


# =============================================================================
# Players and teams
# =============================================================================

class ExternalInfo(_ExportModel):
    """Federation data attached to a player by the export tool."""
    firstName: Optional[str] = None
    lastName: Optional[str] = None
    nationalId: Optional[str] = None
    internationalId: Optional[str] = None
    country: Optional[str] = None
    nationalLicence: Optional[str] = None
    clubMemberships: list[dict] = Field(default_factory=list)

    @field_validator(
        "nationalId", "internationalId", "nationalLicence", mode="before"
    )
    @classmethod
    def _stringify(cls, v: Any) -> Optional[str]:
        return _coerce_id(v)


class PlayerRef(_ExportModel):
    id: Optional[str] = Field(default=None, alias="_id")
    name: Optional[str] = None
    guest: bool = False
    external: Optional[Union[ExternalInfo, bool]] = None


class TeamPayload(_ExportModel):
    name: Optional[str] = None
    players: list[PlayerRef] = Field(default_factory=list)

    @field_validator("players", mode="before")
    @classmethod
    def _player_objects(cls, v: Any) -> Any:
        if not isinstance(v, list):
            return v
        return [p for p in v if isinstance(p, (dict, PlayerRef))]

    @field_validator("name", mode="before")
    @classmethod
    def _name(cls, v: Any) -> Optional[str]:
        return v if isinstance(v, str) else None

    def player_names(self) -> list[str]:
        return [p.name.strip() for p in self.players if p.name and p.name.strip()]


# =============================================================================
# Matches
# =============================================================================

class MatchPayload(_ExportModel):
    """
    One exported match.

    Validation is lenient: a malformed result, time or team never rejects
    the tournament. Such a match parses with the bad field unset (or kept
    as-is for result) and is_complete() then excludes it.
    """
    id: Optional[str] = Field(default=None, alias="_id")
    valid: bool = False
    skipped: bool = False
    result: Any = None
    timeStart: Optional[datetime] = None
    timeEnd: Optional[datetime] = None
    team1: Optional[TeamPayload] = None
    team2: Optional[TeamPayload] = None
    roundId: Optional[str] = None
    groupId: Optional[str] = None

    @field_validator("valid", "skipped", mode="before")
    @classmethod
    def _flag(cls, v: Any) -> bool:
        return bool(v)

    @field_validator("timeStart", "timeEnd", mode="before")
    @classmethod
    def _timestamps(cls, v: Any) -> Optional[datetime]:
        try:
            return parse_timestamp(v)
        except ValueError:
            return None

    # Placeholder teams ("TBD", null, ids) carry no players
    @field_validator("team1", "team2", mode="before")
    @classmethod
    def _team_objects(cls, v: Any) -> Any:
        return v if isinstance(v, (dict, TeamPayload)) else None

    def scores(self) -> Optional[tuple[int, int]]:
        """The two final scores, or None if the result is not a numeric pair."""
        if not isinstance(self.result, list) or len(self.result) != 2:
            return None
        first, second = self.result
        for value in (first, second):
            if isinstance(value, bool) or not isinstance(value, Number):
                return None
        return int(first), int(second)

    def is_complete(self) -> bool:
        """
        Whether this match may be persisted.

        A match counts only if it is valid, not skipped, carries a numeric
        result pair and both sides name at least one player. Byes and
        placeholder matches fail this check.
        """
        if not self.id or not self.valid or self.skipped:
            return False
        if self.scores() is None:
            return False
        if self.team1 is None or self.team2 is None:
            return False
        return bool(self.team1.player_names()) and bool(self.team2.player_names())


class RoundPayload(_ExportModel):
    name: Optional[str] = None
    matches: list[MatchPayload] = Field(default_factory=list)

    @field_validator("matches", mode="before")
    @classmethod
    def _null_matches(cls, v: Any) -> Any:
        return _none_to_list(v)


class LevelPayload(RoundPayload):
    groupName: Optional[str] = None


class ThirdPlacePayload(_ExportModel):
    matches: list[MatchPayload] = Field(default_factory=list)

    @field_validator("matches", mode="before")
    @classmethod
    def _null_matches(cls, v: Any) -> Any:
        return _none_to_list(v)


# =============================================================================
# Standings
# =============================================================================

class StandingStats(_ExportModel):
    """
    Numeric standing columns.

    Older exports use short names (won, goals, goals_in); newer ones the
    long names (matchesWon, ballsWon, ballsLost). Both are accepted.
    Missing or null values count as zero.
    """
    place: int = 0
    matches: int = 0
    points: float = 0
    matchesWon: int = Field(default=0, validation_alias=AliasChoices("matchesWon", "won"))
    matchesLost: int = Field(default=0, validation_alias=AliasChoices("matchesLost", "lost"))
    matchesDrawn: int = Field(
        default=0, validation_alias=AliasChoices("matchesDrawn", "drawn", "draws")
    )
    setsWon: int = 0
    setsLost: int = 0
    ballsWon: int = Field(default=0, validation_alias=AliasChoices("ballsWon", "goals"))
    ballsLost: int = Field(default=0, validation_alias=AliasChoices("ballsLost", "goals_in"))
    goalDiff: float = Field(default=0, validation_alias=AliasChoices("goalDiff", "goal_diff"))
    pointsPerGame: float = Field(
        default=0, validation_alias=AliasChoices("pointsPerGame", "points_per_game")
    )
    bh1: float = 0
    bh2: float = 0

    @field_validator("*", mode="before")
    @classmethod
    def _none_is_zero(cls, v: Any) -> Any:
        if v is None or v == "":
            return 0
        if isinstance(v, float) and v.is_integer():
            return int(v)
        return v


class StandingPayload(_ExportModel):
    id: Optional[str] = Field(default=None, alias="_id")
    name: Optional[str] = None
    deactivated: bool = False
    removed: bool = False
    guest: bool = False
    external: Optional[Union[ExternalInfo, bool]] = None
    stats: StandingStats = Field(default_factory=StandingStats)

    @field_validator("stats", mode="before")
    @classmethod
    def _stats(cls, v: Any) -> Any:
        return {} if v is None else v

    @field_validator("deactivated", "removed", "guest", mode="before")
    @classmethod
    def _flag(cls, v: Any) -> bool:
        return bool(v)


# =============================================================================
# Sections and tournament
# =============================================================================

class QualifyingSection(_ExportModel):
    rounds: list[RoundPayload] = Field(default_factory=list)
    standings: list[StandingPayload] = Field(default_factory=list)


class EliminationSection(_ExportModel):
    name: Optional[str] = None
    levels: list[LevelPayload] = Field(default_factory=list)
    third: Optional[ThirdPlacePayload] = None
    standings: list[StandingPayload] = Field(default_factory=list)


class TournamentPayload(_ExportModel):
    id: str = Field(alias="_id")
    name: str
    createdAt: Optional[datetime] = None
    updatedAt: Optional[datetime] = None
    mode: Optional[str] = None
    sport: Optional[str] = None
    version: Optional[int] = None
    qualifying: list[QualifyingSection] = Field(default_factory=list)
    eliminations: list[EliminationSection] = Field(default_factory=list)

    _received_at: datetime = PrivateAttr(
        default_factory=lambda: datetime.now(timezone.utc).replace(tzinfo=None)
    )

    @field_validator("id", mode="before")
    @classmethod
    def _id_required(cls, v: Any) -> str:
        coerced = _coerce_id(v)
        if coerced is None or not coerced.strip():
            raise ValueError("tournament external id is required")
        return coerced.strip()

    @field_validator("name")
    @classmethod
    def _name_required(cls, v: str) -> str:
        if not v or not v.strip():
            raise ValueError("tournament name is required")
        return v.strip()

    @field_validator("createdAt", "updatedAt", mode="before")
    @classmethod
    def _timestamps(cls, v: Any) -> Optional[datetime]:
        return parse_timestamp(v)

    @field_validator("version", mode="before")
    @classmethod
    def _version(cls, v: Any) -> Optional[int]:
        return v or None

    @property
    def created_at(self) -> datetime:
        """Creation time, falling back to the parse time when the export has none."""
        return self.createdAt or self._received_at

    @property
    def qualifying_section(self) -> Optional[QualifyingSection]:
        return self.qualifying[0] if self.qualifying else None


def parse_payload(data: Any) -> TournamentPayload:
    """
    Validate a normalized payload.

    Raises:
        ValidationError: the payload is not an object, lacks a name or
            external id, or has a field of the wrong type
    """
    if not isinstance(data, dict):
        raise ValidationError("Tournament payload must be a JSON object")
    try:
        return TournamentPayload.model_validate(data)
    except PydanticValidationError as exc:
        problems = exc.errors(include_url=False, include_context=False)
        fields = ", ".join(".".join(str(p) for p in err["loc"]) or "payload" for err in problems)
        raise ValidationError(f"Invalid tournament payload: {fields}", errors=problems) from exc
