"""
Unit tests for payload validation and timestamp parsing.
"""

from datetime import datetime, timezone

import pytest

from kickerrank.errors import IngestionError, ValidationError
from kickerrank.payloads.schema import (
    MatchPayload,
    StandingStats,
    parse_payload,
    parse_timestamp,
    to_epoch_ms,
)

from tests.factories import match, tournament


class TestParseTimestamp:

    @pytest.mark.parametrize("value", [
        "2025-03-01T18:00:00Z",
        "2025-03-01T19:00:00+01:00",
        "2025-03-01T18:00:00",
        1740852000,
        1740852000000,
        "1740852000000",
        datetime(2025, 3, 1, 18),
    ])
    def test_formats(self, value):
        assert parse_timestamp(value) == datetime(2025, 3, 1, 18)

    @pytest.mark.parametrize("value", [None, ""])
    def test_blank(self, value):
        assert parse_timestamp(value) is None

    @pytest.mark.parametrize("value", ["next tuesday", True, [2025]])
    def test_invalid(self, value):
        with pytest.raises(ValueError):
            parse_timestamp(value)

    def test_epoch_ms(self):
        assert to_epoch_ms("2025-03-01T18:00:00Z") == 1740852000000
        assert to_epoch_ms(None) is None


class TestParsePayload:

    def test_valid(self):
        parsed = parse_payload(tournament("t1", name="  Weekly  "))
        assert parsed.id == "t1"
        assert parsed.name == "Weekly"
        assert parsed.created_at == datetime(2025, 3, 1, 18)

    def test_numeric_id_is_stringified(self):
        data = tournament("t1")
        data["_id"] = 4711
        assert parse_payload(data).id == "4711"

    @pytest.mark.parametrize("field, value", [
        ("name", None),
        ("name", "   "),
        ("_id", None),
        ("_id", ""),
    ])
    def test_missing_required_fields(self, field, value):
        data = tournament("t1")
        data[field] = value
        with pytest.raises(ValidationError) as exc_info:
            parse_payload(data)
        assert isinstance(exc_info.value, IngestionError)
        assert exc_info.value.errors

    def test_not_an_object(self):
        with pytest.raises(ValidationError):
            parse_payload(["t1"])

    def test_null_lists_are_empty(self):
        data = tournament("t1")
        data["qualifying"] = None
        data["eliminations"] = [{"levels": None, "standings": None}]
        parsed = parse_payload(data)
        assert parsed.qualifying == []
        assert parsed.eliminations[0].levels == []

    def test_missing_created_at_falls_back_to_now(self):
        data = tournament("t1")
        del data["createdAt"]
        before = datetime.now(timezone.utc).replace(tzinfo=None)
        parsed = parse_payload(data)
        first = parsed.created_at
        assert first >= before
        assert parsed.created_at is first
        assert parsed.createdAt is None

    def test_unknown_keys_are_kept(self):
        data = tournament("t1")
        data["customField"] = {"a": 1}
        assert parse_payload(data).model_extra["customField"] == {"a": 1}


class TestMatchPayload:

    def test_complete(self):
        payload = MatchPayload.model_validate(match("m1", ["A", "B"], ["C", "D"], (5, 3)))
        assert payload.is_complete()
        assert payload.scores() == (5, 3)

    @pytest.mark.parametrize("overrides", [
        {"valid": False},
        {"skipped": True},
        {"result": None},
        {"result": [5]},
        {"result": ["5", 3]},
        {"_id": None},
    ])
    def test_incomplete(self, overrides):
        data = match("m1", ["A"], ["B"])
        data.update(overrides)
        assert not MatchPayload.model_validate(data).is_complete()

    def test_empty_side_is_incomplete(self):
        data = match("m1", ["A"], [])
        assert not MatchPayload.model_validate(data).is_complete()

    def test_blank_names_do_not_count(self):
        data = match("m1", ["A"], ["  "])
        assert not MatchPayload.model_validate(data).is_complete()

    @pytest.mark.parametrize("overrides", [
        {"result": "5:3"},
        {"result": {"team1": 5}},
        {"team1": "TBD"},
        {"team2": 17},
        {"team1": {"players": ["A"]}},
    ])
    def test_malformed_match_is_excluded_not_rejected(self, overrides):
        data = tournament("t1", rounds=[[match("m1", ["A"], ["B"]), match("m2", ["C"], ["D"])]])
        data["qualifying"][0]["rounds"][0]["matches"][1].update(overrides)

        parsed = parse_payload(data)

        matches = parsed.qualifying_section.rounds[0].matches
        assert [m.id for m in matches if m.is_complete()] == ["m1"]

    def test_unparsable_time_is_dropped(self):
        data = match("m1", ["A"], ["B"], time_start="not a time")
        data["timeEnd"] = True

        payload = MatchPayload.model_validate(data)

        assert payload.timeStart is None
        assert payload.timeEnd is None
        assert payload.is_complete()


class TestStandingStats:

    def test_long_names(self):
        stats = StandingStats.model_validate({
            "place": 2, "matchesWon": 3, "matchesLost": 1, "ballsWon": 20, "ballsLost": 12,
        })
        assert (stats.matchesWon, stats.matchesLost, stats.ballsWon, stats.ballsLost) == (3, 1, 20, 12)

    def test_short_names(self):
        stats = StandingStats.model_validate({"won": 3, "lost": 1, "goals": 20, "goals_in": 12})
        assert (stats.matchesWon, stats.matchesLost, stats.ballsWon, stats.ballsLost) == (3, 1, 20, 12)

    def test_nulls_are_zero(self):
        stats = StandingStats.model_validate({"place": None, "points": "", "matches": None})
        assert stats.place == 0
        assert stats.points == 0
        assert stats.matches == 0

    def test_integral_floats(self):
        assert StandingStats.model_validate({"place": 3.0}).place == 3
