"""
Unit tests for the season-final merge helpers.
"""

import copy

import pytest

from kickerrank.payloads.merge import (
    PREFER_EXISTING,
    PREFER_INCOMING,
    are_complementary,
    has_elimination_matches,
    has_qualifying_matches,
    is_elimination_only,
    is_qualifying_only,
    is_season_final_name,
    merge_season_final,
)

from tests.factories import match, standing, tournament


@pytest.fixture
def qualifying_half():
    return tournament(
        "sf-q",
        name="Season Final 2025",
        created_at="2025-11-22T12:00:00Z",
        updated_at="2025-11-22T15:00:00Z",
        rounds=[[match("q1", ["Anna", "Ben"], ["Cara", "Dan"])]],
        qualifying_standings=[standing("Anna", 1), standing("Cara", 2)],
    )


@pytest.fixture
def elimination_half():
    data = tournament(
        "sf-e",
        name="Season Final 2025 KO",
        created_at="2025-11-22T16:00:00Z",
        updated_at="2025-11-22T20:00:00Z",
        levels=[[match("e1", ["Anna", "Ben"], ["Cara", "Dan"], (6, 2))]],
        elimination_standings=[standing("Anna / Ben", 1), standing("Cara / Dan", 2)],
    )
    data["version"] = 15
    return data


class TestSeasonFinalName:

    @pytest.mark.parametrize("name", [
        "Season Final 2025",
        "SAISON FINALE Berlin",
        "Kicker Saison Final",
    ])
    def test_matches(self, name):
        assert is_season_final_name(name)

    @pytest.mark.parametrize("name", ["Weekly Kicker", "", None, "Final Four"])
    def test_no_match(self, name):
        assert not is_season_final_name(name)

    def test_custom_patterns(self):
        assert is_season_final_name("Masters 2025", patterns=["masters"])
        assert not is_season_final_name("Season Final", patterns=["masters"])


class TestClassification:

    def test_halves(self, qualifying_half, elimination_half):
        assert has_qualifying_matches(qualifying_half)
        assert not has_elimination_matches(qualifying_half)
        assert is_qualifying_only(qualifying_half)
        assert is_elimination_only(elimination_half)
        assert are_complementary(qualifying_half, elimination_half)
        assert are_complementary(elimination_half, qualifying_half)

    def test_same_kind_is_not_complementary(self, qualifying_half):
        assert not are_complementary(qualifying_half, copy.deepcopy(qualifying_half))

    def test_full_payload_is_not_complementary(self, qualifying_half, elimination_half):
        full = copy.deepcopy(qualifying_half)
        full["eliminations"] = elimination_half["eliminations"]
        assert not are_complementary(full, elimination_half)

    def test_empty_payloads(self):
        assert not has_qualifying_matches(None)
        assert not has_elimination_matches({})
        assert not are_complementary({}, {})


class TestMergeSeasonFinal:

    def test_takes_each_section_from_the_half_that_has_it(self, qualifying_half, elimination_half):
        merged = merge_season_final(qualifying_half, elimination_half)

        assert merged["_id"] == "sf-q"
        assert merged["qualifying"] == qualifying_half["qualifying"]
        assert merged["eliminations"] == elimination_half["eliminations"]

    def test_inputs_are_not_modified(self, qualifying_half, elimination_half):
        before = (copy.deepcopy(qualifying_half), copy.deepcopy(elimination_half))
        merge_season_final(qualifying_half, elimination_half)
        assert (qualifying_half, elimination_half) == before

    def test_metadata(self, qualifying_half, elimination_half):
        merged = merge_season_final(qualifying_half, elimination_half)

        assert merged["updatedAt"] == "2025-11-22T20:00:00Z"
        assert merged["version"] == 15
        assert merged["name"] == "Season Final 2025 KO"

    def test_version_falls_back(self, qualifying_half, elimination_half):
        qualifying_half.pop("version")
        elimination_half.pop("version")
        assert merge_season_final(qualifying_half, elimination_half)["version"] == 14

    def test_preference_when_both_have_matches(self, qualifying_half):
        newer = copy.deepcopy(qualifying_half)
        newer["qualifying"][0]["rounds"][0]["matches"][0]["result"] = [1, 5]

        kept = merge_season_final(qualifying_half, newer, prefer=PREFER_EXISTING)
        replaced = merge_season_final(qualifying_half, newer, prefer=PREFER_INCOMING)

        assert kept["qualifying"] == qualifying_half["qualifying"]
        assert replaced["qualifying"] == newer["qualifying"]

    def test_section_without_matches_comes_from_whoever_has_it(self, qualifying_half):
        incoming = copy.deepcopy(qualifying_half)
        incoming["eliminations"] = [{"levels": [], "standings": [standing("Anna / Ben", 1)]}]

        merged = merge_season_final(qualifying_half, incoming)
        assert merged["eliminations"] == incoming["eliminations"]
