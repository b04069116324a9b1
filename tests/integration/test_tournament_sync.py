"""
Integration tests for TournamentSyncService against the SQLite test database.
"""

import copy

import pytest
from sqlalchemy import func, select

from kickerrank.config import Settings
from kickerrank.db.models import (
    STANDING_ELIMINATION,
    STANDING_QUALIFYING,
    Match,
    Player,
    Standing,
    Team,
    TeamPlayer,
    Tournament,
)
from kickerrank.errors import (
    ConflictError,
    IngestionTimeoutError,
    NotFoundError,
    ValidationError,
)
from kickerrank.players.aliases import create_alias
from kickerrank.rankings.snapshots import load_snapshots, snapshot_from_payload
from kickerrank.services import tournament_sync
from kickerrank.services.tournament_sync import (
    TournamentSyncService,
    delete_tournament,
    get_tournament,
)

from tests.factories import match, standing, tournament


def _count(session, model):
    return session.scalar(select(func.count()).select_from(model))


def _sync(session, payload, **kwargs):
    service = TournamentSyncService(session, **kwargs)
    return service.sync(payload), service.stats


def _team_names(session, external_id):
    row = session.execute(select(Match).where(Match.external_id == external_id)).scalar_one()
    session.refresh(row)
    return {
        team.team_number: [link.player.name for link in team.players]
        for team in row.teams
    }


def test_first_sync_creates_everything(db_session, weekly_payload):
    """A new export creates the tournament, its matches, teams and standings."""
    tournament_row, stats = _sync(db_session, weekly_payload)

    assert tournament_row.external_id == "t-weekly-1"
    assert tournament_row.tournament_type == "doubles"
    assert tournament_row.is_season_final is False
    assert stats.created is True
    assert stats.matches_created == 5
    assert _count(db_session, Match) == 5
    assert _count(db_session, Team) == 10
    assert _count(db_session, TeamPlayer) == 20

    types = db_session.scalars(select(Standing.type)).all()
    assert types.count(STANDING_QUALIFYING) == 8
    assert types.count(STANDING_ELIMINATION) == 2


def test_sync_is_idempotent(db_session, weekly_payload):
    """Importing the same export twice leaves the database unchanged."""
    first, _ = _sync(db_session, weekly_payload)
    counts = [_count(db_session, m) for m in (Tournament, Match, Team, TeamPlayer, Standing, Player)]

    second, stats = _sync(db_session, copy.deepcopy(weekly_payload))

    assert second.id == first.id
    assert stats.created is False
    assert stats.matches_created == 0
    assert stats.matches_updated == 5
    assert stats.matches_deleted == 0
    assert stats.players_created == 0
    assert [_count(db_session, m) for m in (Tournament, Match, Team, TeamPlayer, Standing, Player)] == counts


def test_match_flags_and_scores(db_session, weekly_payload):
    _sync(db_session, weekly_payload)

    final = db_session.execute(select(Match).where(Match.external_id == "m5")).scalar_one()
    assert final.is_elimination is True
    assert (final.team1_score, final.team2_score) == (6, 4)
    assert [team.won for team in final.teams] == [True, False]

    qualifying = db_session.execute(select(Match).where(Match.external_id == "m2")).scalar_one()
    assert qualifying.is_elimination is False
    assert qualifying.round_name == "Round 1"
    assert [team.won for team in qualifying.teams] == [False, True]


def test_draw_marks_neither_team_as_winner(db_session, make_tournament, make_match):
    payload = make_tournament("t-draw", rounds=[[make_match("d1", ["A", "B"], ["C", "D"], (4, 4))]])
    _sync(db_session, payload)

    row = db_session.execute(select(Match).where(Match.external_id == "d1")).scalar_one()
    assert [team.won for team in row.teams] == [False, False]


def test_incomplete_matches_are_skipped(db_session, make_tournament, make_match):
    """Byes, skipped, invalid and result-less matches are never stored."""
    payload = make_tournament("t-skip", rounds=[[
        make_match("ok", ["A"], ["B"]),
        make_match("bye", ["A"], []),
        make_match("skipped", ["A"], ["B"], skipped=True),
        make_match("invalid", ["A"], ["B"], valid=False),
        make_match("open", ["A"], ["B"], result=None),
    ]])
    _, stats = _sync(db_session, payload)

    assert stats.matches_created == 1
    assert stats.matches_skipped == 4
    assert db_session.scalars(select(Match.external_id)).all() == ["ok"]


def test_malformed_match_does_not_block_the_import(db_session, make_tournament, make_match):
    """A garbled result, time or team only drops that match."""
    broken_result = make_match("bad-result", ["A"], ["B"])
    broken_result["result"] = "5:3"
    placeholder = make_match("placeholder", ["A"], ["B"])
    placeholder["team1"] = "TBD"
    odd_time = make_match("odd-time", ["C"], ["D"], time_start="not a time")
    payload = make_tournament("t-garbled", rounds=[[
        make_match("ok", ["A"], ["B"]), broken_result, placeholder, odd_time,
    ]])

    _, stats = _sync(db_session, payload)

    assert stats.matches_created == 2
    assert stats.matches_skipped == 2
    assert sorted(db_session.scalars(select(Match.external_id))) == ["odd-time", "ok"]
    row = db_session.execute(select(Match).where(Match.external_id == "odd-time")).scalar_one()
    assert row.time_start is None


def test_removed_match_and_standing_are_deleted(db_session, weekly_payload):
    """Anything the latest export no longer contains is removed."""
    _sync(db_session, weekly_payload)

    trimmed = copy.deepcopy(weekly_payload)
    qualifying = trimmed["qualifying"][0]
    qualifying["rounds"][0]["matches"] = qualifying["rounds"][0]["matches"][:1]
    qualifying["standings"] = [s for s in qualifying["standings"] if s["name"] != "Finn"]

    _, stats = _sync(db_session, trimmed)

    assert stats.matches_deleted == 1
    assert stats.standings_deleted == 1
    assert "m2" not in db_session.scalars(select(Match.external_id)).all()
    assert _count(db_session, Team) == 8
    # Players are never deleted by a sync
    assert db_session.execute(select(Player).where(Player.name == "Finn")).scalar_one()


def test_removed_flag_skips_standing(db_session, weekly_payload):
    payload = copy.deepcopy(weekly_payload)
    payload["qualifying"][0]["standings"][7]["removed"] = True

    _, stats = _sync(db_session, payload)

    assert stats.standings_removed == 1
    assert _count(db_session, Standing) == 9


def test_teams_are_rebuilt(db_session, weekly_payload):
    """A corrected lineup replaces the old one instead of being merged into it."""
    _sync(db_session, weekly_payload)
    assert _team_names(db_session, "m1") == {1: ["Anna", "Ben"], 2: ["Cara", "Dan"]}

    corrected = copy.deepcopy(weekly_payload)
    corrected["qualifying"][0]["rounds"][0]["matches"][0] = match("m1", ["Anna", "Eva"], ["Cara", "Dan"], (3, 5))
    _sync(db_session, corrected)

    assert _team_names(db_session, "m1") == {1: ["Anna", "Eva"], 2: ["Cara", "Dan"]}
    row = db_session.execute(select(Match).where(Match.external_id == "m1")).scalar_one()
    assert (row.team1_score, row.team2_score) == (3, 5)
    assert _count(db_session, TeamPlayer) == 20


def test_match_moves_to_the_tournament_that_exports_it(db_session, make_tournament, make_match):
    _sync(db_session, make_tournament("t-a", rounds=[[make_match("shared", ["A"], ["B"])]]))
    second, _ = _sync(db_session, make_tournament("t-b", rounds=[[make_match("shared", ["A"], ["B"])]]))

    row = db_session.execute(select(Match).where(Match.external_id == "shared")).scalar_one()
    assert row.tournament_id == second.id
    assert _count(db_session, Match) == 1


def test_aliases_merge_spellings(db_session, make_tournament, make_match):
    create_alias(db_session, "Max Mueller", "Max Müller")
    payload = make_tournament("t-alias", rounds=[[
        make_match("a1", ["Max Mueller"], ["Anna"]),
        make_match("a2", ["Max Müller"], ["Anna"]),
    ]])
    _sync(db_session, payload)

    names = db_session.scalars(select(Player.name).order_by(Player.name)).all()
    assert names == ["Anna", "Max Müller"]


def test_player_metadata_is_only_filled_in(db_session, make_tournament, make_match):
    """Later sightings fill empty columns but never overwrite existing values."""
    _sync(db_session, make_tournament("t-1", rounds=[[make_match("x1", ["Anna"], ["Ben"])]]))
    anna = db_session.execute(select(Player).where(Player.name == "Anna")).scalar_one()
    assert anna.external_id == "p-anna"
    assert anna.club is None

    second = make_match("x2", ["Anna"], ["Ben"])
    second["team1"]["players"][0].update({
        "_id": "other-id",
        "external": {"firstName": "Anna", "clubMemberships": [{"club": "TFC Berlin"}]},
    })
    _sync(db_session, make_tournament("t-2", rounds=[[second]]))

    db_session.refresh(anna)
    assert anna.external_id == "p-anna"
    assert anna.club == "TFC Berlin"
    assert anna.first_name == "Anna"
    assert anna.is_external is True


def test_invalid_payload_writes_nothing(db_session, weekly_payload):
    payload = copy.deepcopy(weekly_payload)
    payload["name"] = "  "

    with pytest.raises(ValidationError):
        _sync(db_session, payload)

    assert _count(db_session, Tournament) == 0
    assert _count(db_session, Player) == 0


def test_failure_rolls_back_the_whole_import(db_session, weekly_payload, monkeypatch):
    """An error late in the import leaves no partial tournament behind."""
    def broken_cleanup(self, *args):
        raise RuntimeError("disk on fire")

    monkeypatch.setattr(TournamentSyncService, "_cleanup", broken_cleanup)

    with pytest.raises(RuntimeError):
        _sync(db_session, weekly_payload)

    assert _count(db_session, Tournament) == 0
    assert _count(db_session, Match) == 0
    assert _count(db_session, Player) == 0


def test_concurrent_insert_is_a_conflict(db_session, weekly_payload, monkeypatch):
    """Another writer inserting the same external id first surfaces as ConflictError."""
    db_session.add(Tournament(external_id="t-weekly-1", name="Created elsewhere"))
    db_session.flush()
    # The lookup ran before the other writer committed
    monkeypatch.setattr(TournamentSyncService, "_find_by_external_id", lambda self, external_id: None)

    with pytest.raises(ConflictError):
        _sync(db_session, weekly_payload)

    assert db_session.scalars(select(Tournament.name)).all() == ["Created elsewhere"]
    assert _count(db_session, Match) == 0
    assert _count(db_session, Player) == 0


def test_timeout_aborts_import(db_session, weekly_payload):
    config = Settings(_env_file=None, ingest_timeout_seconds=-1)

    with pytest.raises(IngestionTimeoutError):
        _sync(db_session, weekly_payload, config=config)

    assert _count(db_session, Tournament) == 0


def test_statement_timeout_is_set_before_locking(db_session, weekly_payload, monkeypatch):
    """The lock wait falls under the statement timeout too."""
    calls = []
    real_lock = tournament_sync.tournament_identity_lock

    def recording_lock(*args, **kwargs):
        calls.append("lock")
        return real_lock(*args, **kwargs)

    monkeypatch.setattr(tournament_sync, "tournament_identity_lock", recording_lock)
    monkeypatch.setattr(
        TournamentSyncService, "_set_statement_timeout", lambda self, seconds: calls.append("timeout"),
    )

    _sync(db_session, weekly_payload)

    assert calls == ["timeout", "lock"]


def test_disciplines_export_is_normalized(db_session):
    payload = {
        "_id": "t-disc",
        "name": "Monday DYP",
        "createdAt": "2025-04-07T18:00:00Z",
        "participants": [
            {"_id": "p1", "type": "player", "name": ["Anna"]},
            {"_id": "p2", "type": "player", "name": ["Ben"]},
        ],
        "disciplines": [{"stages": [{"name": "Qualifying", "groups": [{
            "_id": "g1",
            "rounds": [{"_id": "r1", "matches": [
                {"_id": "m1", "state": "played", "points": [5, 2], "entries": [["p1"], ["p2"]]},
            ]}],
            "standings": [{"entryId": "p1", "rank": 1, "matches": 1, "matchesWon": 1}],
        }]}]}],
    }
    tournament_row, stats = _sync(db_session, payload)

    assert stats.matches_created == 1
    assert tournament_row.raw_data["qualifying"][0]["rounds"][0]["matches"][0]["_id"] == "m1"
    assert _team_names(db_session, "m1") == {1: ["Anna"], 2: ["Ben"]}


# =============================================================================
# Season-final merge
# =============================================================================

@pytest.fixture
def final_halves():
    qualifying = tournament(
        "sf-q",
        name="Season Final 2025",
        created_at="2025-11-29T12:00:00Z",
        rounds=[[match("sfq1", ["Anna", "Ben"], ["Cara", "Dan"], (5, 2))]],
        qualifying_standings=[standing("Anna", 1, matches=1, won=1), standing("Cara", 2, matches=1, lost=1)],
    )
    elimination = tournament(
        "sf-e",
        name="Season Final 2025",
        created_at="2025-11-29T16:00:00Z",
        levels=[[match("sfe1", ["Anna", "Ben"], ["Cara", "Dan"], (6, 5))]],
        elimination_standings=[standing("Anna / Ben", 1), standing("Cara / Dan", 2)],
    )
    return qualifying, elimination


def _match_ids(session, tournament_row):
    return sorted(session.scalars(
        select(Match.external_id).where(Match.tournament_id == tournament_row.id)
    ))


def test_season_final_halves_are_merged(db_session, final_halves):
    qualifying, elimination = final_halves

    first, _ = _sync(db_session, qualifying)
    merged, stats = _sync(db_session, elimination)

    assert merged.id == first.id
    assert stats.merged is True
    assert merged.is_season_final is True
    assert merged.merged_external_ids == ["sf-e"]
    assert _count(db_session, Tournament) == 1
    assert _match_ids(db_session, merged) == ["sfe1", "sfq1"]


def test_reimporting_a_half_keeps_the_merge(db_session, final_halves):
    qualifying, elimination = final_halves
    _sync(db_session, qualifying)
    _sync(db_session, elimination)

    corrected = copy.deepcopy(elimination)
    corrected["eliminations"][0]["levels"][0]["matches"][0]["result"] = [6, 4]
    again, stats = _sync(db_session, corrected)
    _sync(db_session, copy.deepcopy(qualifying))

    assert stats.merged is True
    assert _count(db_session, Tournament) == 1
    assert _match_ids(db_session, again) == ["sfe1", "sfq1"]
    row = db_session.execute(select(Match).where(Match.external_id == "sfe1")).scalar_one()
    assert row.team2_score == 4


def test_superseded_half_is_deleted(db_session, final_halves):
    """
    A half that was first stored on its own row is folded into the
    complementary row once it becomes elimination-only, and its old row goes.
    """
    qualifying, elimination = final_halves
    first_version = copy.deepcopy(elimination)
    first_version["qualifying"] = [{
        "rounds": [{"_id": "r1", "name": "Round 1", "matches": [
            match("stale-q1", ["Eva"], ["Finn"], (5, 0)),
        ]}],
        "standings": [],
    }]

    stale, _ = _sync(db_session, first_version)
    target, _ = _sync(db_session, qualifying)
    assert _count(db_session, Tournament) == 2

    merged, stats = _sync(db_session, elimination)

    assert merged.id == target.id
    assert stats.merged is True
    assert stats.orphans_deleted == 1
    assert _count(db_session, Tournament) == 1
    assert db_session.get(Tournament, stale.id) is None
    assert merged.merged_external_ids == ["sf-e"]
    assert _match_ids(db_session, merged) == ["sfe1", "sfq1"]
    assert "stale-q1" not in db_session.scalars(select(Match.external_id)).all()


def test_final_in_another_year_is_not_merged(db_session, final_halves):
    qualifying, elimination = final_halves
    elimination["createdAt"] = "2026-01-10T16:00:00Z"

    _sync(db_session, qualifying)
    _sync(db_session, elimination)

    assert _count(db_session, Tournament) == 2


# =============================================================================
# Lookups and snapshots
# =============================================================================

def test_get_and_delete_tournament(db_session, weekly_payload):
    tournament_row, _ = _sync(db_session, weekly_payload)

    assert get_tournament(db_session, tournament_row.id) is tournament_row
    delete_tournament(db_session, tournament_row.id)

    assert _count(db_session, Tournament) == 0
    assert _count(db_session, Match) == 0
    assert _count(db_session, Team) == 0
    assert _count(db_session, Standing) == 0


@pytest.mark.parametrize("operation", [get_tournament, delete_tournament])
def test_unknown_tournament(db_session, operation):
    with pytest.raises(NotFoundError):
        operation(db_session, 9999)


def test_loaded_snapshot_matches_payload_snapshot(db_session, weekly_payload):
    """Rankings see the same tournament whether it comes from the payload or the database."""
    _sync(db_session, weekly_payload)

    (loaded,) = load_snapshots(db_session)
    direct = snapshot_from_payload(weekly_payload)

    def match_view(snapshot):
        return [(m.key, m.team1, m.team2, m.score1, m.score2, m.is_elimination) for m in snapshot.matches]

    def standing_view(lines):
        return [(s.name, s.place, s.points, s.matches, s.won, s.lost, s.goals, s.goals_in) for s in lines]

    assert loaded.key == direct.key
    assert loaded.created_at == direct.created_at
    assert match_view(loaded) == match_view(direct)
    assert standing_view(loaded.qualifying) == standing_view(direct.qualifying)
    assert standing_view(loaded.elimination) == standing_view(direct.elimination)
