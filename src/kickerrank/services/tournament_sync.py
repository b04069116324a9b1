"""
Tournament sync service: writes one tournament export into the database.

A sync takes a raw export payload and makes the relational state of that
tournament match it exactly:

1. Normalize and validate the payload (nothing is written if this fails)
2. Find the target row: plain upsert by external id, or, for a season final
   exported in two halves, the row of the other half (merged payload)
3. Upsert the tournament scalars
4. Upsert every complete match, rebuilding both teams from scratch
5. Upsert qualifying standings, then elimination standings
6. Delete matches and standings of this tournament that the payload no
   longer contains

Everything runs inside one SAVEPOINT, so a failure leaves no partial
tournament behind. The caller owns the outer transaction (get_session()
commits on exit). Imports of the same tournament identity are serialized
through db.locks.

Usage:
    from kickerrank.services.tournament_sync import TournamentSyncService

    with get_session() as session:
        service = TournamentSyncService(session)
        tournament = service.sync(payload)
        print(service.stats.summary())
"""

import logging
import time
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Optional

from sqlalchemy import select, text
from sqlalchemy.exc import IntegrityError, OperationalError, SQLAlchemyError
from sqlalchemy.orm import Session

from kickerrank.config import Settings, settings as default_settings
from kickerrank.db.locks import tournament_identity_lock
from kickerrank.db.models import (
    DEFAULT_SCHEMA_VERSION,
    STANDING_ELIMINATION,
    STANDING_QUALIFYING,
    TOURNAMENT_TYPE_DOUBLES,
    Match,
    Player,
    Standing,
    Team,
    TeamPlayer,
    Tournament,
)
from kickerrank.errors import (
    ConflictError,
    IngestionError,
    IngestionTimeoutError,
    MalformedMatchError,
    NotFoundError,
)
from kickerrank.payloads.merge import (
    PREFER_EXISTING,
    PREFER_INCOMING,
    are_complementary,
    is_season_final_name,
    merge_season_final,
)
from kickerrank.payloads.normalizer import detect_tournament_type, normalize_payload
from kickerrank.payloads.schema import (
    MatchPayload,
    StandingPayload,
    TeamPayload,
    TournamentPayload,
    parse_payload,
)
from kickerrank.players.aliases import AliasResolver
from kickerrank.players.registry import PlayerRegistry

logger = logging.getLogger(__name__)

StandingKey = tuple[int, str]


@dataclass
class SyncStats:
    """Statistics from one tournament sync."""
    external_id: Optional[str] = None
    tournament_id: Optional[int] = None
    created: bool = False
    merged: bool = False
    orphans_deleted: int = 0
    matches_created: int = 0
    matches_updated: int = 0
    matches_skipped: int = 0
    matches_deleted: int = 0
    standings_upserted: int = 0
    standings_removed: int = 0
    standings_deleted: int = 0
    players_created: int = 0
    skipped_reasons: list[str] = field(default_factory=list)

    def summary(self) -> str:
        """Return a human-readable summary of the sync."""
        lines = [
            f"Tournament sync complete ({self.external_id}, id={self.tournament_id}):",
            f"  Tournament:               {'created' if self.created else 'updated'}"
            f"{' (season-final merge)' if self.merged else ''}",
            f"  Matches created:          {self.matches_created}",
            f"  Matches updated:          {self.matches_updated}",
            f"  Matches skipped:          {self.matches_skipped}",
            f"  Matches deleted:          {self.matches_deleted}",
            f"  Standings upserted:       {self.standings_upserted}",
            f"  Standings removed flag:   {self.standings_removed}",
            f"  Standings deleted:        {self.standings_deleted}",
            f"  Players created:          {self.players_created}",
        ]
        if self.orphans_deleted:
            lines.append(f"  Orphan tournaments deleted: {self.orphans_deleted}")
        return "\n".join(lines)


class TournamentSyncService:
    """
    Idempotent, all-or-nothing import of tournament exports.

    Create one per unit of work. The alias snapshot is loaded on the first
    sync if none is passed in.
    """

    def __init__(
        self,
        session: Session,
        aliases: Optional[AliasResolver] = None,
        config: Optional[Settings] = None,
    ):
        self.session = session
        self.aliases = aliases
        self.config = config or default_settings
        self.stats = SyncStats()
        self._deadline: Optional[float] = None

    # =========================================================================
    # Main Public Methods
    # =========================================================================

    def sync(self, payload: Any) -> Tournament:
        """
        Import one tournament export.

        Args:
            payload: Raw export JSON (either export shape)

        Returns:
            The Tournament row the payload was written to

        Raises:
            ValidationError: payload has no name / external id or is malformed
            ConflictError: another writer created the same external id
            IngestionTimeoutError: the import exceeded ingest_timeout_seconds
            IngestionError: any other database failure
        """
        normalized = normalize_payload(payload)
        parsed = parse_payload(normalized)

        self.stats = SyncStats(external_id=parsed.id)
        if self.aliases is None:
            self.aliases = AliasResolver.load(self.session)

        is_season_final = is_season_final_name(parsed.name, self.config.season_final_patterns)
        identities = [parsed.id]
        if is_season_final:
            identities.append(f"season_final:{parsed.created_at.year}")

        logger.debug(
            "Syncing tournament %s '%s' (detected type: %s)",
            parsed.id, parsed.name, detect_tournament_type(normalized),
        )

        timeout = self.config.ingest_timeout_seconds
        self._deadline = time.monotonic() + timeout
        try:
            with self.session.begin_nested():
                # Also bounds the wait for a contended advisory lock
                self._set_statement_timeout(timeout)
                with tournament_identity_lock(self.session, identities, timeout_seconds=timeout):
                    tournament = self._sync_locked(normalized, parsed, is_season_final)
        except IntegrityError as exc:
            raise self._translate_integrity_error(exc) from exc
        except TimeoutError as exc:
            raise IngestionTimeoutError(
                f"Timed out waiting for the lock on tournament {parsed.id}"
            ) from exc
        except OperationalError as exc:
            if "statement timeout" in str(exc.orig).lower():
                raise IngestionTimeoutError(
                    f"Import of tournament {parsed.id} exceeded {timeout:.0f}s"
                ) from exc
            raise IngestionError(f"Database error during import: {exc.orig}") from exc
        except SQLAlchemyError as exc:
            raise IngestionError(f"Database error during import: {exc}") from exc
        finally:
            self._deadline = None

        logger.info(self.stats.summary())
        return tournament

    # =========================================================================
    # Target resolution
    # =========================================================================

    def _sync_locked(
        self,
        normalized: dict,
        parsed: TournamentPayload,
        is_season_final: bool,
    ) -> Tournament:
        target, data, merged = self._resolve_target(normalized, parsed, is_season_final)
        work = parse_payload(data) if merged else parsed

        tournament = self._upsert_tournament(target, parsed, work, data, is_season_final or merged)
        self.stats.merged = merged

        registry = PlayerRegistry(self.session, self.aliases)

        incoming_match_ids = self._process_all_matches(tournament, work, registry)
        incoming_standing_keys = self._process_all_standings(tournament, work, registry)
        self._cleanup(tournament, incoming_match_ids, incoming_standing_keys)

        self.stats.players_created = registry.players_created
        self.session.flush()
        self.session.expire(tournament, ["matches", "standings"])
        return tournament

    def _resolve_target(
        self,
        normalized: dict,
        parsed: TournamentPayload,
        is_season_final: bool,
    ) -> tuple[Optional[Tournament], dict, bool]:
        """
        Decide which row the payload is written to.

        Returns:
            (target row or None for a new tournament, payload to process,
            whether the payload was merged)
        """
        existing = self._find_by_external_id(parsed.id)
        if existing is None and is_season_final:
            existing = self._find_by_merged_id(parsed.id)

        if existing is not None and existing.merged_external_ids:
            # One half of an already merged season final is being re-imported
            merged = merge_season_final(existing.raw_data or {}, normalized, prefer=PREFER_INCOMING)
            self._record_merged_id(existing, parsed.id)
            logger.info(
                "Re-importing %s into merged season final %s", parsed.id, existing.external_id
            )
            return existing, merged, True

        if not is_season_final:
            return existing, normalized, False

        candidate = self._find_merge_candidate(normalized, parsed.created_at, existing)
        if candidate is None:
            return existing, normalized, False

        if existing is not None and existing.id != candidate.id:
            logger.warning(
                "Deleting tournament %s (id=%s): superseded by merge into %s",
                existing.external_id, existing.id, candidate.external_id,
            )
            self.session.delete(existing)
            self.session.flush()
            self.stats.orphans_deleted += 1

        merged = merge_season_final(candidate.raw_data or {}, normalized, prefer=PREFER_EXISTING)
        self._record_merged_id(candidate, parsed.id)
        logger.info("Merging season final %s into %s", parsed.id, candidate.external_id)
        return candidate, merged, True

    def _find_by_external_id(self, external_id: str) -> Optional[Tournament]:
        return self.session.execute(
            select(Tournament).where(Tournament.external_id == external_id)
        ).scalar_one_or_none()

    def _find_by_merged_id(self, external_id: str) -> Optional[Tournament]:
        """Season-final row that absorbed an export with this external id."""
        finals = self.session.scalars(
            select(Tournament).where(Tournament.is_season_final.is_(True))
        )
        for tournament in finals:
            if external_id in (tournament.merged_external_ids or []):
                return tournament
        return None

    def _find_merge_candidate(
        self,
        incoming: dict,
        created_at: datetime,
        exclude: Optional[Tournament],
    ) -> Optional[Tournament]:
        """First same-year season final whose stored payload complements the incoming one."""
        year_start = datetime(created_at.year, 1, 1)
        year_end = datetime(created_at.year + 1, 1, 1)
        query = (
            select(Tournament)
            .where(
                Tournament.is_season_final.is_(True),
                Tournament.created_at >= year_start,
                Tournament.created_at < year_end,
            )
            .order_by(Tournament.created_at.desc(), Tournament.id.desc())
        )
        if exclude is not None:
            query = query.where(Tournament.id != exclude.id)

        for candidate in self.session.scalars(query):
            if candidate.raw_data and are_complementary(candidate.raw_data, incoming):
                return candidate
        return None

    @staticmethod
    def _record_merged_id(tournament: Tournament, external_id: str) -> None:
        if external_id == tournament.external_id:
            return
        ids = list(tournament.merged_external_ids or [])
        if external_id not in ids:
            ids.append(external_id)
            tournament.merged_external_ids = ids

    # =========================================================================
    # Tournament
    # =========================================================================

    def _upsert_tournament(
        self,
        target: Optional[Tournament],
        incoming: TournamentPayload,
        work: TournamentPayload,
        data: dict,
        is_season_final: bool,
    ) -> Tournament:
        if target is None:
            target = Tournament(external_id=incoming.id, created_at=incoming.created_at)
            self.session.add(target)
            self.stats.created = True

        target.name = work.name
        target.mode = work.mode
        target.sport = work.sport
        target.version = work.version or DEFAULT_SCHEMA_VERSION
        target.tournament_type = TOURNAMENT_TYPE_DOUBLES
        target.is_season_final = is_season_final
        target.raw_data = data

        self.session.flush()
        self.stats.tournament_id = target.id
        return target

    # =========================================================================
    # Matches
    # =========================================================================

    def _process_all_matches(
        self,
        tournament: Tournament,
        work: TournamentPayload,
        registry: PlayerRegistry,
    ) -> set[str]:
        incoming: set[str] = set()

        qualifying = work.qualifying_section
        if qualifying is not None:
            for round_ in qualifying.rounds:
                for match in round_.matches:
                    self._process_match(
                        tournament, match, registry, incoming,
                        round_name=round_.name, is_elimination=False, level=None,
                    )

        for elimination in work.eliminations:
            for level in elimination.levels:
                for match in level.matches:
                    self._process_match(
                        tournament, match, registry, incoming,
                        round_name=level.name, is_elimination=True, level=level.name,
                    )
            if elimination.third is not None:
                for match in elimination.third.matches:
                    self._process_match(
                        tournament, match, registry, incoming,
                        round_name=None, is_elimination=True, level="third",
                    )
        return incoming

    @staticmethod
    def _require_complete(match: MatchPayload) -> None:
        if not match.is_complete():
            raise MalformedMatchError(
                f"match {match.id!r} is not valid, has no result or an empty team"
            )

    def _process_match(
        self,
        tournament: Tournament,
        match: MatchPayload,
        registry: PlayerRegistry,
        incoming: set[str],
        round_name: Optional[str],
        is_elimination: bool,
        level: Optional[str],
    ) -> None:
        self._check_deadline()
        try:
            self._require_complete(match)
        except MalformedMatchError as exc:
            self.stats.matches_skipped += 1
            logger.debug("Skipping match: %s", exc)
            return

        team1_players = self._resolve_side(match.team1, registry)
        team2_players = self._resolve_side(match.team2, registry)
        if not team1_players or not team2_players:
            self.stats.matches_skipped += 1
            logger.debug("Skipping match %s: a side resolved to no players", match.id)
            return

        score1, score2 = match.scores()

        row = self.session.execute(
            select(Match).where(Match.external_id == match.id)
        ).scalar_one_or_none()
        if row is None:
            row = Match(external_id=match.id, tournament_id=tournament.id)
            self.session.add(row)
            self.stats.matches_created += 1
        else:
            # Rosters are rebuilt, never patched
            row.teams.clear()
            self.session.flush()
            self.stats.matches_updated += 1

        row.tournament_id = tournament.id
        row.round_id = match.roundId
        row.round_name = round_name
        row.group_id = match.groupId
        row.is_elimination = is_elimination
        row.elimination_level = level if is_elimination else None
        row.team1_score = score1
        row.team2_score = score2
        row.time_start = match.timeStart
        row.time_end = match.timeEnd
        row.valid = match.valid
        row.skipped = match.skipped

        row.teams.append(self._build_team(1, match.team1, score1, score1 > score2, team1_players))
        row.teams.append(self._build_team(2, match.team2, score2, score2 > score1, team2_players))
        self.session.flush()
        incoming.add(match.id)

    @staticmethod
    def _resolve_side(team: TeamPayload, registry: PlayerRegistry) -> list[Player]:
        players: list[Player] = []
        seen: set[int] = set()
        for ref in team.players:
            player = registry.get_or_create(ref)
            if player is not None and player.id not in seen:
                seen.add(player.id)
                players.append(player)
        return players

    @staticmethod
    def _build_team(
        number: int,
        team: TeamPayload,
        score: int,
        won: bool,
        players: list[Player],
    ) -> Team:
        return Team(
            team_number=number,
            name=team.name or " / ".join(p.name for p in players),
            score=score,
            won=won,
            players=[TeamPlayer(player_id=p.id) for p in players],
        )

    # =========================================================================
    # Standings
    # =========================================================================

    def _process_all_standings(
        self,
        tournament: Tournament,
        work: TournamentPayload,
        registry: PlayerRegistry,
    ) -> set[StandingKey]:
        existing = {
            (row.player_id, row.type): row
            for row in self.session.scalars(
                select(Standing).where(Standing.tournament_id == tournament.id)
            )
        }
        incoming: set[StandingKey] = set()

        qualifying = work.qualifying_section
        if qualifying is not None:
            for standing in qualifying.standings:
                self._process_standing(
                    tournament, standing, STANDING_QUALIFYING, registry, existing, incoming
                )
        # Elimination after qualifying so its player registrations win
        for elimination in work.eliminations:
            for standing in elimination.standings:
                self._process_standing(
                    tournament, standing, STANDING_ELIMINATION, registry, existing, incoming
                )
        self.session.flush()
        return incoming

    def _process_standing(
        self,
        tournament: Tournament,
        standing: StandingPayload,
        standing_type: str,
        registry: PlayerRegistry,
        existing: dict[StandingKey, Standing],
        incoming: set[StandingKey],
    ) -> None:
        self._check_deadline()
        if standing.removed:
            self.stats.standings_removed += 1
            return

        player = registry.get_or_create(standing)
        if player is None:
            logger.debug("Skipping %s standing without a player name", standing_type)
            return

        key = (player.id, standing_type)
        row = existing.get(key)
        if row is None:
            row = Standing(tournament_id=tournament.id, player_id=player.id, type=standing_type)
            self.session.add(row)
            existing[key] = row

        stats = standing.stats
        row.place = stats.place
        row.points = stats.points
        row.matches = stats.matches
        row.matches_won = stats.matchesWon
        row.matches_lost = stats.matchesLost
        row.matches_drawn = stats.matchesDrawn
        row.sets_won = stats.setsWon
        row.sets_lost = stats.setsLost
        row.balls_won = stats.ballsWon
        row.balls_lost = stats.ballsLost
        row.bh1 = stats.bh1
        row.bh2 = stats.bh2
        row.deactivated = standing.deactivated
        row.removed = False

        incoming.add(key)
        self.stats.standings_upserted += 1

    # =========================================================================
    # Cleanup
    # =========================================================================

    def _cleanup(
        self,
        tournament: Tournament,
        incoming_match_ids: set[str],
        incoming_standing_keys: set[StandingKey],
    ) -> None:
        """Delete persisted matches and standings the payload no longer contains."""
        self._check_deadline()
        for match in self.session.scalars(
            select(Match).where(Match.tournament_id == tournament.id)
        ).all():
            if match.external_id not in incoming_match_ids:
                self.session.delete(match)
                self.stats.matches_deleted += 1

        for standing in self.session.scalars(
            select(Standing).where(Standing.tournament_id == tournament.id)
        ).all():
            if (standing.player_id, standing.type) not in incoming_standing_keys:
                self.session.delete(standing)
                self.stats.standings_deleted += 1

        self.session.flush()
        if self.stats.matches_deleted or self.stats.standings_deleted:
            logger.info(
                "Removed %d matches and %d standings no longer in tournament %s",
                self.stats.matches_deleted, self.stats.standings_deleted, tournament.external_id,
            )

    # =========================================================================
    # Helpers
    # =========================================================================

    def _check_deadline(self) -> None:
        if self._deadline is not None and time.monotonic() > self._deadline:
            raise IngestionTimeoutError(
                f"Import of tournament {self.stats.external_id} exceeded "
                f"{self.config.ingest_timeout_seconds:.0f}s"
            )

    def _set_statement_timeout(self, timeout_seconds: float) -> None:
        if self.session.get_bind().dialect.name != "postgresql":
            return
        millis = max(int(timeout_seconds * 1000), 1)
        self.session.execute(text(f"SET LOCAL statement_timeout = {millis}"))

    def _translate_integrity_error(self, exc: IntegrityError) -> IngestionError:
        message = str(exc.orig)
        if "tournaments" in message and "external_id" in message:
            return ConflictError(f"Tournament {self.stats.external_id} already exists")
        return IngestionError(f"Integrity error during import: {message}")


# =============================================================================
# Lookups
# =============================================================================

def get_tournament(session: Session, tournament_id: int) -> Tournament:
    tournament = session.get(Tournament, tournament_id)
    if tournament is None:
        raise NotFoundError(f"Tournament {tournament_id} not found")
    return tournament


def delete_tournament(session: Session, tournament_id: int) -> None:
    """Delete a tournament with its matches, teams and standings."""
    tournament = get_tournament(session, tournament_id)
    session.delete(tournament)
    session.flush()
    logger.info("Deleted tournament %s (id=%s)", tournament.external_id, tournament_id)
