"""
Player registry: get-or-create canonical player records during a sync.

Players are keyed by canonical display name. Every name is trimmed and run
through the alias snapshot before lookup, so spelling variants land on the
same row. The first sighting creates the player and copies whatever external
metadata the export carries (federation ids, club, licence, country). Later
sightings only fill columns that are still empty; existing values are never
overwritten by a sync.

Usage:
    registry = PlayerRegistry(session, aliases)
    player = registry.get_or_create({"name": "Anna Schmidt"})

    player = get_player(session, "Anna Schmidt")
"""

import logging
from typing import Any, Mapping, Optional

from sqlalchemy import select
from sqlalchemy.orm import Session

from kickerrank.db.models import Player
from kickerrank.errors import NotFoundError
from kickerrank.players.aliases import AliasResolver, resolve_alias

logger = logging.getLogger(__name__)

# Player columns that can be filled from the export's "external" block
METADATA_COLUMNS = (
    "external_id",
    "first_name",
    "last_name",
    "national_id",
    "international_id",
    "club",
    "license",
    "country",
)


def _as_dict(ref: Any) -> dict:
    if ref is None:
        return {}
    if isinstance(ref, Mapping):
        return dict(ref)
    # pydantic models (PlayerRef, StandingPayload)
    if hasattr(ref, "model_dump"):
        return ref.model_dump(by_alias=True)
    return {"name": str(ref)}


def extract_metadata(ref: Mapping) -> dict[str, Any]:
    """
    Pull the player metadata columns out of a player reference.

    The reference is either a match player ({"_id", "name", "external", ...})
    or a standing row, which has the same fields.
    """
    external = ref.get("external")
    info = external if isinstance(external, Mapping) else {}

    clubs = info.get("clubMemberships") or []
    first_club = None
    if clubs and isinstance(clubs[0], Mapping):
        first_club = clubs[0].get("club")

    metadata = {
        "external_id": ref.get("_id"),
        "first_name": info.get("firstName"),
        "last_name": info.get("lastName"),
        "national_id": info.get("nationalId"),
        "international_id": info.get("internationalId"),
        "club": first_club,
        "license": info.get("nationalLicence"),
        "country": info.get("country"),
    }
    # Standings mark guests via "external: true" rather than an object
    metadata["is_guest"] = bool(ref.get("guest") or external is True)
    metadata["is_external"] = isinstance(external, Mapping) and bool(external)
    return {
        key: (str(value) if value is not None and key in METADATA_COLUMNS else value)
        for key, value in metadata.items()
    }


class PlayerRegistry:
    """
    Get-or-create players for one sync.

    The instance caches players by canonical name, so create it per sync
    and throw it away afterwards.
    """

    def __init__(self, session: Session, aliases: Optional[AliasResolver] = None):
        self.session = session
        self.aliases = aliases or AliasResolver()
        self._cache: dict[str, Player] = {}
        self.players_created = 0

    def canonical_name(self, name: Optional[str]) -> Optional[str]:
        resolved = self.aliases.resolve(name)
        if not resolved or not resolved.strip():
            return None
        return resolved.strip()

    def get_or_create(self, ref: Any) -> Optional[Player]:
        """
        Find the player for a reference, creating it on first sighting.

        Args:
            ref: dict or pydantic model with at least a "name"

        Returns:
            The Player row, or None if the name is blank after resolution
        """
        data = _as_dict(ref)
        name = self.canonical_name(data.get("name"))
        if name is None:
            return None

        player = self._cache.get(name)
        if player is None:
            player = self.session.execute(
                select(Player).where(Player.name == name)
            ).scalar_one_or_none()

        metadata = extract_metadata(data)

        if player is None:
            player = Player(name=name, **metadata)
            self.session.add(player)
            self.session.flush()
            self.players_created += 1
            logger.debug("Created player '%s' (id=%s)", name, player.id)
        else:
            self._fill_missing(player, metadata)

        self._cache[name] = player
        return player

    def _fill_missing(self, player: Player, metadata: dict[str, Any]) -> None:
        """Copy metadata only into columns that are still empty."""
        for column in METADATA_COLUMNS:
            value = metadata.get(column)
            if value and not getattr(player, column):
                setattr(player, column, value)
        if metadata.get("is_external") and not player.is_external:
            player.is_external = True


# =============================================================================
# Lookups
# =============================================================================

def get_player(session: Session, name: Optional[str]) -> Player:
    """
    Look a player up by name, resolving aliases first.

    Raises:
        NotFoundError: no player has the resolved name
    """
    if not name or not name.strip():
        raise NotFoundError("Player name is required")
    canonical = resolve_alias(session, name)
    player = session.execute(
        select(Player).where(Player.name == canonical)
    ).scalar_one_or_none()
    if player is None:
        raise NotFoundError(f"Player {name.strip()!r} not found")
    return player
