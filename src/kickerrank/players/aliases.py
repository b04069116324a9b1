"""
Player alias resolution and administration.

Exports spell the same person in different ways ("Max Müller", "Max Mueller",
"M. Müller"). Operators curate a table of known spellings mapped to one
canonical display name; everything that keys on a player name runs the name
through this table first.

Resolution is a pure lookup: the alias table is loaded once per operation
into an AliasResolver and passed explicitly to whoever needs it. The write
path (create/update/delete) is only used by the admin collaborator.

Usage:
    from kickerrank.players.aliases import AliasResolver

    with get_session() as session:
        aliases = AliasResolver.load(session)
        aliases.resolve("  Max Mueller ")  # -> "Max Müller"
"""

import logging
import re
from types import MappingProxyType
from typing import Mapping, Optional

from sqlalchemy import select
from sqlalchemy.orm import Session

from kickerrank.db.models import Player, PlayerAlias
from kickerrank.errors import ConflictError, NotFoundError, ValidationError

logger = logging.getLogger(__name__)

# Separators used in composite team labels ("A / B", "A | B", "A & B")
TEAM_NAME_SEPARATOR = re.compile(r"\s+(?:/|\||&)\s+")


class AliasResolver:
    """
    Read-only snapshot of the alias table.

    Args:
        mapping: alias spelling -> canonical name
    """

    def __init__(self, mapping: Optional[Mapping[str, str]] = None):
        cleaned = {}
        for alias, canonical in (mapping or {}).items():
            if alias and canonical:
                cleaned[alias.strip()] = canonical.strip()
        self._mapping = MappingProxyType(cleaned)

    @classmethod
    def load(cls, session: Session) -> "AliasResolver":
        """Read every alias row once and build a resolver from it."""
        rows = session.execute(
            select(PlayerAlias.alias, PlayerAlias.canonical_name)
        ).all()
        return cls({row.alias: row.canonical_name for row in rows})

    @property
    def mapping(self) -> Mapping[str, str]:
        return self._mapping

    def resolve(self, name: Optional[str]) -> Optional[str]:
        """
        Return the canonical spelling of a name.

        The name is trimmed first. Unknown names come back trimmed but
        otherwise untouched; None and empty strings are returned as-is.
        """
        if not name:
            return name
        trimmed = name.strip()
        return self._mapping.get(trimmed, trimmed)

    def __len__(self) -> int:
        return len(self._mapping)

    def __contains__(self, name: object) -> bool:
        return isinstance(name, str) and name.strip() in self._mapping


def split_team_name(label: Optional[str]) -> list[str]:
    """
    Split a composite team label into its member names.

    Examples:
        >>> split_team_name("Anna Schmidt / Ben Weber")
        ['Anna Schmidt', 'Ben Weber']
        >>> split_team_name("Solo Player")
        ['Solo Player']
    """
    if not label:
        return []
    return [part.strip() for part in TEAM_NAME_SEPARATOR.split(label.strip()) if part.strip()]


def resolve_alias(session: Session, name: str) -> str:
    """Resolve a single name against the alias table."""
    row = session.execute(
        select(PlayerAlias.canonical_name).where(PlayerAlias.alias == name.strip())
    ).scalar_one_or_none()
    return row if row is not None else name.strip()


# =============================================================================
# Alias administration
# =============================================================================

def list_aliases(session: Session) -> list[PlayerAlias]:
    """All aliases ordered by canonical name, then alias."""
    return list(
        session.scalars(
            select(PlayerAlias).order_by(PlayerAlias.canonical_name, PlayerAlias.alias)
        )
    )


def get_alias(session: Session, alias_id: int) -> PlayerAlias:
    alias = session.get(PlayerAlias, alias_id)
    if alias is None:
        raise NotFoundError(f"Alias {alias_id} not found")
    return alias


def _player_id_for(session: Session, canonical_name: str) -> Optional[int]:
    return session.execute(
        select(Player.id).where(Player.name == canonical_name)
    ).scalar_one_or_none()


def create_alias(
    session: Session,
    alias: str,
    canonical_name: str,
    player_id: Optional[int] = None,
) -> PlayerAlias:
    """
    Register a new spelling for a canonical player name.

    If no player_id is given, the alias is linked to the player whose name
    equals the canonical name, when such a player exists.

    Raises:
        ValidationError: alias or canonical name is blank
        ConflictError: the alias spelling is already registered
    """
    alias = (alias or "").strip()
    canonical_name = (canonical_name or "").strip()
    if not alias or not canonical_name:
        raise ValidationError("Alias and canonical name are required")

    existing = session.execute(
        select(PlayerAlias).where(PlayerAlias.alias == alias)
    ).scalar_one_or_none()
    if existing is not None:
        raise ConflictError(f"Alias '{alias}' already exists")

    if player_id is None:
        player_id = _player_id_for(session, canonical_name)

    row = PlayerAlias(alias=alias, canonical_name=canonical_name, player_id=player_id)
    session.add(row)
    session.flush()
    logger.info("Created alias '%s' -> '%s'", alias, canonical_name)
    return row


def update_alias(
    session: Session,
    alias_id: int,
    alias: Optional[str] = None,
    canonical_name: Optional[str] = None,
) -> PlayerAlias:
    """Change the spelling and/or the canonical target of an alias."""
    row = get_alias(session, alias_id)

    if alias is not None and alias.strip() != row.alias:
        clash = session.execute(
            select(PlayerAlias.id).where(PlayerAlias.alias == alias.strip())
        ).scalar_one_or_none()
        if clash is not None:
            raise ConflictError(f"Alias '{alias.strip()}' already exists")
        row.alias = alias.strip()

    if canonical_name is not None and canonical_name.strip():
        row.canonical_name = canonical_name.strip()
        row.player_id = _player_id_for(session, row.canonical_name)

    session.flush()
    return row


def delete_alias(session: Session, alias_id: int) -> None:
    row = get_alias(session, alias_id)
    session.delete(row)
    session.flush()
    logger.info("Deleted alias '%s'", row.alias)
