"""
Player identity: alias resolution, the get-or-create registry and lookups.
"""

from kickerrank.players.aliases import (
    AliasResolver,
    create_alias,
    delete_alias,
    get_alias,
    list_aliases,
    resolve_alias,
    split_team_name,
    update_alias,
)
from kickerrank.players.registry import PlayerRegistry, get_player

__all__ = [
    "AliasResolver",
    "resolve_alias",
    "split_team_name",
    "create_alias",
    "update_alias",
    "delete_alias",
    "get_alias",
    "list_aliases",
    "PlayerRegistry",
    "get_player",
]
