"""
Services that write to the database.

- tournament_sync: idempotent import of tournament exports
"""

from kickerrank.services.tournament_sync import (
    SyncStats,
    TournamentSyncService,
    delete_tournament,
    get_tournament,
)

__all__ = [
    "TournamentSyncService",
    "SyncStats",
    "get_tournament",
    "delete_tournament",
]
