"""
kickerrank - Tournament results sync and ranking core

Ingests match/standing exports from the tournament-management tool used at
table-football (kicker) events, keeps the relational state in step with each
export, and derives player rankings from it.

Main components:
- payloads: Export schema, format normalizer and season-final merging
- services: Transactional tournament sync (idempotent import)
- players: Alias resolution and the player registry
- rankings: Combined placement, tie-breakers, season points and finale status
- rating: TrueSkill rating engine over the full match history
- core: The operations consumed by the HTTP layer
"""

__version__ = "1.0.0"
