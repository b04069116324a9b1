"""
Error taxonomy for kickerrank.

Ingestion errors abort the whole tournament import. Rating problems are
reported per match as RatingComputationWarning and never abort the pass.

Mapping used by the HTTP collaborator:
- ConflictError   -> "already exists"
- NotFoundError   -> 404
- anything else   -> generic ingestion failure with the message attached
"""

from typing import Optional


class KickerRankError(Exception):
    """Base class for all kickerrank errors."""


class IngestionError(KickerRankError):
    """A tournament import failed; nothing from it was persisted."""


class ValidationError(IngestionError):
    """The payload is missing a required field (name, external id) or is malformed."""

    def __init__(self, message: str, errors: Optional[list[dict]] = None):
        super().__init__(message)
        self.errors = errors or []


class ConflictError(IngestionError):
    """An external identifier or alias collided with an existing row on create."""


class IngestionTimeoutError(IngestionError):
    """The import ran past the configured transaction timeout."""


class MalformedMatchError(IngestionError):
    """
    A match has no valid result or an incomplete team.

    Raised and caught inside the sync engine only: exports routinely carry
    byes and placeholder matches, so these are excluded silently.
    """


class NotFoundError(KickerRankError):
    """A referenced tournament, alias or player does not exist."""


class RatingComputationWarning(UserWarning):
    """A single match could not be rated; it was skipped for rating purposes."""

    def __init__(self, message: str, match_key: Optional[str] = None):
        super().__init__(message)
        self.match_key = match_key
