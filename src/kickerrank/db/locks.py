"""Per-tournament-identity locks that serialize concurrent imports of one event."""

from __future__ import annotations

import hashlib
import threading
from contextlib import ExitStack, contextmanager
from typing import Generator, Iterable

from sqlalchemy import text
from sqlalchemy.orm import Session

# In-process locks are striped so memory stays fixed however many
# tournaments are imported; unrelated keys may share a stripe.
LOCK_STRIPES = 64
_local_locks = tuple(threading.Lock() for _ in range(LOCK_STRIPES))


def advisory_lock_key(name: str) -> int:
    """Return a deterministic signed 64-bit lock key from a tournament identity."""
    digest = hashlib.sha256(name.encode("utf-8")).digest()
    return int.from_bytes(digest[:8], byteorder="big", signed=True)


def _stripe(key: int) -> int:
    return key % LOCK_STRIPES


def _local_lock(key: int) -> threading.Lock:
    return _local_locks[_stripe(key)]


@contextmanager
def tournament_identity_lock(
    session: Session,
    identities: Iterable[str],
    *,
    timeout_seconds: float = 300.0,
) -> Generator[list[int], None, None]:
    """
    Hold a lock per identity for the life of this context.

    On PostgreSQL this takes transaction-scoped advisory locks, which stay
    held until the surrounding transaction commits or rolls back. Other
    dialects fall back to in-process locks; SQLite serializes writers anyway.
    Keys are acquired in sorted order so two imports never deadlock.

    Yields:
        The lock keys that were acquired.

    Raises:
        TimeoutError: if an in-process lock cannot be acquired before timeout.
    """
    keys = sorted({advisory_lock_key(identity) for identity in identities})
    dialect = session.get_bind().dialect.name

    if dialect == "postgresql":
        for key in keys:
            session.execute(text("SELECT pg_advisory_xact_lock(:key)"), {"key": key})
        yield keys
        return

    with ExitStack() as stack:
        # Two keys on one stripe take that stripe once
        for stripe in sorted({_stripe(key) for key in keys}):
            lock = _local_locks[stripe]
            if not lock.acquire(timeout=max(timeout_seconds, 0.05)):
                raise TimeoutError(f"Could not acquire tournament lock stripe={stripe}")
            stack.callback(lock.release)
        yield keys
