"""
SessionRepository port: durable storage for conversation contexts.

The repository stores plain JSON-able dicts plus an expiry timestamp. It
knows nothing about merging, caching or step history; that lives in
src.context_store.ContextStore, which is the only caller.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from datetime import datetime


@dataclass
class StoredSession:
    key: str
    context: dict
    expires_at: datetime
    last_activity_at: datetime


class SessionRepository(ABC):
    """
    Port: persist one context per conversation key.

    Implementations: InMemorySessionRepository (tests, local runs) and
    SqliteSessionRepository (production). Both must satisfy the same contract.
    """

    @abstractmethod
    async def load(self, key: str) -> StoredSession | None:
        """Return the stored session, expired or not, or None."""
        ...

    @abstractmethod
    async def save(
        self,
        key: str,
        context: dict,
        expires_at: datetime,
        last_activity_at: datetime,
    ) -> None:
        """Insert or replace the session for this key."""
        ...

    @abstractmethod
    async def delete(self, key: str) -> None:
        """Remove the session. Unknown keys are ignored."""
        ...

    @abstractmethod
    async def purge_expired(self, now: datetime) -> int:
        """Delete every session whose expiry is at or before ``now``. Returns the count."""
        ...
