"""In-memory adapter for SessionRepository: for tests and local development."""

import copy
from datetime import datetime

from src.domain.session import SessionRepository, StoredSession


class InMemorySessionRepository(SessionRepository):

    def __init__(self):
        self._sessions: dict[str, StoredSession] = {}
        self.saves = 0  # write counter, lets tests see the read cache at work
        self.loads = 0

    async def load(self, key: str) -> StoredSession | None:
        self.loads += 1
        session = self._sessions.get(key)
        return copy.deepcopy(session) if session else None

    async def save(
        self,
        key: str,
        context: dict,
        expires_at: datetime,
        last_activity_at: datetime,
    ) -> None:
        self.saves += 1
        self._sessions[key] = StoredSession(
            key=key,
            context=copy.deepcopy(context),
            expires_at=expires_at,
            last_activity_at=last_activity_at,
        )

    async def delete(self, key: str) -> None:
        self._sessions.pop(key, None)

    async def purge_expired(self, now: datetime) -> int:
        expired = [k for k, s in self._sessions.items() if s.expires_at <= now]
        for key in expired:
            del self._sessions[key]
        return len(expired)
