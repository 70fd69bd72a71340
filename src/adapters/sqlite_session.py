"""
SQLite adapter for SessionRepository.

Use ":memory:" for tests, a file path for production. The context is stored
as a JSON document; expiry is a separate indexed column so purging never has
to parse it.
"""

import json
import sqlite3
from datetime import datetime

from src.domain.session import SessionRepository, StoredSession

_SCHEMA = """
CREATE TABLE IF NOT EXISTS conversation_sessions (
    session_key      TEXT PRIMARY KEY,
    context          TEXT NOT NULL,
    expires_at       TEXT NOT NULL,
    last_activity_at TEXT NOT NULL
);

CREATE INDEX IF NOT EXISTS idx_conversation_sessions_expires
    ON conversation_sessions (expires_at);
"""


def _parse_dt(s: str) -> datetime:
    return datetime.fromisoformat(s)


class SqliteSessionRepository(SessionRepository):

    def __init__(self, db_path: str = "salon_sessions.db"):
        self._conn = sqlite3.connect(db_path)
        self._conn.row_factory = sqlite3.Row
        self._conn.executescript(_SCHEMA)

    async def load(self, key: str) -> StoredSession | None:
        row = self._conn.execute(
            "SELECT * FROM conversation_sessions WHERE session_key = ?", (key,)
        ).fetchone()
        if not row:
            return None
        return StoredSession(
            key=row["session_key"],
            context=json.loads(row["context"]),
            expires_at=_parse_dt(row["expires_at"]),
            last_activity_at=_parse_dt(row["last_activity_at"]),
        )

    async def save(
        self,
        key: str,
        context: dict,
        expires_at: datetime,
        last_activity_at: datetime,
    ) -> None:
        self._conn.execute(
            "INSERT INTO conversation_sessions (session_key, context, expires_at, last_activity_at)"
            " VALUES (?, ?, ?, ?)"
            " ON CONFLICT(session_key) DO UPDATE SET"
            "  context = excluded.context,"
            "  expires_at = excluded.expires_at,"
            "  last_activity_at = excluded.last_activity_at",
            (key, json.dumps(context), expires_at.isoformat(), last_activity_at.isoformat()),
        )
        self._conn.commit()

    async def delete(self, key: str) -> None:
        self._conn.execute("DELETE FROM conversation_sessions WHERE session_key = ?", (key,))
        self._conn.commit()

    async def purge_expired(self, now: datetime) -> int:
        # ISO strings of same-offset datetimes sort chronologically; compare in Python
        # to stay correct when callers mix offsets.
        rows = self._conn.execute(
            "SELECT session_key, expires_at FROM conversation_sessions"
        ).fetchall()
        expired = [r["session_key"] for r in rows if _parse_dt(r["expires_at"]) <= now]
        self._conn.executemany(
            "DELETE FROM conversation_sessions WHERE session_key = ?",
            [(k,) for k in expired],
        )
        self._conn.commit()
        return len(expired)
