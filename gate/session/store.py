from __future__ import annotations

import json
import threading
from datetime import datetime, timedelta, timezone
from typing import Any, Callable, Dict, Optional, Protocol, Tuple

SessionData = Dict[str, Any]


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class SessionStore(Protocol):
    """
    Server-side session persistence. Implementations: Postgres, in-process.
    """

    def get(self, sid: str) -> Optional[SessionData]:
        """Return the payload for a live session, or None if missing/expired."""

    def set(self, sid: str, data: SessionData, ttl_seconds: int) -> None:
        """Create or replace a session, expiring `ttl_seconds` from now."""

    def destroy(self, sid: str) -> None:
        """Remove a session. Unknown ids are not an error."""

    def prune_expired(self) -> int:
        """Delete expired sessions; return how many were removed."""


class PostgresSessionStore:
    """`session(sid, sess, expire)` table accessed through an application-owned psycopg pool."""

    def __init__(self, pool, *, table: str = "session") -> None:
        self._pool = pool
        self._table = table

    def get(self, sid: str) -> Optional[SessionData]:
        with self._pool.connection() as conn:
            with conn.cursor() as cur:
                cur.execute(
                    f"SELECT sess FROM {self._table} WHERE sid = %s AND expire >= now()",
                    (sid,),
                )
                row = cur.fetchone()
        if not row:
            return None
        sess = row[0]
        # json columns come back decoded; tolerate text for older rows.
        if isinstance(sess, str):
            sess = json.loads(sess)
        return sess if isinstance(sess, dict) else None

    def set(self, sid: str, data: SessionData, ttl_seconds: int) -> None:
        from psycopg.types.json import Json

        expire = utcnow() + timedelta(seconds=ttl_seconds)
        with self._pool.connection() as conn:
            with conn.cursor() as cur:
                cur.execute(
                    f"""
                    INSERT INTO {self._table} (sid, sess, expire)
                    VALUES (%s, %s, %s)
                    ON CONFLICT (sid) DO UPDATE SET sess = EXCLUDED.sess, expire = EXCLUDED.expire
                    """,
                    (sid, Json(data), expire),
                )

    def destroy(self, sid: str) -> None:
        with self._pool.connection() as conn:
            with conn.cursor() as cur:
                cur.execute(f"DELETE FROM {self._table} WHERE sid = %s", (sid,))

    def prune_expired(self) -> int:
        with self._pool.connection() as conn:
            with conn.cursor() as cur:
                cur.execute(f"DELETE FROM {self._table} WHERE expire < now()")
                return cur.rowcount or 0


class InMemorySessionStore:
    """Process-local session store for development and tests."""

    def __init__(self, clock: Callable[[], datetime] = utcnow) -> None:
        self._sessions: Dict[str, Tuple[SessionData, datetime]] = {}
        self._lock = threading.Lock()
        self._clock = clock

    def get(self, sid: str) -> Optional[SessionData]:
        with self._lock:
            entry = self._sessions.get(sid)
            if entry is None:
                return None
            data, expire = entry
            if expire < self._clock():
                return None
            return dict(data)

    def set(self, sid: str, data: SessionData, ttl_seconds: int) -> None:
        expire = self._clock() + timedelta(seconds=ttl_seconds)
        with self._lock:
            self._sessions[sid] = (dict(data), expire)

    def destroy(self, sid: str) -> None:
        with self._lock:
            self._sessions.pop(sid, None)

    def prune_expired(self) -> int:
        now = self._clock()
        with self._lock:
            expired = [sid for sid, (_, expire) in self._sessions.items() if expire < now]
            for sid in expired:
                del self._sessions[sid]
        return len(expired)

    def __len__(self) -> int:
        with self._lock:
            return len(self._sessions)
