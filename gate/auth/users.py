from __future__ import annotations

import threading
from typing import Dict, Optional, Protocol

from gate.auth.models import UserRecord


class UserStore(Protocol):
    """
    Credential store interface. Implementations: Postgres, in-process.
    """

    def get_by_email(self, email: str) -> Optional[UserRecord]:
        """Return the user with exactly this email, or None."""

    def insert(self, email: str, password_hash: str) -> bool:
        """
        Insert a new user.

        Returns False (and changes nothing) if the email is already taken.
        """


class PostgresUserStore:
    """`users` table accessed through an application-owned psycopg pool."""

    def __init__(self, pool) -> None:
        self._pool = pool

    def get_by_email(self, email: str) -> Optional[UserRecord]:
        with self._pool.connection() as conn:
            with conn.cursor() as cur:
                cur.execute(
                    """
                    SELECT email, password
                    FROM users
                    WHERE email = %s
                    """,
                    (email,),
                )
                row = cur.fetchone()
        if not row:
            return None
        db_email, password_hash = row
        return UserRecord(email=db_email, password_hash=password_hash)

    def insert(self, email: str, password_hash: str) -> bool:
        # ON CONFLICT closes the window between the existence check and this insert.
        with self._pool.connection() as conn:
            with conn.cursor() as cur:
                cur.execute(
                    """
                    INSERT INTO users (email, password)
                    VALUES (%s, %s)
                    ON CONFLICT (email) DO NOTHING
                    RETURNING email
                    """,
                    (email, password_hash),
                )
                row = cur.fetchone()
        return row is not None


class InMemoryUserStore:
    """Process-local credential store for development and tests."""

    def __init__(self) -> None:
        self._users: Dict[str, UserRecord] = {}
        self._lock = threading.Lock()

    def get_by_email(self, email: str) -> Optional[UserRecord]:
        with self._lock:
            return self._users.get(email)

    def insert(self, email: str, password_hash: str) -> bool:
        with self._lock:
            if email in self._users:
                return False
            self._users[email] = UserRecord(email=email, password_hash=password_hash)
            return True

    def __len__(self) -> int:
        with self._lock:
            return len(self._users)
