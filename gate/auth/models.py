from __future__ import annotations

from dataclasses import dataclass


@dataclass(frozen=True)
class UserRecord:
    """Registered account as stored in the `users` table."""

    email: str
    password_hash: str
