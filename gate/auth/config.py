from __future__ import annotations

from dataclasses import dataclass
from functools import lru_cache
from typing import Optional

from gate.utils.env import env_bool, env_int, env_str

DEFAULT_SESSION_TTL_SECONDS = 24 * 60 * 60
DEFAULT_BCRYPT_ROUNDS = 10


@dataclass(frozen=True)
class AuthConfig:
    # Session configuration
    session_secret: Optional[str]  # Required for cookie signing
    session_ttl_seconds: int
    session_prune_interval_seconds: int  # 0 disables the background sweep
    cookie_name: str
    cookie_secure: bool

    # Password hashing
    bcrypt_rounds: int

    @property
    def session_enabled(self) -> bool:
        return bool(self.session_secret)


@lru_cache(maxsize=1)
def load_auth_config() -> AuthConfig:
    """
    Load authentication configuration from environment variables.

    AUTH_SESSION_SECRET is preferred; MY_SECRET is accepted for deployments that
    still use the older variable name.
    """
    ttl = env_int("AUTH_SESSION_TTL_SECONDS", DEFAULT_SESSION_TTL_SECONDS)
    if ttl <= 60:
        ttl = 60

    prune_interval = env_int("AUTH_SESSION_PRUNE_INTERVAL_SECONDS", 15 * 60)
    if prune_interval < 0:
        prune_interval = 0

    # bcrypt accepts cost factors 4..31.
    rounds = min(max(env_int("AUTH_BCRYPT_ROUNDS", DEFAULT_BCRYPT_ROUNDS), 4), 31)

    return AuthConfig(
        session_secret=env_str("AUTH_SESSION_SECRET") or env_str("MY_SECRET"),
        session_ttl_seconds=ttl,
        session_prune_interval_seconds=prune_interval,
        cookie_name=env_str("AUTH_COOKIE_NAME") or "gate.sid",
        cookie_secure=env_bool("AUTH_COOKIE_SECURE", False),
        bcrypt_rounds=rounds,
    )
