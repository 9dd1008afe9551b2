from __future__ import annotations

from dataclasses import dataclass
from functools import lru_cache
from typing import Optional

from gate.utils.env import env_bool, env_int, env_str

NOT_CONFIGURED_MESSAGE = "Postgres not configured (set DATABASE_URL or POSTGRES_* env vars)."


class DatabaseNotConfigured(RuntimeError):
    """Raised by commands that cannot run without Postgres."""

    def __init__(self) -> None:
        super().__init__(NOT_CONFIGURED_MESSAGE)


@dataclass(frozen=True)
class DbConfig:
    # Feature flags
    db_auto_migrate: bool

    # Postgres connection (either dsn or parts)
    postgres_dsn: Optional[str]
    postgres_host: Optional[str]
    postgres_port: int
    postgres_db: Optional[str]
    postgres_user: Optional[str]
    postgres_password: Optional[str]
    postgres_sslmode: Optional[str]

    # Pool sizing
    pool_min_size: int
    pool_max_size: int


@lru_cache(maxsize=1)
def load_db_config() -> DbConfig:
    min_size = max(env_int("DB_POOL_MIN_SIZE", 1), 0)
    max_size = max(env_int("DB_POOL_MAX_SIZE", 10), 1)
    if max_size < min_size:
        max_size = min_size

    return DbConfig(
        db_auto_migrate=env_bool("DB_AUTO_MIGRATE", False),
        postgres_dsn=env_str("DATABASE_URL") or env_str("POSTGRES_DSN"),
        postgres_host=env_str("POSTGRES_HOST"),
        postgres_port=env_int("POSTGRES_PORT", 5432),
        postgres_db=env_str("POSTGRES_DB"),
        postgres_user=env_str("POSTGRES_USER"),
        postgres_password=env_str("POSTGRES_PASSWORD"),
        postgres_sslmode=env_str("POSTGRES_SSLMODE"),
        pool_min_size=min_size,
        pool_max_size=max_size,
    )


def build_postgres_dsn(cfg: DbConfig) -> Optional[str]:
    from psycopg.conninfo import make_conninfo

    if cfg.postgres_dsn:
        if cfg.postgres_sslmode:
            return make_conninfo(cfg.postgres_dsn, sslmode=cfg.postgres_sslmode)
        return cfg.postgres_dsn
    if not (cfg.postgres_host and cfg.postgres_db and cfg.postgres_user and cfg.postgres_password):
        return None
    # make_conninfo quotes/escapes special characters (spaces, quotes) in passwords.
    params = {
        "host": cfg.postgres_host,
        "port": cfg.postgres_port,
        "dbname": cfg.postgres_db,
        "user": cfg.postgres_user,
        "password": cfg.postgres_password,
    }
    if cfg.postgres_sslmode:
        params["sslmode"] = cfg.postgres_sslmode
    return make_conninfo(**params)


def require_postgres_dsn(cfg: Optional[DbConfig] = None) -> str:
    """DSN for commands that need Postgres; raises DatabaseNotConfigured otherwise."""
    dsn = build_postgres_dsn(cfg or load_db_config())
    if not dsn:
        raise DatabaseNotConfigured()
    return dsn
