from __future__ import annotations

import logging
from typing import Optional

from gate.db.config import DbConfig, build_postgres_dsn, load_db_config

logger = logging.getLogger(__name__)


def open_pool(cfg: Optional[DbConfig] = None, *, wait: bool = True):
    """
    Open a psycopg connection pool, or return None if Postgres is not configured.

    The caller owns the pool and must `close()` it.
    """
    cfg = cfg or load_db_config()
    dsn = build_postgres_dsn(cfg)
    if not dsn:
        return None

    from psycopg_pool import ConnectionPool

    pool = ConnectionPool(
        conninfo=dsn,
        min_size=cfg.pool_min_size,
        max_size=cfg.pool_max_size,
        open=False,
        name="gate",
    )
    pool.open(wait=wait)
    logger.info(
        "Postgres pool opened: host=%s db=%s min=%d max=%d",
        cfg.postgres_host or "(dsn)",
        cfg.postgres_db or "(dsn)",
        cfg.pool_min_size,
        cfg.pool_max_size,
    )
    return pool
