"""
Schema management for the `users` and `session` tables.

Each `migrations/NNNN_name.sql` file is one schema step. A step runs once, in its own
transaction, and is recorded in `schema_migrations` together with its sha256. A step
whose file changed after it ran is refused instead of being re-applied.
"""

from __future__ import annotations

import hashlib
import logging
import re
from dataclasses import dataclass
from pathlib import Path
from typing import Dict, List, Optional, Sequence, Tuple

from gate.db.config import DbConfig, build_postgres_dsn, load_db_config

logger = logging.getLogger(__name__)

MIGRATIONS_DIR = Path(__file__).resolve().parent / "migrations"

# Held for the whole upgrade so two app replicas starting together don't both apply a step.
SCHEMA_LOCK_KEY = 604_118_273_551

_CREATES_TABLE = re.compile(r"\bCREATE\s+TABLE\s+(?:IF\s+NOT\s+EXISTS\s+)?([A-Za-z_][A-Za-z0-9_]*)", re.IGNORECASE)

_BOOKKEEPING_DDL = """
    CREATE TABLE IF NOT EXISTS schema_migrations (
      version text PRIMARY KEY,
      checksum text NOT NULL,
      applied_at timestamptz NOT NULL DEFAULT now()
    )
"""


@dataclass(frozen=True)
class SchemaStep:
    version: str
    sql: str
    checksum: str
    tables: Tuple[str, ...]  # tables the step creates, in file order

    @classmethod
    def from_file(cls, path: Path) -> "SchemaStep":
        raw = path.read_bytes()
        sql = raw.decode("utf-8")
        return cls(
            version=path.stem,
            sql=sql,
            checksum=hashlib.sha256(raw).hexdigest(),
            tables=tuple(_CREATES_TABLE.findall(sql)),
        )


@dataclass(frozen=True)
class StepResult:
    step: SchemaStep
    applied: bool  # False when the step was already recorded

    def describe(self) -> str:
        tables = ", ".join(self.step.tables) or "no tables"
        return f"{self.step.version} [{tables}]: {'applied' if self.applied else 'up to date'}"


def schema_steps(directory: Path = MIGRATIONS_DIR) -> List[SchemaStep]:
    """Schema steps shipped in `directory`, ordered by file name."""
    return [SchemaStep.from_file(p) for p in sorted(directory.glob("*.sql")) if p.is_file()]


def _recorded_checksums(conn) -> Dict[str, str]:
    conn.execute(_BOOKKEEPING_DDL)
    rows = conn.execute("SELECT version, checksum FROM schema_migrations").fetchall()
    return {str(version): str(checksum) for version, checksum in rows}


def _apply_step(conn, step: SchemaStep, recorded_checksum: Optional[str]) -> StepResult:
    if recorded_checksum is not None:
        if recorded_checksum != step.checksum:
            raise RuntimeError(
                f"Schema step {step.version} was edited after it ran "
                f"(recorded {recorded_checksum[:12]}, file {step.checksum[:12]})"
            )
        return StepResult(step=step, applied=False)

    with conn.transaction():
        conn.execute(step.sql)
        conn.execute(
            "INSERT INTO schema_migrations (version, checksum) VALUES (%s, %s)",
            (step.version, step.checksum),
        )
    logger.info("Applied schema step %s (%s)", step.version, ", ".join(step.tables) or "no tables")
    return StepResult(step=step, applied=True)


def upgrade_schema(dsn: str, steps: Optional[Sequence[SchemaStep]] = None) -> List[StepResult]:
    """Bring the database up to the latest schema step; one result per step, in order."""
    import psycopg

    pending = schema_steps() if steps is None else list(steps)
    results: List[StepResult] = []
    with psycopg.connect(dsn, autocommit=True) as conn:
        conn.execute("SELECT pg_advisory_lock(%s)", (SCHEMA_LOCK_KEY,))
        try:
            recorded = _recorded_checksums(conn)
            for step in pending:
                results.append(_apply_step(conn, step, recorded.get(step.version)))
        finally:
            conn.execute("SELECT pg_advisory_unlock(%s)", (SCHEMA_LOCK_KEY,))
    return results


def maybe_auto_migrate(cfg: Optional[DbConfig] = None) -> Tuple[bool, str]:
    """
    Upgrade the schema at startup when DB_AUTO_MIGRATE=1 and Postgres is configured.

    Returns: (did_attempt, message)
    """
    cfg = cfg or load_db_config()
    if not cfg.db_auto_migrate:
        return False, "DB_AUTO_MIGRATE is disabled"
    dsn = build_postgres_dsn(cfg)
    if not dsn:
        return False, "Postgres DSN not configured"

    applied = [r.step.version for r in upgrade_schema(dsn) if r.applied]
    if applied:
        return True, f"Applied {', '.join(applied)}"
    return True, "Schema up to date"
