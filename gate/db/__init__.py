"""Postgres plumbing: configuration, connection pool, and schema migrations.

Postgres drivers are imported lazily inside functions so the app can run with the
in-process stores when no database is configured.
"""

from __future__ import annotations
