"""
Pytest config.

Pins the repo root on sys.path so `import gate` works when a global `pytest`
entrypoint is used without installing the project.
"""

from __future__ import annotations

import sys
from pathlib import Path

import pytest


def _ensure_repo_root_on_syspath() -> None:
    repo_root = Path(__file__).resolve().parents[1]
    repo_root_str = str(repo_root)
    if repo_root_str not in sys.path:
        sys.path.insert(0, repo_root_str)


_ensure_repo_root_on_syspath()

from fastapi.testclient import TestClient  # noqa: E402

from gate.api.app import create_app  # noqa: E402
from gate.auth.config import AuthConfig, load_auth_config  # noqa: E402
from gate.auth.users import InMemoryUserStore  # noqa: E402
from gate.db.config import load_db_config  # noqa: E402
from gate.session.store import InMemorySessionStore  # noqa: E402

TEST_SECRET = "test-secret-key-for-testing-purposes-only"


@pytest.fixture(autouse=True)
def _clear_config_caches():
    """Config loaders are lru_cached; make env changes in one test invisible to the next."""
    load_auth_config.cache_clear()
    load_db_config.cache_clear()
    yield
    load_auth_config.cache_clear()
    load_db_config.cache_clear()


@pytest.fixture()
def auth_config() -> AuthConfig:
    # Lowest bcrypt cost keeps the suite fast.
    return AuthConfig(
        session_secret=TEST_SECRET,
        session_ttl_seconds=24 * 60 * 60,
        session_prune_interval_seconds=0,
        cookie_name="gate.sid",
        cookie_secure=False,
        bcrypt_rounds=4,
    )


@pytest.fixture()
def user_store() -> InMemoryUserStore:
    return InMemoryUserStore()


@pytest.fixture()
def session_store() -> InMemorySessionStore:
    return InMemorySessionStore()


@pytest.fixture()
def client(auth_config, user_store, session_store) -> TestClient:
    app = create_app(auth_config=auth_config, user_store=user_store, session_store=session_store)
    return TestClient(app)
