from __future__ import annotations

from unittest.mock import MagicMock

from gate.auth.models import UserRecord
from gate.auth.users import PostgresUserStore
from gate.session.store import PostgresSessionStore


def _mock_pool():
    pool = MagicMock()
    conn = MagicMock()
    cur = MagicMock()
    pool.connection.return_value.__enter__.return_value = conn
    conn.cursor.return_value.__enter__.return_value = cur
    return pool, cur


def _sql(cur) -> str:
    return " ".join(cur.execute.call_args[0][0].split())


def test_user_lookup_by_email() -> None:
    pool, cur = _mock_pool()
    cur.fetchone.return_value = ("a@x.com", "$2b$10$hash")

    user = PostgresUserStore(pool).get_by_email("a@x.com")
    assert user == UserRecord(email="a@x.com", password_hash="$2b$10$hash")
    assert "FROM users WHERE email = %s" in _sql(cur)
    assert cur.execute.call_args[0][1] == ("a@x.com",)


def test_user_lookup_miss() -> None:
    pool, cur = _mock_pool()
    cur.fetchone.return_value = None
    assert PostgresUserStore(pool).get_by_email("a@x.com") is None


def test_user_insert_uses_conflict_clause() -> None:
    pool, cur = _mock_pool()
    cur.fetchone.return_value = ("a@x.com",)

    assert PostgresUserStore(pool).insert("a@x.com", "$2b$10$hash") is True
    sql = _sql(cur)
    assert sql.startswith("INSERT INTO users (email, password)")
    assert "ON CONFLICT (email) DO NOTHING" in sql
    assert cur.execute.call_args[0][1] == ("a@x.com", "$2b$10$hash")


def test_user_insert_conflict_returns_false() -> None:
    pool, cur = _mock_pool()
    cur.fetchone.return_value = None
    assert PostgresUserStore(pool).insert("a@x.com", "$2b$10$hash") is False


def test_session_get_filters_expired() -> None:
    pool, cur = _mock_pool()
    cur.fetchone.return_value = ({"user": "a@x.com"},)

    assert PostgresSessionStore(pool).get("sid-1") == {"user": "a@x.com"}
    assert "expire >= now()" in _sql(cur)


def test_session_get_accepts_text_payload() -> None:
    pool, cur = _mock_pool()
    cur.fetchone.return_value = ('{"user": "a@x.com"}',)
    assert PostgresSessionStore(pool).get("sid-1") == {"user": "a@x.com"}


def test_session_set_upserts() -> None:
    pool, cur = _mock_pool()
    PostgresSessionStore(pool).set("sid-1", {"user": "a@x.com"}, 60)

    sql = _sql(cur)
    assert "INSERT INTO session (sid, sess, expire)" in sql
    assert "ON CONFLICT (sid) DO UPDATE" in sql
    sid, payload, _expire = cur.execute.call_args[0][1]
    assert sid == "sid-1"
    assert payload.obj == {"user": "a@x.com"}


def test_session_destroy_and_prune() -> None:
    pool, cur = _mock_pool()
    store = PostgresSessionStore(pool)

    store.destroy("sid-1")
    assert _sql(cur) == "DELETE FROM session WHERE sid = %s"

    cur.rowcount = 3
    assert store.prune_expired() == 3
    assert _sql(cur) == "DELETE FROM session WHERE expire < now()"
