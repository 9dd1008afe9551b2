from __future__ import annotations

import base64
import os
from typing import Optional

from itsdangerous import BadSignature, BadTimeSignature, URLSafeTimedSerializer

from gate.auth.config import AuthConfig

SESSION_SALT = "gate-session-id-v1"


def b64url(data: bytes) -> str:
    return base64.urlsafe_b64encode(data).decode("ascii").rstrip("=")


def new_session_id(nbytes: int = 24) -> str:
    return b64url(os.urandom(nbytes))


def _serializer(cfg: AuthConfig) -> Optional[URLSafeTimedSerializer]:
    if not cfg.session_secret:
        return None
    return URLSafeTimedSerializer(secret_key=cfg.session_secret, salt=SESSION_SALT)


def encode_session_id(cfg: AuthConfig, sid: str) -> Optional[str]:
    s = _serializer(cfg)
    if s is None:
        return None
    return s.dumps(sid)


def decode_session_id(cfg: AuthConfig, value: str | None) -> Optional[str]:
    """Return the session id carried by a cookie value, or None if unsigned/tampered/stale."""
    if not value:
        return None
    s = _serializer(cfg)
    if s is None:
        return None
    try:
        sid = s.loads(value, max_age=cfg.session_ttl_seconds)
    except (BadSignature, BadTimeSignature):
        return None
    if not isinstance(sid, str) or not sid:
        return None
    return sid


def session_cookie_kwargs(cfg: AuthConfig, value: str) -> dict:
    return {
        "key": cfg.cookie_name,
        "value": value,
        "max_age": cfg.session_ttl_seconds,
        "httponly": True,
        "secure": cfg.cookie_secure,
        "samesite": "lax",
        "path": "/",
    }


def clear_session_cookie_kwargs(cfg: AuthConfig) -> dict:
    return {
        "key": cfg.cookie_name,
        "value": "",
        "max_age": 0,
        "httponly": True,
        "secure": cfg.cookie_secure,
        "samesite": "lax",
        "path": "/",
    }
