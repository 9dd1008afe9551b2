from __future__ import annotations

import logging
from typing import Any, Dict, Iterator, MutableMapping, Optional

from fastapi import FastAPI, Request
from fastapi.concurrency import run_in_threadpool
from fastapi.responses import HTMLResponse

from gate.auth.config import AuthConfig
from gate.session.cookie import decode_session_id, encode_session_id, new_session_id, session_cookie_kwargs
from gate.session.store import SessionStore

logger = logging.getLogger(__name__)


class Session(MutableMapping[str, Any]):
    """
    Per-request view of a server-side session.

    Mutations only mark the session dirty; the middleware persists it after the
    handler returns. `sid` is None until the session is first saved.
    """

    def __init__(self, sid: Optional[str] = None, data: Optional[Dict[str, Any]] = None) -> None:
        self.sid = sid
        self._data: Dict[str, Any] = dict(data or {})
        self.modified = False
        self.destroyed = False

    def __getitem__(self, key: str) -> Any:
        return self._data[key]

    def __setitem__(self, key: str, value: Any) -> None:
        self._data[key] = value
        self.modified = True

    def __delitem__(self, key: str) -> None:
        del self._data[key]
        self.modified = True

    def __iter__(self) -> Iterator[str]:
        return iter(self._data)

    def __len__(self) -> int:
        return len(self._data)

    def to_dict(self) -> Dict[str, Any]:
        return dict(self._data)

    def destroy(self, store: SessionStore) -> None:
        """Delete the backing record. Store errors propagate and leave the session intact."""
        if self.sid is not None:
            store.destroy(self.sid)
        self._data.clear()
        self.sid = None
        self.destroyed = True


def get_session(request: Request) -> Session:
    session = getattr(request.state, "session", None)
    if session is None:
        # Route reached without the middleware (should not happen in the app).
        session = Session()
        request.state.session = session
    return session


async def _load_session(cfg: AuthConfig, store: SessionStore, cookie_value: Optional[str]) -> Session:
    sid = decode_session_id(cfg, cookie_value)
    if sid is None:
        return Session()
    data = await run_in_threadpool(store.get, sid)
    if data is None:
        return Session()
    return Session(sid=sid, data=data)


def install_session_middleware(app: FastAPI) -> None:
    """
    Attach the session middleware to `app`.

    Expects `app.state.auth_config` and `app.state.session_store` to be set before
    the first request. Only modified, non-empty sessions are written back.
    """

    @app.middleware("http")
    async def session_middleware(request: Request, call_next):
        cfg: AuthConfig = request.app.state.auth_config
        store: SessionStore = request.app.state.session_store

        try:
            session = await _load_session(cfg, store, request.cookies.get(cfg.cookie_name))
        except Exception:
            logger.exception("Session load failed for %s %s", request.method, request.url.path)
            return HTMLResponse("Internal Server Error", status_code=500)
        request.state.session = session

        response = await call_next(request)

        if session.destroyed or not session.modified or not len(session):
            return response

        if session.sid is None:
            session.sid = new_session_id()
        try:
            await run_in_threadpool(store.set, session.sid, session.to_dict(), cfg.session_ttl_seconds)
        except Exception:
            logger.exception("Session save failed for %s %s", request.method, request.url.path)
            return HTMLResponse("Internal Server Error", status_code=500)

        cookie_value = encode_session_id(cfg, session.sid)
        if cookie_value:
            response.set_cookie(**session_cookie_kwargs(cfg, cookie_value))
        return response
