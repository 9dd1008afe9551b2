"""
Web server: registration, login, logout and the session-gated secrets page.

Stores are owned by the application object. `create_app()` accepts them directly
(tests, embedding); otherwise the lifespan opens a Postgres pool, or falls back to
in-process stores when no database is configured.
"""

from __future__ import annotations

import logging
import os
import time
from contextlib import asynccontextmanager
from pathlib import Path
from typing import Any, Dict, Optional

from fastapi import Depends, FastAPI, Request
from fastapi.responses import HTMLResponse, RedirectResponse
from fastapi.staticfiles import StaticFiles
from fastapi.templating import Jinja2Templates

from gate.auth.config import AuthConfig, load_auth_config
from gate.auth.deps import (
    CredentialsForm,
    get_session_store,
    get_user_store,
    read_credentials_form,
    require_session_user,
)
from gate.auth.flow import LoginOutcome, RegisterOutcome, login_account, outcome_message, register_account
from gate.auth.users import InMemoryUserStore, PostgresUserStore, UserStore
from gate.session.cookie import clear_session_cookie_kwargs
from gate.session.middleware import get_session, install_session_middleware
from gate.session.pruner import SessionPruner
from gate.session.store import InMemorySessionStore, PostgresSessionStore, SessionStore

logger = logging.getLogger(__name__)

PACKAGE_DIR = Path(__file__).resolve().parents[1]
TEMPLATES_DIR = PACKAGE_DIR / "templates"
PUBLIC_DIR = PACKAGE_DIR / "public"

CACHE_CONTROL = "no-store, no-cache, must-revalidate, private"
INTERNAL_ERROR = "Internal Server Error"

templates = Jinja2Templates(directory=str(TEMPLATES_DIR))


def _open_default_stores(app: FastAPI) -> None:
    """Fill in whichever stores were not injected, backed by Postgres when configured."""
    from gate.db.migrate import maybe_auto_migrate
    from gate.db.pool import open_pool

    did_attempt, msg = maybe_auto_migrate()
    if did_attempt:
        logger.info("DB migrations: %s", msg)

    pool = open_pool()
    app.state.db_pool = pool
    if pool is None:
        logger.warning("Postgres not configured; using in-process user and session stores (data is not persisted)")
        if app.state.user_store is None:
            app.state.user_store = InMemoryUserStore()
        if app.state.session_store is None:
            app.state.session_store = InMemorySessionStore()
        return

    if app.state.user_store is None:
        app.state.user_store = PostgresUserStore(pool)
    if app.state.session_store is None:
        app.state.session_store = PostgresSessionStore(pool)


@asynccontextmanager
async def _lifespan(app: FastAPI):
    if app.state.user_store is None or app.state.session_store is None:
        _open_default_stores(app)

    cfg: AuthConfig = app.state.auth_config
    pruner = SessionPruner(app.state.session_store, cfg.session_prune_interval_seconds)
    pruner.start()
    try:
        yield
    finally:
        pruner.stop()
        pool = getattr(app.state, "db_pool", None)
        if pool is not None:
            pool.close()
            app.state.db_pool = None
            logger.info("Postgres pool closed")


def _render(request: Request, template_name: str, context: Optional[Dict[str, Any]] = None) -> HTMLResponse:
    return templates.TemplateResponse(request, template_name, context or {})


def create_app(
    *,
    auth_config: Optional[AuthConfig] = None,
    user_store: Optional[UserStore] = None,
    session_store: Optional[SessionStore] = None,
) -> FastAPI:
    cfg = auth_config or load_auth_config()
    if not cfg.session_enabled:
        raise RuntimeError("Session signing is not configured (set AUTH_SESSION_SECRET or MY_SECRET)")

    app = FastAPI(title="gate", lifespan=_lifespan, docs_url=None, redoc_url=None, openapi_url=None)
    app.state.auth_config = cfg
    app.state.user_store = user_store
    app.state.session_store = session_store
    app.state.db_pool = None

    if PUBLIC_DIR.is_dir():
        app.mount("/static", StaticFiles(directory=str(PUBLIC_DIR)), name="static")

    # Middleware added last runs outermost: logging -> cache control -> session.
    install_session_middleware(app)

    @app.middleware("http")
    async def no_store(request: Request, call_next):
        response = await call_next(request)
        response.headers["Cache-Control"] = CACHE_CONTROL
        return response

    @app.middleware("http")
    async def log_requests(request: Request, call_next):
        """Log all incoming HTTP requests."""
        start_time = time.time()
        try:
            response = await call_next(request)
        except Exception as e:
            process_time = time.time() - start_time
            logger.exception("%s %s - ERROR after %.3fs: %s", request.method, request.url.path, process_time, str(e))
            raise
        process_time = time.time() - start_time
        logger.debug("%s %s - %d (%.3fs)", request.method, request.url.path, response.status_code, process_time)
        return response

    @app.get("/healthz")
    def healthz() -> Dict[str, Any]:
        return {"ok": True}

    @app.get("/", response_class=HTMLResponse)
    def home(request: Request):
        return _render(request, "home.html")

    @app.get("/login", response_class=HTMLResponse)
    def login_form(request: Request):
        return _render(request, "login.html")

    @app.get("/register", response_class=HTMLResponse)
    def register_form(request: Request):
        return _render(request, "register.html")

    @app.get("/secrets", response_class=HTMLResponse)
    def secrets(request: Request, user: str = Depends(require_session_user)):
        return _render(request, "secrets.html", {"user": user})

    @app.post("/register")
    def register_submit(
        request: Request,
        form: CredentialsForm = Depends(read_credentials_form),
        users: UserStore = Depends(get_user_store),
    ):
        try:
            outcome = register_account(users, form.email, form.password, bcrypt_rounds=cfg.bcrypt_rounds)
        except Exception:
            logger.exception("Error during registration")
            return HTMLResponse(INTERNAL_ERROR, status_code=500)

        if outcome is not RegisterOutcome.CREATED:
            return HTMLResponse(outcome_message(outcome))

        get_session(request)["user"] = form.email
        return RedirectResponse(url="/secrets", status_code=302)

    @app.post("/login")
    def login_submit(
        request: Request,
        form: CredentialsForm = Depends(read_credentials_form),
        users: UserStore = Depends(get_user_store),
    ):
        try:
            outcome = login_account(users, form.email, form.password)
        except Exception:
            logger.exception("Error during login")
            return HTMLResponse(INTERNAL_ERROR, status_code=500)

        if outcome is not LoginOutcome.OK:
            logger.info("Login rejected: %s", outcome.value)
            return HTMLResponse(outcome_message(outcome))

        get_session(request)["user"] = form.email
        return RedirectResponse(url="/secrets", status_code=302)

    @app.get("/logout")
    def logout(request: Request, sessions: SessionStore = Depends(get_session_store)):
        try:
            get_session(request).destroy(sessions)
        except Exception:
            # The session may still be live; send the user back to the page they were on.
            logger.exception("Logout error")
            return RedirectResponse(url="/secrets", status_code=302)

        resp = RedirectResponse(url="/", status_code=302)
        resp.set_cookie(**clear_session_cookie_kwargs(cfg))
        return resp

    return app


def run(host: str = "0.0.0.0", port: int = 3000) -> None:
    import uvicorn

    # Configure logging for the application
    log_level = os.getenv("LOG_LEVEL", "info").upper()
    logging.basicConfig(
        level=getattr(logging, log_level, logging.INFO),
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )
    logger.setLevel(getattr(logging, log_level, logging.INFO))

    # Map Python logging levels to uvicorn log levels
    uvicorn_log_level = (
        log_level.lower() if log_level.lower() in ["critical", "error", "warning", "info", "debug", "trace"] else "info"
    )

    app = create_app()
    logger.info("Server running on %s:%d (log_level=%s)", host, port, log_level)
    uvicorn.run(app, host=host, port=port, log_level=uvicorn_log_level)
