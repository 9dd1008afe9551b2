from __future__ import annotations

from dataclasses import dataclass
from typing import Optional

from fastapi import HTTPException, Request

from gate.auth.users import UserStore
from gate.session.middleware import get_session
from gate.session.store import SessionStore

LOGIN_PATH = "/login"


@dataclass(frozen=True)
class CredentialsForm:
    """`username` (an email) and `password` as submitted by the register/login forms."""

    email: str
    password: str


async def read_credentials_form(request: Request) -> CredentialsForm:
    """
    Parse the register/login form.

    Empty strings are valid values; only a field that is absent is rejected (422).
    """
    form = await request.form()
    username = form.get("username")
    password = form.get("password")
    if not isinstance(username, str) or not isinstance(password, str):
        raise HTTPException(status_code=422, detail="Missing username or password")
    return CredentialsForm(email=username, password=password)


def session_user(request: Request) -> Optional[str]:
    """Email of the logged-in user, or None."""
    user = get_session(request).get("user")
    return str(user) if user else None


def require_session_user(request: Request) -> str:
    """
    Gate for protected pages: continue when the session carries a user, otherwise
    redirect to the login form.
    """
    user = session_user(request)
    if user:
        return user
    raise HTTPException(status_code=302, headers={"Location": LOGIN_PATH})


def get_user_store(request: Request) -> UserStore:
    return request.app.state.user_store


def get_session_store(request: Request) -> SessionStore:
    return request.app.state.session_store
