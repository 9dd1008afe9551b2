"""
Credential checks behind the register and login forms.

These functions never touch the session; handlers decide what to do with the outcome.
Store and hashing errors propagate to the caller.

Note: the three rejection messages differ, so they reveal whether an email is registered.
"""

from __future__ import annotations

import enum
import logging

from gate.auth.config import DEFAULT_BCRYPT_ROUNDS
from gate.auth.passwords import hash_password, verify_password
from gate.auth.users import UserStore

logger = logging.getLogger(__name__)

EMAIL_EXISTS_MESSAGE = "Email already exists. Try logging in."
USER_NOT_FOUND_MESSAGE = "User not found"
INCORRECT_PASSWORD_MESSAGE = "Incorrect Password"


class RegisterOutcome(enum.Enum):
    CREATED = "created"
    EMAIL_EXISTS = "email_exists"


class LoginOutcome(enum.Enum):
    OK = "ok"
    USER_NOT_FOUND = "user_not_found"
    INCORRECT_PASSWORD = "incorrect_password"


def register_account(
    users: UserStore,
    email: str,
    password: str,
    *,
    bcrypt_rounds: int = DEFAULT_BCRYPT_ROUNDS,
) -> RegisterOutcome:
    """
    Create an account unless the email is already registered.

    The lookup runs first so an existing email never pays for a bcrypt hash; the
    insert itself also refuses duplicates, which covers two concurrent requests
    for the same email.
    """
    if users.get_by_email(email) is not None:
        logger.info("Registration rejected: email already exists")
        return RegisterOutcome.EMAIL_EXISTS

    password_hash = hash_password(password, rounds=bcrypt_rounds)
    if not users.insert(email, password_hash):
        logger.info("Registration rejected: email registered concurrently")
        return RegisterOutcome.EMAIL_EXISTS

    logger.info("Registered new account")
    return RegisterOutcome.CREATED


def login_account(users: UserStore, email: str, password: str) -> LoginOutcome:
    user = users.get_by_email(email)
    if user is None:
        return LoginOutcome.USER_NOT_FOUND
    if not verify_password(password, user.password_hash):
        return LoginOutcome.INCORRECT_PASSWORD
    return LoginOutcome.OK


def outcome_message(outcome: enum.Enum) -> str:
    """Human-readable body for a rejected register/login attempt."""
    messages = {
        RegisterOutcome.EMAIL_EXISTS: EMAIL_EXISTS_MESSAGE,
        LoginOutcome.USER_NOT_FOUND: USER_NOT_FOUND_MESSAGE,
        LoginOutcome.INCORRECT_PASSWORD: INCORRECT_PASSWORD_MESSAGE,
    }
    return messages[outcome]
