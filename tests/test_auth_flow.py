from __future__ import annotations

from unittest.mock import MagicMock

import pytest

from gate.auth.flow import (
    EMAIL_EXISTS_MESSAGE,
    INCORRECT_PASSWORD_MESSAGE,
    USER_NOT_FOUND_MESSAGE,
    LoginOutcome,
    RegisterOutcome,
    login_account,
    outcome_message,
    register_account,
)
from gate.auth.passwords import verify_password
from gate.auth.users import InMemoryUserStore


def test_register_then_login() -> None:
    users = InMemoryUserStore()
    assert register_account(users, "a@x.com", "pw1", bcrypt_rounds=4) is RegisterOutcome.CREATED
    assert len(users) == 1
    assert verify_password("pw1", users.get_by_email("a@x.com").password_hash)

    assert login_account(users, "a@x.com", "pw1") is LoginOutcome.OK
    assert login_account(users, "a@x.com", "wrong") is LoginOutcome.INCORRECT_PASSWORD
    assert login_account(users, "b@x.com", "pw1") is LoginOutcome.USER_NOT_FOUND


def test_register_existing_email_skips_hashing_and_insert() -> None:
    users = MagicMock()
    users.get_by_email.return_value = object()
    assert register_account(users, "a@x.com", "pw1", bcrypt_rounds=4) is RegisterOutcome.EMAIL_EXISTS
    users.insert.assert_not_called()


def test_register_lost_insert_race() -> None:
    users = MagicMock()
    users.get_by_email.return_value = None
    users.insert.return_value = False
    assert register_account(users, "a@x.com", "pw1", bcrypt_rounds=4) is RegisterOutcome.EMAIL_EXISTS


def test_emails_are_not_normalized() -> None:
    users = InMemoryUserStore()
    register_account(users, "A@x.com", "pw1", bcrypt_rounds=4)
    assert login_account(users, "a@x.com", "pw1") is LoginOutcome.USER_NOT_FOUND
    assert register_account(users, "a@x.com", "pw2", bcrypt_rounds=4) is RegisterOutcome.CREATED
    assert len(users) == 2


def test_store_errors_propagate() -> None:
    users = MagicMock()
    users.get_by_email.side_effect = RuntimeError("db down")
    with pytest.raises(RuntimeError):
        login_account(users, "a@x.com", "pw1")
    with pytest.raises(RuntimeError):
        register_account(users, "a@x.com", "pw1", bcrypt_rounds=4)


def test_outcome_messages() -> None:
    assert outcome_message(RegisterOutcome.EMAIL_EXISTS) == EMAIL_EXISTS_MESSAGE == "Email already exists. Try logging in."
    assert outcome_message(LoginOutcome.USER_NOT_FOUND) == USER_NOT_FOUND_MESSAGE == "User not found"
    assert outcome_message(LoginOutcome.INCORRECT_PASSWORD) == INCORRECT_PASSWORD_MESSAGE == "Incorrect Password"
