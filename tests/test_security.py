from datetime import datetime, timedelta

from affiliate_desk import crud
from affiliate_desk.schemas import UserCreate
from affiliate_desk.security import (
    MAX_FAILED_ATTEMPTS,
    PasswordValidator,
    authenticate,
    get_failed_attempts_count,
    is_account_locked,
    unlock_account,
)


def _user(test_db, email="rina@example.com", password="rahasia123"):
    return crud.create_user(test_db, UserCreate(email=email, password=password, full_name="Rina"))


def test_successful_login_resets_counter(test_db):
    _user(test_db)
    authenticate(test_db, "rina@example.com", "wrong")
    user, error = authenticate(test_db, "RINA@example.com", "rahasia123")

    assert error is None
    assert user.email == "rina@example.com"
    test_db.refresh(user)
    assert user.failed_login_count == 0


def test_failed_login_reports_remaining_attempts(test_db):
    _user(test_db)

    _, error = authenticate(test_db, "rina@example.com", "wrong")
    assert error == "Invalid email or password (4 attempts remaining)"

    for _ in range(2):
        authenticate(test_db, "rina@example.com", "wrong")
    _, error = authenticate(test_db, "rina@example.com", "wrong")
    assert error == "Invalid email or password (1 attempt remaining)"
    assert get_failed_attempts_count(test_db, "rina@example.com") == 4


def test_unknown_email_gets_generic_error(test_db):
    user, error = authenticate(test_db, "nobody@example.com", "whatever")
    assert user is None
    assert error == "Invalid email or password"


def test_account_locks_after_max_failures(test_db):
    _user(test_db)
    for _ in range(MAX_FAILED_ATTEMPTS):
        authenticate(test_db, "rina@example.com", "wrong")

    locked, reason = is_account_locked(test_db, "rina@example.com")
    assert locked
    assert reason.startswith("Account is locked until")

    user, error = authenticate(test_db, "rina@example.com", "rahasia123")
    assert user is None
    assert error.startswith("Account locked due to too many failed login attempts.")

    unlock_account(test_db, "rina@example.com")
    user, error = authenticate(test_db, "rina@example.com", "rahasia123")
    assert error is None


def test_expired_lock_is_cleared(test_db):
    user = _user(test_db)
    user.is_locked = True
    user.locked_until = datetime.now() - timedelta(minutes=1)
    test_db.commit()

    assert is_account_locked(test_db, user.email) == (False, None)
    test_db.refresh(user)
    assert user.is_locked is False


def test_password_validator():
    assert PasswordValidator.validate("") == (False, "Password cannot be empty")
    assert PasswordValidator.validate("abc1") == (False, "Password must be at least 8 characters long")
    assert PasswordValidator.validate("abcdefgh")[0] is False
    assert PasswordValidator.validate("abcdefg1") == (True, "")
