"""Security utilities for login rate limiting, account lockout and session tokens."""
from __future__ import annotations

import logging
import os
import secrets
from datetime import datetime, timedelta, timezone

import jwt
from sqlalchemy import func, select
from sqlalchemy.orm import Session

from affiliate_desk.auth import User
from affiliate_desk.core.formatting import format_display_datetime
from affiliate_desk.models import LoginAttempt

logger = logging.getLogger(__name__)

# Configuration
MAX_FAILED_ATTEMPTS = 5
LOCKOUT_DURATION_MINUTES = 15
RATE_LIMIT_WINDOW_MINUTES = 15

SESSION_TTL_HOURS = 24
JWT_ALGORITHM = "HS256"
JWT_SECRET_KEY = os.getenv("AFFILIATE_SECRET_KEY") or secrets.token_urlsafe(32)
if not os.getenv("AFFILIATE_SECRET_KEY"):
    logger.warning("AFFILIATE_SECRET_KEY is not set; sessions will not survive a restart")


def write_session_token(user_id: int) -> str:
    """Signed session token for the login cookie."""
    exp = datetime.now(timezone.utc) + timedelta(hours=SESSION_TTL_HOURS)
    return jwt.encode({"user_id": user_id, "exp": exp}, JWT_SECRET_KEY, algorithm=JWT_ALGORITHM)


def read_session_token(token: str) -> int | None:
    """Return the user id of a valid token, or None when forged, expired or malformed."""
    try:
        payload = jwt.decode(token, JWT_SECRET_KEY, algorithms=[JWT_ALGORITHM])
    except jwt.InvalidTokenError:
        return None
    user_id = payload.get("user_id")
    return user_id if isinstance(user_id, int) else None


def _find_user(db: Session, email: str) -> User | None:
    return db.query(User).filter(User.email == email.strip().lower()).first()


def record_login_attempt(
    db: Session,
    email: str,
    success: bool,
    ip_address: str | None = None,
    user_agent: str | None = None,
) -> None:
    """Record a login attempt in the database."""
    attempt = LoginAttempt(
        email=email.strip().lower(),
        success=success,
        ip_address=ip_address,
        user_agent=user_agent,
    )
    db.add(attempt)
    db.commit()


def get_failed_attempts_count(
    db: Session,
    email: str,
    minutes: int = RATE_LIMIT_WINDOW_MINUTES,
) -> int:
    """Count failed login attempts in the last N minutes."""
    cutoff_time = datetime.now() - timedelta(minutes=minutes)

    stmt = select(func.count(LoginAttempt.id)).where(
        LoginAttempt.email == email.strip().lower(),
        LoginAttempt.success.is_(False),
        LoginAttempt.attempted_at >= cutoff_time,
    )
    return db.execute(stmt).scalar_one()


def is_account_locked(db: Session, email: str) -> tuple[bool, str | None]:
    """
    Check if account is locked.
    Returns (is_locked, reason_message)
    """
    user = _find_user(db, email)

    if not user or not user.is_locked:
        return False, None

    if user.locked_until and user.locked_until > datetime.now():
        formatted = format_display_datetime(user.locked_until)
        return True, f"Account is locked until {formatted}"

    # Lockout period has passed
    unlock_account(db, user.email)
    return False, None


def lock_account(
    db: Session,
    email: str,
    duration_minutes: int = LOCKOUT_DURATION_MINUTES,
) -> None:
    """Lock a user account after too many failed attempts."""
    user = _find_user(db, email)

    if user:
        user.is_locked = True
        user.locked_until = datetime.now() + timedelta(minutes=duration_minutes)
        user.failed_login_count = 0
        db.add(user)
        db.commit()
        logger.warning("Locked account %s until %s", user.email, user.locked_until)


def increment_failed_login(db: Session, email: str) -> int:
    """Increment the failed login counter; returns the new count (0 for unknown emails)."""
    user = _find_user(db, email)

    if not user:
        return 0

    user.failed_login_count += 1
    user.last_failed_login = datetime.now()
    db.add(user)
    db.commit()
    count = user.failed_login_count

    if count >= MAX_FAILED_ATTEMPTS:
        lock_account(db, email)
    return count


def reset_failed_login(db: Session, email: str) -> None:
    """Reset failed login counter after successful login."""
    user = _find_user(db, email)

    if user:
        user.failed_login_count = 0
        user.last_failed_login = None
        db.add(user)
        db.commit()


def unlock_account(db: Session, email: str) -> None:
    """Clear lockout state for an account."""
    user = _find_user(db, email)

    if user:
        user.is_locked = False
        user.locked_until = None
        user.failed_login_count = 0
        user.last_failed_login = None
        db.add(user)
        db.commit()


def authenticate(
    db: Session,
    email: str,
    password: str,
    ip_address: str | None = None,
    user_agent: str | None = None,
) -> tuple[User | None, str | None]:
    """Check credentials with lockout bookkeeping.

    Returns ``(user, None)`` on success and ``(None, error_message)`` otherwise.
    """
    locked, lock_reason = is_account_locked(db, email)
    if locked:
        record_login_attempt(db, email, False, ip_address, user_agent)
        return None, f"Account locked due to too many failed login attempts. {lock_reason}"

    user = _find_user(db, email)
    if not user or not user.verify_password(password):
        failed_count = increment_failed_login(db, email)
        record_login_attempt(db, email, False, ip_address, user_agent)
        error = "Invalid email or password"
        attempts_remaining = MAX_FAILED_ATTEMPTS - failed_count
        if user and 0 < attempts_remaining < MAX_FAILED_ATTEMPTS:
            error += f" ({attempts_remaining} attempt{'s' if attempts_remaining != 1 else ''} remaining)"
        return None, error

    reset_failed_login(db, email)
    record_login_attempt(db, email, True, ip_address, user_agent)
    return user, None


class PasswordValidator:
    """Simple password strength validator for self-service sign-up."""

    @staticmethod
    def validate(password: str) -> tuple[bool, str]:
        if not password:
            return False, "Password cannot be empty"
        if len(password) < 8:
            return False, "Password must be at least 8 characters long"

        has_letter = any(char.isalpha() for char in password)
        has_digit = any(char.isdigit() for char in password)

        if not has_letter or not has_digit:
            return False, "Password must include at least one letter and one number"

        return True, ""
