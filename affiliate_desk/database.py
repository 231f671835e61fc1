"""Database configuration for the affiliate web application."""
from __future__ import annotations

import logging
import os
from pathlib import Path
from typing import Generator

from sqlalchemy import create_engine
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session, declarative_base, sessionmaker

logger = logging.getLogger(__name__)

DEFAULT_SQLITE_PATH = Path("data/affiliate.db")
DEFAULT_SQLITE_PATH.parent.mkdir(parents=True, exist_ok=True)

DATABASE_URL = os.getenv("AFFILIATE_DATABASE_URL", f"sqlite:///{DEFAULT_SQLITE_PATH}")

DEFAULT_ADMIN_EMAIL = os.getenv("AFFILIATE_ADMIN_EMAIL", "admin@englishbooster.id")
DEFAULT_ADMIN_PASSWORD = os.getenv("AFFILIATE_ADMIN_PASSWORD", "admin")


def _create_engine(url: str):
    """Create a SQLAlchemy engine for the given URL, handling sqlite connect args."""
    connect_args = {"check_same_thread": False} if url.startswith("sqlite") else {}
    return create_engine(url, connect_args=connect_args, future=True)


# On local development environments an unreachable database (commonly
# PostgreSQL) falls back to the SQLite file. Other environments re-raise.
try:
    engine = _create_engine(DATABASE_URL)
    with engine.connect() as _conn:  # type: ignore[var-annotated]
        pass
except SQLAlchemyError as e:  # pragma: no cover - environment dependent
    env = os.getenv("ENVIRONMENT", "development").lower()
    logger.warning("Could not connect to database at %r: %s", DATABASE_URL, e)
    if env != "development":
        raise
    DATABASE_URL = f"sqlite:///{DEFAULT_SQLITE_PATH}"
    logger.warning("Falling back to SQLite for local development at %s", DATABASE_URL)
    engine = _create_engine(DATABASE_URL)

SessionLocal = sessionmaker(bind=engine, autoflush=False, autocommit=False, future=True)

Base = declarative_base()


def get_session() -> Generator[Session, None, None]:
    """FastAPI dependency that yields a database session."""

    session = SessionLocal()
    try:
        yield session
    finally:
        session.close()


def init_db() -> None:
    """Ensure database tables exist and create the default admin user if needed."""

    from affiliate_desk import models  # noqa: F401  (import ensures model metadata is registered)
    from affiliate_desk.auth import User

    Base.metadata.create_all(bind=engine, checkfirst=True)

    session = SessionLocal()
    try:
        ensure_default_admin(session)
    finally:
        session.close()


def ensure_default_admin(session: Session) -> None:
    """Seed the configured admin account when no user holds that email."""
    from affiliate_desk.auth import User

    existing = session.query(User).filter(User.email == DEFAULT_ADMIN_EMAIL).first()
    if existing is not None:
        logger.info("Admin user %s already exists, skipping creation", DEFAULT_ADMIN_EMAIL)
        return

    admin_user = User.create_user(
        email=DEFAULT_ADMIN_EMAIL,
        password=DEFAULT_ADMIN_PASSWORD,
        full_name="Administrator",
        role="admin",
    )
    session.add(admin_user)
    try:
        session.commit()
    except SQLAlchemyError:
        session.rollback()
        logger.exception("Could not create default admin user")
        raise
    logger.info("Created default admin user (email: %s)", DEFAULT_ADMIN_EMAIL)
