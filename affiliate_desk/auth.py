"""Authentication and user accounts."""
from __future__ import annotations

from datetime import datetime

import bcrypt
from sqlalchemy import CheckConstraint, DateTime, Integer, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from affiliate_desk.database import Base

USER_ROLE_ENUM = ("admin", "affiliate")


class User(Base):
    """User account for application access."""

    __tablename__ = "users"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    email: Mapped[str] = mapped_column(String(255), unique=True, nullable=False, index=True)
    password_hash: Mapped[str] = mapped_column(Text, nullable=False)
    full_name: Mapped[str] = mapped_column(String(255), nullable=False)
    phone: Mapped[str | None] = mapped_column(String(20), nullable=True)
    role: Mapped[str] = mapped_column(String(20), nullable=False)  # "admin" or "affiliate"
    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.now, nullable=False)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime, default=datetime.now, onupdate=datetime.now, nullable=False
    )
    is_locked: Mapped[bool] = mapped_column(default=False, nullable=False)
    locked_until: Mapped[datetime | None] = mapped_column(DateTime, nullable=True)
    failed_login_count: Mapped[int] = mapped_column(default=0, nullable=False)
    last_failed_login: Mapped[datetime | None] = mapped_column(DateTime, nullable=True)

    __table_args__ = (
        CheckConstraint("role IN ('admin', 'affiliate')", name="ck_users_role_valid"),
    )

    @staticmethod
    def hash_password(password: str) -> str:
        """Hash a password using bcrypt."""
        salt = bcrypt.gensalt()
        return bcrypt.hashpw(password.encode("utf-8"), salt).decode("utf-8")

    def verify_password(self, password: str) -> bool:
        """Verify a password against the stored hash."""
        try:
            return bcrypt.checkpw(password.encode("utf-8"), self.password_hash.encode("utf-8"))
        except ValueError:
            # Stored value is not a bcrypt hash.
            return False

    @classmethod
    def create_user(
        cls,
        email: str,
        password: str,
        full_name: str,
        role: str = "affiliate",
        phone: str | None = None,
    ) -> User:
        """Create a new user with hashed password."""
        return cls(
            email=email.strip().lower(),
            password_hash=cls.hash_password(password),
            full_name=full_name,
            phone=phone,
            role=role,
        )

    def is_admin(self) -> bool:
        return self.role == "admin"

    def is_affiliate(self) -> bool:
        return self.role == "affiliate"
