"""SQLAlchemy models for the affiliate application."""
from __future__ import annotations

from datetime import datetime
from decimal import Decimal

from sqlalchemy import (
    Boolean,
    CheckConstraint,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    Numeric,
    String,
    Text,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from affiliate_desk.auth import User
from affiliate_desk.database import Base

AFFILIATE_STATUS_ENUM = ("pending", "approved", "rejected", "suspended")
PROGRAM_CATEGORY_ENUM = ("online", "offline_pare", "group", "branch")
PROGRAM_LOCATION_ENUM = ("online", "pare", "malang", "sidoarjo", "nganjuk")
REGISTRATION_STATUS_ENUM = ("pending", "confirmed", "cancelled")
PAYOUT_STATUS_ENUM = ("pending", "processing", "completed", "failed")
PAYOUT_METHOD_ENUM = ("bank_transfer", "ewallet")

PAYOUT_TERMINAL_STATUSES = ("completed", "failed")
PAYOUT_OPEN_STATUSES = ("pending", "processing")


def _in_clause(column: str, values: tuple[str, ...]) -> str:
    quoted = ", ".join(f"'{value}'" for value in values)
    return f"{column} IN ({quoted})"


class Affiliate(Base):
    __tablename__ = "affiliates"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    user_id: Mapped[int] = mapped_column(ForeignKey("users.id"), unique=True, nullable=False)
    referral_code: Mapped[str] = mapped_column(String(50), unique=True, nullable=False)
    bank_name: Mapped[str | None] = mapped_column(String(100), nullable=True)
    bank_account_number: Mapped[str | None] = mapped_column(String(50), nullable=True)
    bank_account_name: Mapped[str | None] = mapped_column(String(255), nullable=True)
    ewallet_type: Mapped[str | None] = mapped_column(String(50), nullable=True)
    ewallet_number: Mapped[str | None] = mapped_column(String(50), nullable=True)
    commission_rate: Mapped[Decimal] = mapped_column(Numeric(5, 4), nullable=False)  # 0.0500 = 5%
    status: Mapped[str] = mapped_column(String(20), nullable=False, default="pending", index=True)
    approved_by: Mapped[int | None] = mapped_column(ForeignKey("users.id"), nullable=True)
    approved_at: Mapped[datetime | None] = mapped_column(DateTime, nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.now, nullable=False)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime, default=datetime.now, onupdate=datetime.now, nullable=False
    )

    user: Mapped[User] = relationship(foreign_keys=[user_id])
    approver: Mapped[User | None] = relationship(foreign_keys=[approved_by])
    registrations: Mapped[list["StudentRegistration"]] = relationship(back_populates="affiliate")
    payouts: Mapped[list["CommissionPayout"]] = relationship(back_populates="affiliate")

    __table_args__ = (
        CheckConstraint("commission_rate > 0", name="ck_affiliates_rate_positive"),
        CheckConstraint(_in_clause("status", AFFILIATE_STATUS_ENUM), name="ck_affiliates_status_valid"),
    )


class Program(Base):
    __tablename__ = "programs"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)
    category: Mapped[str] = mapped_column(String(20), nullable=False, index=True)
    location: Mapped[str] = mapped_column(String(20), nullable=False, index=True)
    price: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False)
    duration_weeks: Mapped[int | None] = mapped_column(Integer, nullable=True)
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True, index=True)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.now, nullable=False)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime, default=datetime.now, onupdate=datetime.now, nullable=False
    )

    registrations: Mapped[list["StudentRegistration"]] = relationship(back_populates="program")

    __table_args__ = (
        CheckConstraint("price > 0", name="ck_programs_price_positive"),
        CheckConstraint(_in_clause("category", PROGRAM_CATEGORY_ENUM), name="ck_programs_category_valid"),
        CheckConstraint(_in_clause("location", PROGRAM_LOCATION_ENUM), name="ck_programs_location_valid"),
    )


class StudentRegistration(Base):
    __tablename__ = "student_registrations"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    affiliate_id: Mapped[int] = mapped_column(ForeignKey("affiliates.id"), nullable=False, index=True)
    program_id: Mapped[int] = mapped_column(ForeignKey("programs.id"), nullable=False, index=True)
    student_name: Mapped[str] = mapped_column(String(255), nullable=False)
    student_email: Mapped[str] = mapped_column(String(255), nullable=False)
    student_phone: Mapped[str] = mapped_column(String(20), nullable=False)
    student_address: Mapped[str | None] = mapped_column(Text, nullable=True)
    referral_code: Mapped[str] = mapped_column(String(50), nullable=False, index=True)
    status: Mapped[str] = mapped_column(String(20), nullable=False, default="pending", index=True)
    registration_fee: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False)
    commission_amount: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False)
    confirmed_by: Mapped[int | None] = mapped_column(ForeignKey("users.id"), nullable=True)
    confirmed_at: Mapped[datetime | None] = mapped_column(DateTime, nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.now, nullable=False, index=True)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime, default=datetime.now, onupdate=datetime.now, nullable=False
    )

    affiliate: Mapped[Affiliate] = relationship(back_populates="registrations")
    program: Mapped[Program] = relationship(back_populates="registrations")

    __table_args__ = (
        CheckConstraint(
            _in_clause("status", REGISTRATION_STATUS_ENUM), name="ck_registrations_status_valid"
        ),
        CheckConstraint("commission_amount >= 0", name="ck_registrations_commission_nonnegative"),
    )


class CommissionPayout(Base):
    __tablename__ = "commission_payouts"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    affiliate_id: Mapped[int] = mapped_column(ForeignKey("affiliates.id"), nullable=False, index=True)
    amount: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False)
    method: Mapped[str] = mapped_column(String(20), nullable=False)
    bank_details: Mapped[str | None] = mapped_column(Text, nullable=True)
    ewallet_details: Mapped[str | None] = mapped_column(Text, nullable=True)
    status: Mapped[str] = mapped_column(String(20), nullable=False, default="pending", index=True)
    processed_by: Mapped[int | None] = mapped_column(ForeignKey("users.id"), nullable=True)
    processed_at: Mapped[datetime | None] = mapped_column(DateTime, nullable=True)
    notes: Mapped[str | None] = mapped_column(Text, nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.now, nullable=False, index=True)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime, default=datetime.now, onupdate=datetime.now, nullable=False
    )

    affiliate: Mapped[Affiliate] = relationship(back_populates="payouts")

    __table_args__ = (
        CheckConstraint("amount > 0", name="ck_payouts_amount_positive"),
        CheckConstraint(_in_clause("status", PAYOUT_STATUS_ENUM), name="ck_payouts_status_valid"),
        CheckConstraint(_in_clause("method", PAYOUT_METHOD_ENUM), name="ck_payouts_method_valid"),
    )


class LoginAttempt(Base):
    __tablename__ = "login_attempts"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    email: Mapped[str] = mapped_column(String(255), nullable=False, index=True)
    success: Mapped[bool] = mapped_column(default=False, nullable=False)
    ip_address: Mapped[str | None] = mapped_column(String(50), nullable=True)
    user_agent: Mapped[str | None] = mapped_column(Text, nullable=True)
    attempted_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.now, nullable=False, index=True)

    __table_args__ = (
        Index("idx_failed_attempts", "email", "success", "attempted_at"),
    )
