"""Pydantic schemas for API requests, responses and forms."""
from __future__ import annotations

from datetime import datetime
from decimal import Decimal, ROUND_HALF_UP
from typing import Annotated, Any, Optional

from pydantic import (
    BaseModel,
    BeforeValidator,
    ConfigDict,
    EmailStr,
    Field,
    ValidationInfo,
    field_validator,
)

from affiliate_desk.auth import USER_ROLE_ENUM
from affiliate_desk.commission import MIN_PAYOUT_AMOUNT, CommissionBalance
from affiliate_desk.models import (
    AFFILIATE_STATUS_ENUM,
    PAYOUT_METHOD_ENUM,
    PAYOUT_STATUS_ENUM,
    PROGRAM_CATEGORY_ENUM,
    PROGRAM_LOCATION_ENUM,
    REGISTRATION_STATUS_ENUM,
)


def _decimal_to_float(value: Any) -> Any:
    if isinstance(value, Decimal):
        return float(value)
    return value


# Numeric columns are stored as Decimal and reported to clients as plain numbers.
Numeric = Annotated[float, BeforeValidator(_decimal_to_float)]


def _normalize_choice(value: str, choices: tuple[str, ...], label: str) -> str:
    normalized = str(value).strip().lower()
    if normalized not in choices:
        raise ValueError(f"{label} must be one of: {', '.join(choices)}.")
    return normalized


def _blank_to_none(value: Any) -> Any:
    if isinstance(value, str) and not value.strip():
        return None
    if isinstance(value, str):
        return value.strip()
    return value


# --- Users -----------------------------------------------------------------

MAX_PASSWORD_BYTES = 72


class UserCreate(BaseModel):
    email: EmailStr
    password: str = Field(..., min_length=1)
    full_name: str = Field(..., min_length=1, max_length=255)
    phone: Optional[str] = Field(None, max_length=20)
    role: str = "affiliate"

    @field_validator("role")
    def validate_role(cls, value: str) -> str:
        return _normalize_choice(value, USER_ROLE_ENUM, "Role")

    @field_validator("password")
    def validate_password_length(cls, value: str) -> str:
        # bcrypt only accepts up to 72 bytes.
        if len(value.encode("utf-8")) > MAX_PASSWORD_BYTES:
            raise ValueError(f"Password must be at most {MAX_PASSWORD_BYTES} bytes long.")
        return value

    @field_validator("full_name", mode="before")
    def strip_full_name(cls, value: Any) -> Any:
        return value.strip() if isinstance(value, str) else value

    @field_validator("phone", mode="before")
    def normalize_phone(cls, value: Any) -> Any:
        return _blank_to_none(value)


class UserRead(BaseModel):
    id: int
    email: str
    full_name: str
    phone: Optional[str]
    role: str
    created_at: datetime
    updated_at: datetime

    model_config = ConfigDict(from_attributes=True)


# --- Affiliates ------------------------------------------------------------


class AffiliateCreate(BaseModel):
    user_id: int
    bank_name: Optional[str] = Field(None, max_length=100)
    bank_account_number: Optional[str] = Field(None, max_length=50)
    bank_account_name: Optional[str] = Field(None, max_length=255)
    ewallet_type: Optional[str] = Field(None, max_length=50)
    ewallet_number: Optional[str] = Field(None, max_length=50)
    commission_rate: Decimal = Field(..., gt=0, le=1)

    @field_validator(
        "bank_name",
        "bank_account_number",
        "bank_account_name",
        "ewallet_type",
        "ewallet_number",
        mode="before",
    )
    def normalize_optional_strings(cls, value: Any) -> Any:
        return _blank_to_none(value)

    @field_validator("commission_rate")
    def quantize_rate(cls, value: Decimal) -> Decimal:
        return value.quantize(Decimal("0.0001"), rounding=ROUND_HALF_UP)


class AffiliateRead(BaseModel):
    id: int
    user_id: int
    referral_code: str
    bank_name: Optional[str]
    bank_account_number: Optional[str]
    bank_account_name: Optional[str]
    ewallet_type: Optional[str]
    ewallet_number: Optional[str]
    commission_rate: Numeric
    status: str
    approved_by: Optional[int]
    approved_at: Optional[datetime]
    created_at: datetime
    updated_at: datetime

    model_config = ConfigDict(from_attributes=True)


class AffiliateStatusUpdate(BaseModel):
    status: str
    approved_by: Optional[int] = None

    @field_validator("status")
    def validate_status(cls, value: str) -> str:
        return _normalize_choice(value, AFFILIATE_STATUS_ENUM, "Affiliate status")


class AffiliateFilters(BaseModel):
    status: Optional[str] = None
    approved_by: Optional[int] = None
    limit: int = Field(50, ge=1, le=100)
    offset: int = Field(0, ge=0)

    @field_validator("status")
    def validate_status(cls, value: str | None) -> str | None:
        if value is None:
            return None
        return _normalize_choice(value, AFFILIATE_STATUS_ENUM, "Affiliate status")


# --- Programs --------------------------------------------------------------


class ProgramCreate(BaseModel):
    name: str = Field(..., min_length=1, max_length=255)
    description: Optional[str] = None
    category: str
    location: str
    price: Decimal = Field(..., gt=0)
    duration_weeks: Optional[int] = Field(None, ge=1)
    is_active: bool = True

    @field_validator("category")
    def validate_category(cls, value: str) -> str:
        return _normalize_choice(value, PROGRAM_CATEGORY_ENUM, "Category")

    @field_validator("location")
    def validate_location(cls, value: str) -> str:
        return _normalize_choice(value, PROGRAM_LOCATION_ENUM, "Location")

    @field_validator("name", mode="before")
    def strip_name(cls, value: Any) -> Any:
        return value.strip() if isinstance(value, str) else value

    @field_validator("description", mode="before")
    def normalize_description(cls, value: Any) -> Any:
        return _blank_to_none(value)

    @field_validator("price")
    def quantize_price(cls, value: Decimal) -> Decimal:
        return value.quantize(Decimal("0.01"), rounding=ROUND_HALF_UP)


class ProgramRead(BaseModel):
    id: int
    name: str
    description: Optional[str]
    category: str
    location: str
    price: Numeric
    duration_weeks: Optional[int]
    is_active: bool
    created_at: datetime
    updated_at: datetime

    model_config = ConfigDict(from_attributes=True)


# --- Student registrations -------------------------------------------------


class StudentRegistrationCreate(BaseModel):
    affiliate_id: int
    program_id: int
    student_name: str = Field(..., min_length=1, max_length=255)
    student_email: EmailStr
    student_phone: str = Field(..., min_length=1, max_length=20)
    student_address: Optional[str] = None
    referral_code: str = Field(..., min_length=1, max_length=50)

    @field_validator("student_name", "student_phone", "referral_code", mode="before")
    def strip_required_strings(cls, value: Any, info: ValidationInfo) -> Any:
        if value is None:
            raise ValueError(f"{info.field_name.replace('_', ' ').title()} is required.")
        return str(value).strip()

    @field_validator("student_address", mode="before")
    def normalize_address(cls, value: Any) -> Any:
        return _blank_to_none(value)


class StudentRegistrationRead(BaseModel):
    id: int
    affiliate_id: int
    program_id: int
    student_name: str
    student_email: str
    student_phone: str
    student_address: Optional[str]
    referral_code: str
    status: str
    registration_fee: Numeric
    commission_amount: Numeric
    confirmed_by: Optional[int]
    confirmed_at: Optional[datetime]
    created_at: datetime
    updated_at: datetime

    model_config = ConfigDict(from_attributes=True)


class RegistrationStatusUpdate(BaseModel):
    status: str
    confirmed_by: Optional[int] = None

    @field_validator("status")
    def validate_status(cls, value: str) -> str:
        return _normalize_choice(value, REGISTRATION_STATUS_ENUM, "Registration status")


# --- Commission payouts ----------------------------------------------------


class CommissionPayoutCreate(BaseModel):
    affiliate_id: int
    amount: Decimal = Field(..., ge=MIN_PAYOUT_AMOUNT)
    method: str
    bank_details: Optional[str] = None
    ewallet_details: Optional[str] = None
    notes: Optional[str] = None

    @field_validator("method")
    def validate_method(cls, value: str) -> str:
        return _normalize_choice(value, PAYOUT_METHOD_ENUM, "Payout method")

    @field_validator("bank_details", "ewallet_details", "notes", mode="before")
    def normalize_optional_strings(cls, value: Any) -> Any:
        return _blank_to_none(value)

    @field_validator("amount")
    def quantize_amount(cls, value: Decimal) -> Decimal:
        return value.quantize(Decimal("0.01"), rounding=ROUND_HALF_UP)


class CommissionPayoutRead(BaseModel):
    id: int
    affiliate_id: int
    amount: Numeric
    method: str
    bank_details: Optional[str]
    ewallet_details: Optional[str]
    status: str
    processed_by: Optional[int]
    processed_at: Optional[datetime]
    notes: Optional[str]
    created_at: datetime
    updated_at: datetime

    model_config = ConfigDict(from_attributes=True)


class PayoutStatusUpdate(BaseModel):
    """Status change for a payout; ``notes`` is only touched when present in the payload."""

    status: str
    processed_by: Optional[int] = None
    notes: Optional[str] = None

    @field_validator("status")
    def validate_status(cls, value: str) -> str:
        return _normalize_choice(value, PAYOUT_STATUS_ENUM, "Payout status")


class PayoutFilters(BaseModel):
    affiliate_id: Optional[int] = None
    status: Optional[str] = None
    start_date: Optional[datetime] = None
    end_date: Optional[datetime] = None
    limit: int = Field(50, ge=1)
    offset: int = Field(0, ge=0)

    @field_validator("status")
    def validate_status(cls, value: str | None) -> str | None:
        if value is None:
            return None
        return _normalize_choice(value, PAYOUT_STATUS_ENUM, "Payout status")


# --- Statistics ------------------------------------------------------------


class AffiliateStats(BaseModel):
    total_registrations: int
    confirmed_registrations: int
    pending_registrations: int
    total_commission_earned: Numeric
    total_commission_paid: Numeric
    pending_commission: Numeric
    available_for_payout: Numeric

    @classmethod
    def from_balance(cls, balance: CommissionBalance) -> AffiliateStats:
        return cls(
            total_registrations=balance.total_registrations,
            confirmed_registrations=balance.confirmed_registrations,
            pending_registrations=balance.pending_registrations,
            total_commission_earned=balance.total_commission_earned,
            total_commission_paid=balance.total_commission_paid,
            pending_commission=balance.pending_commission,
            available_for_payout=balance.available_for_payout,
        )
