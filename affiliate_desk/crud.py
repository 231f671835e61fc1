"""Database access helpers."""
from __future__ import annotations

import logging
import secrets
import string
from datetime import datetime
from decimal import Decimal, ROUND_HALF_UP
from typing import Sequence

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from affiliate_desk.auth import User
from affiliate_desk.commission import CommissionBalance, compute_balance
from affiliate_desk.errors import BusinessRuleError, NotFoundError
from affiliate_desk.models import (
    PAYOUT_TERMINAL_STATUSES,
    Affiliate,
    CommissionPayout,
    LoginAttempt,
    Program,
    StudentRegistration,
)
from affiliate_desk.schemas import (
    AffiliateCreate,
    AffiliateFilters,
    AffiliateStatusUpdate,
    CommissionPayoutCreate,
    PayoutFilters,
    PayoutStatusUpdate,
    ProgramCreate,
    RegistrationStatusUpdate,
    StudentRegistrationCreate,
    UserCreate,
)

logger = logging.getLogger(__name__)

REFERRAL_CODE_PREFIX = "EB"
REFERRAL_CODE_LENGTH = 8
REFERRAL_CODE_ATTEMPTS = 10
_REFERRAL_ALPHABET = string.ascii_uppercase + string.digits


# --- Users -----------------------------------------------------------------


def create_user(db: Session, payload: UserCreate) -> User:
    user = User.create_user(
        email=str(payload.email),
        password=payload.password,
        full_name=payload.full_name,
        role=payload.role,
        phone=payload.phone,
    )
    db.add(user)
    try:
        db.commit()
    except IntegrityError as exc:
        db.rollback()
        raise BusinessRuleError(f"A user with email {user.email} already exists.") from exc
    db.refresh(user)
    logger.info("Created %s user %s (id %s)", user.role, user.email, user.id)
    return user


def get_user(db: Session, user_id: int) -> User | None:
    return db.get(User, user_id)


def get_user_by_email(db: Session, email: str) -> User | None:
    stmt = select(User).where(User.email == email.strip().lower())
    return db.execute(stmt).scalars().first()


# --- Affiliates ------------------------------------------------------------


def generate_referral_code() -> str:
    suffix = "".join(secrets.choice(_REFERRAL_ALPHABET) for _ in range(REFERRAL_CODE_LENGTH))
    return f"{REFERRAL_CODE_PREFIX}{suffix}"


def _unused_referral_code(db: Session) -> str:
    for _ in range(REFERRAL_CODE_ATTEMPTS):
        code = generate_referral_code()
        if get_affiliate_by_referral_code(db, code) is None:
            return code
    raise BusinessRuleError(
        f"Could not generate a unique referral code after {REFERRAL_CODE_ATTEMPTS} attempts."
    )


def create_affiliate(db: Session, payload: AffiliateCreate) -> Affiliate:
    user = get_user(db, payload.user_id)
    if user is None:
        raise NotFoundError(f"User not found (id {payload.user_id}).")
    if get_affiliate_by_user(db, user.id) is not None:
        raise BusinessRuleError("User already has an affiliate profile.")

    affiliate = Affiliate(
        **payload.model_dump(),
        referral_code=_unused_referral_code(db),
        status="pending",
        approved_by=None,
        approved_at=None,
    )
    db.add(affiliate)
    try:
        db.commit()
    except IntegrityError as exc:
        db.rollback()
        raise BusinessRuleError("Affiliate profile could not be saved; please retry.") from exc
    db.refresh(affiliate)
    logger.info("Created affiliate %s for user %s", affiliate.referral_code, user.email)
    return affiliate


def get_affiliate(db: Session, affiliate_id: int) -> Affiliate | None:
    return db.get(Affiliate, affiliate_id)


def get_affiliate_by_user(db: Session, user_id: int) -> Affiliate | None:
    stmt = select(Affiliate).where(Affiliate.user_id == user_id)
    return db.execute(stmt).scalars().first()


def get_affiliate_by_referral_code(db: Session, referral_code: str) -> Affiliate | None:
    stmt = select(Affiliate).where(Affiliate.referral_code == referral_code.strip()).limit(1)
    return db.execute(stmt).scalars().first()


def list_affiliates(db: Session, filters: AffiliateFilters | None = None) -> Sequence[Affiliate]:
    filters = filters or AffiliateFilters()
    stmt = select(Affiliate).join(User, Affiliate.user_id == User.id)

    if filters.status:
        stmt = stmt.where(Affiliate.status == filters.status)

    if filters.approved_by is not None:
        stmt = stmt.where(Affiliate.approved_by == filters.approved_by)

    stmt = (
        stmt.order_by(Affiliate.created_at.desc(), Affiliate.id.desc())
        .limit(filters.limit)
        .offset(filters.offset)
    )
    return db.execute(stmt).scalars().all()


def update_affiliate_status(
    db: Session, affiliate_id: int, payload: AffiliateStatusUpdate
) -> Affiliate:
    affiliate = get_affiliate(db, affiliate_id)
    if affiliate is None:
        raise NotFoundError(f"Affiliate with id {affiliate_id} not found")

    affiliate.status = payload.status
    # Approval details exist only while the affiliate is approved.
    if payload.status == "approved":
        affiliate.approved_by = payload.approved_by
        affiliate.approved_at = datetime.now()
    else:
        affiliate.approved_by = None
        affiliate.approved_at = None
    affiliate.updated_at = datetime.now()

    db.add(affiliate)
    db.commit()
    db.refresh(affiliate)
    logger.info("Affiliate %s status set to %s", affiliate.id, affiliate.status)
    return affiliate


# --- Programs --------------------------------------------------------------


def create_program(db: Session, payload: ProgramCreate) -> Program:
    program = Program(**payload.model_dump())
    db.add(program)
    db.commit()
    db.refresh(program)
    return program


def get_program(db: Session, program_id: int) -> Program | None:
    return db.get(Program, program_id)


def list_programs(
    db: Session,
    is_active: bool | None = None,
    category: str | None = None,
    location: str | None = None,
) -> Sequence[Program]:
    stmt = select(Program)

    if is_active is not None:
        stmt = stmt.where(Program.is_active == is_active)

    if category:
        stmt = stmt.where(Program.category == category)

    if location:
        stmt = stmt.where(Program.location == location)

    stmt = stmt.order_by(Program.id)
    return db.execute(stmt).scalars().all()


# --- Student registrations -------------------------------------------------


def calculate_commission(price: Decimal, commission_rate: Decimal) -> Decimal:
    amount = Decimal(str(price)) * Decimal(str(commission_rate))
    return amount.quantize(Decimal("0.01"), rounding=ROUND_HALF_UP)


def create_student_registration(
    db: Session, payload: StudentRegistrationCreate
) -> StudentRegistration:
    affiliate = get_affiliate(db, payload.affiliate_id)
    if affiliate is None or affiliate.referral_code != payload.referral_code:
        raise BusinessRuleError("Invalid affiliate ID or referral code.")
    if affiliate.status != "approved":
        raise BusinessRuleError("Affiliate is not approved.")

    program = get_program(db, payload.program_id)
    if program is None:
        raise NotFoundError("Program not found.")
    if not program.is_active:
        raise BusinessRuleError("Program is not active.")

    registration = StudentRegistration(
        **payload.model_dump(),
        status="pending",
        registration_fee=program.price,
        commission_amount=calculate_commission(program.price, affiliate.commission_rate),
    )
    db.add(registration)
    db.commit()
    db.refresh(registration)
    logger.info(
        "Registered %s for program %s via %s", registration.student_email, program.id, affiliate.referral_code
    )
    return registration


def get_registration(db: Session, registration_id: int) -> StudentRegistration | None:
    return db.get(StudentRegistration, registration_id)


def list_registrations(db: Session, affiliate_id: int | None = None) -> Sequence[StudentRegistration]:
    stmt = (
        select(StudentRegistration)
        .join(Affiliate, StudentRegistration.affiliate_id == Affiliate.id)
        .join(Program, StudentRegistration.program_id == Program.id)
    )

    if affiliate_id is not None:
        stmt = stmt.where(StudentRegistration.affiliate_id == affiliate_id)

    stmt = stmt.order_by(StudentRegistration.created_at.desc(), StudentRegistration.id.desc())
    return db.execute(stmt).scalars().all()


def update_registration_status(
    db: Session, registration_id: int, payload: RegistrationStatusUpdate
) -> StudentRegistration:
    registration = get_registration(db, registration_id)
    if registration is None:
        raise NotFoundError(f"Student registration with id {registration_id} not found")

    registration.status = payload.status
    if payload.status == "confirmed":
        registration.confirmed_by = payload.confirmed_by
        registration.confirmed_at = datetime.now()
    else:
        registration.confirmed_by = None
        registration.confirmed_at = None
    registration.updated_at = datetime.now()

    db.add(registration)
    db.commit()
    db.refresh(registration)
    logger.info("Registration %s status set to %s", registration.id, registration.status)
    return registration


# --- Statistics ------------------------------------------------------------


def get_affiliate_stats(
    db: Session,
    affiliate_id: int,
    start_date: datetime | None = None,
    end_date: datetime | None = None,
) -> CommissionBalance:
    return compute_balance(db, affiliate_id, start_date=start_date, end_date=end_date)


# --- Commission payouts ----------------------------------------------------


def _format_amount(value: Decimal) -> str:
    """Render an amount without trailing zeros or exponent (``150000``, ``1250.5``)."""
    normalized = Decimal(value).normalize()
    return f"{normalized:f}"


def create_commission_payout(db: Session, payload: CommissionPayoutCreate) -> CommissionPayout:
    affiliate = get_affiliate(db, payload.affiliate_id)
    if affiliate is None:
        raise NotFoundError(f"Affiliate with ID {payload.affiliate_id} not found")
    if affiliate.status != "approved":
        raise BusinessRuleError("Only approved affiliates can request payouts")

    available = compute_balance(db, affiliate.id).available
    if payload.amount > available:
        raise BusinessRuleError(
            "Insufficient commission balance. "
            f"Available: {_format_amount(available)}, Requested: {_format_amount(payload.amount)}"
        )

    payout = CommissionPayout(**payload.model_dump(), status="pending")
    db.add(payout)
    db.commit()
    db.refresh(payout)
    logger.info("Affiliate %s requested payout %s of %s", affiliate.id, payout.id, payout.amount)
    return payout


def get_payout(db: Session, payout_id: int) -> CommissionPayout | None:
    return db.get(CommissionPayout, payout_id)


def update_payout_status(
    db: Session, payout_id: int, payload: PayoutStatusUpdate
) -> CommissionPayout:
    payout = get_payout(db, payout_id)
    if payout is None:
        raise NotFoundError(f"Commission payout with id {payout_id} not found")

    payout.status = payload.status
    if payload.status in PAYOUT_TERMINAL_STATUSES:
        payout.processed_by = payload.processed_by
        payout.processed_at = datetime.now()
    else:
        payout.processed_by = None
        payout.processed_at = None

    if "notes" in payload.model_fields_set:
        payout.notes = payload.notes
    payout.updated_at = datetime.now()

    db.add(payout)
    db.commit()
    db.refresh(payout)
    logger.info("Payout %s status set to %s", payout.id, payout.status)
    return payout


def list_commission_payouts(db: Session, filters: PayoutFilters | None = None) -> Sequence[CommissionPayout]:
    filters = filters or PayoutFilters()
    stmt = select(CommissionPayout)

    if filters.affiliate_id is not None:
        stmt = stmt.where(CommissionPayout.affiliate_id == filters.affiliate_id)

    if filters.status:
        stmt = stmt.where(CommissionPayout.status == filters.status)

    if filters.start_date is not None:
        stmt = stmt.where(CommissionPayout.created_at >= filters.start_date)

    if filters.end_date is not None:
        stmt = stmt.where(CommissionPayout.created_at <= filters.end_date)

    stmt = (
        stmt.order_by(CommissionPayout.created_at.desc(), CommissionPayout.id.desc())
        .limit(filters.limit)
        .offset(filters.offset)
    )
    return db.execute(stmt).scalars().all()


# --- Maintenance -----------------------------------------------------------


def reset_application_data(db: Session) -> None:
    """Remove all affiliate data while keeping admin accounts."""

    db.query(CommissionPayout).delete(synchronize_session=False)
    db.query(StudentRegistration).delete(synchronize_session=False)
    db.query(Affiliate).delete(synchronize_session=False)
    db.query(Program).delete(synchronize_session=False)
    db.query(LoginAttempt).delete(synchronize_session=False)
    db.query(User).filter(User.role != "admin").delete(synchronize_session=False)
    db.query(User).update(
        {
            User.is_locked: False,
            User.locked_until: None,
            User.failed_login_count: 0,
            User.last_failed_login: None,
        },
        synchronize_session=False,
    )
    db.commit()
