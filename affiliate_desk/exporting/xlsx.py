from __future__ import annotations

from io import BytesIO
from typing import Iterable

import pandas as pd
from sqlalchemy.orm import Session, selectinload

from affiliate_desk.models import Affiliate, CommissionPayout, Program, StudentRegistration


def _money(value) -> float | None:
    return float(value) if value is not None else None


def _affiliates_df(affiliates: Iterable[Affiliate]) -> pd.DataFrame:
    rows = []
    for item in affiliates:
        rows.append(
            {
                "affiliate_id": item.id,
                "referral_code": item.referral_code,
                "full_name": item.user.full_name if item.user else None,
                "email": item.user.email if item.user else None,
                "status": item.status,
                "commission_rate": float(item.commission_rate),
                "bank_name": item.bank_name,
                "bank_account_number": item.bank_account_number,
                "bank_account_name": item.bank_account_name,
                "ewallet_type": item.ewallet_type,
                "ewallet_number": item.ewallet_number,
                "approved_by": item.approved_by,
                "approved_at": item.approved_at,
                "created_at": item.created_at,
            }
        )
    return pd.DataFrame(rows)


def _programs_df(programs: Iterable[Program]) -> pd.DataFrame:
    rows = []
    for item in programs:
        rows.append(
            {
                "program_id": item.id,
                "name": item.name,
                "category": item.category,
                "location": item.location,
                "price (IDR)": _money(item.price),
                "duration_weeks": item.duration_weeks,
                "is_active": item.is_active,
                "created_at": item.created_at,
            }
        )
    return pd.DataFrame(rows)


def _registrations_df(registrations: Iterable[StudentRegistration]) -> pd.DataFrame:
    rows = []
    for item in registrations:
        rows.append(
            {
                "registration_id": item.id,
                "affiliate_id": item.affiliate_id,
                "referral_code": item.referral_code,
                "program_id": item.program_id,
                "program_name": item.program.name if item.program else None,
                "student_name": item.student_name,
                "student_email": item.student_email,
                "student_phone": item.student_phone,
                "status": item.status,
                "registration_fee (IDR)": _money(item.registration_fee),
                "commission_amount (IDR)": _money(item.commission_amount),
                "confirmed_by": item.confirmed_by,
                "confirmed_at": item.confirmed_at,
                "created_at": item.created_at,
            }
        )
    return pd.DataFrame(rows)


def _payouts_df(payouts: Iterable[CommissionPayout]) -> pd.DataFrame:
    rows = []
    for item in payouts:
        rows.append(
            {
                "payout_id": item.id,
                "affiliate_id": item.affiliate_id,
                "referral_code": item.affiliate.referral_code if item.affiliate else None,
                "amount (IDR)": _money(item.amount),
                "method": item.method,
                "bank_details": item.bank_details,
                "ewallet_details": item.ewallet_details,
                "status": item.status,
                "processed_by": item.processed_by,
                "processed_at": item.processed_at,
                "notes": item.notes,
                "created_at": item.created_at,
            }
        )
    return pd.DataFrame(rows)


def export_full_workbook(db: Session) -> bytes:
    """Return an XLSX workbook (bytes) with the affiliate, program, registration and payout tables."""

    affiliates = (
        db.query(Affiliate).options(selectinload(Affiliate.user)).order_by(Affiliate.id).all()
    )
    programs = db.query(Program).order_by(Program.id).all()
    registrations = (
        db.query(StudentRegistration)
        .options(selectinload(StudentRegistration.program))
        .order_by(StudentRegistration.created_at, StudentRegistration.id)
        .all()
    )
    payouts = (
        db.query(CommissionPayout)
        .options(selectinload(CommissionPayout.affiliate))
        .order_by(CommissionPayout.created_at, CommissionPayout.id)
        .all()
    )

    buffer = BytesIO()
    with pd.ExcelWriter(buffer, engine="openpyxl") as writer:
        _affiliates_df(affiliates).to_excel(writer, sheet_name="Affiliates", index=False)
        _programs_df(programs).to_excel(writer, sheet_name="Programs", index=False)
        _registrations_df(registrations).to_excel(writer, sheet_name="Registrations", index=False)
        _payouts_df(payouts).to_excel(writer, sheet_name="Payouts", index=False)

    buffer.seek(0)
    return buffer.getvalue()
