"""Commission balance and payout-eligibility calculations."""
from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal

from sqlalchemy import func, select
from sqlalchemy.orm import Session

from affiliate_desk.models import (
    PAYOUT_OPEN_STATUSES,
    CommissionPayout,
    StudentRegistration,
)

# Smallest amount (IDR) an affiliate may withdraw in one request.
MIN_PAYOUT_AMOUNT = Decimal("100000")

ZERO = Decimal("0")


@dataclass
class CommissionBalance:
    affiliate_id: int
    total_registrations: int
    confirmed_registrations: int
    pending_registrations: int
    total_commission_earned: Decimal
    total_commission_paid: Decimal
    pending_commission: Decimal

    @property
    def available(self) -> Decimal:
        """Confirmed earnings not yet paid out or reserved by an open payout request."""
        return self.total_commission_earned - self.total_commission_paid - self.pending_commission

    @property
    def available_for_payout(self) -> Decimal:
        """The available balance, or zero while it is below the withdrawal minimum."""
        available = self.available
        return available if available >= MIN_PAYOUT_AMOUNT else ZERO


def _as_decimal(value) -> Decimal:
    if value is None:
        return ZERO
    return Decimal(str(value)).quantize(Decimal("0.01"))


def compute_balance(
    db: Session,
    affiliate_id: int,
    start_date: datetime | None = None,
    end_date: datetime | None = None,
) -> CommissionBalance:
    """Aggregate registration and payout totals for one affiliate.

    Date bounds are inclusive and apply to the ``created_at`` column of both
    registrations and payouts. An affiliate without rows (or one that does
    not exist) yields an all-zero balance.
    """

    registration_stmt = (
        select(
            StudentRegistration.status,
            func.count(StudentRegistration.id),
            func.coalesce(func.sum(StudentRegistration.commission_amount), 0),
        )
        .where(StudentRegistration.affiliate_id == affiliate_id)
        .group_by(StudentRegistration.status)
    )
    payout_stmt = (
        select(
            CommissionPayout.status,
            func.coalesce(func.sum(CommissionPayout.amount), 0),
        )
        .where(CommissionPayout.affiliate_id == affiliate_id)
        .group_by(CommissionPayout.status)
    )

    if start_date is not None:
        registration_stmt = registration_stmt.where(StudentRegistration.created_at >= start_date)
        payout_stmt = payout_stmt.where(CommissionPayout.created_at >= start_date)
    if end_date is not None:
        registration_stmt = registration_stmt.where(StudentRegistration.created_at <= end_date)
        payout_stmt = payout_stmt.where(CommissionPayout.created_at <= end_date)

    registration_counts: dict[str, int] = {}
    registration_sums: dict[str, Decimal] = {}
    for status, count, total in db.execute(registration_stmt).all():
        registration_counts[status] = int(count)
        registration_sums[status] = _as_decimal(total)

    payout_sums: dict[str, Decimal] = {}
    for status, total in db.execute(payout_stmt).all():
        payout_sums[status] = _as_decimal(total)

    return CommissionBalance(
        affiliate_id=affiliate_id,
        total_registrations=sum(registration_counts.values()),
        confirmed_registrations=registration_counts.get("confirmed", 0),
        pending_registrations=registration_counts.get("pending", 0),
        total_commission_earned=registration_sums.get("confirmed", ZERO),
        total_commission_paid=payout_sums.get("completed", ZERO),
        pending_commission=sum(
            (payout_sums.get(status, ZERO) for status in PAYOUT_OPEN_STATUSES), ZERO
        ),
    )
