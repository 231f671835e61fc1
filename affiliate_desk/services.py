"""Application service layer for multi-step affiliate workflows."""
from __future__ import annotations

import logging
from decimal import Decimal

from sqlalchemy.orm import Session

from affiliate_desk import crud
from affiliate_desk.auth import User
from affiliate_desk.errors import AffiliateDeskError, BusinessRuleError
from affiliate_desk.models import Affiliate, CommissionPayout
from affiliate_desk.schemas import AffiliateCreate, CommissionPayoutCreate, UserCreate

logger = logging.getLogger(__name__)

# Rate granted to self-service sign-ups.
DEFAULT_COMMISSION_RATE = Decimal("0.10")


def payout_destination(affiliate: Affiliate) -> tuple[str, str | None, str | None]:
    """Return ``(method, bank_details, ewallet_details)`` from the affiliate profile.

    Bank transfer wins when a bank name is on file, otherwise the e-wallet is used.
    """
    bank_details = None
    ewallet_details = None
    if affiliate.bank_name:
        bank_details = " - ".join(
            part
            for part in (affiliate.bank_name, affiliate.bank_account_number, affiliate.bank_account_name)
            if part
        )
    if affiliate.ewallet_type:
        ewallet_details = " - ".join(
            part for part in (affiliate.ewallet_type, affiliate.ewallet_number) if part
        )
    method = "bank_transfer" if affiliate.bank_name else "ewallet"
    return method, bank_details, ewallet_details


class AffiliateService:
    """Coordinates affiliate operations that touch more than one table."""

    def __init__(self, db: Session) -> None:
        self.db = db

    def sign_up(
        self,
        user_payload: UserCreate,
        bank_name: str | None = None,
        bank_account_number: str | None = None,
        bank_account_name: str | None = None,
        ewallet_type: str | None = None,
        ewallet_number: str | None = None,
        commission_rate: Decimal = DEFAULT_COMMISSION_RATE,
    ) -> tuple[User, Affiliate]:
        """Create the user account and its pending affiliate profile together."""
        if not (bank_name or ewallet_type):
            raise BusinessRuleError("Provide bank or e-wallet details to receive payouts.")

        # Validated before the user row exists; the real user id is filled in below.
        profile = AffiliateCreate(
            user_id=0,
            bank_name=bank_name,
            bank_account_number=bank_account_number,
            bank_account_name=bank_account_name,
            ewallet_type=ewallet_type,
            ewallet_number=ewallet_number,
            commission_rate=commission_rate,
        )

        user = crud.create_user(self.db, user_payload)
        try:
            affiliate = crud.create_affiliate(self.db, profile.model_copy(update={"user_id": user.id}))
        except AffiliateDeskError:
            logger.warning("Affiliate profile failed for %s, removing the new user", user.email)
            self.db.delete(user)
            self.db.commit()
            raise
        return user, affiliate

    def request_payout(
        self, affiliate: Affiliate, amount: Decimal, notes: str | None = None
    ) -> CommissionPayout:
        """Request a payout to the destination stored on the affiliate profile."""
        method, bank_details, ewallet_details = payout_destination(affiliate)
        payload = CommissionPayoutCreate(
            affiliate_id=affiliate.id,
            amount=amount,
            method=method,
            bank_details=bank_details,
            ewallet_details=ewallet_details,
            notes=notes,
        )
        return crud.create_commission_payout(self.db, payload)
