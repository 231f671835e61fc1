"""Affiliate procedures: sign-up, approval, lookup and statistics."""
from __future__ import annotations

from datetime import datetime
from typing import Annotated, Optional

from fastapi import APIRouter, Depends, HTTPException, Query
from pydantic import BaseModel, ConfigDict
from sqlalchemy.orm import Session

from affiliate_desk import crud
from affiliate_desk.auth import User
from affiliate_desk.database import get_session
from affiliate_desk.models import Affiliate
from affiliate_desk.routers.auth import (
    ensure_affiliate_access,
    get_admin_user,
    get_current_affiliate,
    get_current_user,
)
from affiliate_desk.schemas import (
    AffiliateCreate,
    AffiliateFilters,
    AffiliateRead,
    AffiliateStats,
    AffiliateStatusUpdate,
)
from affiliate_desk.services import DEFAULT_COMMISSION_RATE

router = APIRouter(prefix="/api/affiliates", tags=["Affiliates"])


class ReferralLookup(BaseModel):
    """Public view of an affiliate, enough to attribute a registration."""

    id: int
    referral_code: str
    status: str

    model_config = ConfigDict(from_attributes=True)


@router.post("", response_model=AffiliateRead, status_code=201)
def create_affiliate(
    payload: AffiliateCreate,
    db: Session = Depends(get_session),
    caller: User = Depends(get_current_user),
):
    """Admins may create any profile; users only their own, at the standard rate."""
    if not caller.is_admin():
        if caller.id != payload.user_id:
            raise HTTPException(status_code=403, detail="Cannot create a profile for another user")
        payload = payload.model_copy(update={"commission_rate": DEFAULT_COMMISSION_RATE})
    return crud.create_affiliate(db, payload)


@router.get("", response_model=list[AffiliateRead])
def list_affiliates(
    filters: Annotated[AffiliateFilters, Query()],
    db: Session = Depends(get_session),
    admin: User = Depends(get_admin_user),
):
    return crud.list_affiliates(db, filters)


@router.get("/me", response_model=AffiliateRead)
def my_affiliate(affiliate: Affiliate = Depends(get_current_affiliate)):
    return affiliate


@router.get("/by-referral-code/{referral_code}", response_model=Optional[ReferralLookup])
def get_affiliate_by_referral_code(referral_code: str, db: Session = Depends(get_session)):
    return crud.get_affiliate_by_referral_code(db, referral_code)


@router.patch("/{affiliate_id}/status", response_model=AffiliateRead)
def update_affiliate_status(
    affiliate_id: int,
    payload: AffiliateStatusUpdate,
    db: Session = Depends(get_session),
    admin: User = Depends(get_admin_user),
):
    if "approved_by" not in payload.model_fields_set:
        payload = payload.model_copy(update={"approved_by": admin.id})
    return crud.update_affiliate_status(db, affiliate_id, payload)


@router.get("/{affiliate_id}/stats", response_model=AffiliateStats)
def get_affiliate_stats(
    affiliate_id: int,
    start_date: datetime | None = Query(None),
    end_date: datetime | None = Query(None),
    db: Session = Depends(get_session),
    caller: User = Depends(get_current_user),
):
    ensure_affiliate_access(db, caller, affiliate_id)
    balance = crud.get_affiliate_stats(db, affiliate_id, start_date=start_date, end_date=end_date)
    return AffiliateStats.from_balance(balance)
