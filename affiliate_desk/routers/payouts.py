"""Commission payout procedures."""
from __future__ import annotations

from typing import Annotated

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from affiliate_desk import crud
from affiliate_desk.auth import User
from affiliate_desk.database import get_session
from affiliate_desk.routers.auth import (
    ensure_affiliate_access,
    get_admin_user,
    get_current_user,
    own_affiliate_id,
)
from affiliate_desk.schemas import (
    CommissionPayoutCreate,
    CommissionPayoutRead,
    PayoutFilters,
    PayoutStatusUpdate,
)

router = APIRouter(prefix="/api/payouts", tags=["Payouts"])


@router.post("", response_model=CommissionPayoutRead, status_code=201)
def create_commission_payout(
    payload: CommissionPayoutCreate,
    db: Session = Depends(get_session),
    caller: User = Depends(get_current_user),
):
    ensure_affiliate_access(db, caller, payload.affiliate_id)
    return crud.create_commission_payout(db, payload)


@router.get("", response_model=list[CommissionPayoutRead])
def list_commission_payouts(
    filters: Annotated[PayoutFilters, Query()],
    db: Session = Depends(get_session),
    caller: User = Depends(get_current_user),
):
    if filters.affiliate_id is None and not caller.is_admin():
        filters = filters.model_copy(update={"affiliate_id": own_affiliate_id(db, caller)})
    elif filters.affiliate_id is not None:
        ensure_affiliate_access(db, caller, filters.affiliate_id)
    return crud.list_commission_payouts(db, filters)


@router.patch("/{payout_id}/status", response_model=CommissionPayoutRead)
def update_payout_status(
    payout_id: int,
    payload: PayoutStatusUpdate,
    db: Session = Depends(get_session),
    admin: User = Depends(get_admin_user),
):
    if "processed_by" not in payload.model_fields_set:
        payload = payload.model_copy(update={"processed_by": admin.id})
    return crud.update_payout_status(db, payout_id, payload)
