"""Student registration procedures."""
from __future__ import annotations

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
    RegistrationStatusUpdate,
    StudentRegistrationCreate,
    StudentRegistrationRead,
)

router = APIRouter(prefix="/api/registrations", tags=["Registrations"])


@router.post("", response_model=StudentRegistrationRead, status_code=201)
def create_student_registration(payload: StudentRegistrationCreate, db: Session = Depends(get_session)):
    """Public endpoint behind the referral link form."""
    return crud.create_student_registration(db, payload)


@router.get("", response_model=list[StudentRegistrationRead])
def list_registrations(
    affiliate_id: int | None = Query(None),
    db: Session = Depends(get_session),
    caller: User = Depends(get_current_user),
):
    if affiliate_id is None and not caller.is_admin():
        affiliate_id = own_affiliate_id(db, caller)
    elif affiliate_id is not None:
        ensure_affiliate_access(db, caller, affiliate_id)
    return crud.list_registrations(db, affiliate_id)


@router.patch("/{registration_id}/status", response_model=StudentRegistrationRead)
def update_registration_status(
    registration_id: int,
    payload: RegistrationStatusUpdate,
    db: Session = Depends(get_session),
    admin: User = Depends(get_admin_user),
):
    if "confirmed_by" not in payload.model_fields_set:
        payload = payload.model_copy(update={"confirmed_by": admin.id})
    return crud.update_registration_status(db, registration_id, payload)
