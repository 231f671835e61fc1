"""User procedures."""
from __future__ import annotations

from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy.orm import Session

from affiliate_desk import crud
from affiliate_desk.auth import User
from affiliate_desk.database import get_session
from affiliate_desk.routers.auth import get_current_user, get_optional_user
from affiliate_desk.schemas import UserCreate, UserRead

router = APIRouter(prefix="/api/users", tags=["Users"])


@router.post("", response_model=UserRead, status_code=201)
def create_user(
    payload: UserCreate,
    db: Session = Depends(get_session),
    caller: User | None = Depends(get_optional_user),
):
    """Sign up a user; only admins may create other admins."""
    if payload.role == "admin" and (caller is None or not caller.is_admin()):
        raise HTTPException(status_code=403, detail="Admin access required")
    return crud.create_user(db, payload)


@router.get("/by-email", response_model=Optional[UserRead])
def get_user_by_email(
    email: str = Query(..., min_length=3),
    db: Session = Depends(get_session),
    caller: User = Depends(get_current_user),
):
    if not caller.is_admin() and caller.email != email.strip().lower():
        raise HTTPException(status_code=403, detail="Admin access required")
    return crud.get_user_by_email(db, email)
