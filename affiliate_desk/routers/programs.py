"""Program procedures."""
from __future__ import annotations

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from affiliate_desk import crud
from affiliate_desk.auth import User
from affiliate_desk.database import get_session
from affiliate_desk.models import PROGRAM_CATEGORY_ENUM, PROGRAM_LOCATION_ENUM
from affiliate_desk.routers.auth import get_admin_user
from affiliate_desk.schemas import ProgramCreate, ProgramRead

router = APIRouter(prefix="/api/programs", tags=["Programs"])


@router.post("", response_model=ProgramRead, status_code=201)
def create_program(
    payload: ProgramCreate,
    db: Session = Depends(get_session),
    admin: User = Depends(get_admin_user),
):
    return crud.create_program(db, payload)


@router.get("", response_model=list[ProgramRead])
def list_programs(
    is_active: bool | None = None,
    category: str | None = Query(None, pattern=f"^({'|'.join(PROGRAM_CATEGORY_ENUM)})$"),
    location: str | None = Query(None, pattern=f"^({'|'.join(PROGRAM_LOCATION_ENUM)})$"),
    db: Session = Depends(get_session),
):
    return crud.list_programs(db, is_active=is_active, category=category, location=location)
