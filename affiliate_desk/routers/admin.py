"""Admin-only routes: data export."""
from __future__ import annotations

from datetime import datetime

from fastapi import APIRouter, Depends
from fastapi.responses import Response
from sqlalchemy.orm import Session

from affiliate_desk.auth import User
from affiliate_desk.database import get_session
from affiliate_desk.exporting import export_full_workbook
from affiliate_desk.routers.auth import get_admin_user

router = APIRouter(prefix="/api/exports", tags=["Admin"])


@router.get("/workbook.xlsx")
def export_workbook(db: Session = Depends(get_session), admin: User = Depends(get_admin_user)) -> Response:
    content = export_full_workbook(db)
    timestamp = datetime.now().strftime("%Y%m%d_%H%M%S")
    filename = f"affiliate_export_{timestamp}.xlsx"
    return Response(
        content,
        media_type="application/vnd.openxmlformats-officedocument.spreadsheetml.sheet",
        headers={"Content-Disposition": f"attachment; filename={filename}"},
    )
