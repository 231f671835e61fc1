"""Authentication routes and session management."""
from __future__ import annotations

import os

from fastapi import APIRouter, Depends, Form, HTTPException, Request
from fastapi.responses import RedirectResponse
from sqlalchemy.orm import Session

from affiliate_desk import crud
from affiliate_desk.auth import User
from affiliate_desk.database import get_session
from affiliate_desk.dependencies import templates
from affiliate_desk.models import Affiliate
from affiliate_desk.security import authenticate, read_session_token, write_session_token

router = APIRouter(tags=["Auth"])

SESSION_COOKIE = "session"


def _safe_redirect_target(candidate: str | None) -> str:
    # Only same-site paths are allowed.
    if not candidate or "://" in candidate or not candidate.startswith("/") or candidate.startswith("//"):
        return "/dashboard"
    return candidate


@router.get("/login")
def login_page(request: Request):
    """Render login page, optionally preserving a next destination."""
    next_param = request.query_params.get("next")
    return templates.TemplateResponse(request, "auth/login.html", {"next": next_param})


@router.post("/login")
def login(
    request: Request,
    email: str = Form(...),
    password: str = Form(...),
    next: str | None = Form(default=None),
    db: Session = Depends(get_session),
):
    """Handle login form submission with rate limiting and account lockout."""
    client_ip = request.client.host if request.client else "unknown"
    user_agent = request.headers.get("user-agent", "")

    user, error = authenticate(db, email, password, client_ip, user_agent)
    if user is None:
        status_code = 403 if error and error.startswith("Account locked") else 401
        return templates.TemplateResponse(
            request,
            "auth/login.html",
            {"error": error, "email": email, "next": next},
            status_code=status_code,
        )

    redirect_to = _safe_redirect_target(next or request.query_params.get("next"))
    response = RedirectResponse(url=redirect_to, status_code=303)
    # HTTPS deployments run against PostgreSQL; local SQLite runs are plain HTTP.
    is_production = os.getenv("AFFILIATE_DATABASE_URL", "").startswith("postgresql")
    response.set_cookie(
        key=SESSION_COOKIE,
        value=write_session_token(user.id),
        httponly=True,
        path="/",
        secure=is_production,
        samesite="lax",
        max_age=86400,
    )
    return response


@router.get("/logout")
def logout():
    """Clear the session cookie."""
    response = RedirectResponse(url="/login", status_code=303)
    response.delete_cookie(SESSION_COOKIE)
    return response


def get_optional_user(request: Request, db: Session = Depends(get_session)) -> User | None:
    """Return the signed-in user, or None for anonymous requests."""
    token = request.cookies.get(SESSION_COOKIE)
    if not token:
        return None
    user_id = read_session_token(token)
    if user_id is None:
        return None
    return crud.get_user(db, user_id)


def get_current_user(user: User | None = Depends(get_optional_user)) -> User:
    """Dependency to get current authenticated user."""
    if user is None:
        raise HTTPException(status_code=401, detail="Not authenticated")
    return user


def get_admin_user(user: User = Depends(get_current_user)) -> User:
    """Dependency to ensure user is admin."""
    if not user.is_admin():
        raise HTTPException(status_code=403, detail="Admin access required")
    return user


def get_current_affiliate(
    user: User = Depends(get_current_user),
    db: Session = Depends(get_session),
) -> Affiliate:
    """Dependency resolving the affiliate profile of the signed-in user."""
    affiliate = crud.get_affiliate_by_user(db, user.id)
    if affiliate is None:
        raise HTTPException(status_code=403, detail="Affiliate profile required")
    return affiliate


def ensure_affiliate_access(db: Session, user: User, affiliate_id: int) -> None:
    """Allow admins everywhere and affiliates only on their own records."""
    if user.is_admin():
        return
    affiliate = crud.get_affiliate_by_user(db, user.id)
    if affiliate is None or affiliate.id != affiliate_id:
        raise HTTPException(status_code=403, detail="Not allowed to access this affiliate")


def own_affiliate_id(db: Session, user: User) -> int:
    """Affiliate id of a non-admin caller; 403 when the user has no profile."""
    affiliate = crud.get_affiliate_by_user(db, user.id)
    if affiliate is None:
        raise HTTPException(status_code=403, detail="Affiliate profile required")
    return affiliate.id
