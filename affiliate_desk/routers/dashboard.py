"""Role-based dashboards and public sign-up/registration pages."""
from __future__ import annotations

import re
from decimal import Decimal
from urllib.parse import urlencode

from fastapi import APIRouter, Depends, Form, HTTPException, Request
from fastapi.responses import RedirectResponse
from pydantic import ValidationError
from sqlalchemy.orm import Session

from affiliate_desk import crud
from affiliate_desk.auth import User
from affiliate_desk.commission import MIN_PAYOUT_AMOUNT
from affiliate_desk.core.formatting import format_idr
from affiliate_desk.database import get_session
from affiliate_desk.dependencies import templates
from affiliate_desk.errors import AffiliateDeskError
from affiliate_desk.models import (
    AFFILIATE_STATUS_ENUM,
    PAYOUT_STATUS_ENUM,
    PROGRAM_CATEGORY_ENUM,
    PROGRAM_LOCATION_ENUM,
    REGISTRATION_STATUS_ENUM,
    Affiliate,
)
from affiliate_desk.routers.auth import get_admin_user, get_current_affiliate, get_current_user
from affiliate_desk.schemas import (
    AffiliateFilters,
    AffiliateStatusUpdate,
    PayoutFilters,
    PayoutStatusUpdate,
    ProgramCreate,
    RegistrationStatusUpdate,
    StudentRegistrationCreate,
    UserCreate,
)
from affiliate_desk.security import PasswordValidator
from affiliate_desk.services import AffiliateService

router = APIRouter(tags=["Dashboard"])

# Whole rupiah, optionally with dot thousand separators: "150000" or "150.000".
_RUPIAH_AMOUNT = re.compile(r"^(\d+|\d{1,3}(\.\d{3})+)$")


def _validation_message(exc: ValidationError) -> str:
    first = exc.errors()[0]
    field = ".".join(str(part) for part in first.get("loc", ()))
    message = first.get("msg", "Invalid value")
    return f"{field}: {message}" if field else message


def _redirect(path: str, **params: str) -> RedirectResponse:
    query = urlencode({key: value for key, value in params.items() if value})
    return RedirectResponse(url=f"{path}?{query}" if query else path, status_code=303)


def _form_value(value: str | None) -> str | None:
    if value is None:
        return None
    value = value.strip()
    return value or None


@router.get("/dashboard")
def dashboard(user: User = Depends(get_current_user)) -> RedirectResponse:
    target = "/admin" if user.is_admin() else "/affiliate"
    return RedirectResponse(url=target, status_code=303)


# --- Admin dashboard -------------------------------------------------------


@router.get("/admin")
def admin_dashboard(
    request: Request,
    db: Session = Depends(get_session),
    admin: User = Depends(get_admin_user),
):
    affiliates = crud.list_affiliates(db, AffiliateFilters(limit=100))
    programs = crud.list_programs(db)
    registrations = crud.list_registrations(db)
    payouts = crud.list_commission_payouts(db)

    summary = {
        "affiliates_total": len(affiliates),
        "affiliates_pending": sum(1 for item in affiliates if item.status == "pending"),
        "programs_active": sum(1 for item in programs if item.is_active),
        "registrations_pending": sum(1 for item in registrations if item.status == "pending"),
        "payouts_open": sum(1 for item in payouts if item.status in ("pending", "processing")),
        "commission_confirmed": sum(
            (item.commission_amount for item in registrations if item.status == "confirmed"),
            Decimal("0"),
        ),
    }

    return templates.TemplateResponse(
        request,
        "dashboard/admin.html",
        {
            "user": admin,
            "summary": summary,
            "affiliates": affiliates,
            "programs": programs,
            "registrations": registrations,
            "payouts": payouts,
            "affiliate_statuses": AFFILIATE_STATUS_ENUM,
            "registration_statuses": REGISTRATION_STATUS_ENUM,
            "payout_statuses": PAYOUT_STATUS_ENUM,
            "program_categories": PROGRAM_CATEGORY_ENUM,
            "program_locations": PROGRAM_LOCATION_ENUM,
            "error": request.query_params.get("error"),
            "success": request.query_params.get("success"),
        },
    )


@router.post("/admin/affiliates/{affiliate_id}/status")
def admin_update_affiliate_status(
    affiliate_id: int,
    status: str = Form(...),
    db: Session = Depends(get_session),
    admin: User = Depends(get_admin_user),
):
    try:
        payload = AffiliateStatusUpdate(status=status, approved_by=admin.id)
        crud.update_affiliate_status(db, affiliate_id, payload)
    except ValidationError as exc:
        return _redirect("/admin", error=_validation_message(exc))
    except AffiliateDeskError as exc:
        return _redirect("/admin", error=str(exc))
    return _redirect("/admin", success=f"Affiliate #{affiliate_id} marked {payload.status}.")


@router.post("/admin/programs")
def admin_create_program(
    name: str = Form(...),
    category: str = Form(...),
    location: str = Form(...),
    price: str = Form(...),
    description: str | None = Form(default=None),
    duration_weeks: str | None = Form(default=None),
    is_active: bool = Form(default=False),
    db: Session = Depends(get_session),
    admin: User = Depends(get_admin_user),
):
    try:
        payload = ProgramCreate(
            name=name,
            description=description,
            category=category,
            location=location,
            price=price,
            duration_weeks=_form_value(duration_weeks),
            is_active=is_active,
        )
    except ValidationError as exc:
        return _redirect("/admin", error=_validation_message(exc))
    program = crud.create_program(db, payload)
    return _redirect("/admin", success=f"Program '{program.name}' created.")


@router.post("/admin/registrations/{registration_id}/status")
def admin_update_registration_status(
    registration_id: int,
    status: str = Form(...),
    db: Session = Depends(get_session),
    admin: User = Depends(get_admin_user),
):
    try:
        payload = RegistrationStatusUpdate(status=status, confirmed_by=admin.id)
        crud.update_registration_status(db, registration_id, payload)
    except ValidationError as exc:
        return _redirect("/admin", error=_validation_message(exc))
    except AffiliateDeskError as exc:
        return _redirect("/admin", error=str(exc))
    return _redirect("/admin", success=f"Registration #{registration_id} marked {payload.status}.")


@router.post("/admin/payouts/{payout_id}/status")
def admin_update_payout_status(
    payout_id: int,
    status: str = Form(...),
    notes: str | None = Form(default=None),
    db: Session = Depends(get_session),
    admin: User = Depends(get_admin_user),
):
    try:
        fields = {"status": status, "processed_by": admin.id}
        if _form_value(notes) is not None:
            fields["notes"] = _form_value(notes)
        payload = PayoutStatusUpdate(**fields)
        crud.update_payout_status(db, payout_id, payload)
    except ValidationError as exc:
        return _redirect("/admin", error=_validation_message(exc))
    except AffiliateDeskError as exc:
        return _redirect("/admin", error=str(exc))
    return _redirect("/admin", success=f"Payout #{payout_id} marked {payload.status}.")


# --- Affiliate dashboard ---------------------------------------------------


@router.get("/affiliate")
def affiliate_dashboard(
    request: Request,
    db: Session = Depends(get_session),
    user: User = Depends(get_current_user),
    affiliate: Affiliate = Depends(get_current_affiliate),
):
    stats = crud.get_affiliate_stats(db, affiliate.id)
    programs = crud.list_programs(db, is_active=True)
    base_url = str(request.base_url).rstrip("/")
    referral_links = [
        {
            "program": program,
            "url": f"{base_url}/register?{urlencode({'ref': affiliate.referral_code, 'program': program.id})}",
            "commission": crud.calculate_commission(program.price, affiliate.commission_rate),
        }
        for program in programs
    ]

    return templates.TemplateResponse(
        request,
        "dashboard/affiliate.html",
        {
            "user": user,
            "affiliate": affiliate,
            "stats": stats,
            "general_link": f"{base_url}/register?{urlencode({'ref': affiliate.referral_code})}",
            "referral_links": referral_links,
            "registrations": crud.list_registrations(db, affiliate.id),
            "payouts": crud.list_commission_payouts(
                db, PayoutFilters(affiliate_id=affiliate.id)
            ),
            "min_payout": MIN_PAYOUT_AMOUNT,
            "error": request.query_params.get("error"),
            "success": request.query_params.get("success"),
        },
    )


@router.post("/affiliate/payouts")
def affiliate_request_payout(
    amount: str = Form(...),
    notes: str | None = Form(default=None),
    db: Session = Depends(get_session),
    affiliate: Affiliate = Depends(get_current_affiliate),
):
    text = amount.strip()
    if not _RUPIAH_AMOUNT.match(text):
        return _redirect("/affiliate", error="Enter the amount as a whole number of rupiah.")
    requested = Decimal(text.replace(".", ""))

    try:
        payout = AffiliateService(db).request_payout(affiliate, requested, _form_value(notes))
    except ValidationError:
        return _redirect("/affiliate", error=f"Minimum payout amount is {format_idr(MIN_PAYOUT_AMOUNT)}.")
    except AffiliateDeskError as exc:
        return _redirect("/affiliate", error=str(exc))
    return _redirect("/affiliate", success=f"Payout request #{payout.id} submitted.")


# --- Public pages ----------------------------------------------------------


@router.get("/signup")
def signup_page(request: Request):
    return templates.TemplateResponse(request, "auth/signup.html", {"form": {}})


@router.post("/signup")
def signup(
    request: Request,
    full_name: str = Form(...),
    email: str = Form(...),
    password: str = Form(...),
    phone: str | None = Form(default=None),
    bank_name: str | None = Form(default=None),
    bank_account_number: str | None = Form(default=None),
    bank_account_name: str | None = Form(default=None),
    ewallet_type: str | None = Form(default=None),
    ewallet_number: str | None = Form(default=None),
    db: Session = Depends(get_session),
):
    form = {
        "full_name": full_name,
        "email": email,
        "phone": phone,
        "bank_name": bank_name,
        "bank_account_number": bank_account_number,
        "bank_account_name": bank_account_name,
        "ewallet_type": ewallet_type,
        "ewallet_number": ewallet_number,
    }

    def _fail(message: str):
        return templates.TemplateResponse(
            request, "auth/signup.html", {"form": form, "error": message}, status_code=400
        )

    is_valid, password_error = PasswordValidator.validate(password)
    if not is_valid:
        return _fail(password_error)

    try:
        user_payload = UserCreate(
            email=email, password=password, full_name=full_name, phone=phone, role="affiliate"
        )
        AffiliateService(db).sign_up(
            user_payload,
            bank_name=_form_value(bank_name),
            bank_account_number=_form_value(bank_account_number),
            bank_account_name=_form_value(bank_account_name),
            ewallet_type=_form_value(ewallet_type),
            ewallet_number=_form_value(ewallet_number),
        )
    except ValidationError as exc:
        return _fail(_validation_message(exc))
    except AffiliateDeskError as exc:
        return _fail(str(exc))

    return _redirect("/login", success="Registration received. An admin will review your application.")


@router.get("/register")
def student_registration_page(request: Request, db: Session = Depends(get_session)):
    referral_code = request.query_params.get("ref", "")
    affiliate = crud.get_affiliate_by_referral_code(db, referral_code) if referral_code else None
    if affiliate is None or affiliate.status != "approved":
        raise HTTPException(status_code=404, detail="Referral link is not valid")

    selected_program = request.query_params.get("program")
    return templates.TemplateResponse(
        request,
        "register/student.html",
        {
            "affiliate": affiliate,
            "programs": crud.list_programs(db, is_active=True),
            "selected_program": int(selected_program) if selected_program and selected_program.isdigit() else None,
            "form": {},
        },
    )


@router.post("/register")
def student_registration(
    request: Request,
    referral_code: str = Form(...),
    program_id: int = Form(...),
    student_name: str = Form(...),
    student_email: str = Form(...),
    student_phone: str = Form(...),
    student_address: str | None = Form(default=None),
    db: Session = Depends(get_session),
):
    affiliate = crud.get_affiliate_by_referral_code(db, referral_code)
    if affiliate is None:
        raise HTTPException(status_code=404, detail="Referral link is not valid")

    form = {
        "student_name": student_name,
        "student_email": student_email,
        "student_phone": student_phone,
        "student_address": student_address,
    }
    try:
        registration = crud.create_student_registration(
            db,
            StudentRegistrationCreate(
                affiliate_id=affiliate.id,
                program_id=program_id,
                student_name=student_name,
                student_email=student_email,
                student_phone=student_phone,
                student_address=student_address,
                referral_code=referral_code,
            ),
        )
    except (ValidationError, AffiliateDeskError) as exc:
        message = _validation_message(exc) if isinstance(exc, ValidationError) else str(exc)
        return templates.TemplateResponse(
            request,
            "register/student.html",
            {
                "affiliate": affiliate,
                "programs": crud.list_programs(db, is_active=True),
                "selected_program": program_id,
                "form": form,
                "error": message,
            },
            status_code=400,
        )

    return templates.TemplateResponse(
        request,
        "register/thanks.html",
        {"registration": registration},
        status_code=201,
    )
