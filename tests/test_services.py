from decimal import Decimal

import pytest
from pydantic import ValidationError

from affiliate_desk import crud
from affiliate_desk.errors import BusinessRuleError
from affiliate_desk.schemas import RegistrationStatusUpdate, StudentRegistrationCreate, UserCreate
from affiliate_desk.services import DEFAULT_COMMISSION_RATE, AffiliateService, payout_destination


def _user_payload(email="wati@example.com"):
    return UserCreate(email=email, password="wati12345", full_name="Wati")


def test_sign_up_creates_user_and_pending_profile(test_db):
    user, affiliate = AffiliateService(test_db).sign_up(
        _user_payload(), ewallet_type="GoPay", ewallet_number="0877"
    )

    assert user.role == "affiliate"
    assert affiliate.user_id == user.id
    assert affiliate.status == "pending"
    assert affiliate.commission_rate == DEFAULT_COMMISSION_RATE


def test_sign_up_requires_payout_details(test_db):
    with pytest.raises(BusinessRuleError, match="bank or e-wallet"):
        AffiliateService(test_db).sign_up(_user_payload())
    assert crud.get_user_by_email(test_db, "wati@example.com") is None


def test_sign_up_rejects_invalid_profile_before_creating_user(test_db):
    service = AffiliateService(test_db)
    with pytest.raises(ValidationError):
        service.sign_up(_user_payload(), bank_name="B" * 150)
    assert crud.get_user_by_email(test_db, "wati@example.com") is None

    user, affiliate = service.sign_up(_user_payload(), bank_name="BCA")
    assert affiliate.user_id == user.id


def test_payout_destination_prefers_bank(make_affiliate):
    bank = make_affiliate(bank_name="BRI", ewallet_type="OVO")
    method, bank_details, ewallet_details = payout_destination(bank)
    assert method == "bank_transfer"
    assert bank_details == f"BRI - 1234567890 - {bank.user.full_name}"
    assert ewallet_details == "OVO - 081234567890"

    wallet = make_affiliate(bank_name=None, ewallet_type="DANA")
    assert payout_destination(wallet) == ("ewallet", None, "DANA - 081234567890")


def test_request_payout_uses_profile_destination(test_db, make_affiliate, make_program):
    affiliate = make_affiliate(bank_name=None, ewallet_type="DANA")
    program = make_program()
    registration = crud.create_student_registration(
        test_db,
        StudentRegistrationCreate(
            affiliate_id=affiliate.id,
            program_id=program.id,
            student_name="Yoga",
            student_email="yoga@example.com",
            student_phone="0811",
            referral_code=affiliate.referral_code,
        ),
    )
    crud.update_registration_status(test_db, registration.id, RegistrationStatusUpdate(status="confirmed"))

    payout = AffiliateService(test_db).request_payout(affiliate, Decimal("150000"), notes="Monthly")

    assert payout.method == "ewallet"
    assert payout.ewallet_details == "DANA - 081234567890"
    assert payout.notes == "Monthly"
