from datetime import datetime, timedelta
from decimal import Decimal

import pytest
from pydantic import ValidationError

from affiliate_desk import crud
from affiliate_desk.commission import MIN_PAYOUT_AMOUNT, compute_balance
from affiliate_desk.errors import BusinessRuleError, NotFoundError
from affiliate_desk.schemas import (
    AffiliateStatusUpdate,
    CommissionPayoutCreate,
    PayoutFilters,
    PayoutStatusUpdate,
    RegistrationStatusUpdate,
    StudentRegistrationCreate,
)


def _earn(test_db, affiliate, program, count=1, confirm=True):
    """Create registrations for an affiliate, confirming them unless asked not to."""
    for index in range(count):
        registration = crud.create_student_registration(
            test_db,
            StudentRegistrationCreate(
                affiliate_id=affiliate.id,
                program_id=program.id,
                student_name=f"Student {index}",
                student_email=f"student{index}@example.com",
                student_phone="0811111111",
                referral_code=affiliate.referral_code,
            ),
        )
        if confirm:
            crud.update_registration_status(test_db, registration.id, RegistrationStatusUpdate(status="confirmed"))


def _request(test_db, affiliate, amount):
    return crud.create_commission_payout(
        test_db,
        CommissionPayoutCreate(
            affiliate_id=affiliate.id,
            amount=Decimal(amount),
            method="bank_transfer",
            bank_details="BCA - 1234567890 - Affiliate",
        ),
    )


def test_minimum_payout_amount_enforced():
    with pytest.raises(ValidationError):
        CommissionPayoutCreate(affiliate_id=1, amount=Decimal("99999"), method="ewallet")
    payload = CommissionPayoutCreate(affiliate_id=1, amount=MIN_PAYOUT_AMOUNT, method="ewallet")
    assert payload.amount == Decimal("100000.00")


def test_payout_method_must_be_known():
    with pytest.raises(ValidationError):
        CommissionPayoutCreate(affiliate_id=1, amount=Decimal("100000"), method="cash")


def test_request_payout_within_balance(test_db, make_affiliate, make_program):
    affiliate = make_affiliate()
    _earn(test_db, affiliate, make_program(), count=2)  # 2 x 150.000

    payout = _request(test_db, affiliate, "100000")

    assert payout.status == "pending"
    assert payout.processed_by is None
    balance = compute_balance(test_db, affiliate.id)
    assert balance.pending_commission == Decimal("100000.00")
    assert balance.available == Decimal("200000.00")


def test_open_requests_reserve_balance(test_db, make_affiliate, make_program):
    affiliate = make_affiliate()
    _earn(test_db, affiliate, make_program(), count=2)
    _request(test_db, affiliate, "100000")

    with pytest.raises(BusinessRuleError) as excinfo:
        _request(test_db, affiliate, "250000")
    assert str(excinfo.value) == "Insufficient commission balance. Available: 200000, Requested: 250000"


def test_pending_registrations_do_not_count(test_db, make_affiliate, make_program):
    affiliate = make_affiliate()
    _earn(test_db, affiliate, make_program(), count=3, confirm=False)

    with pytest.raises(BusinessRuleError, match="Available: 0"):
        _request(test_db, affiliate, "100000")


def test_only_approved_affiliates_request(test_db, make_affiliate, make_program):
    affiliate = make_affiliate()
    _earn(test_db, affiliate, make_program())
    crud.update_affiliate_status(test_db, affiliate.id, AffiliateStatusUpdate(status="suspended"))

    with pytest.raises(BusinessRuleError, match="Only approved affiliates"):
        _request(test_db, affiliate, "100000")


def test_unknown_affiliate(test_db):
    with pytest.raises(NotFoundError, match="Affiliate with ID 8080 not found"):
        crud.create_commission_payout(
            test_db, CommissionPayoutCreate(affiliate_id=8080, amount=Decimal("100000"), method="ewallet")
        )


def test_completed_payout_moves_to_paid(test_db, make_affiliate, make_program, admin_user):
    affiliate = make_affiliate()
    _earn(test_db, affiliate, make_program(), count=2)
    payout = _request(test_db, affiliate, "150000")

    processing = crud.update_payout_status(test_db, payout.id, PayoutStatusUpdate(status="processing"))
    assert processing.processed_at is None
    assert compute_balance(test_db, affiliate.id).pending_commission == Decimal("150000.00")

    done = crud.update_payout_status(
        test_db, payout.id, PayoutStatusUpdate(status="completed", processed_by=admin_user.id)
    )
    assert done.processed_by == admin_user.id
    assert done.processed_at is not None

    balance = compute_balance(test_db, affiliate.id)
    assert balance.total_commission_paid == Decimal("150000.00")
    assert balance.pending_commission == Decimal("0")
    assert balance.available == Decimal("150000.00")


def test_failed_payout_releases_reservation(test_db, make_affiliate, make_program):
    affiliate = make_affiliate()
    _earn(test_db, affiliate, make_program())
    payout = _request(test_db, affiliate, "150000")

    crud.update_payout_status(test_db, payout.id, PayoutStatusUpdate(status="failed", notes="Wrong account"))

    balance = compute_balance(test_db, affiliate.id)
    assert balance.available == Decimal("150000.00")
    assert _request(test_db, affiliate, "150000").status == "pending"


def test_notes_only_change_when_sent(test_db, make_affiliate, make_program):
    affiliate = make_affiliate()
    _earn(test_db, affiliate, make_program())
    payout = _request(test_db, affiliate, "100000")

    crud.update_payout_status(test_db, payout.id, PayoutStatusUpdate(status="processing", notes="Queued"))
    kept = crud.update_payout_status(test_db, payout.id, PayoutStatusUpdate(status="completed"))
    assert kept.notes == "Queued"

    cleared = crud.update_payout_status(test_db, payout.id, PayoutStatusUpdate(status="completed", notes=None))
    assert cleared.notes is None


def test_update_missing_payout(test_db):
    with pytest.raises(NotFoundError, match="Commission payout with id 777 not found"):
        crud.update_payout_status(test_db, 777, PayoutStatusUpdate(status="completed"))


def test_list_payouts_filters(test_db, make_affiliate, make_program):
    program = make_program()
    first = make_affiliate()
    second = make_affiliate()
    _earn(test_db, first, program, count=2)
    _earn(test_db, second, program, count=2)

    p1 = _request(test_db, first, "100000")
    p2 = _request(test_db, first, "100000")
    p3 = _request(test_db, second, "100000")
    crud.update_payout_status(test_db, p1.id, PayoutStatusUpdate(status="completed"))

    mine = crud.list_commission_payouts(test_db, PayoutFilters(affiliate_id=first.id))
    assert [item.id for item in mine] == [p2.id, p1.id]

    completed = crud.list_commission_payouts(test_db, PayoutFilters(status="completed"))
    assert [item.id for item in completed] == [p1.id]

    future = datetime.now() + timedelta(days=1)
    assert crud.list_commission_payouts(test_db, PayoutFilters(start_date=future)) == []
    assert len(crud.list_commission_payouts(test_db, PayoutFilters(end_date=future))) == 3
    assert [item.id for item in crud.list_commission_payouts(test_db, PayoutFilters(limit=1))] == [p3.id]
