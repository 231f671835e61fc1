import re
from decimal import Decimal

import pytest
from pydantic import ValidationError

from affiliate_desk import crud
from affiliate_desk.errors import BusinessRuleError, NotFoundError
from affiliate_desk.schemas import AffiliateCreate, AffiliateFilters, AffiliateStatusUpdate, UserCreate


def _user(test_db, email="budi@example.com"):
    return crud.create_user(
        test_db, UserCreate(email=email, password="secret123", full_name="Budi Santoso")
    )


def test_create_user_hashes_password_and_lowercases_email(test_db):
    user = _user(test_db, email="Budi@Example.com")

    assert user.email == "budi@example.com"
    assert user.role == "affiliate"
    assert user.password_hash != "secret123"
    assert user.verify_password("secret123")
    assert crud.get_user_by_email(test_db, "BUDI@example.com").id == user.id


def test_duplicate_email_is_rejected(test_db):
    _user(test_db)
    with pytest.raises(BusinessRuleError, match="already exists"):
        _user(test_db, email="BUDI@example.com")


def test_generated_referral_code_format():
    for _ in range(20):
        assert re.fullmatch(r"EB[A-Z0-9]{8}", crud.generate_referral_code())


def test_new_affiliate_starts_pending(test_db):
    user = _user(test_db)
    affiliate = crud.create_affiliate(
        test_db,
        AffiliateCreate(user_id=user.id, bank_name="BCA", commission_rate=Decimal("0.15")),
    )

    assert affiliate.status == "pending"
    assert affiliate.approved_by is None
    assert affiliate.approved_at is None
    assert affiliate.commission_rate == Decimal("0.1500")
    assert affiliate.referral_code.startswith("EB")
    assert crud.get_affiliate_by_referral_code(test_db, affiliate.referral_code).id == affiliate.id


def test_create_affiliate_requires_existing_user(test_db):
    with pytest.raises(NotFoundError):
        crud.create_affiliate(test_db, AffiliateCreate(user_id=999999, commission_rate=Decimal("0.1")))


def test_one_affiliate_profile_per_user(test_db):
    user = _user(test_db)
    crud.create_affiliate(test_db, AffiliateCreate(user_id=user.id, commission_rate=Decimal("0.1")))
    with pytest.raises(BusinessRuleError, match="already has an affiliate profile"):
        crud.create_affiliate(test_db, AffiliateCreate(user_id=user.id, commission_rate=Decimal("0.1")))


@pytest.mark.parametrize("rate", ["0", "-0.1", "1.5"])
def test_commission_rate_bounds(rate):
    with pytest.raises(ValidationError):
        AffiliateCreate(user_id=1, commission_rate=Decimal(rate))


def test_referral_code_retries_collisions(test_db, monkeypatch, make_affiliate):
    existing = make_affiliate()
    codes = iter([existing.referral_code, existing.referral_code, "EBFRESH001"])
    monkeypatch.setattr(crud, "generate_referral_code", lambda: next(codes))

    user = _user(test_db, email="second@example.com")
    affiliate = crud.create_affiliate(test_db, AffiliateCreate(user_id=user.id, commission_rate=Decimal("0.1")))

    assert affiliate.referral_code == "EBFRESH001"


def test_referral_code_gives_up_after_ten_attempts(test_db, monkeypatch, make_affiliate):
    existing = make_affiliate()
    calls = []

    def _colliding():
        calls.append(1)
        return existing.referral_code

    monkeypatch.setattr(crud, "generate_referral_code", _colliding)
    user = _user(test_db, email="unlucky@example.com")

    with pytest.raises(BusinessRuleError, match="unique referral code"):
        crud.create_affiliate(test_db, AffiliateCreate(user_id=user.id, commission_rate=Decimal("0.1")))
    assert len(calls) == crud.REFERRAL_CODE_ATTEMPTS
    assert crud.get_affiliate_by_user(test_db, user.id) is None


def test_approval_sets_and_clears_approver(test_db, make_affiliate, admin_user):
    affiliate = make_affiliate(status="pending")

    approved = crud.update_affiliate_status(
        test_db, affiliate.id, AffiliateStatusUpdate(status="approved", approved_by=admin_user.id)
    )
    assert approved.approved_by == admin_user.id
    assert approved.approved_at is not None

    suspended = crud.update_affiliate_status(test_db, affiliate.id, AffiliateStatusUpdate(status="suspended"))
    assert suspended.status == "suspended"
    assert suspended.approved_by is None
    assert suspended.approved_at is None


def test_update_status_of_missing_affiliate(test_db):
    with pytest.raises(NotFoundError, match="Affiliate with id 424242 not found"):
        crud.update_affiliate_status(test_db, 424242, AffiliateStatusUpdate(status="approved"))


def test_invalid_status_is_rejected():
    with pytest.raises(ValidationError):
        AffiliateStatusUpdate(status="banned")


def test_list_affiliates_filters_and_pages(test_db, make_affiliate, admin_user):
    first = make_affiliate()
    second = make_affiliate()
    pending = make_affiliate(status="pending")

    approved = crud.list_affiliates(test_db, AffiliateFilters(status="approved"))
    assert {item.id for item in approved} == {first.id, second.id}

    by_admin = crud.list_affiliates(test_db, AffiliateFilters(approved_by=admin_user.id))
    assert pending.id not in {item.id for item in by_admin}

    page = crud.list_affiliates(test_db, AffiliateFilters(limit=1))
    assert len(page) == 1
    assert page[0].id == pending.id

    assert len(crud.list_affiliates(test_db, AffiliateFilters(limit=2, offset=2))) == 1


def test_affiliate_filter_limit_is_capped():
    with pytest.raises(ValidationError):
        AffiliateFilters(limit=101)
