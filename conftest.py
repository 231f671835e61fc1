import os
import shutil
import tempfile
import pytest
from sqlalchemy import event

# Create a temporary SQLite database file for the whole test session
_TEMP_DIR = tempfile.mkdtemp(prefix="affiliate_tests_")
_DB_FILE = os.path.join(_TEMP_DIR, "test_affiliate.db")
os.environ["AFFILIATE_DATABASE_URL"] = f"sqlite:///{_DB_FILE}"


@pytest.fixture(scope="session", autouse=True)
def setup_test_database():
    """Initialize a fresh temporary SQLite database for tests and clean it up after."""
    # Import after setting env var so the app uses the temp DB
    from affiliate_desk.database import engine, init_db

    if "sqlite" in str(engine.url):
        @event.listens_for(engine, "connect")
        def set_sqlite_pragma(dbapi_conn, connection_record):
            cursor = dbapi_conn.cursor()
            cursor.execute("PRAGMA foreign_keys=ON")
            cursor.close()

    # Create schema and seed admin
    init_db()

    yield

    engine.dispose()
    shutil.rmtree(_TEMP_DIR, ignore_errors=True)


# Each test starts from an empty affiliate dataset; the seeded admin survives.
@pytest.fixture(autouse=True)
def _clean_domain_tables():
    from affiliate_desk import crud
    from affiliate_desk.database import SessionLocal

    session = SessionLocal()
    try:
        crud.reset_application_data(session)
    finally:
        session.close()


@pytest.fixture
def test_db():
    """Provide a database session for each test with automatic rollback."""
    from affiliate_desk.database import SessionLocal

    session = SessionLocal()
    try:
        yield session
    finally:
        session.rollback()
        session.close()


@pytest.fixture
def admin_user(test_db):
    from affiliate_desk import crud
    from affiliate_desk.database import DEFAULT_ADMIN_EMAIL

    return crud.get_user_by_email(test_db, DEFAULT_ADMIN_EMAIL)


@pytest.fixture
def make_affiliate(test_db, admin_user):
    """Factory creating an affiliate user plus profile, approved unless told otherwise."""
    from decimal import Decimal

    from affiliate_desk import crud
    from affiliate_desk.schemas import AffiliateCreate, AffiliateStatusUpdate, UserCreate

    counter = {"n": 0}

    def _make(status="approved", commission_rate=Decimal("0.10"), bank_name="BCA", ewallet_type=None):
        counter["n"] += 1
        user = crud.create_user(
            test_db,
            UserCreate(
                email=f"affiliate{counter['n']}@example.com",
                password="secret123",
                full_name=f"Affiliate {counter['n']}",
            ),
        )
        affiliate = crud.create_affiliate(
            test_db,
            AffiliateCreate(
                user_id=user.id,
                bank_name=bank_name,
                bank_account_number="1234567890" if bank_name else None,
                bank_account_name=user.full_name if bank_name else None,
                ewallet_type=ewallet_type,
                ewallet_number="081234567890" if ewallet_type else None,
                commission_rate=commission_rate,
            ),
        )
        if status != "pending":
            affiliate = crud.update_affiliate_status(
                test_db, affiliate.id, AffiliateStatusUpdate(status=status, approved_by=admin_user.id)
            )
        return affiliate

    return _make


@pytest.fixture
def make_program(test_db):
    from decimal import Decimal

    from affiliate_desk import crud
    from affiliate_desk.schemas import ProgramCreate

    def _make(name="Speaking Bootcamp", price=Decimal("1500000"), is_active=True, location="online"):
        return crud.create_program(
            test_db,
            ProgramCreate(
                name=name,
                category="online",
                location=location,
                price=price,
                duration_weeks=4,
                is_active=is_active,
            ),
        )

    return _make
