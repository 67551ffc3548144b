"""
Test configuration for the clinic booking backend.
"""
import os

os.environ.setdefault("SECRET_KEY", "test-secret-key")
os.environ.setdefault("DATABASE_URL", "sqlite://")

from datetime import date, datetime, timedelta, timezone
import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.exc import OperationalError
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from clinic_api.main import app
from clinic_api.config import settings
from clinic_api.database import Base, get_db
from clinic_api.auth.dependencies import get_otp_store, get_token_issuer, get_token_ledger
from clinic_api.auth.expiration import DurationTable
from clinic_api.auth.ledger import TokenLedger
from clinic_api.auth.models import User, UserRole, AccountStatus, OneTimeCode
from clinic_api.auth.otp import CodeSender, OtpStore
from clinic_api.auth.tokens import TokenIssuer
from clinic_api.core.security import hash_password
from clinic_api.doctors.models import DoctorProfile, ValidationStatus
from clinic_api.patients.models import Gender, PatientProfile

# Test database URL
TEST_DATABASE_URL = "sqlite://"

TEST_SECRET = "unit-test-signing-key"

# Create test database engine
engine = create_engine(
    TEST_DATABASE_URL,
    connect_args={"check_same_thread": False},
    poolclass=StaticPool,
)

# Create test session factory
TestingSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)


class FakeClock:
    """Controllable UTC clock, starts at the real current time."""

    def __init__(self):
        self.now = datetime.now(timezone.utc)

    def __call__(self):
        return self.now

    def advance(self, **kwargs):
        self.now = self.now + timedelta(**kwargs)


class RecordingSender(CodeSender):
    """Keeps every dispatched code instead of sending an SMS."""

    def __init__(self):
        self.sent = []

    def send(self, phone, code):
        self.sent.append((phone, code))

    @property
    def last_code(self):
        return self.sent[-1][1]


class OutageLedger(TokenLedger):
    """Ledger that loses the database on its write, which stays down afterwards."""

    def __init__(self, monkeypatch):
        self.monkeypatch = monkeypatch

    def record_many(self, db, user_id, entries):
        def unavailable(*args, **kwargs):
            raise OperationalError("INSERT INTO user_tokens", {}, Exception("connection lost"))

        self.monkeypatch.setattr(db, "commit", unavailable)
        self.monkeypatch.setattr(db, "execute", unavailable)
        return super().record_many(db, user_id, entries)


@pytest.fixture(scope="function")
def db():
    """
    Create a fresh database for each test.
    """
    Base.metadata.create_all(bind=engine)

    db = TestingSessionLocal()
    try:
        yield db
    finally:
        db.close()

    Base.metadata.drop_all(bind=engine)


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def sender():
    return RecordingSender()


@pytest.fixture
def otp_store(sender, clock):
    return OtpStore(length=4, ttl="5m", sender=sender, clock=clock)


@pytest.fixture
def issuer():
    return TokenIssuer(TEST_SECRET, durations=DurationTable(settings.jwt_expiration))


@pytest.fixture
def ledger():
    return TokenLedger()


@pytest.fixture(scope="function")
def client(db, otp_store, issuer, ledger):
    """
    Create a test client with a test database session and test auth components.
    """
    def override_get_db():
        try:
            yield db
        finally:
            pass

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_otp_store] = lambda: otp_store
    app.dependency_overrides[get_token_issuer] = lambda: issuer
    app.dependency_overrides[get_token_ledger] = lambda: ledger

    with TestClient(app) as client:
        yield client

    app.dependency_overrides = {}


@pytest.fixture
def outage_ledger(client, monkeypatch):
    """
    Swap in a ledger whose write fails and leaves the database unreachable.

    Call monkeypatch.undo() before querying the session again.
    """
    ledger = OutageLedger(monkeypatch)
    app.dependency_overrides[get_token_ledger] = lambda: ledger
    return ledger


def make_user(db, role=UserRole.DOCTOR, status=AccountStatus.ACTIVE, email=None, phone=None,
              password=None, validation_status=ValidationStatus.APPROVED, rejection_reason=None,
              with_profile=True):
    """Create a user, with the profile matching its role."""
    user = User(
        email=email,
        phone=phone,
        first_name="Awa",
        last_name="Kone",
        password_hash=hash_password(password) if password else None,
        role=role,
        status=status,
    )
    db.add(user)
    db.flush()
    if with_profile and role == UserRole.DOCTOR:
        db.add(DoctorProfile(
            user_id=user.id,
            specialization="Cardiology",
            validation_status=validation_status,
            rejection_reason=rejection_reason,
        ))
    if with_profile and role == UserRole.PATIENT:
        db.add(PatientProfile(
            user_id=user.id,
            date_of_birth=date(1990, 5, 17),
            gender=Gender.F,
            city="Abidjan",
        ))
    db.commit()
    db.refresh(user)
    return user


def make_code(db, phone, code, expires_at, consumed=False, created_at=None):
    """Store a one-time code directly, bypassing issuance."""
    record = OneTimeCode(
        phone=phone,
        code=code,
        expires_at=expires_at,
        consumed=consumed,
        created_at=created_at or datetime.now(timezone.utc),
    )
    db.add(record)
    db.commit()
    db.refresh(record)
    return record


@pytest.fixture
def user_factory(db):
    def factory(**kwargs):
        return make_user(db, **kwargs)
    return factory


@pytest.fixture
def code_factory(db):
    def factory(phone, code, expires_at, **kwargs):
        return make_code(db, phone, code, expires_at, **kwargs)
    return factory
