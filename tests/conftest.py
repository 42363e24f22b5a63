"""
Pytest fixtures for the course marketplace API.

Provides:
- A throwaway SQLite database, rebuilt for every test
- A FastAPI TestClient with the SMS gateway replaced by a recorder
- User / course / coupon / payment request factories
- Bearer headers for any user

Environment is configured before the application is imported so that
settings, the engine and the rate limiter pick up the test values.
"""

import os
import tempfile
from decimal import Decimal

_DB_PATH = os.path.join(tempfile.gettempdir(), f"course_marketplace_test_{os.getpid()}.db")

os.environ["DATABASE_URL"] = f"sqlite:///{_DB_PATH}"
os.environ["RATE_LIMIT_ENABLED"] = "false"
os.environ["RATE_LIMIT_STORAGE_URI"] = "memory://"
os.environ["BULKSMS_API_KEY"] = ""
os.environ["BULKSMS_SENDER_ID"] = ""
os.environ["DEBUG"] = "false"

import pytest  # noqa: E402
from fastapi.testclient import TestClient  # noqa: E402

from app.core.database import Base, SessionLocal, engine  # noqa: E402
from app.core.security import jwt_manager  # noqa: E402
from app.models import (  # noqa: E402
    AdminCoupon,
    Course,
    PaymentRequest,
    TeacherCoupon,
    User,
)
from app.utils.sms_service import get_sms_service  # noqa: E402
from main import app  # noqa: E402


class RecordingSms:
    """Stands in for SmsService; records every notice instead of calling the gateway."""

    def __init__(self):
        self.sent = []
        self.fail = False

    def _record(self, kind, phone, course_title=None):
        if self.fail:
            raise RuntimeError("SMS gateway unreachable")
        self.sent.append((kind, phone, course_title))

    def send_payment_pending_sms(self, phone):
        self._record("pending", phone)

    def send_payment_accepted_sms(self, phone, course_title=None):
        self._record("accepted", phone, course_title)

    def send_payment_declined_sms(self, phone, course_title=None):
        self._record("declined", phone, course_title)


# ============================================================================
# Database
# ============================================================================


@pytest.fixture(autouse=True)
def setup_database():
    Base.metadata.drop_all(bind=engine)
    Base.metadata.create_all(bind=engine)
    yield
    Base.metadata.drop_all(bind=engine)


@pytest.fixture
def db(setup_database):
    session = SessionLocal()
    try:
        yield session
    finally:
        session.close()


# ============================================================================
# HTTP client
# ============================================================================


@pytest.fixture
def sms():
    return RecordingSms()


@pytest.fixture
def client(sms):
    app.dependency_overrides[get_sms_service] = lambda: sms
    with TestClient(app, raise_server_exceptions=False) as test_client:
        yield test_client
    app.dependency_overrides.clear()


@pytest.fixture
def auth_headers():
    def _headers(user: User) -> dict:
        return {"Authorization": f"Bearer {jwt_manager.create_access_token(user)}"}

    return _headers


# ============================================================================
# Factories
# ============================================================================


@pytest.fixture
def make_user(db):
    counter = {"n": 0}

    def _make(role: str = "student", full_name: str = None, phone_number: str = None, **kwargs):
        counter["n"] += 1
        user = User(
            email=kwargs.pop("email", f"{role}{counter['n']}@example.com"),
            full_name=full_name,
            phone_number=phone_number,
            role=role,
            **kwargs,
        )
        db.add(user)
        db.commit()
        db.refresh(user)
        return user

    return _make


@pytest.fixture
def admin(make_user):
    return make_user("admin", full_name="Site Admin")


@pytest.fixture
def teacher(make_user):
    return make_user("teacher", full_name="Rahim Uddin")


@pytest.fixture
def student(make_user):
    return make_user("student", full_name="Karim Ahmed", phone_number="01712345678")


@pytest.fixture
def course(db, teacher):
    course = Course(
        teacher_id=teacher.id,
        title="Intro to Python",
        price=Decimal("1500.00"),
        discount_price=Decimal("1200.00"),
        currency="BDT",
    )
    db.add(course)
    db.commit()
    db.refresh(course)
    return course


@pytest.fixture
def make_admin_coupon(db):
    def _make(code: str = "WELCOME", title: str = "Welcome offer", **kwargs):
        coupon = AdminCoupon(
            title=title,
            coupon_code=code,
            type=kwargs.pop("type", "original"),
            status=kwargs.pop("status", "active"),
            **kwargs,
        )
        db.add(coupon)
        db.commit()
        db.refresh(coupon)
        return coupon

    return _make


@pytest.fixture
def make_teacher_coupon(db, teacher):
    def _make(code: str = "TEACH10", title: str = "Teacher deal", **kwargs):
        coupon = TeacherCoupon(
            teacher_id=kwargs.pop("teacher_id", teacher.id),
            title=title,
            coupon_code=code,
            type=kwargs.pop("type", "original"),
            status=kwargs.pop("status", "active"),
            **kwargs,
        )
        db.add(coupon)
        db.commit()
        db.refresh(coupon)
        return coupon

    return _make


@pytest.fixture
def make_payment_request(db, course, student):
    def _make(**kwargs):
        payment_request = PaymentRequest(
            course_id=kwargs.pop("course_id", course.id),
            user_id=kwargs.pop("user_id", student.id),
            payment_method=kwargs.pop("payment_method", "bkash"),
            sender_phone=kwargs.pop("sender_phone", "01712345678"),
            transaction_id=kwargs.pop("transaction_id", "TXN-1001"),
            amount=kwargs.pop("amount", Decimal("1200.00")),
            currency=kwargs.pop("currency", "BDT"),
            status=kwargs.pop("status", "pending"),
            **kwargs,
        )
        db.add(payment_request)
        db.commit()
        db.refresh(payment_request)
        return payment_request

    return _make
