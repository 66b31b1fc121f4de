import os
import tempfile

os.environ.setdefault("ENVIRONMENT", "test")
os.environ.setdefault("LOG_LEVEL", "WARNING")
os.environ.setdefault("DATABASE_URL", "sqlite://")
os.environ.setdefault("UPLOAD_DIR", tempfile.mkdtemp(prefix="vidhanto-uploads-"))

from datetime import datetime, timedelta

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from vidhanto import rate_limiter
from vidhanto.app_factory import create_app
from vidhanto.auth.utils import get_password_hash
from vidhanto.database import Base, get_db, get_session_factory
from vidhanto.models import User, UserRole, Lawyer, KycStatus, Appointment, ConsultationType
from vidhanto.scheduling import DAYS
from vidhanto.services.ai_service import AIReply, get_legal_assistant
from vidhanto.services.email_service import EmailService, get_email_service
from vidhanto.services.payment_gateway import RazorpayGateway, compute_hmac_sha256, get_payment_gateway
from vidhanto.services.storage import StorageService, get_storage_service

from tests.helpers import PASSWORD


class FakeGateway(RazorpayGateway):
    def __init__(self):
        super().__init__(key_id="rzp_test_key", key_secret="secret", base_url="https://razorpay.test")
        self.orders = []
        self.refunds = []
        self.payment_status = "captured"
        self.error_description = None

    def create_order(self, amount, receipt, notes=None, currency="INR"):
        order = {
            "id": f"order_{len(self.orders) + 1}",
            "amount": int(round(amount * 100)),
            "currency": currency,
            "receipt": receipt,
            "notes": notes or {},
        }
        self.orders.append(order)
        return order

    def fetch_payment(self, payment_id):
        return {
            "id": payment_id,
            "status": self.payment_status,
            "method": "upi",
            "error_description": self.error_description,
        }

    def refund(self, payment_id, amount, notes=None):
        refund = {"id": f"rfnd_{len(self.refunds) + 1}", "payment_id": payment_id, "amount": int(round(amount * 100))}
        self.refunds.append(refund)
        return refund

    def sign(self, order_id, payment_id):
        return compute_hmac_sha256(self.key_secret, f"{order_id}|{payment_id}")


class FakeMailer(EmailService):
    def __init__(self):
        super().__init__(username="", password="")
        self.sent = []
        self.codes = {}
        self.tokens = {}

    def send_email(self, to, subject, html_content, text_content=None):
        self.sent.append({"to": to, "subject": subject, "html": html_content})
        return True

    def send_verification_email(self, to, name, token):
        self.tokens[("verify", to)] = token
        return super().send_verification_email(to, name, token)

    def send_password_reset_email(self, to, name, token):
        self.tokens[("reset", to)] = token
        return super().send_password_reset_email(to, name, token)

    def send_otp_email(self, to, name, otp, purpose):
        self.codes[to] = otp
        return super().send_otp_email(to, name, otp, purpose)

    def send_signing_request(self, to, name, title, otp, esignature_id, message=None):
        self.codes[to] = otp
        return super().send_signing_request(to, name, title, otp, esignature_id, message)

    def subjects(self):
        return [mail["subject"] for mail in self.sent]


class FakeAssistant:
    model = "gemini-test"

    def __init__(self):
        self.calls = []
        self.error = None

    def reply(self, message, history=None):
        self.calls.append({"message": message, "history": list(history or [])})
        if self.error is not None:
            raise self.error
        return AIReply(content=f"Answer to: {message}", model=self.model, prompt_tokens=600, completion_tokens=400)


@pytest.fixture
def engine():
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(bind=engine)
    yield engine
    Base.metadata.drop_all(bind=engine)
    engine.dispose()


@pytest.fixture
def session_factory(engine):
    return sessionmaker(autocommit=False, autoflush=False, bind=engine)


@pytest.fixture
def db(session_factory):
    session = session_factory()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture
def gateway():
    return FakeGateway()


@pytest.fixture
def mailer():
    return FakeMailer()


@pytest.fixture
def assistant():
    return FakeAssistant()


@pytest.fixture
def storage(tmp_path):
    return StorageService(bucket="", upload_dir=str(tmp_path / "uploads"))


@pytest.fixture(autouse=True)
def clear_rate_limits():
    rate_limiter.reset()
    yield
    rate_limiter.reset()


@pytest.fixture
def app(session_factory, gateway, mailer, assistant, storage):
    app = create_app()

    def override_get_db():
        session = session_factory()
        try:
            yield session
        finally:
            session.close()

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_session_factory] = lambda: session_factory
    app.dependency_overrides[get_payment_gateway] = lambda: gateway
    app.dependency_overrides[get_email_service] = lambda: mailer
    app.dependency_overrides[get_legal_assistant] = lambda: assistant
    app.dependency_overrides[get_storage_service] = lambda: storage
    return app


@pytest.fixture
def client(app):
    with TestClient(app) as c:
        yield c


@pytest.fixture
def make_user(db):
    counter = {"n": 0}

    def factory(role: UserRole = UserRole.USER, email: str = None, **fields):
        counter["n"] += 1
        user = User(
            first_name=fields.pop("first_name", "Asha"),
            last_name=fields.pop("last_name", f"Verma{counter['n']}"),
            email=email or f"{role.value}{counter['n']}@example.com",
            password_hash=get_password_hash(PASSWORD),
            role=role,
            is_email_verified=True,
            **fields,
        )
        db.add(user)
        db.commit()
        db.refresh(user)
        return user

    return factory


@pytest.fixture
def make_lawyer(db, make_user):
    def factory(verified: bool = True, **fields):
        user = make_user(UserRole.LAWYER)
        lawyer = Lawyer(
            user_id=user.id,
            bar_license_number=f"BAR-{user.id[:8]}",
            specializations=fields.pop("specializations", ["Family Law"]),
            languages=["English", "Hindi"],
            city=fields.pop("city", "Pune"),
            state=fields.pop("state", "Maharashtra"),
            chat_fee=500,
            voice_fee=1000,
            video_fee=1500,
            availability=fields.pop("availability", {day: [{"start": "00:00", "end": "23:59"}] for day in DAYS}),
            is_verified=verified,
            kyc_status=fields.pop("kyc_status", KycStatus.VERIFIED if verified else KycStatus.PENDING),
            **fields,
        )
        db.add(lawyer)
        db.commit()
        db.refresh(lawyer)
        return lawyer

    return factory


@pytest.fixture
def user(make_user):
    return make_user(UserRole.USER)


@pytest.fixture
def admin(make_user):
    return make_user(UserRole.ADMIN)


@pytest.fixture
def lawyer(make_lawyer):
    return make_lawyer()


@pytest.fixture
def future():
    """A booking time two days out, rounded to the minute."""
    return (datetime.utcnow() + timedelta(days=2)).replace(second=0, microsecond=0)


@pytest.fixture
def make_appointment(db):
    def factory(user, lawyer, **fields):
        appointment = Appointment(
            user_id=user.id,
            lawyer_id=lawyer.id,
            consultation_type=fields.pop("consultation_type", ConsultationType.VIDEO),
            scheduled_date=fields.pop("scheduled_date", datetime.utcnow() + timedelta(days=3)),
            consultation_fee=fields.pop("consultation_fee", lawyer.video_fee),
            **fields,
        )
        db.add(appointment)
        db.commit()
        db.refresh(appointment)
        return appointment

    return factory
