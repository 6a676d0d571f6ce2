"""
Pytest configuration and shared fixtures for the bookings API tests.
"""

import json
import os
from datetime import datetime, timedelta
from decimal import Decimal

# Must be set before the app (and its config module) is imported
os.environ["DATABASE_URL"] = "sqlite://"
os.environ["STRIPE_WEBHOOK_SECRET"] = "whsec_test_secret"
os.environ["STRIPE_SECRET_KEY"] = "sk_test_dummy"
os.environ["FIREBASE_PROJECT_ID"] = "cleanmarket-test"
os.environ["RESEND_API_KEY"] = ""
os.environ["DB_LOG_SLOW_QUERIES"] = "false"

import pytest  # noqa: E402
from fastapi import Depends  # noqa: E402
from fastapi.testclient import TestClient  # noqa: E402
from sqlalchemy.orm import Session  # noqa: E402

from app.auth import AuthContext, get_auth_context  # noqa: E402
from app.database import Base, SessionLocal, engine, get_db  # noqa: E402
from app.domain.billing.stripe_service import stripe_service  # noqa: E402
from app.main import app  # noqa: E402
from app.models import Booking, ProviderProfile, Transaction, User  # noqa: E402
from app.webhook_security import create_stripe_signature  # noqa: E402

WEBHOOK_SECRET = "whsec_test_secret"
TENANT = "tenant-a"


@pytest.fixture(autouse=True)
def db_session():
    """Fresh schema per test on the shared in-memory database"""
    Base.metadata.drop_all(bind=engine)
    Base.metadata.create_all(bind=engine)
    session = SessionLocal()
    try:
        yield session
    finally:
        session.close()
        app.dependency_overrides.clear()


@pytest.fixture
def client():
    return TestClient(app, raise_server_exceptions=False)


@pytest.fixture(autouse=True)
def sent_emails(monkeypatch):
    """Capture booking emails handed to background tasks instead of sending them"""
    sent = []

    async def fake_dispatch(booking_id, template_key):
        sent.append((booking_id, template_key))

    monkeypatch.setattr("app.notifications.dispatch_booking_email", fake_dispatch)
    return sent


class FakeRefunds:
    """Stands in for StripeService.create_refund and records every call"""

    def __init__(self):
        self.calls = []
        self.status = "succeeded"
        self.error = None

    def __call__(self, payment_intent_id, amount, reason="requested_by_customer", metadata=None):
        self.calls.append({"payment_intent": payment_intent_id, "amount": amount, "metadata": metadata})
        if self.error is not None:
            raise self.error
        return {"id": f"re_test_{len(self.calls)}", "status": self.status, "amount": amount}


@pytest.fixture(autouse=True)
def refunds(monkeypatch):
    fake = FakeRefunds()
    monkeypatch.setattr(stripe_service, "create_refund", fake)
    return fake


# ============================================================================
# DATA
# ============================================================================


def _user(db: Session, uid: str, role: str, tenant_id: str = TENANT) -> User:
    user = User(
        tenant_id=tenant_id,
        firebase_uid=f"firebase-{uid}",
        email=f"{uid}@example.com",
        full_name=uid.replace("-", " ").title(),
        role=role,
    )
    db.add(user)
    db.commit()
    db.refresh(user)
    return user


@pytest.fixture
def customer(db_session):
    return _user(db_session, "customer-one", "customer")


@pytest.fixture
def other_customer(db_session):
    return _user(db_session, "customer-two", "customer")


@pytest.fixture
def admin(db_session):
    return _user(db_session, "ops-admin", "partner_admin")


@pytest.fixture
def provider(db_session):
    """A provider user together with their provider profile"""
    user = _user(db_session, "sparkle-cleaning", "provider")
    profile = ProviderProfile(
        tenant_id=TENANT,
        user_id=user.id,
        business_name="Sparkle Cleaning",
        stripe_account_id="acct_sparkle",
    )
    db_session.add(profile)
    db_session.commit()
    db_session.refresh(user)
    return user


@pytest.fixture
def make_booking(db_session, customer, provider):
    def factory(
        hours_ahead: float = 48,
        status: str = "confirmed",
        payment_status: str = "paid",
        total_amount: str = "100.00",
        owner: User = None,
        tenant_id: str = TENANT,
    ) -> Booking:
        starts_at = datetime.utcnow() + timedelta(hours=hours_ahead)
        booking = Booking(
            tenant_id=tenant_id,
            customer_id=(owner or customer).id,
            provider_id=provider.provider_profile.id,
            service_name="Deep Clean",
            address="12 Harbour Street",
            booking_date=starts_at.date(),
            booking_time=starts_at.strftime("%H:%M"),
            duration_hours=3,
            total_amount=Decimal(total_amount),
            status=status,
            payment_status=payment_status,
        )
        db_session.add(booking)
        db_session.commit()
        db_session.refresh(booking)
        return booking

    return factory


@pytest.fixture
def make_payment(db_session):
    def factory(booking: Booking, intent_id: str = "pi_test_1", status: str = "completed") -> Transaction:
        tx = Transaction(
            tenant_id=booking.tenant_id,
            booking_id=booking.id,
            customer_id=booking.customer_id,
            provider_id=booking.provider_id,
            amount=booking.total_amount,
            platform_fee=Decimal("15.00"),
            provider_payout=booking.total_amount - Decimal("15.00"),
            transaction_type="payment",
            stripe_payment_intent_id=intent_id,
            status=status,
        )
        db_session.add(tx)
        db_session.commit()
        db_session.refresh(tx)
        return tx

    return factory


# ============================================================================
# AUTH AND REQUEST HELPERS
# ============================================================================


@pytest.fixture
def login():
    """Authenticate subsequent requests as the given user"""

    def _login(user: User, tenant_id: str = None):
        user_id = user.id

        def override(db: Session = Depends(get_db)) -> AuthContext:
            current = db.query(User).filter(User.id == user_id).one()
            return AuthContext(user=current, db=db, tenant_id=tenant_id or current.tenant_id)

        app.dependency_overrides[get_auth_context] = override

    return _login


def make_event(event_type: str, data_object: dict, event_id: str = "evt_test_1") -> dict:
    return {
        "id": event_id,
        "object": "event",
        "type": event_type,
        "created": int(datetime.utcnow().timestamp()),
        "data": {"object": data_object},
    }


def post_webhook(client: TestClient, event, secret: str = WEBHOOK_SECRET, signature: str = None):
    payload = event if isinstance(event, bytes) else json.dumps(event).encode("utf-8")
    headers = {"Content-Type": "application/json"}
    headers["Stripe-Signature"] = signature if signature is not None else create_stripe_signature(secret, payload)
    return client.post("/api/stripe/webhook", content=payload, headers=headers)
