import uuid

from sqlalchemy import (
    JSON,
    Boolean,
    Column,
    Date,
    DateTime,
    Float,
    ForeignKey,
    Integer,
    Numeric,
    String,
    Text,
    UniqueConstraint,
)
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func

from .database import Base


def generate_public_id():
    """Generate a unique string ID for rows exposed through the API"""
    return str(uuid.uuid4())


class User(Base):
    __tablename__ = "users"

    id = Column(String(36), primary_key=True, default=generate_public_id)
    tenant_id = Column(String(64), index=True, nullable=False)
    firebase_uid = Column(String(255), unique=True, index=True, nullable=False)
    email = Column(String(255), unique=True, index=True, nullable=False)
    full_name = Column(String(255), nullable=True)
    # customer, provider, cleaning_company, tsmart_team, partner_admin, root_admin
    role = Column(String(50), default="customer", nullable=False)
    created_at = Column(DateTime, server_default=func.now())

    provider_profile = relationship("ProviderProfile", back_populates="user", uselist=False)


class ProviderProfile(Base):
    __tablename__ = "provider_profiles"

    id = Column(String(36), primary_key=True, default=generate_public_id)
    tenant_id = Column(String(64), index=True, nullable=False)
    user_id = Column(String(36), ForeignKey("users.id"), nullable=False, unique=True)
    business_name = Column(String(255), nullable=True)
    # Stripe Connect account used for payouts
    stripe_account_id = Column(String(255), unique=True, index=True, nullable=True)
    payouts_enabled = Column(Boolean, default=False, nullable=False)
    details_submitted = Column(Boolean, default=False, nullable=False)
    updated_at = Column(DateTime, server_default=func.now(), onupdate=func.now())

    user = relationship("User", back_populates="provider_profile")


class Booking(Base):
    __tablename__ = "bookings"

    id = Column(String(36), primary_key=True, default=generate_public_id)
    tenant_id = Column(String(64), index=True, nullable=False)
    customer_id = Column(String(36), ForeignKey("users.id"), nullable=False, index=True)
    provider_id = Column(String(36), ForeignKey("provider_profiles.id"), nullable=True, index=True)
    service_name = Column(String(255), nullable=True)
    address = Column(String(500), nullable=True)
    booking_date = Column(Date, nullable=False)
    booking_time = Column(String(5), nullable=False)  # HH:MM, UTC
    duration_hours = Column(Float, default=2)
    total_amount = Column(Numeric(12, 2), nullable=False, default=0)
    # pending → confirmed → in-progress → completed; cancelled and refunded are terminal
    status = Column(String(50), default="pending", nullable=False)
    payment_status = Column(String(50), default="unpaid", nullable=False)  # unpaid, paid, failed, refunded
    special_instructions = Column(Text, nullable=True)
    cancellation_reason = Column(Text, nullable=True)
    cancelled_at = Column(DateTime, nullable=True)
    created_at = Column(DateTime, server_default=func.now())
    updated_at = Column(DateTime, server_default=func.now(), onupdate=func.now())

    customer = relationship("User", foreign_keys=[customer_id])
    provider = relationship("ProviderProfile", foreign_keys=[provider_id])
    transactions = relationship("Transaction", back_populates="booking")


class Transaction(Base):
    """One row per money movement; never deleted, status may be flipped by later events"""

    __tablename__ = "transactions"
    __table_args__ = (
        UniqueConstraint(
            "stripe_payment_intent_id", "transaction_type", name="uq_transactions_intent_type"
        ),
    )

    id = Column(String(36), primary_key=True, default=generate_public_id)
    tenant_id = Column(String(64), index=True, nullable=True)
    booking_id = Column(String(36), ForeignKey("bookings.id"), nullable=False, index=True)
    customer_id = Column(String(36), nullable=True)
    provider_id = Column(String(36), nullable=True)
    amount = Column(Numeric(12, 2), nullable=False)  # major currency units
    platform_fee = Column(Numeric(12, 2), default=0)
    provider_payout = Column(Numeric(12, 2), default=0)
    transaction_type = Column(String(20), nullable=False)  # payment, refund
    payment_method = Column(String(50), default="card")
    stripe_payment_intent_id = Column(String(255), index=True, nullable=True)
    stripe_refund_id = Column(String(255), nullable=True)
    # completed, failed, pending, refunded, partially_refunded
    status = Column(String(50), default="pending", nullable=False)
    created_at = Column(DateTime, server_default=func.now())
    updated_at = Column(DateTime, server_default=func.now(), onupdate=func.now())

    booking = relationship("Booking", back_populates="transactions")


class WebhookEvent(Base):
    """Forensic log of inbound provider events; never touches business state"""

    __tablename__ = "webhook_events"

    id = Column(Integer, primary_key=True, index=True)
    provider = Column(String(50), default="stripe", nullable=False)
    event_id = Column(String(255), unique=True, index=True, nullable=True)
    event_type = Column(String(100), nullable=True)
    tenant_id = Column(String(64), nullable=True)
    status = Column(String(20), default="received", nullable=False)  # received, processing, processed, failed, ignored
    http_status = Column(Integer, nullable=True)
    error_message = Column(Text, nullable=True)
    payload = Column(JSON, nullable=True)
    attempts = Column(Integer, default=0, nullable=False)
    processed_at = Column(DateTime, nullable=True)
    created_at = Column(DateTime, server_default=func.now())
    updated_at = Column(DateTime, server_default=func.now(), onupdate=func.now())


class BillingEvent(Base):
    __tablename__ = "billing_events"

    id = Column(Integer, primary_key=True, index=True)
    tenant_id = Column(String(64), nullable=True)
    provider = Column(String(50), default="stripe", nullable=False)
    event_type = Column(String(100), nullable=False)
    event_id = Column(String(255), nullable=True, index=True)
    payload = Column(JSON, nullable=True)
    created_at = Column(DateTime, server_default=func.now())


class AuditLog(Base):
    __tablename__ = "audit_logs"

    id = Column(Integer, primary_key=True, index=True)
    tenant_id = Column(String(64), nullable=True, index=True)
    actor_id = Column(String(36), nullable=True)
    action = Column(String(100), nullable=False)
    resource = Column(String(100), nullable=False)
    resource_id = Column(String(255), nullable=True)
    # "metadata" is reserved on declarative classes
    details = Column("metadata", JSON, nullable=True)
    created_at = Column(DateTime, server_default=func.now())
