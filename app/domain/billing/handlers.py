"""
Stripe event handlers.

Each handler receives the event's data.object and stages its writes on the
session; the dispatcher commits them together or rolls them all back. Handlers
are idempotent against the ledger so redelivered or re-driven events are no-ops.
Raising signals a transient failure that Stripe should retry.
"""

import logging
from datetime import datetime
from typing import Optional

from sqlalchemy.orm import Session

from ...audit import log_audit_event
from ...config import RETRY_REFUND_WITHOUT_PAYMENT
from ...models import ProviderProfile, Transaction
from ...notifications import NotificationQueue
from ..bookings.repository import BookingRepository
from .ledger import PAYMENT, REFUND, TransactionLedger, minor_to_major

logger = logging.getLogger(__name__)


class BookingNotFoundError(Exception):
    """A payment references a booking that does not exist (yet)"""


class UnmatchedRefundError(Exception):
    """A refund arrived before any completed payment for its intent"""


def _metadata_cents(metadata: dict, key: str) -> int:
    raw = metadata.get(key) or 0
    try:
        return int(raw)
    except (TypeError, ValueError):
        logger.warning(f"⚠️ Ignoring non-numeric metadata {key}={raw!r}")
        return 0


def handle_payment_intent_succeeded(
    db: Session, intent: dict, notifications: NotificationQueue
) -> Optional[str]:
    metadata = intent.get("metadata") or {}
    booking_id = metadata.get("booking_id")
    intent_id = intent.get("id")

    if not booking_id:
        logger.info(f"ℹ️ Payment intent {intent_id} has no booking_id, nothing to record")
        return "Payment intent not linked to a booking"

    existing = TransactionLedger.find_by_intent(db, intent_id, PAYMENT)
    if existing is not None and existing.status == "completed":
        logger.info(f"ℹ️ Payment {intent_id} already recorded as {existing.id}")
        return "Payment already recorded"

    booking = BookingRepository.get(db, booking_id)
    if booking is None:
        raise BookingNotFoundError(f"Booking {booking_id} not found for payment {intent_id}")

    amount = minor_to_major(intent.get("amount"))
    platform_fee = minor_to_major(_metadata_cents(metadata, "platform_fee"))
    provider_payout = minor_to_major(_metadata_cents(metadata, "provider_payout"))

    if existing is not None:
        # An earlier failed/pending attempt on the same intent finally went through
        existing.amount = amount
        existing.platform_fee = platform_fee
        existing.provider_payout = provider_payout
        TransactionLedger.set_status(db, existing, "completed")
    else:
        recorded = TransactionLedger.record_once(
            db,
            tenant_id=booking.tenant_id,
            booking_id=booking.id,
            customer_id=booking.customer_id,
            provider_id=booking.provider_id,
            amount=amount,
            platform_fee=platform_fee,
            provider_payout=provider_payout,
            transaction_type=PAYMENT,
            payment_method="card",
            stripe_payment_intent_id=intent_id,
            status="completed",
        )
        if recorded is None:
            return "Payment already recorded"

    booking.payment_status = "paid"
    booking.updated_at = datetime.utcnow()
    notifications.booking_email(booking.id, "confirmation")

    logger.info(f"✅ Booking {booking.id} paid: {amount} via {intent_id}")
    return None


def handle_payment_intent_failed(
    db: Session, intent: dict, notifications: NotificationQueue
) -> Optional[str]:
    metadata = intent.get("metadata") or {}
    booking_id = metadata.get("booking_id")
    intent_id = intent.get("id")

    if not booking_id:
        logger.info(f"ℹ️ Failed payment intent {intent_id} has no booking_id")
        return "Payment intent not linked to a booking"

    updated = TransactionLedger.mark_intent_payments(db, intent_id, "failed")
    if not updated:
        logger.warning(f"⚠️ No transaction recorded for failed payment {intent_id}")

    matched = BookingRepository.update_fields(
        db, booking_id, payment_status="failed", updated_at=datetime.utcnow()
    )
    if not matched:
        logger.warning(f"⚠️ Booking {booking_id} not found for failed payment {intent_id}")
        return "Booking not found"

    logger.info(f"❌ Booking {booking_id} payment failed ({intent_id})")
    return None


def handle_charge_refunded(
    db: Session, charge: dict, notifications: NotificationQueue
) -> Optional[str]:
    intent_id = charge.get("payment_intent")
    if isinstance(intent_id, dict):
        intent_id = intent_id.get("id")

    if not intent_id:
        logger.info(f"ℹ️ Refunded charge {charge.get('id')} has no payment intent")
        return "Charge not linked to a payment intent"

    recorded_refund = TransactionLedger.find_by_intent(db, intent_id, REFUND)
    if recorded_refund is not None and recorded_refund.status != "pending":
        logger.info(f"ℹ️ Refund for {intent_id} already recorded")
        return "Refund already recorded"

    original = TransactionLedger.find_completed_payment_by_intent(db, intent_id)
    if original is None:
        if RETRY_REFUND_WITHOUT_PAYMENT:
            raise UnmatchedRefundError(f"No completed payment yet for refunded intent {intent_id}")
        logger.warning(f"⚠️ Refund for {intent_id} has no completed payment to reconcile")
        return "No matching payment transaction"

    refunds = (charge.get("refunds") or {}).get("data") or []
    refund_id = refunds[0].get("id") if refunds else None

    if recorded_refund is not None:
        return _settle_pending_refund(db, original, recorded_refund, refund_id, notifications)

    refund = TransactionLedger.record_once(
        db,
        tenant_id=original.tenant_id,
        booking_id=original.booking_id,
        customer_id=original.customer_id,
        provider_id=original.provider_id,
        amount=original.amount,
        platform_fee=0,
        provider_payout=0,
        transaction_type=REFUND,
        payment_method=original.payment_method or "card",
        stripe_payment_intent_id=intent_id,
        stripe_refund_id=refund_id,
        status="completed",
    )
    if refund is None:
        return "Refund already recorded"

    TransactionLedger.set_status(db, original, "refunded")

    booking = BookingRepository.get(db, original.booking_id)
    if booking is None:
        raise BookingNotFoundError(f"Booking {original.booking_id} missing for refund {intent_id}")
    booking.payment_status = "refunded"
    booking.status = "refunded"
    booking.updated_at = datetime.utcnow()
    notifications.booking_email(booking.id, "refunded")

    logger.info(f"💸 Booking {booking.id} refunded {original.amount} via {intent_id}")
    return None


def _settle_pending_refund(
    db: Session,
    original: Transaction,
    refund: Transaction,
    refund_id: Optional[str],
    notifications: NotificationQueue,
) -> Optional[str]:
    """A cancellation refund Stripe accepted as pending has now gone through"""
    refund.stripe_refund_id = refund.stripe_refund_id or refund_id
    TransactionLedger.set_status(db, refund, "completed")
    TransactionLedger.set_status(
        db, original, "refunded" if refund.amount >= original.amount else "partially_refunded"
    )

    booking = BookingRepository.get(db, original.booking_id)
    if booking is None:
        raise BookingNotFoundError(f"Booking {original.booking_id} missing for refund {refund.id}")
    booking.payment_status = "refunded"
    booking.updated_at = datetime.utcnow()
    notifications.booking_email(booking.id, "refunded")

    logger.info(f"💸 Pending refund {refund.id} settled for booking {booking.id} ({refund.amount})")
    return None


def handle_account_updated(
    db: Session, account: dict, notifications: NotificationQueue
) -> Optional[str]:
    account_id = account.get("id")
    profile = (
        db.query(ProviderProfile).filter(ProviderProfile.stripe_account_id == account_id).first()
    )
    if profile is None:
        logger.info(f"ℹ️ No provider profile for Stripe account {account_id}")
        return "No provider profile for account"

    profile.payouts_enabled = bool(account.get("payouts_enabled") or False)
    profile.details_submitted = bool(account.get("details_submitted") or False)

    log_audit_event(
        db,
        tenant_id=profile.tenant_id,
        action="stripe_account_updated",
        resource="provider_profile",
        resource_id=profile.id,
        metadata={
            "stripe_account_id": account_id,
            "payouts_enabled": account.get("payouts_enabled"),
            "details_submitted": account.get("details_submitted"),
        },
    )
    logger.info(
        f"🏦 Provider {profile.id} payouts_enabled={profile.payouts_enabled} "
        f"details_submitted={profile.details_submitted}"
    )
    return None


def handle_payout_lifecycle(
    db: Session, payout: dict, notifications: NotificationQueue
) -> Optional[str]:
    logger.info(f"ℹ️ Payout {payout.get('id')} lifecycle event acknowledged")
    return "Payout lifecycle event acknowledged"
