"""Booking service - Business logic for reading, updating and cancelling bookings"""

import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Optional

from fastapi import HTTPException
from sqlalchemy.exc import NoResultFound, SQLAlchemyError
from sqlalchemy.orm import Session

from ...audit import log_audit_event
from ...auth import AuthContext
from ...models import Booking, Transaction
from ...notifications import NotificationQueue
from ...permissions import Decision, can_cancel_booking, can_update_booking, can_view_booking
from ..billing.ledger import REFUND, TransactionLedger, minor_to_major
from ..billing.stripe_service import StripeService, stripe_service
from .refund_policy import RefundDecision, compute_refund, scheduled_datetime
from .repository import BookingRepository
from .schemas import BookingUpdate, CancelBookingRequest

logger = logging.getLogger(__name__)


@dataclass
class CancellationOutcome:
    booking: Booking
    refund_processed: bool
    refund_confirmed: bool
    decision: Optional[RefundDecision] = None

    @property
    def message(self) -> str:
        if self.refund_confirmed:
            return "Booking cancelled and refund processed"
        if self.refund_processed:
            return "Booking cancelled; refund is pending with the payment provider"
        return "Booking cancelled successfully"


class BookingService:
    """Service layer for booking business logic"""

    def __init__(
        self,
        db: Session,
        stripe: Optional[StripeService] = None,
        notifications: Optional[NotificationQueue] = None,
    ):
        self.db = db
        self.repo = BookingRepository()
        self.stripe = stripe or stripe_service
        self.notifications = notifications if notifications is not None else NotificationQueue()

    def _load(self, booking_id: str, ctx: AuthContext) -> Booking:
        try:
            return self.repo.get_for_tenant(self.db, booking_id, ctx.tenant_id)
        except NoResultFound:
            raise HTTPException(status_code=404, detail="Booking not found")

    def get_booking(self, booking_id: str, ctx: AuthContext) -> Booking:
        booking = self._load(booking_id, ctx)
        if can_view_booking(ctx.actor, booking) is Decision.DENY:
            raise HTTPException(status_code=403, detail="Not authorized to view this booking")
        return booking

    def update_booking(self, booking_id: str, data: BookingUpdate, ctx: AuthContext) -> Booking:
        """Apply a partial update after the capability check and status guards"""
        booking = self._load(booking_id, ctx)
        changes = data.model_dump(exclude_unset=True, exclude_none=True)
        if not changes:
            raise HTTPException(status_code=400, detail="No fields to update")

        if can_update_booking(ctx.actor, booking, changes) is Decision.DENY:
            raise HTTPException(status_code=403, detail="Not authorized to make this change")

        old_status = booking.status
        new_status = changes.get("status") or old_status
        if new_status != old_status:
            if old_status == "completed":
                raise HTTPException(
                    status_code=400, detail="Cannot change the status of a completed booking"
                )
            if old_status == "cancelled" and new_status != "refunded":
                raise HTTPException(
                    status_code=400, detail="A cancelled booking can only be marked refunded"
                )
            if old_status == "refunded":
                raise HTTPException(
                    status_code=400, detail="Cannot change the status of a refunded booking"
                )

        now = datetime.utcnow()
        for field, value in changes.items():
            setattr(booking, field, value)
        if new_status == "cancelled" and old_status != "cancelled":
            booking.cancelled_at = now
        booking.updated_at = now

        if new_status != old_status:
            log_audit_event(
                self.db,
                tenant_id=booking.tenant_id,
                actor_id=ctx.user.id,
                action="booking_status_changed",
                resource="booking",
                resource_id=booking.id,
                metadata={"from": old_status, "to": new_status},
            )

        try:
            self.db.commit()
        except SQLAlchemyError as e:
            self.db.rollback()
            logger.error(f"❌ Failed to update booking {booking_id}: {e}")
            raise HTTPException(status_code=500, detail="Failed to update booking")
        self.db.refresh(booking)

        self.notifications.status_change(booking.id, old_status, new_status)
        logger.info(f"✅ Booking {booking.id} updated by {ctx.user.id}: {sorted(changes)}")
        return booking

    def cancel_booking(
        self,
        booking_id: str,
        data: CancelBookingRequest,
        ctx: AuthContext,
        now: Optional[datetime] = None,
    ) -> CancellationOutcome:
        """
        Cancel a booking and, when it was paid by card, refund according to the
        time left before the service.

        A failing refund call never blocks the cancellation. The ledger and the
        payment status only move to refunded once Stripe reports the refund as
        succeeded; a pending refund is settled later by the charge.refunded webhook.
        """
        now = now or datetime.utcnow()
        booking = self._load(booking_id, ctx)

        if can_cancel_booking(ctx.actor, booking) is Decision.DENY:
            raise HTTPException(status_code=403, detail="Not authorized to cancel this booking")
        if booking.status == "cancelled":
            raise HTTPException(status_code=400, detail="Booking is already cancelled")
        if booking.status == "completed":
            raise HTTPException(status_code=400, detail="Cannot cancel a completed booking")
        if booking.status == "refunded":
            raise HTTPException(status_code=400, detail="Cannot cancel a refunded booking")

        outcome = CancellationOutcome(booking=booking, refund_processed=False, refund_confirmed=False)

        payment = None
        if data.process_refund and booking.payment_status == "paid":
            payment = TransactionLedger.find_completed_payment_for_booking(self.db, booking.id)
            if payment is None:
                logger.warning(f"⚠️ Booking {booking.id} is paid but has no completed payment row")

        if payment is not None and payment.stripe_payment_intent_id:
            self._refund(booking, payment, data, outcome, now)

        booking.status = "cancelled"
        booking.cancelled_at = now
        booking.updated_at = now
        if data.cancellation_reason:
            booking.cancellation_reason = data.cancellation_reason
        if outcome.refund_confirmed:
            booking.payment_status = "refunded"

        log_audit_event(
            self.db,
            tenant_id=booking.tenant_id,
            actor_id=ctx.user.id,
            action="booking_cancelled",
            resource="booking",
            resource_id=booking.id,
            metadata={
                "reason": data.cancellation_reason,
                "refund_processed": outcome.refund_processed,
                "refund_percent": outcome.decision.percent if outcome.decision else None,
            },
        )

        try:
            self.db.commit()
        except SQLAlchemyError as e:
            self.db.rollback()
            logger.error(f"❌ Failed to cancel booking {booking_id}: {e}")
            raise HTTPException(status_code=500, detail="Failed to cancel booking")
        self.db.refresh(booking)

        self.notifications.booking_email(booking.id, "cancelled")
        if outcome.refund_confirmed:
            self.notifications.booking_email(booking.id, "refunded")

        logger.info(f"🚫 Booking {booking.id} cancelled by {ctx.user.id}: {outcome.message}")
        return outcome

    def _refund(
        self,
        booking: Booking,
        payment: Transaction,
        data: CancelBookingRequest,
        outcome: CancellationOutcome,
        now: datetime,
    ) -> None:
        if not self.stripe.is_available():
            logger.warning(f"⚠️ Stripe not configured; booking {booking.id} cancelled without refund")
            return

        decision = compute_refund(
            payment.amount, scheduled_datetime(booking.booking_date, booking.booking_time), now=now
        )
        outcome.decision = decision
        if decision.amount_minor <= 0:
            logger.info(f"ℹ️ Nothing to refund for booking {booking.id}")
            return

        try:
            refund = self.stripe.create_refund(
                payment.stripe_payment_intent_id,
                decision.amount_minor,
                metadata={
                    "booking_id": booking.id,
                    "tenant_id": booking.tenant_id or "",
                    "cancellation_reason": data.cancellation_reason or "",
                },
            )
        except Exception as e:
            logger.error(f"❌ Refund failed for booking {booking.id}, cancelling anyway: {e}")
            return

        outcome.refund_processed = True
        outcome.refund_confirmed = refund.get("status") == "succeeded"

        TransactionLedger.record_once(
            self.db,
            tenant_id=booking.tenant_id,
            booking_id=booking.id,
            customer_id=booking.customer_id,
            provider_id=booking.provider_id,
            amount=minor_to_major(decision.amount_minor),
            platform_fee=0,
            provider_payout=0,
            transaction_type=REFUND,
            payment_method=payment.payment_method or "card",
            stripe_payment_intent_id=payment.stripe_payment_intent_id,
            stripe_refund_id=refund.get("id"),
            status="completed" if outcome.refund_confirmed else "pending",
        )
        if outcome.refund_confirmed:
            TransactionLedger.set_status(
                self.db, payment, "refunded" if decision.is_full else "partially_refunded"
            )

        logger.info(
            f"💸 Booking {booking.id}: {decision.percent}% refund "
            f"({decision.amount_minor} minor units, {decision.hours_until_service:.1f}h before service)"
        )
