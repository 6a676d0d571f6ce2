"""Route verified Stripe events to their handlers"""

import logging
from typing import Callable, Optional

from sqlalchemy.orm import Session

from ...notifications import NotificationQueue
from . import handlers
from .schemas import WebhookFailure, WebhookResult, WebhookSuccess

logger = logging.getLogger(__name__)

EventHandler = Callable[[Session, dict, NotificationQueue], Optional[str]]

EVENT_HANDLERS: dict[str, EventHandler] = {
    "payment_intent.succeeded": handlers.handle_payment_intent_succeeded,
    "payment_intent.payment_failed": handlers.handle_payment_intent_failed,
    "charge.refunded": handlers.handle_charge_refunded,
    "account.updated": handlers.handle_account_updated,
    "payout.paid": handlers.handle_payout_lifecycle,
    "payout.failed": handlers.handle_payout_lifecycle,
    "payout.canceled": handlers.handle_payout_lifecycle,
}


def dispatch_event(db: Session, event: dict, notifications: NotificationQueue) -> WebhookResult:
    """
    Run the handler for an event type inside a single database transaction.

    Unknown types are acknowledged as ignored so Stripe stops retrying them.
    A handler exception rolls back every write it staged, drops its queued
    notifications and comes back as a processing failure (HTTP 500).
    """
    event_type = event.get("type")
    handler = EVENT_HANDLERS.get(event_type)
    if handler is None:
        logger.info(f"ℹ️ Unhandled Stripe event type: {event_type}")
        return WebhookSuccess(status="ignored", detail=f"Unhandled event type {event_type}")

    data_object = (event.get("data") or {}).get("object")
    if not isinstance(data_object, dict):
        return WebhookFailure(kind="payload", detail=f"Event {event.get('id')} has no data.object")

    try:
        detail = handler(db, data_object, notifications)
        db.commit()
    except Exception as e:
        db.rollback()
        notifications.clear()
        logger.error(f"❌ Handler for {event_type} ({event.get('id')}) failed: {e}", exc_info=True)
        return WebhookFailure(kind="processing", detail=f"{type(e).__name__}: {e}")

    return WebhookSuccess(status="processed", detail=detail)
