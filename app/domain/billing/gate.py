"""
Webhook gate - the single entry point for inbound Stripe deliveries.

Order matters: the secret is checked before anything touches the database,
the signature is verified against the raw bytes before they are parsed, and
settled events are short-circuited before any handler runs.
"""

import json
import logging
from typing import Optional

from sqlalchemy.orm import Session

from ...notifications import NotificationQueue
from ...webhook_security import WebhookPayloadError, WebhookSignatureError, verify_stripe_event
from .dispatcher import dispatch_event
from .event_log import FAILED, WebhookEventLog
from .schemas import WebhookFailure, WebhookResult, WebhookSuccess

logger = logging.getLogger(__name__)


def process_stripe_webhook(
    db: Session,
    raw_body: bytes,
    signature: Optional[str],
    secret: Optional[str],
    notifications: NotificationQueue,
) -> WebhookResult:
    if not secret:
        logger.error("❌ STRIPE_WEBHOOK_SECRET not configured")
        return WebhookFailure(kind="not_configured", detail="Webhook secret not configured")

    try:
        verify_stripe_event(raw_body, signature, secret)
    except WebhookSignatureError as e:
        logger.warning(f"🚫 Stripe webhook signature rejected: {e}")
        WebhookEventLog.record_rejected(db, raw_body, 401, str(e))
        return WebhookFailure(kind="signature", detail=str(e))
    except WebhookPayloadError as e:
        logger.warning(f"🚫 Stripe webhook payload rejected: {e}")
        WebhookEventLog.record_rejected(db, raw_body, 400, str(e))
        return WebhookFailure(kind="payload", detail=str(e))

    # The SDK's StripeObject view is only used for verification; handlers work on plain dicts
    try:
        event = json.loads(raw_body)
    except ValueError as e:
        WebhookEventLog.record_rejected(db, raw_body, 400, str(e))
        return WebhookFailure(kind="payload", detail=str(e))

    if not isinstance(event, dict) or not event.get("id") or not event.get("type"):
        WebhookEventLog.record_rejected(db, raw_body, 400, "Event is missing id or type")
        return WebhookFailure(kind="payload", detail="Event is missing id or type")

    return process_verified_event(db, event, notifications)


def process_verified_event(
    db: Session,
    event: dict,
    notifications: NotificationQueue,
    force: bool = False,
) -> WebhookResult:
    """Dedup, log and dispatch an event whose authenticity is already established"""
    event_id = event["id"]

    settled = None if force else WebhookEventLog.settled_status(db, event_id)
    if settled:
        logger.info(f"🔁 Duplicate Stripe event {event_id} ({event.get('type')}), already {settled}")
        return WebhookSuccess(status=settled, detail="Duplicate delivery", duplicate=True)

    row = WebhookEventLog.mark_received(db, event)
    if row is None or row.attempts == 1:
        WebhookEventLog.capture_billing_event(db, event)
    WebhookEventLog.mark_processing(db, event_id)

    try:
        result = dispatch_event(db, event, notifications)
    except Exception as e:
        db.rollback()
        notifications.clear()
        logger.error(f"❌ Unexpected error dispatching {event_id}: {e}", exc_info=True)
        result = WebhookFailure(kind="unknown", detail=str(e))

    if result.ok:
        WebhookEventLog.mark_finished(db, event, result.status, result.http_status, result.detail)
    else:
        WebhookEventLog.mark_finished(db, event, FAILED, result.http_status, result.detail)
    return result
