"""Webhook event log - lifecycle rows for every inbound provider event"""

import json
import logging
from datetime import datetime, timedelta
from typing import Callable, Optional, TypeVar

from sqlalchemy import or_
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from ...config import WEBHOOK_PAYLOAD_SNAPSHOT_LIMIT
from ...models import BillingEvent, WebhookEvent

logger = logging.getLogger(__name__)

T = TypeVar("T")

PROVIDER = "stripe"

RECEIVED = "received"
PROCESSING = "processing"
PROCESSED = "processed"
FAILED = "failed"
IGNORED = "ignored"

SETTLED_STATUSES = frozenset({PROCESSED, IGNORED})

# Event types persisted a second time for financial audit
BILLING_CAPTURE_TYPES = frozenset(
    {
        "invoice.created",
        "invoice.finalized",
        "invoice.payment_succeeded",
        "invoice.payment_failed",
        "customer.subscription.created",
        "customer.subscription.updated",
        "customer.subscription.deleted",
        "charge.succeeded",
        "charge.failed",
        "charge.refunded",
        "payment_intent.succeeded",
        "payment_intent.payment_failed",
        "payment_intent.requires_action",
    }
)


def payload_snapshot(payload, limit: int = WEBHOOK_PAYLOAD_SNAPSHOT_LIMIT) -> str:
    if isinstance(payload, bytes):
        text = payload.decode("utf-8", errors="replace")
    elif isinstance(payload, str):
        text = payload
    else:
        text = json.dumps(payload, default=str)
    return text[:limit]


def extract_tenant_id(event: dict) -> Optional[str]:
    data_object = (event.get("data") or {}).get("object") or {}
    metadata = data_object.get("metadata") or {}
    return metadata.get("tenant_id") or metadata.get("tenantId") or None


class WebhookEventLog:
    """
    Writes to the event log are committed on their own and are best-effort:
    a failed write is logged and rolled back, never raised.
    """

    @staticmethod
    def _best_effort(db: Session, action: str, fn: Callable[[], T]) -> Optional[T]:
        try:
            result = fn()
            db.commit()
            return result
        except SQLAlchemyError as e:
            db.rollback()
            logger.error(f"❌ Webhook event log '{action}' failed: {e}")
            return None

    @staticmethod
    def get(db: Session, event_id: str) -> Optional[WebhookEvent]:
        return db.query(WebhookEvent).filter(WebhookEvent.event_id == event_id).first()

    @staticmethod
    def settled_status(db: Session, event_id: str) -> Optional[str]:
        """Final status of an event already processed or deliberately ignored, else None"""
        try:
            row = WebhookEventLog.get(db, event_id)
        except SQLAlchemyError as e:
            db.rollback()
            logger.error(f"❌ Webhook dedup lookup failed for {event_id}: {e}")
            return None
        if row is None or row.status not in SETTLED_STATUSES:
            return None
        return row.status

    @staticmethod
    def mark_received(db: Session, event: dict) -> Optional[WebhookEvent]:
        def write():
            row = WebhookEventLog.get(db, event["id"])
            if row is None:
                row = WebhookEvent(provider=PROVIDER, event_id=event["id"], attempts=0)
                db.add(row)
            row.event_type = event.get("type")
            row.tenant_id = extract_tenant_id(event)
            row.payload = event
            row.status = RECEIVED
            row.http_status = None
            row.error_message = None
            row.attempts = (row.attempts or 0) + 1
            db.flush()
            return row

        row = WebhookEventLog._best_effort(db, RECEIVED, write)
        if row is not None:
            logger.info(f"📥 Webhook {event['id']} ({event.get('type')}) received, attempt {row.attempts}")
        return row

    @staticmethod
    def capture_billing_event(db: Session, event: dict) -> None:
        if event.get("type") not in BILLING_CAPTURE_TYPES:
            return

        def write():
            db.add(
                BillingEvent(
                    tenant_id=extract_tenant_id(event),
                    provider=PROVIDER,
                    event_type=event["type"],
                    event_id=event.get("id"),
                    payload=event,
                )
            )

        WebhookEventLog._best_effort(db, "billing_event", write)

    @staticmethod
    def mark_processing(db: Session, event_id: str) -> None:
        def write():
            row = WebhookEventLog.get(db, event_id)
            if row is not None:
                row.status = PROCESSING

        WebhookEventLog._best_effort(db, PROCESSING, write)

    @staticmethod
    def mark_finished(
        db: Session,
        event: dict,
        status: str,
        http_status: int,
        error_message: Optional[str] = None,
    ) -> None:
        def write():
            row = WebhookEventLog.get(db, event["id"])
            if row is None:
                row = WebhookEvent(
                    provider=PROVIDER,
                    event_id=event["id"],
                    event_type=event.get("type"),
                    tenant_id=extract_tenant_id(event),
                    attempts=1,
                )
                db.add(row)
            if row.payload is None:
                row.payload = {"snapshot": payload_snapshot(event)}
            row.status = status
            row.http_status = http_status
            row.error_message = error_message[:WEBHOOK_PAYLOAD_SNAPSHOT_LIMIT] if error_message else None
            row.processed_at = datetime.utcnow()

        WebhookEventLog._best_effort(db, status, write)
        log = logger.error if status == FAILED else logger.info
        log(f"📒 Webhook {event['id']} ({event.get('type')}) → {status} [{http_status}]")

    @staticmethod
    def record_rejected(db: Session, raw_body: bytes, http_status: int, error_message: str) -> None:
        """Log a request that never became a verified event (no event id)"""

        def write():
            db.add(
                WebhookEvent(
                    provider=PROVIDER,
                    event_id=None,
                    status=FAILED,
                    http_status=http_status,
                    error_message=error_message,
                    payload={"snapshot": payload_snapshot(raw_body)},
                    attempts=1,
                    processed_at=datetime.utcnow(),
                )
            )

        WebhookEventLog._best_effort(db, "rejected", write)

    @staticmethod
    def list_events(
        db: Session, status: Optional[str] = None, limit: int = 50
    ) -> list[WebhookEvent]:
        query = db.query(WebhookEvent)
        if status:
            query = query.filter(WebhookEvent.status == status)
        return query.order_by(WebhookEvent.id.desc()).limit(limit).all()

    @staticmethod
    def list_stale(
        db: Session, older_than_minutes: int, limit: int, max_attempts: int
    ) -> list[WebhookEvent]:
        """
        Verified events stuck in processing (crash) or failed, older than the cutoff.
        Malformed events (400) and events out of attempts are not retried.
        """
        cutoff = datetime.utcnow() - timedelta(minutes=older_than_minutes)
        return (
            db.query(WebhookEvent)
            .filter(
                WebhookEvent.event_id.isnot(None),
                WebhookEvent.status.in_([RECEIVED, PROCESSING, FAILED]),
                WebhookEvent.updated_at < cutoff,
                WebhookEvent.attempts < max_attempts,
                or_(WebhookEvent.http_status.is_(None), WebhookEvent.http_status != 400),
            )
            .order_by(WebhookEvent.id)
            .limit(limit)
            .all()
        )
