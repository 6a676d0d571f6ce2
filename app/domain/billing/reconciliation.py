"""Re-drive webhook events that never settled"""

import logging
from typing import Optional

from sqlalchemy.orm import Session

from ...config import WEBHOOK_MAX_ATTEMPTS, WEBHOOK_MAX_REDRIVE_BATCH, WEBHOOK_STALE_AFTER_MINUTES
from ...models import WebhookEvent
from ...notifications import NotificationQueue
from .event_log import WebhookEventLog
from .gate import process_verified_event
from .schemas import WebhookFailure, WebhookResult

logger = logging.getLogger(__name__)


def redrive_event(db: Session, row: WebhookEvent, notifications: NotificationQueue) -> WebhookResult:
    """Replay a stored event through the dispatcher; the ledger keeps this idempotent"""
    event = row.payload if isinstance(row.payload, dict) else None
    if not event or not event.get("id") or not event.get("type"):
        return WebhookFailure(kind="payload", detail=f"No replayable payload stored for webhook row {row.id}")

    logger.info(f"🔄 Re-driving webhook {event['id']} ({event['type']}), attempt {(row.attempts or 0) + 1}")
    return process_verified_event(db, event, notifications, force=True)


def redrive_stale_events(
    db: Session,
    notifications: NotificationQueue,
    older_than_minutes: Optional[int] = None,
    limit: Optional[int] = None,
    max_attempts: Optional[int] = None,
) -> dict:
    stale = WebhookEventLog.list_stale(
        db,
        older_than_minutes if older_than_minutes is not None else WEBHOOK_STALE_AFTER_MINUTES,
        limit or WEBHOOK_MAX_REDRIVE_BATCH,
        max_attempts or WEBHOOK_MAX_ATTEMPTS,
    )
    summary = {"checked": len(stale), "settled": 0, "failed": 0}

    for row in stale:
        result = redrive_event(db, row, notifications)
        if result.ok:
            summary["settled"] += 1
        else:
            summary["failed"] += 1

    if stale:
        logger.info(
            f"🔄 Webhook re-drive: {summary['settled']} settled, "
            f"{summary['failed']} still failing of {summary['checked']}"
        )
    return summary
