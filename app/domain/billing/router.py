"""Billing router - Stripe webhook endpoint and webhook event administration"""

import logging
from typing import Optional

from fastapi import APIRouter, BackgroundTasks, Depends, HTTPException, Query, Request
from fastapi.responses import JSONResponse
from sqlalchemy.orm import Session

from ...auth import AuthContext, require_admin
from ...config import STRIPE_WEBHOOK_SECRET
from ...database import get_db
from ...notifications import NotificationQueue
from ...webhook_security import STRIPE_SIGNATURE_HEADER
from .event_log import WebhookEventLog
from .gate import process_stripe_webhook
from .reconciliation import redrive_event
from .schemas import RedriveResponse, WebhookEventListResponse, WebhookEventResponse

logger = logging.getLogger(__name__)

webhooks_router = APIRouter(prefix="/api/stripe", tags=["Webhooks"])
router = APIRouter(prefix="/api/admin/webhook-events", tags=["Billing Admin"])


# ============================================================================
# STRIPE WEBHOOK
# ============================================================================


@webhooks_router.post("/webhook")
async def stripe_webhook(
    request: Request,
    background_tasks: BackgroundTasks,
    db: Session = Depends(get_db),
):
    """
    Receive Stripe events.

    Signature failures answer 401 and malformed payloads 400 so Stripe stops
    retrying them; processing failures answer 500 so Stripe retries.
    """
    raw_body = await request.body()
    signature = request.headers.get(STRIPE_SIGNATURE_HEADER)
    notifications = NotificationQueue()

    result = process_stripe_webhook(db, raw_body, signature, STRIPE_WEBHOOK_SECRET, notifications)

    if not result.ok:
        return JSONResponse(status_code=result.http_status, content={"error": result.public_message})

    notifications.flush(background_tasks)
    return {"received": True, "status": result.status, "duplicate": result.duplicate}


# ============================================================================
# ADMIN: WEBHOOK EVENT LOG
# ============================================================================


@router.get("", response_model=WebhookEventListResponse)
async def list_webhook_events(
    status: Optional[str] = Query(None),
    limit: int = Query(50, ge=1, le=500),
    ctx: AuthContext = Depends(require_admin),
):
    """List recent webhook deliveries, newest first"""
    events = WebhookEventLog.list_events(ctx.db, status=status, limit=limit)
    return {"events": [WebhookEventResponse.model_validate(e) for e in events]}


@router.post("/{event_id}/redrive", response_model=RedriveResponse)
async def redrive_webhook_event(
    event_id: str,
    background_tasks: BackgroundTasks,
    ctx: AuthContext = Depends(require_admin),
):
    """Replay a stored event through its handler"""
    row = WebhookEventLog.get(ctx.db, event_id)
    if row is None:
        raise HTTPException(status_code=404, detail="Webhook event not found")

    notifications = NotificationQueue()
    result = redrive_event(ctx.db, row, notifications)
    if result.ok:
        notifications.flush(background_tasks)
        status = result.status
    else:
        status = "failed"

    logger.info(f"🔄 Admin {ctx.user.id} re-drove webhook {event_id} → {status}")
    return RedriveResponse(
        event_id=event_id,
        status=status,
        http_status=result.http_status,
        detail=result.detail,
    )
