"""Billing domain schemas - webhook processing results and admin views"""

from dataclasses import dataclass
from datetime import datetime
from typing import Literal, Optional, Union

from pydantic import BaseModel, ConfigDict

FailureKind = Literal["not_configured", "signature", "payload", "processing", "unknown"]

FAILURE_HTTP_STATUS = {
    "not_configured": 501,  # nothing to retry until the endpoint is configured
    "signature": 401,  # permanently invalid, retries are useless
    "payload": 400,  # malformed, retries are useless
    "processing": 500,  # transient, Stripe should retry
    "unknown": 500,
}

FAILURE_MESSAGES = {
    "not_configured": "Webhook not configured",
    "signature": "Invalid signature",
    "payload": "Invalid payload",
    "processing": "Webhook processing failed",
    "unknown": "Internal server error",
}


@dataclass(frozen=True)
class WebhookSuccess:
    """Event fully processed, a deliberate no-op, or ignored as an unknown type"""

    status: Literal["processed", "ignored"]
    detail: Optional[str] = None
    duplicate: bool = False
    ok: Literal[True] = True

    @property
    def http_status(self) -> int:
        return 200


@dataclass(frozen=True)
class WebhookFailure:
    kind: FailureKind
    detail: str
    ok: Literal[False] = False

    @property
    def http_status(self) -> int:
        return FAILURE_HTTP_STATUS[self.kind]

    @property
    def public_message(self) -> str:
        return FAILURE_MESSAGES[self.kind]


WebhookResult = Union[WebhookSuccess, WebhookFailure]


class WebhookEventResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    provider: str
    event_id: Optional[str] = None
    event_type: Optional[str] = None
    tenant_id: Optional[str] = None
    status: str
    http_status: Optional[int] = None
    error_message: Optional[str] = None
    attempts: int
    processed_at: Optional[datetime] = None
    created_at: Optional[datetime] = None


class WebhookEventListResponse(BaseModel):
    events: list[WebhookEventResponse]


class RedriveResponse(BaseModel):
    event_id: str
    status: str
    http_status: int
    detail: Optional[str] = None
