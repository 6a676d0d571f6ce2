"""
Webhook Security Module

Signature verification for Stripe webhooks. Verification is delegated to the
Stripe SDK so the signed-payload format and timestamp tolerance stay in step
with the provider; helpers here build the same header for tests and tooling.
"""

import hashlib
import hmac
import logging
import time
from typing import Optional

import stripe

logger = logging.getLogger(__name__)

# Maximum age of webhook in seconds (5 minutes)
MAX_WEBHOOK_AGE_SECONDS = 300

STRIPE_SIGNATURE_HEADER = "stripe-signature"


class WebhookSignatureError(Exception):
    """Raised when webhook signature verification fails"""


class WebhookPayloadError(Exception):
    """Raised when a verified webhook body is not a usable event"""


def compute_hmac_sha256(secret: str, payload: bytes) -> str:
    """Compute HMAC-SHA256 signature of payload"""
    return hmac.new(secret.encode("utf-8"), payload, hashlib.sha256).hexdigest()


def create_stripe_signature(secret: str, payload: bytes, timestamp: Optional[int] = None) -> str:
    """Build a Stripe-Signature header value ("t=<timestamp>,v1=<signature>")"""
    timestamp = int(time.time()) if timestamp is None else timestamp
    signed_payload = f"{timestamp}.".encode("utf-8") + payload
    return f"t={timestamp},v1={compute_hmac_sha256(secret, signed_payload)}"


def verify_stripe_event(raw_body: bytes, signature: str, secret: str) -> stripe.Event:
    """
    Verify a Stripe webhook and return the constructed event.

    Raises:
        WebhookSignatureError: signature header missing, stale or not matching
        WebhookPayloadError: body is not valid event JSON
    """
    if not signature:
        logger.warning("🚫 Stripe webhook missing signature header")
        raise WebhookSignatureError("Missing webhook signature")

    try:
        event = stripe.Webhook.construct_event(
            raw_body, signature, secret, tolerance=MAX_WEBHOOK_AGE_SECONDS
        )
    except stripe.SignatureVerificationError as e:
        logger.warning(f"🚫 Stripe webhook signature mismatch: {e}")
        raise WebhookSignatureError("Invalid webhook signature") from e
    except ValueError as e:
        logger.warning(f"🚫 Stripe webhook payload is not valid JSON: {e}")
        raise WebhookPayloadError("Invalid payload") from e

    logger.debug(f"✅ Stripe webhook signature verified: {event['id']}")
    return event
