"""Stripe service - refunds against booking payment intents"""

import logging
from typing import Optional

import stripe

from ...config import STRIPE_SECRET_KEY

logger = logging.getLogger(__name__)


class StripeNotConfiguredError(Exception):
    """Raised when a Stripe call is attempted without an API key"""


class StripeService:
    """Service for Stripe API operations"""

    def __init__(self, api_key: Optional[str] = None):
        self.api_key = api_key if api_key is not None else STRIPE_SECRET_KEY
        self.client: Optional[stripe.StripeClient] = None

        if not self.api_key:
            logger.warning("STRIPE_SECRET_KEY not set; refunds are disabled until configured")
        else:
            self.client = stripe.StripeClient(self.api_key)
            logger.info("Stripe client initialized")

    def is_available(self) -> bool:
        """Check if the Stripe client is available"""
        return self.client is not None

    def create_refund(
        self,
        payment_intent_id: str,
        amount: int,
        reason: str = "requested_by_customer",
        metadata: Optional[dict] = None,
    ) -> dict:
        """
        Refund amount (minor units) of a payment intent.

        Returns a dict with at least "id" and "status" ("succeeded", "pending", ...).
        """
        if not self.client:
            raise StripeNotConfiguredError("Stripe client not initialized")

        try:
            refund = self.client.refunds.create(
                params={
                    "payment_intent": payment_intent_id,
                    "amount": amount,
                    "reason": reason,
                    "metadata": metadata or {},
                }
            )
        except stripe.StripeError as e:
            logger.error(f"Failed to refund {amount} on {payment_intent_id}: {e}")
            raise

        logger.info(f"💸 Refund {refund.id} for {payment_intent_id}: {amount} ({refund.status})")
        return {"id": refund.id, "status": refund.status, "amount": refund.amount}


# Singleton instance
stripe_service = StripeService()
