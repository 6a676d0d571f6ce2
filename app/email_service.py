"""
Email Service - booking notifications compiled from MJML and delivered via Resend
"""

import logging
from typing import Optional, Union

import resend
from mjml import mjml_to_html

from .config import EMAIL_FROM_ADDRESS, FRONTEND_URL, RESEND_API_KEY
from .database import SessionLocal
from .domain.billing.ledger import REFUND, TransactionLedger
from .email_templates import BOOKING_TEMPLATES
from .models import Booking

logger = logging.getLogger(__name__)

if RESEND_API_KEY:
    resend.api_key = RESEND_API_KEY


class EmailDeliveryError(Exception):
    """Raised when an email cannot be compiled or delivered"""


def compile_mjml_to_html(mjml_content: str) -> str:
    """Compile MJML template to production-ready HTML"""
    try:
        result = mjml_to_html(mjml_content)
    except Exception as e:
        logger.error(f"MJML compilation error: {e}")
        raise EmailDeliveryError(f"Failed to compile MJML template: {e}") from e

    if isinstance(result, dict):
        if result.get("errors"):
            logger.warning(f"MJML compilation warnings: {result['errors']}")
        return result.get("html", "")
    html = getattr(result, "html", None)
    if html is not None:
        if getattr(result, "errors", None):
            logger.warning(f"MJML compilation warnings: {result.errors}")
        return html
    return str(result)


async def send_email(
    to: Union[str, list[str]],
    subject: str,
    mjml_content: str,
    from_address: Optional[str] = None,
) -> dict:
    """Send an email through Resend"""
    if not RESEND_API_KEY:
        logger.error("❌ No email service configured - RESEND_API_KEY missing")
        raise EmailDeliveryError("Email service not configured")

    html_content = compile_mjml_to_html(mjml_content)
    recipients = [to] if isinstance(to, str) else to

    try:
        logger.info(f"📧 Sending email via Resend to: {recipients}")
        response = resend.Emails.send(
            {
                "from": from_address or EMAIL_FROM_ADDRESS,
                "to": recipients,
                "subject": subject,
                "html": html_content,
            }
        )
        logger.info(f"✅ Email sent successfully via Resend: {response}")
        return response
    except Exception as e:
        logger.error(f"❌ Email send error to {recipients}: {e}")
        raise EmailDeliveryError(f"Failed to send email: {e}") from e


def build_booking_email_context(booking: Booking, refund_amount: Optional[float] = None) -> dict:
    customer = booking.customer
    provider = booking.provider
    return {
        "id": booking.id,
        "customer_email": customer.email if customer else None,
        "customer_name": (customer.full_name if customer else None) or "Customer",
        "provider_name": provider.business_name if provider else None,
        "service_name": booking.service_name or "Cleaning Service",
        "address": booking.address or "Address not available",
        "booking_date": booking.booking_date,
        "booking_time": booking.booking_time,
        "total_amount": float(booking.total_amount or 0),
        "refund_amount": float(refund_amount if refund_amount is not None else booking.total_amount or 0),
        "cancellation_reason": booking.cancellation_reason,
    }


async def send_booking_email(booking_id: str, template_key: str) -> Optional[dict]:
    """Load a booking in its own session and send the email for template_key"""
    template = BOOKING_TEMPLATES.get(template_key)
    if template is None:
        raise ValueError(f"Unknown booking email template: {template_key}")

    db = SessionLocal()
    try:
        booking = db.query(Booking).filter(Booking.id == booking_id).first()
        if not booking:
            logger.error(f"❌ Booking {booking_id} not found for {template_key} email")
            return None

        refund_amount = None
        if template_key == "refunded":
            refund_amount = sum(
                tx.amount
                for tx in TransactionLedger.list_for_booking(db, booking_id)
                if tx.transaction_type == REFUND and tx.status == "completed"
            ) or None
        context = build_booking_email_context(booking, refund_amount)
    finally:
        db.close()

    if not context["customer_email"]:
        logger.warning(f"⚠️ No email address for customer of booking {booking_id}")
        return None

    subject, mjml_content = template(context, f"{FRONTEND_URL}/customer/bookings/{booking_id}")
    return await send_email(to=context["customer_email"], subject=subject, mjml_content=mjml_content)


async def dispatch_booking_email(booking_id: str, template_key: str) -> None:
    """Detached booking email: failures are logged, never raised to the caller"""
    try:
        await send_booking_email(booking_id, template_key)
    except Exception as e:
        logger.error(f"❌ Booking email '{template_key}' for {booking_id} failed: {e}")
