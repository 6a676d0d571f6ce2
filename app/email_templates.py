"""
MJML Email Templates
Booking lifecycle emails sent to customers
"""

from datetime import date
from typing import Optional

# App theme colors - Teal/Slate color scheme
THEME = {
    "primary": "#14b8a6",
    "background": "#f8fafc",
    "text_primary": "#0f172a",
    "text_secondary": "#334155",
    "text_muted": "#64748b",
    "border": "#e2e8f0",
    "panel": "#f1f5f9",
    "danger": "#ef4444",
    "danger_light": "#fef2f2",
}

BRAND_NAME = "CleanMarket"


def format_currency(amount: float) -> str:
    return f"${amount:,.2f}"


def format_date(value: date) -> str:
    return value.strftime("%A, %B %d, %Y")


def format_time(value: str) -> str:
    hours, minutes = value.split(":")
    hour = int(hours)
    suffix = "PM" if hour >= 12 else "AM"
    return f"{hour % 12 or 12}:{minutes} {suffix}"


def get_base_template(
    title: str,
    preview_text: str,
    content_sections: str,
    cta_url: Optional[str] = None,
    cta_label: Optional[str] = None,
) -> str:
    """Base MJML template wrapper for all emails"""

    cta_section = ""
    if cta_url and cta_label:
        cta_section = f"""
        <mj-section padding="20px 0">
          <mj-column>
            <mj-button href="{cta_url}" background-color="{THEME['primary']}" color="#ffffff"
              font-weight="600" border-radius="8px" padding="18px 40px" font-size="16px">
              {cta_label}
            </mj-button>
          </mj-column>
        </mj-section>
        """

    return f"""
    <mjml>
      <mj-head>
        <mj-title>{title}</mj-title>
        <mj-preview>{preview_text}</mj-preview>
        <mj-attributes>
          <mj-all font-family="-apple-system, BlinkMacSystemFont, 'Segoe UI', 'Helvetica Neue', Arial, sans-serif" />
          <mj-text font-size="16px" line-height="1.6" color="{THEME['text_secondary']}" />
        </mj-attributes>
      </mj-head>
      <mj-body background-color="{THEME['background']}">
        <mj-section background-color="#ffffff" padding="32px 40px 48px 40px">
          <mj-column>
            <mj-text font-size="24px" font-weight="600" color="{THEME['text_primary']}" line-height="1.3" padding="0 0 16px 0">
              {title}
            </mj-text>
            {content_sections}
          </mj-column>
        </mj-section>

        {cta_section}

        <mj-section padding="32px 20px">
          <mj-column>
            <mj-text align="center" font-size="13px" color="#94a3b8" padding="0">
              This is a service message from {BRAND_NAME}.
            </mj-text>
          </mj-column>
        </mj-section>
      </mj-body>
    </mjml>
    """


def _details_panel(heading: str, rows: list[tuple[str, str]], accent: Optional[str] = None) -> str:
    lines = "".join(f"<strong>{label}:</strong> {value}<br/>" for label, value in rows)
    background = THEME["danger_light"] if accent == "danger" else THEME["panel"]
    return f"""
    <mj-text background-color="{background}" padding="16px" container-background-color="{background}">
      <span style="font-size: 18px; font-weight: 600;">{heading}</span><br/>
      {lines}
    </mj-text>
    """


def _booking_rows(booking: dict) -> list[tuple[str, str]]:
    return [
        ("Service", booking["service_name"]),
        ("Date", format_date(booking["booking_date"])),
        ("Time", format_time(booking["booking_time"])),
        ("Address", booking["address"]),
        ("Total", format_currency(booking["total_amount"])),
    ]


def booking_confirmation_template(booking: dict, booking_url: str) -> tuple[str, str]:
    """Sent when the booking is paid and awaiting provider confirmation"""
    content = f"""
    <mj-text>Hi {booking['customer_name']},</mj-text>
    <mj-text>Thank you for booking with us. Your payment was received and we'll confirm your booking shortly.</mj-text>
    {_details_panel("Booking Details", _booking_rows(booking))}
    """
    return (
        f"Booking Confirmation - {booking['service_name']}",
        get_base_template(
            title=f"Booking Received, {booking['customer_name']}!",
            preview_text="We've received your booking",
            content_sections=content,
            cta_url=booking_url,
            cta_label="View Booking",
        ),
    )


def booking_confirmed_template(booking: dict, booking_url: str) -> tuple[str, str]:
    provider = booking.get("provider_name") or "Your cleaner"
    content = f"""
    <mj-text>Great news! {provider} has confirmed your booking.</mj-text>
    {_details_panel("Booking Details", _booking_rows(booking))}
    """
    return (
        f"Your {booking['service_name']} Booking is Confirmed!",
        get_base_template(
            title="Your booking is confirmed",
            preview_text="Your booking has been confirmed",
            content_sections=content,
            cta_url=booking_url,
            cta_label="View Booking",
        ),
    )


def booking_in_progress_template(booking: dict, booking_url: str) -> tuple[str, str]:
    content = f"""
    <mj-text>Your {booking['service_name']} has started. We'll let you know as soon as it's complete.</mj-text>
    """
    return (
        f"Your {booking['service_name']} Service Has Started",
        get_base_template(
            title="Your service has started",
            preview_text="Your cleaner is on the job",
            content_sections=content,
            cta_url=booking_url,
            cta_label="Track Booking",
        ),
    )


def booking_completed_template(booking: dict, booking_url: str) -> tuple[str, str]:
    content = f"""
    <mj-text>Your {booking['service_name']} is complete. We'd love to hear how it went.</mj-text>
    {_details_panel("Service Summary", _booking_rows(booking))}
    """
    return (
        f"Service Complete - How Was Your {booking['service_name']}?",
        get_base_template(
            title="Service complete",
            preview_text="Tell us how it went",
            content_sections=content,
            cta_url=booking_url,
            cta_label="Leave a Review",
        ),
    )


def booking_cancelled_template(booking: dict, booking_url: str) -> tuple[str, str]:
    reason = ""
    if booking.get("cancellation_reason"):
        reason = f"<mj-text><strong>Reason:</strong> {booking['cancellation_reason']}</mj-text>"
    content = f"""
    <mj-text>Hi {booking['customer_name']}, your booking has been cancelled.</mj-text>
    {_details_panel("Cancelled Booking Details", _booking_rows(booking), accent="danger")}
    {reason}
    <mj-text>If you paid for this booking, any refund is processed according to our cancellation policy.</mj-text>
    """
    return (
        f"Booking Cancelled - {booking['service_name']}",
        get_base_template(
            title=f"Booking Cancelled, {booking['customer_name']}",
            preview_text="Your booking has been cancelled",
            content_sections=content,
            cta_url=booking_url,
            cta_label="Book Again",
        ),
    )


def booking_refunded_template(booking: dict, booking_url: str) -> tuple[str, str]:
    rows = [
        ("Service", booking["service_name"]),
        ("Date", format_date(booking["booking_date"])),
        ("Refund Amount", format_currency(booking["refund_amount"])),
    ]
    content = f"""
    <mj-text>Hi {booking['customer_name']}, your refund has been processed.</mj-text>
    {_details_panel("Refund Details", rows)}
    <mj-text>The refund should appear in your account within 5-10 business days, depending on your payment method.</mj-text>
    """
    return (
        f"Refund Processed - {booking['service_name']} Booking",
        get_base_template(
            title=f"Refund Processed, {booking['customer_name']}",
            preview_text="Your refund is on its way",
            content_sections=content,
            cta_url=booking_url,
            cta_label="View Booking",
        ),
    )


BOOKING_TEMPLATES = {
    "confirmation": booking_confirmation_template,
    "confirmed": booking_confirmed_template,
    "inProgress": booking_in_progress_template,
    "completed": booking_completed_template,
    "cancelled": booking_cancelled_template,
    "refunded": booking_refunded_template,
}
