from datetime import date
from decimal import Decimal

import pytest

from app.email_service import dispatch_booking_email, send_booking_email
from app.email_templates import BOOKING_TEMPLATES, format_currency, format_time
from app.models import Transaction
from app.notifications import NotificationQueue


@pytest.fixture
def outbox(monkeypatch):
    sent = []

    async def fake_send(to, subject, mjml_content, from_address=None):
        sent.append({"to": to, "subject": subject, "mjml": mjml_content})
        return {"id": f"email_{len(sent)}"}

    monkeypatch.setattr("app.email_service.send_email", fake_send)
    return sent


@pytest.mark.unit
class TestTemplates:
    def test_formatters(self):
        assert format_currency(1234.5) == "$1,234.50"
        assert format_time("00:15") == "12:15 AM"
        assert format_time("14:30") == "2:30 PM"

    @pytest.mark.parametrize("template_key", sorted(BOOKING_TEMPLATES))
    def test_every_template_renders(self, template_key):
        context = {
            "id": "bk-1",
            "customer_name": "Ada",
            "provider_name": "Sparkle Cleaning",
            "service_name": "Deep Clean",
            "address": "12 Harbour Street",
            "booking_date": date(2026, 3, 14),
            "booking_time": "10:00",
            "total_amount": 100.0,
            "refund_amount": 50.0,
            "cancellation_reason": "Moving house",
        }
        subject, mjml = BOOKING_TEMPLATES[template_key](context, "https://app.test/customer/bookings/bk-1")
        assert "Deep Clean" in subject
        assert mjml.strip().startswith("<mjml>")
        assert "https://app.test/customer/bookings/bk-1" in mjml


@pytest.mark.unit
class TestSendBookingEmail:
    async def test_refunded_email_reports_refund_total(self, db_session, make_booking, make_payment, outbox):
        booking = make_booking()
        make_payment(booking)
        db_session.add(
            Transaction(
                tenant_id=booking.tenant_id,
                booking_id=booking.id,
                amount=Decimal("50.00"),
                transaction_type="refund",
                stripe_payment_intent_id="pi_test_1",
                status="completed",
            )
        )
        db_session.commit()

        await send_booking_email(booking.id, "refunded")

        assert outbox[0]["to"] == "customer-one@example.com"
        assert outbox[0]["subject"].startswith("Refund Processed")
        assert "$50.00" in outbox[0]["mjml"]

    async def test_pending_refunds_are_not_reported(self, db_session, make_booking, make_payment, outbox):
        booking = make_booking()
        make_payment(booking)
        for status, amount in (("completed", "30.00"), ("pending", "20.00")):
            db_session.add(
                Transaction(
                    tenant_id=booking.tenant_id,
                    booking_id=booking.id,
                    amount=Decimal(amount),
                    transaction_type="refund",
                    stripe_payment_intent_id=f"pi_{status}",
                    status=status,
                )
            )
        db_session.commit()

        await send_booking_email(booking.id, "refunded")

        assert "$30.00" in outbox[0]["mjml"]
        assert "$50.00" not in outbox[0]["mjml"]

    async def test_unknown_booking_sends_nothing(self, outbox):
        assert await send_booking_email("missing", "cancelled") is None
        assert outbox == []

    async def test_dispatch_swallows_failures(self, outbox):
        await dispatch_booking_email("missing", "no-such-template")
        assert outbox == []


@pytest.mark.unit
class TestNotificationQueue:
    def test_status_change_maps_to_template_and_dedupes(self):
        queue = NotificationQueue()
        queue.status_change("bk-1", "pending", "confirmed")
        queue.status_change("bk-1", "pending", "confirmed")
        queue.status_change("bk-1", "confirmed", "confirmed")
        queue.status_change("bk-1", "confirmed", "pending")
        assert queue.pending == [("bk-1", "confirmed")]
