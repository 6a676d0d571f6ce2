from datetime import datetime, timedelta

import pytest

from app.domain.billing.reconciliation import redrive_stale_events
from app.models import Booking, Transaction, WebhookEvent
from app.notifications import NotificationQueue
from conftest import make_event, post_webhook


def stored_event(db_session, event, status="failed", minutes_old=60, attempts=1, http_status=None):
    row = WebhookEvent(
        provider="stripe",
        event_id=event["id"],
        event_type=event["type"],
        status=status,
        http_status=http_status or (500 if status == "failed" else None),
        payload=event,
        attempts=attempts,
        updated_at=datetime.utcnow() - timedelta(minutes=minutes_old),
    )
    db_session.add(row)
    db_session.commit()
    return row


def succeeded(booking, intent_id="pi_stuck"):
    return make_event(
        "payment_intent.succeeded",
        {"id": intent_id, "amount": 10000, "metadata": {"booking_id": booking.id}},
        event_id=f"evt_{intent_id}",
    )


@pytest.mark.integration
class TestWebhookEventAdmin:
    def test_requires_admin(self, client, customer, login):
        login(customer)
        response = client.get("/api/admin/webhook-events")
        assert response.status_code == 403
        assert response.json() == {"error": "Admin access required"}

    def test_lists_events_with_status_filter(self, client, admin, login):
        post_webhook(client, make_event("customer.created", {"id": "cus_1"}, event_id="evt_ignored"))
        post_webhook(client, make_event("payout.paid", {"id": "po_1"}, event_id="evt_payout"))
        login(admin)

        everything = client.get("/api/admin/webhook-events")
        ignored = client.get("/api/admin/webhook-events", params={"status": "ignored"})

        assert everything.status_code == 200
        assert [e["event_id"] for e in everything.json()["events"]] == ["evt_payout", "evt_ignored"]
        assert [e["event_id"] for e in ignored.json()["events"]] == ["evt_ignored"]

    def test_redrive_unknown_event(self, client, admin, login):
        login(admin)
        response = client.post("/api/admin/webhook-events/evt_missing/redrive")
        assert response.status_code == 404

    def test_redrive_failed_event(self, client, db_session, admin, make_booking, sent_emails, login):
        booking = make_booking(payment_status="unpaid", status="pending")
        stored_event(db_session, succeeded(booking))
        login(admin)

        response = client.post("/api/admin/webhook-events/evt_pi_stuck/redrive")

        assert response.status_code == 200
        assert response.json()["status"] == "processed"
        db_session.expire_all()
        assert db_session.get(Booking, booking.id).payment_status == "paid"
        assert db_session.query(Transaction).count() == 1
        row = db_session.query(WebhookEvent).filter(WebhookEvent.event_id == "evt_pi_stuck").one()
        assert row.status == "processed"
        assert row.attempts == 2
        assert sent_emails == [(booking.id, "confirmation")]

    def test_redrive_of_settled_event_is_idempotent(self, client, db_session, admin, make_booking, login):
        booking = make_booking(payment_status="unpaid", status="pending")
        post_webhook(client, succeeded(booking))
        login(admin)

        response = client.post("/api/admin/webhook-events/evt_pi_stuck/redrive")

        assert response.status_code == 200
        assert db_session.query(Transaction).count() == 1


@pytest.mark.integration
class TestStaleEventSweep:
    def test_redrives_stuck_and_failed_events(self, db_session, make_booking, sent_emails):
        first = make_booking(payment_status="unpaid", status="pending")
        second = make_booking(payment_status="unpaid", status="pending")
        stored_event(db_session, succeeded(first, "pi_a"), status="processing")
        stored_event(db_session, succeeded(second, "pi_b"), status="failed")

        summary = redrive_stale_events(db_session, NotificationQueue(), older_than_minutes=15)

        assert summary == {"checked": 2, "settled": 2, "failed": 0}
        db_session.expire_all()
        assert db_session.get(Booking, first.id).payment_status == "paid"
        assert db_session.get(Booking, second.id).payment_status == "paid"

    def test_leaves_recent_and_settled_events_alone(self, db_session, make_booking):
        booking = make_booking(payment_status="unpaid", status="pending")
        stored_event(db_session, succeeded(booking, "pi_recent"), status="failed", minutes_old=1)
        stored_event(db_session, succeeded(booking, "pi_done"), status="processed")

        summary = redrive_stale_events(db_session, NotificationQueue(), older_than_minutes=15)

        assert summary["checked"] == 0
        assert db_session.query(Transaction).count() == 0

    def test_still_failing_event_is_counted(self, db_session):
        event = make_event(
            "payment_intent.succeeded",
            {"id": "pi_ghost", "amount": 100, "metadata": {"booking_id": "ghost"}},
            event_id="evt_ghost",
        )
        stored_event(db_session, event)

        summary = redrive_stale_events(db_session, NotificationQueue(), older_than_minutes=15)

        assert summary == {"checked": 1, "settled": 0, "failed": 1}

    def test_gives_up_after_max_attempts(self, db_session, make_booking):
        booking = make_booking(payment_status="unpaid", status="pending")
        stored_event(db_session, succeeded(booking, "pi_worn"), attempts=5)

        summary = redrive_stale_events(db_session, NotificationQueue(), older_than_minutes=15, max_attempts=5)

        assert summary["checked"] == 0
        assert db_session.query(Transaction).count() == 0

    def test_skips_malformed_events(self, db_session):
        event = make_event("payment_intent.succeeded", None, event_id="evt_no_object")
        stored_event(db_session, event, http_status=400)

        summary = redrive_stale_events(db_session, NotificationQueue(), older_than_minutes=15)

        assert summary["checked"] == 0


@pytest.mark.integration
def test_health(client):
    response = client.get("/health")
    assert response.status_code == 200
    assert response.json() == {"status": "healthy"}
