import pytest

from app.domain.billing import dispatcher
from app.domain.billing.dispatcher import EVENT_HANDLERS, dispatch_event
from app.models import Booking
from app.notifications import NotificationQueue
from conftest import make_event


@pytest.mark.unit
class TestDispatchEvent:
    def test_routes_every_known_type(self):
        assert set(EVENT_HANDLERS) == {
            "payment_intent.succeeded",
            "payment_intent.payment_failed",
            "charge.refunded",
            "account.updated",
            "payout.paid",
            "payout.failed",
            "payout.canceled",
        }

    def test_unknown_type_is_ignored(self, db_session):
        result = dispatch_event(db_session, make_event("customer.created", {"id": "cus_1"}), NotificationQueue())
        assert result.ok
        assert result.status == "ignored"

    @pytest.mark.parametrize("event_type", ["payout.paid", "payout.failed", "payout.canceled"])
    def test_payout_events_are_processed_noops(self, db_session, event_type):
        result = dispatch_event(db_session, make_event(event_type, {"id": "po_1"}), NotificationQueue())
        assert result.ok
        assert result.status == "processed"

    def test_missing_data_object_is_payload_failure(self, db_session):
        event = {"id": "evt_x", "type": "charge.refunded", "data": {}}
        result = dispatch_event(db_session, event, NotificationQueue())
        assert not result.ok
        assert result.http_status == 400

    def test_handler_error_rolls_back_and_clears_notifications(self, db_session, make_booking, monkeypatch):
        booking = make_booking(payment_status="unpaid")
        booking_id = booking.id

        def exploding_handler(db, obj, notifications):
            db.query(Booking).filter(Booking.id == booking_id).update({"payment_status": "paid"})
            notifications.booking_email(booking_id, "confirmation")
            raise RuntimeError("database went away")

        monkeypatch.setitem(dispatcher.EVENT_HANDLERS, "payment_intent.succeeded", exploding_handler)
        notifications = NotificationQueue()

        result = dispatch_event(db_session, make_event("payment_intent.succeeded", {"id": "pi_1"}), notifications)

        assert not result.ok
        assert result.kind == "processing"
        assert result.http_status == 500
        assert notifications.pending == []
        db_session.expire_all()
        assert db_session.get(Booking, booking_id).payment_status == "unpaid"
