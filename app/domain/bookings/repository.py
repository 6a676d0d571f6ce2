"""Booking repository - Database operations for bookings"""

from typing import Optional

from sqlalchemy.orm import Session

from ...models import Booking


class BookingRepository:
    """Repository for booking database operations"""

    @staticmethod
    def get(db: Session, booking_id: str) -> Optional[Booking]:
        return db.query(Booking).filter(Booking.id == booking_id).first()

    @staticmethod
    def get_for_tenant(db: Session, booking_id: str, tenant_id: str) -> Booking:
        """Single-row fetch; raises NoResultFound when the booking is not in this tenant"""
        return (
            db.query(Booking)
            .filter(Booking.id == booking_id, Booking.tenant_id == tenant_id)
            .one()
        )

    @staticmethod
    def update_fields(db: Session, booking_id: str, **fields) -> int:
        """Update columns without loading the row; returns rows matched. Does not commit."""
        return (
            db.query(Booking)
            .filter(Booking.id == booking_id)
            .update(fields, synchronize_session="fetch")
        )
