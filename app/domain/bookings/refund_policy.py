"""Refund entitlement for a customer cancellation"""

from dataclasses import dataclass
from datetime import date, datetime, time
from decimal import ROUND_HALF_UP, Decimal
from typing import Optional

from ...config import FULL_REFUND_WINDOW_HOURS, LATE_CANCELLATION_REFUND_PERCENT
from ..billing.ledger import major_to_minor


@dataclass(frozen=True)
class RefundDecision:
    percent: int
    amount_minor: int
    hours_until_service: float

    @property
    def is_full(self) -> bool:
        return self.percent >= 100


def scheduled_datetime(booking_date: date, booking_time: str) -> datetime:
    """Bookings store a date and an "HH:MM" start time, both in UTC"""
    hours, minutes = (int(part) for part in booking_time.split(":")[:2])
    return datetime.combine(booking_date, time(hours, minutes))


def compute_refund(
    paid_amount,
    scheduled_at: datetime,
    now: Optional[datetime] = None,
    full_window_hours: float = FULL_REFUND_WINDOW_HOURS,
    late_percent: int = LATE_CANCELLATION_REFUND_PERCENT,
) -> RefundDecision:
    """
    Full refund when cancelling at least full_window_hours before the service
    starts, late_percent of the paid amount otherwise (including after the
    start time). Amounts are returned in minor units, rounded half up.
    """
    now = now or datetime.utcnow()
    hours_until = (scheduled_at - now).total_seconds() / 3600
    percent = 100 if hours_until >= full_window_hours else late_percent

    paid_minor = major_to_minor(paid_amount)
    amount_minor = int(
        (Decimal(paid_minor) * percent / 100).quantize(Decimal("1"), rounding=ROUND_HALF_UP)
    )
    return RefundDecision(percent=percent, amount_minor=amount_minor, hours_until_service=hours_until)
