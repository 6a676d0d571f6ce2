"""Bookings domain schemas - Pydantic models for validation"""

from datetime import date, datetime
from typing import Literal, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

BookingStatus = Literal[
    "pending", "confirmed", "in-progress", "completed", "cancelled", "refunded"
]
PaymentStatus = Literal["unpaid", "paid", "failed", "refunded"]


class BookingResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    tenant_id: Optional[str] = None
    customer_id: str
    provider_id: Optional[str] = None
    service_name: Optional[str] = None
    address: Optional[str] = None
    booking_date: date
    booking_time: str
    duration_hours: Optional[float] = None
    total_amount: float
    status: str
    payment_status: str
    special_instructions: Optional[str] = None
    cancellation_reason: Optional[str] = None
    cancelled_at: Optional[datetime] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


class BookingUpdate(BaseModel):
    """Partial update; only fields present in the request body are applied"""

    status: Optional[BookingStatus] = None
    payment_status: Optional[PaymentStatus] = None
    provider_id: Optional[str] = None
    service_name: Optional[str] = None
    address: Optional[str] = None
    booking_date: Optional[date] = None
    booking_time: Optional[str] = Field(None, pattern=r"^([01]\d|2[0-3]):[0-5]\d$")
    duration_hours: Optional[float] = Field(None, gt=0)
    total_amount: Optional[float] = Field(None, ge=0)
    special_instructions: Optional[str] = None
    cancellation_reason: Optional[str] = None


class CancelBookingRequest(BaseModel):
    cancellation_reason: Optional[str] = None
    process_refund: bool = True

    @field_validator("cancellation_reason")
    @classmethod
    def strip_reason(cls, v: Optional[str]) -> Optional[str]:
        if v is None:
            return v
        return v.strip() or None


class BookingEnvelope(BaseModel):
    booking: BookingResponse
    message: Optional[str] = None


class CancellationResponse(BaseModel):
    booking: BookingResponse
    refundProcessed: bool
    message: str
