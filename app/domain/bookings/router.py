"""Bookings router - FastAPI endpoints for booking operations"""

import asyncio
import logging
from typing import Optional

from fastapi import APIRouter, BackgroundTasks, Body, Depends

from ...auth import AuthContext, get_auth_context
from ...notifications import NotificationQueue
from .schemas import (
    BookingEnvelope,
    BookingResponse,
    BookingUpdate,
    CancelBookingRequest,
    CancellationResponse,
)
from .service import BookingService

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/bookings", tags=["Bookings"])


@router.get("/{booking_id}", response_model=BookingEnvelope)
async def get_booking(booking_id: str, ctx: AuthContext = Depends(get_auth_context)):
    """Get a booking visible to the caller"""
    booking = BookingService(ctx.db).get_booking(booking_id, ctx)
    return {"booking": BookingResponse.model_validate(booking)}


@router.patch("/{booking_id}", response_model=BookingEnvelope)
async def update_booking(
    booking_id: str,
    data: BookingUpdate,
    background_tasks: BackgroundTasks,
    ctx: AuthContext = Depends(get_auth_context),
):
    """
    Partially update a booking.

    Customers may only cancel, assigned providers may only start or complete
    the job, admins may change anything. Status changes trigger an email.
    """
    notifications = NotificationQueue()
    booking = BookingService(ctx.db, notifications=notifications).update_booking(
        booking_id, data, ctx
    )
    notifications.flush(background_tasks)
    return {"booking": BookingResponse.model_validate(booking), "message": "Booking updated"}


@router.delete("/{booking_id}", response_model=CancellationResponse)
async def cancel_booking(
    booking_id: str,
    background_tasks: BackgroundTasks,
    data: Optional[CancelBookingRequest] = Body(None),
    ctx: AuthContext = Depends(get_auth_context),
):
    """Cancel a booking, refunding the customer when it was paid"""
    notifications = NotificationQueue()
    service = BookingService(ctx.db, notifications=notifications)
    # The Stripe refund is a blocking HTTP call
    outcome = await asyncio.to_thread(
        service.cancel_booking, booking_id, data or CancelBookingRequest(), ctx
    )
    notifications.flush(background_tasks)
    return {
        "booking": BookingResponse.model_validate(outcome.booking),
        "refundProcessed": outcome.refund_processed,
        "message": outcome.message,
    }
