"""Booking notifications collected while a request runs and sent once its writes commit"""

import logging

from fastapi import BackgroundTasks

from .email_service import dispatch_booking_email

logger = logging.getLogger(__name__)

# Booking status → booking email template
STATUS_EMAIL_TEMPLATES = {
    "confirmed": "confirmed",
    "in-progress": "inProgress",
    "completed": "completed",
    "cancelled": "cancelled",
    "refunded": "refunded",
}


class NotificationQueue:
    def __init__(self):
        self.pending: list[tuple[str, str]] = []

    def booking_email(self, booking_id: str, template_key: str) -> None:
        if (booking_id, template_key) not in self.pending:
            self.pending.append((booking_id, template_key))

    def status_change(self, booking_id: str, old_status: str, new_status: str) -> None:
        """Queue the email mapped to new_status, only when the status actually changed"""
        if old_status == new_status:
            return
        template_key = STATUS_EMAIL_TEMPLATES.get(new_status)
        if template_key:
            self.booking_email(booking_id, template_key)

    def clear(self) -> None:
        self.pending.clear()

    def flush(self, background_tasks: BackgroundTasks) -> None:
        """Hand queued emails to FastAPI background tasks; they run after the response is sent"""
        for booking_id, template_key in self.pending:
            background_tasks.add_task(dispatch_booking_email, booking_id, template_key)
        if self.pending:
            logger.info(f"📧 Queued {len(self.pending)} booking email(s)")
        self.pending = []

    async def send_now(self) -> None:
        """Used outside a request (worker): await each detached send in turn"""
        for booking_id, template_key in self.pending:
            await dispatch_booking_email(booking_id, template_key)
        self.pending = []
