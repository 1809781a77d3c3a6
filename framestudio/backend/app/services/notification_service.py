from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime
from zoneinfo import ZoneInfo

import httpx

from ..config import get_settings
from ..db import models

logger = logging.getLogger(__name__)


@dataclass(slots=True)
class EmailNotification:
    to: str
    subject: str
    text: str


def _format_start(starts_at: datetime) -> str:
    settings = get_settings()
    local_dt = starts_at.astimezone(ZoneInfo(settings.timezone))
    return local_dt.strftime("%d.%m.%Y %H:%M")


def build_booking_confirmation(reservation: models.Reservation) -> EmailNotification:
    studio_class = reservation.studio_class
    class_name = studio_class.class_type.name if studio_class.class_type else "Class"
    greeting = reservation.user.first_name or "there"
    return EmailNotification(
        to=reservation.user.email,
        subject=f"Reservation confirmed: {class_name}",
        text=(
            f"Hi {greeting},\n\n"
            f"Your place in {class_name} on {_format_start(studio_class.starts_at)} is confirmed "
            f"({reservation.frame_size.value} frame).\n"
            f"Reservation code: {reservation.uuid}"
        ),
    )


def build_class_cancellation(
    *, email: str, class_name: str | None, starts_at: datetime, credit_restored: bool
) -> EmailNotification:
    label = class_name or "Class"
    text = f"{label} on {_format_start(starts_at)} has been cancelled."
    if credit_restored:
        text += " The credit has been returned to your package."
    return EmailNotification(to=email, subject=f"Class cancelled: {label}", text=text)


def send_emails(notifications: list[EmailNotification]) -> None:
    """Deliver notifications through the email API. Never raises."""

    if not notifications:
        return

    settings = get_settings()
    if not settings.email_api_url:
        logger.warning("Email API is not configured; skipping %d notifications", len(notifications))
        return

    headers = {"Authorization": f"Bearer {settings.email_api_key}"} if settings.email_api_key else {}
    with httpx.Client(timeout=10, headers=headers) as client:
        for notification in notifications:
            try:
                response = client.post(
                    settings.email_api_url,
                    json={
                        "from": settings.email_from,
                        "to": [notification.to],
                        "subject": notification.subject,
                        "text": notification.text,
                    },
                )
                response.raise_for_status()
            except httpx.HTTPError:
                logger.exception(
                    "Failed to send email notification",
                    extra={"to": notification.to, "subject": notification.subject},
                )


__all__ = [
    "EmailNotification",
    "build_booking_confirmation",
    "build_class_cancellation",
    "send_emails",
]
