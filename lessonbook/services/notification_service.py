from __future__ import annotations

import logging
from datetime import datetime
from typing import Any

import httpx
from sqlalchemy import update
from sqlalchemy.exc import SQLAlchemyError

from ..config import get_settings
from ..core.constants import PRIVATE_LESSON_BOOKING_NOTIFICATION
from ..core.errors import ServiceError, TransactionConflict
from ..db import models
from ..db.store import TransactionalStore

logger = logging.getLogger(__name__)


def build_booking_message(booking: models.Booking) -> str:
    starts_at = datetime.combine(booking.date, booking.start_time)
    formatted = starts_at.strftime("%A, %B %d, %Y at %H:%M")
    return f"A new private lesson has been booked with instructor {booking.resource_id} on {formatted}"


def create_notification(
    store: TransactionalStore,
    *,
    provider_id: str,
    type: str,
    title: str,
    message: str,
    booking_id: int | None = None,
    account_id: str | None = None,
) -> models.Notification:
    def _create(session) -> models.Notification:
        notification = models.Notification(
            provider_id=provider_id,
            booking_id=booking_id,
            account_id=account_id,
            type=type,
            title=title,
            message=message,
            read=False,
        )
        session.add(notification)
        session.flush()
        return notification

    return store.run_in_transaction(_create)


def mark_booking_notifications_read(
    store: TransactionalStore, *, provider_id: str, booking_id: int
) -> int:
    def _mark(session) -> int:
        result = session.execute(
            update(models.Notification)
            .where(
                models.Notification.provider_id == provider_id,
                models.Notification.booking_id == booking_id,
                models.Notification.read.is_(False),
            )
            .values(read=True)
            .execution_options(synchronize_session=False)
        )
        return result.rowcount

    return store.run_in_transaction(_mark)


def dispatch_webhook(payload: dict[str, Any]) -> None:
    settings = get_settings()
    if not settings.notify_webhook_url:
        return
    with httpx.Client(timeout=10) as client:
        try:
            response = client.post(settings.notify_webhook_url, json=payload)
            response.raise_for_status()
        except (httpx.HTTPError, httpx.InvalidURL):
            logger.exception(
                "Failed to deliver notification webhook",
                extra={"notification_type": payload.get("type")},
            )


def notify_booking_requested(store: TransactionalStore, booking: models.Booking) -> None:
    """Tell the studio about a new request. Never fails the booking."""

    message = build_booking_message(booking)
    try:
        create_notification(
            store,
            provider_id=booking.provider_id,
            booking_id=booking.id,
            account_id=booking.owner_id,
            type=PRIVATE_LESSON_BOOKING_NOTIFICATION,
            title="New Private Lesson Booking",
            message=message,
        )
    except (ServiceError, TransactionConflict, SQLAlchemyError):
        logger.exception("Error creating notification", extra={"booking_id": booking.id})
        return
    dispatch_webhook(
        {
            "type": PRIVATE_LESSON_BOOKING_NOTIFICATION,
            "provider_id": booking.provider_id,
            "booking_id": booking.id,
            "message": message,
        }
    )


def notify_booking_confirmed(store: TransactionalStore, booking: models.Booking) -> None:
    try:
        mark_booking_notifications_read(
            store, provider_id=booking.provider_id, booking_id=booking.id
        )
    except (ServiceError, TransactionConflict, SQLAlchemyError):
        logger.exception("Error marking notification as read", extra={"booking_id": booking.id})
