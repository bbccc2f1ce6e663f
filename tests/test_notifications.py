from datetime import date, time
import logging

import httpx
from sqlalchemy import select

from lessonbook.db import models
from lessonbook.services import booking_service, notification_service


def make_booking(store, clock):
    return booking_service.request_booking(
        store,
        resource_id="instructor-x",
        provider_id="studio-1",
        owner_id="student-1",
        slot=booking_service.TimeSlot.starting_at(date(2025, 6, 1), time(10, 0)),
        clock=clock,
    )


def test_booking_message_mentions_slot(store, clock):
    booking = make_booking(store, clock)
    message = notification_service.build_booking_message(booking)
    assert "instructor-x" in message
    assert "Sunday, June 01, 2025 at 10:00" in message


def test_requested_then_confirmed_marks_notification_read(store, clock, session_factory):
    booking = make_booking(store, clock)

    notification_service.notify_booking_requested(store, booking)

    with session_factory() as session:
        notification = session.execute(select(models.Notification)).scalar_one()
    assert notification.provider_id == "studio-1"
    assert notification.booking_id == booking.id
    assert notification.account_id == "student-1"
    assert notification.type == "private_lesson_booking"
    assert notification.read is False

    notification_service.notify_booking_confirmed(store, booking)

    with session_factory() as session:
        notification = session.execute(select(models.Notification)).scalar_one()
    assert notification.read is True


def test_notification_failure_does_not_raise(store, clock, monkeypatch, caplog):
    booking = make_booking(store, clock)

    def _fail(*_args, **_kwargs):
        raise notification_service.SQLAlchemyError("store down")

    monkeypatch.setattr(notification_service, "create_notification", _fail)
    monkeypatch.setattr(notification_service, "mark_booking_notifications_read", _fail)

    with caplog.at_level(logging.ERROR):
        notification_service.notify_booking_requested(store, booking)
        notification_service.notify_booking_confirmed(store, booking)

    assert "Error creating notification" in caplog.text
    assert "Error marking notification as read" in caplog.text


def test_webhook_is_posted_and_failures_are_logged(monkeypatch, caplog):
    monkeypatch.setenv("NOTIFY_WEBHOOK_URL", "https://hooks.example.com/studio")
    received = []

    def handler(request: httpx.Request) -> httpx.Response:
        received.append(request)
        return httpx.Response(500)

    real_client = httpx.Client
    monkeypatch.setattr(
        notification_service.httpx,
        "Client",
        lambda **kwargs: real_client(transport=httpx.MockTransport(handler), **kwargs),
    )

    with caplog.at_level(logging.ERROR):
        notification_service.dispatch_webhook({"type": "private_lesson_booking"})

    assert len(received) == 1
    assert received[0].url == "https://hooks.example.com/studio"
    assert "Failed to deliver notification webhook" in caplog.text


def test_malformed_webhook_url_does_not_fail_booking_notification(
    store, clock, session_factory, monkeypatch, caplog
):
    monkeypatch.setenv("NOTIFY_WEBHOOK_URL", "http://exa mple.com:abc/hook")
    booking = make_booking(store, clock)

    with caplog.at_level(logging.ERROR):
        notification_service.notify_booking_requested(store, booking)

    assert "Failed to deliver notification webhook" in caplog.text
    with session_factory() as session:
        notification = session.execute(select(models.Notification)).scalar_one()
    assert notification.booking_id == booking.id


def test_webhook_skipped_without_url(monkeypatch):
    monkeypatch.delenv("NOTIFY_WEBHOOK_URL", raising=False)

    def _unexpected(**_kwargs):
        raise AssertionError("webhook should not be called")

    monkeypatch.setattr(notification_service.httpx, "Client", _unexpected)
    notification_service.dispatch_webhook({"type": "private_lesson_booking"})
