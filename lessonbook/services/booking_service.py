from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import date, datetime, time, timedelta
from typing import Any, Callable

from sqlalchemy import select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session
from sqlalchemy.orm.exc import StaleDataError

from ..config import get_settings
from ..core.clock import Clock, local_today, system_clock
from ..core.constants import DEFAULT_SLOT_DURATION
from ..core.errors import (
    AccessDenied,
    AlreadyCancelled,
    AlreadyConfirmed,
    InvalidState,
    NotFound,
    SlotConflict,
    StoreUnavailable,
    TransactionConflict,
    ValidationError,
)
from ..db import models
from ..db.models.booking import ACTIVE_BOOKING_STATUSES, BookingStatus
from ..db.store import TransactionalStore

logger = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class TimeSlot:
    date: date
    start_time: time
    end_time: time

    def __post_init__(self) -> None:
        if self.end_time <= self.start_time:
            raise ValidationError("Slot end time must be after its start time")

    @classmethod
    def starting_at(
        cls, day: date, start_time: time, duration: timedelta = DEFAULT_SLOT_DURATION
    ) -> "TimeSlot":
        ends_at = datetime.combine(day, start_time) + duration
        if ends_at.date() != day:
            raise ValidationError("Slot must end on the day it starts")
        return cls(day, start_time, ends_at.time())


def default_slot_duration() -> timedelta:
    return timedelta(minutes=get_settings().slot_duration_min)


def _active_booking(resource_id: str, slot: TimeSlot):
    return (
        select(models.Booking)
        .where(
            models.Booking.resource_id == resource_id,
            models.Booking.date == slot.date,
            models.Booking.start_time == slot.start_time,
            models.Booking.status.in_(ACTIVE_BOOKING_STATUSES),
        )
        .limit(1)
    )


def is_slot_available(store: TransactionalStore, resource_id: str, slot: TimeSlot) -> bool:
    existing = store.read(
        lambda session: session.execute(_active_booking(resource_id, slot)).scalar_one_or_none()
    )
    return existing is None


def request_booking(
    store: TransactionalStore,
    *,
    resource_id: str,
    provider_id: str,
    owner_id: str,
    slot: TimeSlot,
    notes: str | None = None,
    contact_info: dict[str, Any] | None = None,
    clock: Clock = system_clock,
) -> models.Booking:
    if slot.date < local_today(clock, get_settings().timezone):
        raise ValidationError("Slot date is in the past")
    # Cheap rejection before paying for a transaction
    if not is_slot_available(store, resource_id, slot):
        raise SlotConflict()
    now = clock.now()

    def _reserve(session: Session) -> models.Booking:
        if session.execute(_active_booking(resource_id, slot)).scalar_one_or_none() is not None:
            raise SlotConflict()
        booking = models.Booking(
            resource_id=resource_id,
            owner_id=owner_id,
            provider_id=provider_id,
            date=slot.date,
            start_time=slot.start_time,
            end_time=slot.end_time,
            status=BookingStatus.pending,
            notes=notes,
            contact_info=contact_info,
            created_at=now,
            updated_at=now,
        )
        session.add(booking)
        try:
            session.flush()
        except IntegrityError as exc:
            # uq_booking_active_slot: a concurrent writer got there first
            raise SlotConflict() from exc
        return booking

    try:
        booking = store.run_in_transaction(_reserve)
    except TransactionConflict as exc:
        raise SlotConflict() from exc
    logger.info(
        "Booking requested",
        extra={"booking_id": booking.id, "resource_id": resource_id, "owner_id": owner_id},
    )
    return booking


def _ensure_transition(booking: models.Booking, target: BookingStatus) -> None:
    if booking.can_transition(target):
        return
    if target == BookingStatus.confirmed:
        if booking.status == BookingStatus.confirmed:
            raise AlreadyConfirmed()
        raise InvalidState("Cannot confirm a cancelled booking")
    if target == BookingStatus.cancelled:
        raise AlreadyCancelled()
    raise InvalidState()


def _swap_status(
    session: Session, booking: models.Booking, target: BookingStatus, now: datetime
) -> None:
    result = session.execute(
        update(models.Booking)
        .where(models.Booking.id == booking.id, models.Booking.status == booking.status)
        .values(status=target, updated_at=now, version=models.Booking.version + 1)
        .execution_options(synchronize_session=False)
    )
    if result.rowcount == 0:
        # Another transition won; rerun so the caller sees the winning state
        raise StaleDataError(f"Booking {booking.id} changed concurrently")
    session.refresh(booking)


def _change_status(
    store: TransactionalStore, fn: Callable[[Session], models.Booking]
) -> models.Booking:
    try:
        return store.run_in_transaction(fn)
    except TransactionConflict as exc:
        raise StoreUnavailable() from exc


def confirm_booking(
    store: TransactionalStore,
    booking_id: int,
    provider_id: str,
    *,
    clock: Clock = system_clock,
) -> models.Booking:
    now = clock.now()

    def _confirm(session: Session) -> models.Booking:
        booking = session.get(models.Booking, booking_id)
        if booking is None:
            raise NotFound("Booking not found")
        if booking.provider_id != provider_id:
            raise AccessDenied("Access denied: Booking does not belong to this studio")
        _ensure_transition(booking, BookingStatus.confirmed)
        _swap_status(session, booking, BookingStatus.confirmed, now)
        return booking

    booking = _change_status(store, _confirm)
    logger.info("Booking confirmed", extra={"booking_id": booking_id, "provider_id": provider_id})
    return booking


def cancel_booking(
    store: TransactionalStore,
    booking_id: int,
    owner_id: str,
    *,
    clock: Clock = system_clock,
) -> models.Booking:
    now = clock.now()

    def _cancel(session: Session) -> models.Booking:
        booking = session.get(models.Booking, booking_id)
        if booking is None:
            raise NotFound("Booking not found")
        if booking.owner_id != owner_id:
            raise AccessDenied("Access denied: You can only cancel your own bookings")
        _ensure_transition(booking, BookingStatus.cancelled)
        _swap_status(session, booking, BookingStatus.cancelled, now)
        return booking

    booking = _change_status(store, _cancel)
    logger.info("Booking cancelled", extra={"booking_id": booking_id, "owner_id": owner_id})
    return booking


def list_by_resource(
    store: TransactionalStore, resource_id: str, start_date: date, end_date: date
) -> list[models.Booking]:
    if start_date > end_date:
        raise ValidationError("start_date must not be after end_date")

    def _list(session: Session) -> list[models.Booking]:
        return list(
            session.execute(
                select(models.Booking)
                .where(
                    models.Booking.resource_id == resource_id,
                    models.Booking.date >= start_date,
                    models.Booking.date <= end_date,
                    models.Booking.status.in_(ACTIVE_BOOKING_STATUSES),
                )
                .order_by(models.Booking.date, models.Booking.start_time)
            )
            .scalars()
            .all()
        )

    return store.read(_list)


def list_by_owner(store: TransactionalStore, owner_id: str) -> list[models.Booking]:
    def _list(session: Session) -> list[models.Booking]:
        return list(
            session.execute(
                select(models.Booking)
                .where(models.Booking.owner_id == owner_id)
                .order_by(models.Booking.date.desc(), models.Booking.start_time.desc())
            )
            .scalars()
            .all()
        )

    return store.read(_list)


def _load(store: TransactionalStore, booking_id: int) -> models.Booking:
    booking = store.read(lambda session: session.get(models.Booking, booking_id))
    if booking is None:
        raise NotFound("Booking not found")
    return booking


def get_booking(store: TransactionalStore, booking_id: int, *, owner_id: str) -> models.Booking:
    booking = _load(store, booking_id)
    if booking.owner_id != owner_id:
        raise AccessDenied("You can only view your own bookings")
    return booking


def get_booking_for_provider(
    store: TransactionalStore, booking_id: int, *, provider_id: str
) -> models.Booking:
    booking = _load(store, booking_id)
    if booking.provider_id != provider_id:
        raise AccessDenied("Access denied: Booking does not belong to this studio")
    return booking
