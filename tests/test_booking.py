from concurrent.futures import ThreadPoolExecutor
from datetime import date, time, timedelta

import pytest
from sqlalchemy import select

from lessonbook.core.errors import (
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
from lessonbook.db import models
from lessonbook.services import booking_service
from lessonbook.services.booking_service import TimeSlot

SLOT_DAY = date(2025, 6, 1)


def ten_oclock(day=SLOT_DAY):
    return TimeSlot.starting_at(day, time(10, 0))


def book(store, clock, slot=None, resource_id="instructor-x", owner_id="student-1", **kwargs):
    return booking_service.request_booking(
        store,
        resource_id=resource_id,
        provider_id=kwargs.pop("provider_id", "studio-1"),
        owner_id=owner_id,
        slot=slot or ten_oclock(),
        clock=clock,
        **kwargs,
    )


def test_time_slot_rejects_end_before_start():
    with pytest.raises(ValidationError):
        TimeSlot(SLOT_DAY, time(10, 0), time(10, 0))
    with pytest.raises(ValidationError):
        TimeSlot(SLOT_DAY, time(11, 0), time(10, 0))


def test_time_slot_default_and_custom_duration():
    assert ten_oclock().end_time == time(11, 0)
    slot = TimeSlot.starting_at(SLOT_DAY, time(10, 0), timedelta(minutes=45))
    assert slot.end_time == time(10, 45)
    with pytest.raises(ValidationError):
        TimeSlot.starting_at(SLOT_DAY, time(23, 30))


def test_request_booking_creates_pending_booking(store, clock):
    booking = book(store, clock, notes="First lesson", contact_info={"phone": "+100"})

    assert booking.id is not None
    assert booking.status == models.BookingStatus.pending
    assert booking.resource_id == "instructor-x"
    assert booking.owner_id == "student-1"
    assert booking.provider_id == "studio-1"
    assert booking.start_time == time(10, 0)
    assert booking.end_time == time(11, 0)
    assert booking.notes == "First lesson"
    assert booking.contact_info == {"phone": "+100"}


def test_request_booking_rejects_past_dates(store, clock):
    yesterday = (clock.now() - timedelta(days=1)).date()
    with pytest.raises(ValidationError):
        book(store, clock, slot=ten_oclock(yesterday))


def test_second_request_for_same_slot_conflicts(store, clock):
    book(store, clock)
    with pytest.raises(SlotConflict):
        book(store, clock, owner_id="student-2")


def test_other_start_times_and_resources_are_independent(store, clock):
    book(store, clock)
    book(store, clock, slot=TimeSlot.starting_at(SLOT_DAY, time(11, 0)))
    book(store, clock, resource_id="instructor-y")


def test_recheck_inside_transaction_catches_race(store, clock, monkeypatch):
    book(store, clock)
    # Simulate a competitor committing between the pre-check and the transaction
    monkeypatch.setattr(booking_service, "is_slot_available", lambda *_args: True)

    with pytest.raises(SlotConflict):
        book(store, clock, owner_id="student-2")


def test_unique_index_backstops_slot_exclusivity(store, clock, monkeypatch, session_factory):
    book(store, clock)
    real_query = booking_service._active_booking
    monkeypatch.setattr(
        booking_service,
        "_active_booking",
        lambda resource_id, slot: real_query("nobody", slot),
    )

    with pytest.raises(SlotConflict):
        book(store, clock, owner_id="student-2")

    with session_factory() as session:
        assert len(session.execute(select(models.Booking)).scalars().all()) == 1


class BusyStore:
    """Store whose writers always lose the conflict race."""

    def read(self, fn):
        return None

    def run_in_transaction(self, fn):
        raise TransactionConflict("busy")


def test_exhausted_transaction_retries_report_slot_conflict(clock):
    with pytest.raises(SlotConflict):
        book(BusyStore(), clock)


def test_exhausted_status_change_retries_report_store_unavailable(clock):
    with pytest.raises(StoreUnavailable):
        booking_service.confirm_booking(BusyStore(), 1, "studio-1", clock=clock)
    with pytest.raises(StoreUnavailable):
        booking_service.cancel_booking(BusyStore(), 1, "student-1", clock=clock)


def test_concurrent_requests_yield_single_booking(store, clock, session_factory):
    attempts = 8

    def _attempt(n):
        try:
            return book(store, clock, owner_id=f"student-{n}")
        except SlotConflict as exc:
            return exc

    with ThreadPoolExecutor(max_workers=attempts) as pool:
        results = list(pool.map(_attempt, range(attempts)))

    bookings = [r for r in results if isinstance(r, models.Booking)]
    conflicts = [r for r in results if isinstance(r, SlotConflict)]
    assert len(bookings) == 1
    assert len(conflicts) == attempts - 1
    assert bookings[0].status == models.BookingStatus.pending

    with session_factory() as session:
        stored = session.execute(select(models.Booking)).scalars().all()
    assert len(stored) == 1


def test_confirm_booking(store, clock):
    booking = book(store, clock)
    confirmed = booking_service.confirm_booking(store, booking.id, "studio-1", clock=clock)
    assert confirmed.status == models.BookingStatus.confirmed

    with pytest.raises(AlreadyConfirmed):
        booking_service.confirm_booking(store, booking.id, "studio-1", clock=clock)


def test_confirm_booking_errors(store, clock):
    booking = book(store, clock)

    with pytest.raises(NotFound):
        booking_service.confirm_booking(store, booking.id + 100, "studio-1", clock=clock)
    with pytest.raises(AccessDenied):
        booking_service.confirm_booking(store, booking.id, "studio-2", clock=clock)

    booking_service.cancel_booking(store, booking.id, "student-1", clock=clock)
    with pytest.raises(InvalidState) as excinfo:
        booking_service.confirm_booking(store, booking.id, "studio-1", clock=clock)
    assert not isinstance(excinfo.value, AlreadyConfirmed)


def test_concurrent_confirms_succeed_once(store, clock):
    booking = book(store, clock)
    attempts = 6

    def _attempt(_):
        try:
            return booking_service.confirm_booking(store, booking.id, "studio-1", clock=clock)
        except AlreadyConfirmed as exc:
            return exc

    with ThreadPoolExecutor(max_workers=attempts) as pool:
        results = list(pool.map(_attempt, range(attempts)))

    assert sum(isinstance(r, models.Booking) for r in results) == 1
    assert sum(isinstance(r, AlreadyConfirmed) for r in results) == attempts - 1


def test_cancel_booking(store, clock):
    booking = book(store, clock)

    with pytest.raises(AccessDenied):
        booking_service.cancel_booking(store, booking.id, "student-2", clock=clock)

    cancelled = booking_service.cancel_booking(store, booking.id, "student-1", clock=clock)
    assert cancelled.status == models.BookingStatus.cancelled

    with pytest.raises(AlreadyCancelled):
        booking_service.cancel_booking(store, booking.id, "student-1", clock=clock)
    with pytest.raises(NotFound):
        booking_service.cancel_booking(store, booking.id + 100, "student-1", clock=clock)


def test_confirmed_booking_can_be_cancelled_and_slot_rebooked(store, clock):
    booking = book(store, clock)
    booking_service.confirm_booking(store, booking.id, "studio-1", clock=clock)

    cancelled = booking_service.cancel_booking(store, booking.id, "student-1", clock=clock)
    assert cancelled.status == models.BookingStatus.cancelled

    rebooked = book(store, clock, owner_id="student-2")
    assert rebooked.id != booking.id
    assert rebooked.status == models.BookingStatus.pending


def test_list_by_resource_filters_and_orders(store, clock):
    later = book(store, clock, slot=TimeSlot.starting_at(SLOT_DAY, time(15, 0)))
    earlier = book(store, clock, slot=TimeSlot.starting_at(SLOT_DAY, time(9, 0)))
    next_day = book(store, clock, slot=ten_oclock(SLOT_DAY + timedelta(days=1)))
    cancelled = book(store, clock, slot=TimeSlot.starting_at(SLOT_DAY, time(12, 0)))
    booking_service.cancel_booking(store, cancelled.id, "student-1", clock=clock)
    book(store, clock, slot=ten_oclock(SLOT_DAY + timedelta(days=5)))
    book(store, clock, resource_id="instructor-y")

    listed = booking_service.list_by_resource(
        store, "instructor-x", SLOT_DAY, SLOT_DAY + timedelta(days=1)
    )

    assert [b.id for b in listed] == [earlier.id, later.id, next_day.id]


def test_list_by_resource_rejects_inverted_range(store):
    with pytest.raises(ValidationError):
        booking_service.list_by_resource(
            store, "instructor-x", SLOT_DAY, SLOT_DAY - timedelta(days=1)
        )


def test_list_by_owner_newest_first(store, clock):
    first = book(store, clock)
    second = book(store, clock, slot=ten_oclock(SLOT_DAY + timedelta(days=2)))
    booking_service.cancel_booking(store, first.id, "student-1", clock=clock)
    book(store, clock, slot=TimeSlot.starting_at(SLOT_DAY, time(12, 0)), owner_id="student-2")

    listed = booking_service.list_by_owner(store, "student-1")

    assert [b.id for b in listed] == [second.id, first.id]


def test_get_booking_checks_ownership(store, clock):
    booking = book(store, clock)

    assert booking_service.get_booking(store, booking.id, owner_id="student-1").id == booking.id
    with pytest.raises(AccessDenied):
        booking_service.get_booking(store, booking.id, owner_id="student-2")
    assert (
        booking_service.get_booking_for_provider(store, booking.id, provider_id="studio-1").id
        == booking.id
    )
    with pytest.raises(AccessDenied):
        booking_service.get_booking_for_provider(store, booking.id, provider_id="studio-2")
    with pytest.raises(NotFound):
        booking_service.get_booking(store, booking.id + 1, owner_id="student-1")
