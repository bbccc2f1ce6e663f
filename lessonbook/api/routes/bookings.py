from datetime import date

from fastapi import APIRouter, status
from ...api.deps import ClockDep, IdentityDep, StoreDep
from ...core.errors import ServiceError, to_http
from ...db import schemas
from ...services import booking_service, notification_service

router = APIRouter(prefix="/bookings", tags=["bookings"])


@router.post("", response_model=schemas.Booking, status_code=status.HTTP_201_CREATED)
def create_booking(
    payload: schemas.BookingCreate,
    store: StoreDep,
    clock: ClockDep,
    identity: IdentityDep,
):
    try:
        if payload.end_time is None:
            slot = booking_service.TimeSlot.starting_at(
                payload.date, payload.start_time, booking_service.default_slot_duration()
            )
        else:
            slot = booking_service.TimeSlot(payload.date, payload.start_time, payload.end_time)
        booking = booking_service.request_booking(
            store,
            resource_id=payload.resource_id,
            provider_id=payload.provider_id,
            owner_id=identity.account_id,
            slot=slot,
            notes=payload.notes,
            contact_info=payload.contact_info,
            clock=clock,
        )
    except ServiceError as exc:
        raise to_http(exc) from exc
    notification_service.notify_booking_requested(store, booking)
    return booking


@router.get("/mine", response_model=list[schemas.Booking])
def my_bookings(store: StoreDep, identity: IdentityDep):
    try:
        return booking_service.list_by_owner(store, identity.account_id)
    except ServiceError as exc:
        raise to_http(exc) from exc


@router.get("/resource/{resource_id}", response_model=list[schemas.Booking])
def resource_bookings(
    resource_id: str,
    start_date: date,
    end_date: date,
    store: StoreDep,
):
    try:
        return booking_service.list_by_resource(store, resource_id, start_date, end_date)
    except ServiceError as exc:
        raise to_http(exc) from exc


@router.get("/{booking_id}", response_model=schemas.Booking)
def get_booking(booking_id: int, store: StoreDep, identity: IdentityDep):
    try:
        return booking_service.get_booking(store, booking_id, owner_id=identity.account_id)
    except ServiceError as exc:
        raise to_http(exc) from exc


@router.get("/{booking_id}/provider", response_model=schemas.Booking)
def get_booking_for_provider(booking_id: int, store: StoreDep, identity: IdentityDep):
    try:
        return booking_service.get_booking_for_provider(
            store, booking_id, provider_id=identity.account_id
        )
    except ServiceError as exc:
        raise to_http(exc) from exc


@router.post("/{booking_id}/confirm", response_model=schemas.Booking)
def confirm_booking(booking_id: int, store: StoreDep, clock: ClockDep, identity: IdentityDep):
    try:
        booking = booking_service.confirm_booking(
            store, booking_id, identity.account_id, clock=clock
        )
    except ServiceError as exc:
        raise to_http(exc) from exc
    notification_service.notify_booking_confirmed(store, booking)
    return booking


@router.post("/{booking_id}/cancel", response_model=schemas.Booking)
def cancel_booking(booking_id: int, store: StoreDep, clock: ClockDep, identity: IdentityDep):
    try:
        return booking_service.cancel_booking(store, booking_id, identity.account_id, clock=clock)
    except ServiceError as exc:
        raise to_http(exc) from exc
