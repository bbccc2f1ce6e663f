"""
Error taxonomy shared by the booking engine and the credit ledger.
Every error carries the HTTP status the API answers with, so routes stay thin.
"""
from __future__ import annotations

from fastapi import HTTPException


class ServiceError(Exception):
    status_code: int = 400
    default_message = "Request failed"

    def __init__(self, message: str | None = None) -> None:
        super().__init__(message or self.default_message)


class ValidationError(ServiceError):
    status_code = 422
    default_message = "Invalid request"


class NotFound(ServiceError):
    status_code = 404
    default_message = "Not found"


class AccessDenied(ServiceError):
    status_code = 403
    default_message = "Access denied"


class SlotConflict(ServiceError):
    status_code = 409
    default_message = "Time slot is already booked"


class InvalidState(ServiceError):
    status_code = 409
    default_message = "Invalid state transition"


class AlreadyConfirmed(InvalidState):
    default_message = "Booking is already confirmed"


class AlreadyCancelled(InvalidState):
    default_message = "Booking is already cancelled"


class InsufficientCredits(ServiceError):
    status_code = 402
    default_message = "No available credits"


class StoreUnavailable(ServiceError):
    status_code = 503
    default_message = "Store is temporarily unavailable"


class TransactionConflict(Exception):
    """Raised by the store once write-conflict retries are exhausted."""


def to_http(exc: ServiceError) -> HTTPException:
    return HTTPException(status_code=exc.status_code, detail=str(exc))


__all__ = [
    "ServiceError",
    "ValidationError",
    "NotFound",
    "AccessDenied",
    "SlotConflict",
    "InvalidState",
    "AlreadyConfirmed",
    "AlreadyCancelled",
    "InsufficientCredits",
    "StoreUnavailable",
    "TransactionConflict",
    "to_http",
]
