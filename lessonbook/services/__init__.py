from . import (
    booking_service,
    credit_service,
    notification_service,
)
__all__ = [
    "booking_service",
    "credit_service",
    "notification_service",
]
