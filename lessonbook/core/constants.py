"""Common application-wide constants."""

from datetime import timedelta

# Length of one private-lesson slot when the caller gives no end time
DEFAULT_SLOT_DURATION = timedelta(minutes=60)

# Notification types raised by the booking workflow
PRIVATE_LESSON_BOOKING_NOTIFICATION = "private_lesson_booking"


__all__ = [
    "DEFAULT_SLOT_DURATION",
    "PRIVATE_LESSON_BOOKING_NOTIFICATION",
]
