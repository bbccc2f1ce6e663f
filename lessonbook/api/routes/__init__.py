from . import (
    bookings,
    credits,
    jobs,
    misc,
)

__all__ = [
    "bookings",
    "credits",
    "jobs",
    "misc",
]
