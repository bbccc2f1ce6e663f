from .booking import ALLOWED_BOOKING_TRANSITIONS, ACTIVE_BOOKING_STATUSES, Booking, BookingStatus
from .credit_batch import ALLOWED_BATCH_TRANSITIONS, CreditBatch, CreditBatchStatus
from .notification import Notification
