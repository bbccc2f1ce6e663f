from .booking import Booking, BookingCreate
from .credit import (
    Balance,
    BatchDebit,
    ConsumeResult,
    CreditBatch,
    CreditConsume,
    CreditGrant,
    CreditRestore,
    ExpiryJobResult,
)
