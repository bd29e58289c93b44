from tutorbook.booking.flow import BookingFlow
from tutorbook.booking.rate_limiter import RateLimiter
from tutorbook.booking.states import (
    BookingState,
    Closed,
    Notice,
    Payment,
    Processing,
    SelectSlot,
    Step,
)

__all__ = [
    "BookingFlow",
    "BookingState",
    "Closed",
    "Notice",
    "Payment",
    "Processing",
    "RateLimiter",
    "SelectSlot",
    "Step",
]
