from tutorbook.schemas.course import Course, CourseListResponse
from tutorbook.schemas.payment import (
    CreatedSession,
    PaymentIntentStatus,
    PaymentSetupRequest,
    PaymentSetupResult,
    WebhookResponse,
)
from tutorbook.schemas.scheduling import (
    BookedSession,
    BookingSlot,
    SlotsResponse,
    TimeRange,
    WeeklyAvailability,
)
from tutorbook.schemas.system import StatusResponse
from tutorbook.schemas.user import Student, Tutor

__all__ = [
    "BookedSession",
    "BookingSlot",
    "Course",
    "CourseListResponse",
    "CreatedSession",
    "PaymentIntentStatus",
    "PaymentSetupRequest",
    "PaymentSetupResult",
    "SlotsResponse",
    "StatusResponse",
    "Student",
    "TimeRange",
    "Tutor",
    "WebhookResponse",
    "WeeklyAvailability",
]
