"""Collaborator contracts consumed by the booking core.

The core only ever talks to these interfaces. `BackendClient` implements them
against the managed backend; tests substitute in-memory fakes.
"""

from abc import ABC, abstractmethod
from datetime import date, datetime
from typing import Any

from tutorbook.schemas.course import Course
from tutorbook.schemas.payment import (
    CreatedSession,
    PaymentIntentStatus,
    PaymentSetupRequest,
    PaymentSetupResult,
)
from tutorbook.schemas.scheduling import BookedSession, WeeklyAvailability


class AvailabilitySource(ABC):
    """Read (and replace) tutor availability settings and booked sessions."""

    @abstractmethod
    async def get_tutor_availability(self, tutor_id: str) -> WeeklyAvailability | None:
        """Return the tutor's weekly availability, or None if never configured."""
        ...

    @abstractmethod
    async def get_tutor_booked_sessions(
        self, tutor_id: str, range_start: date, range_end: date
    ) -> list[BookedSession]:
        """Return non-cancelled sessions starting in [range_start, range_end)."""
        ...

    @abstractmethod
    async def save_tutor_availability(
        self, tutor_id: str, availability: WeeklyAvailability
    ) -> WeeklyAvailability:
        ...


class SessionRepository(ABC):
    @abstractmethod
    async def create_session(
        self,
        student_id: str,
        tutor_id: str,
        start_time: datetime,
        end_time: datetime,
    ) -> CreatedSession:
        """Reserve a tentative session.

        Raises:
            SessionConflictError: If the interval was taken in the meantime.
            SessionCreationError: On any other persistence failure.
        """
        ...


class PaymentGateway(ABC):
    @abstractmethod
    async def setup_payment(self, request: PaymentSetupRequest) -> PaymentSetupResult:
        """Create (or re-create) the payment intent for a session."""
        ...

    @abstractmethod
    async def retrieve_payment_intent(self, payment_intent_id: str) -> PaymentIntentStatus:
        """Fetch an intent's current status, secret and amount.

        Raises:
            PaymentRateLimitedError: If the processor is throttling requests.
            PaymentSetupError: On any other failure.
        """
        ...


class CourseSource(ABC):
    @abstractmethod
    async def get_term_courses(self, term: str) -> list[Course]:
        """Return every course offered in `term` (empty for a blank term)."""
        ...


class PaymentLedger(ABC):
    """Payment transaction, notification and session-status rows."""

    @abstractmethod
    async def create_payment_transaction(
        self, session_id: str, student_id: str, tutor_id: str, amount: float
    ) -> str:
        """Insert a pending transaction and return its id."""
        ...

    @abstractmethod
    async def find_session_transaction(self, session_id: str) -> dict[str, Any] | None:
        """Return the latest transaction row for a session, if any."""
        ...

    @abstractmethod
    async def attach_payment_intent(self, transaction_id: str, payment_intent_id: str) -> None:
        """Record the processor intent id and move the transaction to processing."""
        ...

    @abstractmethod
    async def find_transaction_id_by_intent(self, payment_intent_id: str) -> str | None: ...

    @abstractmethod
    async def set_transaction_status(self, transaction_id: str, status: str) -> None: ...

    @abstractmethod
    async def fail_transactions_for_intent(self, payment_intent_id: str) -> None: ...

    @abstractmethod
    async def mark_session_paid(self, session_id: str) -> None:
        """Set the session to confirmed / paid."""
        ...

    @abstractmethod
    async def create_notification(
        self,
        user_id: str,
        notification_type: str,
        title: str,
        message: str,
        metadata: dict[str, Any],
    ) -> None: ...

    @abstractmethod
    async def get_session_details(self, session_id: str) -> dict[str, Any] | None:
        """Return the session row with embedded `tutor` and `student` profiles."""
        ...


class SessionEmailSender(ABC):
    @abstractmethod
    async def send_session_emails(self, payload: dict[str, Any]) -> dict[str, Any]:
        """Ask the email function to send confirmation emails to both parties."""
        ...
