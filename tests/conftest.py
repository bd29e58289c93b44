from collections.abc import AsyncGenerator
from datetime import date, datetime
from typing import Any

import pytest
from httpx import ASGITransport, AsyncClient

from tutorbook.backend.base import (
    AvailabilitySource,
    CourseSource,
    PaymentGateway,
    PaymentLedger,
    SessionEmailSender,
    SessionRepository,
)
from tutorbook.config import Settings, get_settings
from tutorbook.database import get_backend, get_payment_gateway
from tutorbook.errors import (
    AvailabilityFetchError,
    BackendError,
    CourseFetchError,
    PaymentRateLimitedError,
    PaymentSetupError,
    SessionConflictError,
)
from tutorbook.main import app
from tutorbook.schemas.course import Course
from tutorbook.schemas.payment import (
    CreatedSession,
    PaymentIntentStatus,
    PaymentSetupRequest,
    PaymentSetupResult,
)
from tutorbook.schemas.scheduling import BookedSession, WeeklyAvailability

WEBHOOK_SECRET = "whsec_test_secret"


def make_settings(**overrides: Any) -> Settings:
    values: dict[str, Any] = {
        "payment_webhook_secret": WEBHOOK_SECRET,
        "rate_limit_min_interval_seconds": 0.0,
        "processing_close_delay_seconds": 0.0,
        "reset_delay_seconds": 0.0,
    }
    values.update(overrides)
    return Settings(**values)


def override_settings() -> Settings:
    return make_settings()


class FakeBackend(
    AvailabilitySource, SessionRepository, PaymentLedger, SessionEmailSender, CourseSource
):
    """In-memory stand-in for the managed backend."""

    def __init__(self) -> None:
        self.availability: dict[str, WeeklyAvailability] = {}
        self.sessions: dict[str, dict[str, Any]] = {}
        self.transactions: dict[str, dict[str, Any]] = {}
        self.notifications: list[dict[str, Any]] = []
        self.emails: list[dict[str, Any]] = []
        self.profiles: dict[str, dict[str, Any]] = {}
        self.courses: dict[str, list[Course]] = {}
        self.fail_reads = False
        self.fail_notifications = False
        self._next_id = 0

    def _new_id(self, prefix: str) -> str:
        self._next_id += 1
        return f"{prefix}-{self._next_id}"

    def add_session(self, tutor_id: str, start: datetime, end: datetime, **extra: Any) -> str:
        session_id = self._new_id("sess")
        self.sessions[session_id] = {
            "id": session_id,
            "tutor_id": tutor_id,
            "start_time": start.isoformat(),
            "end_time": end.isoformat(),
            "status": "scheduled",
            "payment_status": "unpaid",
            **extra,
        }
        return session_id

    async def get_tutor_availability(self, tutor_id: str) -> WeeklyAvailability | None:
        if self.fail_reads:
            raise AvailabilityFetchError("Availability query failed")
        return self.availability.get(tutor_id)

    async def get_tutor_booked_sessions(
        self, tutor_id: str, range_start: date, range_end: date
    ) -> list[BookedSession]:
        if self.fail_reads:
            raise AvailabilityFetchError("Availability query failed")
        booked = []
        for row in self.sessions.values():
            start = datetime.fromisoformat(row["start_time"])
            end = datetime.fromisoformat(row["end_time"])
            if (
                row["tutor_id"] == tutor_id
                and row["status"] != "cancelled"
                and range_start <= start.date() < range_end
            ):
                booked.append(BookedSession.from_datetimes(start, end))
        return booked

    async def save_tutor_availability(
        self, tutor_id: str, availability: WeeklyAvailability
    ) -> WeeklyAvailability:
        self.availability[tutor_id] = availability
        return availability

    async def create_session(
        self, student_id: str, tutor_id: str, start_time: datetime, end_time: datetime
    ) -> CreatedSession:
        for row in self.sessions.values():
            if (
                row["tutor_id"] == tutor_id
                and row["status"] != "cancelled"
                and datetime.fromisoformat(row["start_time"]) < end_time
                and start_time < datetime.fromisoformat(row["end_time"])
            ):
                raise SessionConflictError("That time slot was just booked", status_code=409)
        session_id = self.add_session(tutor_id, start_time, end_time, student_id=student_id)
        return CreatedSession(id=session_id, start_time=start_time, end_time=end_time)

    async def create_payment_transaction(
        self, session_id: str, student_id: str, tutor_id: str, amount: float
    ) -> str:
        transaction_id = self._new_id("tx")
        self.transactions[transaction_id] = {
            "id": transaction_id,
            "session_id": session_id,
            "student_id": student_id,
            "tutor_id": tutor_id,
            "amount": amount,
            "status": "pending",
            "stripe_payment_intent_id": None,
        }
        return transaction_id

    async def find_session_transaction(self, session_id: str) -> dict[str, Any] | None:
        rows = [tx for tx in self.transactions.values() if tx["session_id"] == session_id]
        return rows[-1] if rows else None

    async def attach_payment_intent(self, transaction_id: str, payment_intent_id: str) -> None:
        self.transactions[transaction_id]["stripe_payment_intent_id"] = payment_intent_id
        self.transactions[transaction_id]["status"] = "processing"

    async def find_transaction_id_by_intent(self, payment_intent_id: str) -> str | None:
        for tx in self.transactions.values():
            if tx["stripe_payment_intent_id"] == payment_intent_id:
                return str(tx["id"])
        return None

    async def set_transaction_status(self, transaction_id: str, status: str) -> None:
        self.transactions[transaction_id]["status"] = status

    async def fail_transactions_for_intent(self, payment_intent_id: str) -> None:
        for tx in self.transactions.values():
            if tx["stripe_payment_intent_id"] == payment_intent_id:
                tx["status"] = "failed"

    async def mark_session_paid(self, session_id: str) -> None:
        if session_id in self.sessions:
            self.sessions[session_id]["status"] = "confirmed"
            self.sessions[session_id]["payment_status"] = "paid"

    async def create_notification(
        self,
        user_id: str,
        notification_type: str,
        title: str,
        message: str,
        metadata: dict[str, Any],
    ) -> None:
        if self.fail_notifications:
            raise BackendError("Backend returned HTTP 500", status_code=500)
        self.notifications.append(
            {
                "user_id": user_id,
                "type": notification_type,
                "title": title,
                "message": message,
                "metadata": metadata,
            }
        )

    async def get_session_details(self, session_id: str) -> dict[str, Any] | None:
        row = self.sessions.get(session_id)
        if row is None:
            return None
        return {
            **row,
            "tutor": self.profiles.get(row["tutor_id"], {}),
            "student": self.profiles.get(row.get("student_id", ""), {}),
        }

    async def send_session_emails(self, payload: dict[str, Any]) -> dict[str, Any]:
        self.emails.append(payload)
        return {"success": True}

    async def get_term_courses(self, term: str) -> list[Course]:
        if self.fail_reads:
            raise CourseFetchError("Course query failed")
        return list(self.courses.get(term, []))


class FakePaymentGateway(PaymentGateway):
    def __init__(self) -> None:
        self.requests: list[PaymentSetupRequest] = []
        self.intents: dict[str, PaymentIntentStatus] = {}
        self.fail_next = 0
        self.rate_limited = False

    async def setup_payment(self, request: PaymentSetupRequest) -> PaymentSetupResult:
        self.requests.append(request)
        if self.fail_next:
            self.fail_next -= 1
            raise BackendError("Backend returned HTTP 500", status_code=500)
        return PaymentSetupResult(
            client_secret=f"pi_{len(self.requests)}_secret",
            amount=request.amount,
            is_two_stage_payment=request.force_two_stage,
            payment_intent_id=f"pi_{len(self.requests)}",
        )

    async def retrieve_payment_intent(self, payment_intent_id: str) -> PaymentIntentStatus:
        if self.rate_limited:
            raise PaymentRateLimitedError("Payment processor rate limit exceeded")
        intent = self.intents.get(payment_intent_id)
        if intent is None:
            raise PaymentSetupError(f"No such payment intent: {payment_intent_id}")
        return intent


@pytest.fixture
def backend() -> FakeBackend:
    return FakeBackend()


@pytest.fixture
def gateway() -> FakePaymentGateway:
    return FakePaymentGateway()


@pytest.fixture
async def client(
    backend: FakeBackend, gateway: FakePaymentGateway
) -> AsyncGenerator[AsyncClient, None]:
    async def override_get_backend() -> AsyncGenerator[FakeBackend, None]:
        yield backend

    app.dependency_overrides[get_backend] = override_get_backend
    app.dependency_overrides[get_payment_gateway] = lambda: gateway
    app.dependency_overrides[get_settings] = override_settings
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac
    app.dependency_overrides.clear()
