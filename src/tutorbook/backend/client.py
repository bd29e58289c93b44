"""Managed backend client: REST tables under /rest/v1 and functions under /functions/v1."""

import logging
from datetime import UTC, date, datetime
from typing import Any

import httpx
from pydantic import ValidationError

from tutorbook.backend.base import (
    AvailabilitySource,
    CourseSource,
    PaymentLedger,
    SessionEmailSender,
    SessionRepository,
)
from tutorbook.config import Settings, get_settings
from tutorbook.courses.catalog import course_from_row
from tutorbook.errors import (
    AvailabilityFetchError,
    BackendError,
    CourseFetchError,
    SessionConflictError,
    SessionCreationError,
)
from tutorbook.schemas.course import Course
from tutorbook.schemas.payment import CreatedSession
from tutorbook.schemas.scheduling import BookedSession, WeeklyAvailability

logger = logging.getLogger(__name__)

REST_PREFIX = "/rest/v1"
FUNCTIONS_PREFIX = "/functions/v1"
TERM_COURSES_FUNCTION = "query_term_courses"

SESSION_DETAILS_SELECT = (
    "*,"
    "tutor:profiles!tutor_id(id,first_name,last_name,email,hourly_rate),"
    "student:profiles!student_id(id,first_name,last_name,email)"
)


def _utcnow_iso() -> str:
    return datetime.now(UTC).isoformat()


class BackendClient(
    AvailabilitySource, SessionRepository, PaymentLedger, SessionEmailSender, CourseSource
):
    """Async HTTP client for the managed backend, authenticated with the service key."""

    def __init__(
        self,
        settings: Settings | None = None,
        http_client: httpx.AsyncClient | None = None,
    ) -> None:
        settings = settings or get_settings()
        self._owns_client = http_client is None
        self._http = http_client or httpx.AsyncClient(
            base_url=settings.backend_url,
            timeout=settings.backend_timeout_seconds,
        )
        self._headers = {
            "apikey": settings.backend_service_key,
            "Authorization": f"Bearer {settings.backend_service_key}",
        }

    @property
    def base_url(self) -> str:
        return str(self._http.base_url)

    async def aclose(self) -> None:
        if self._owns_client:
            await self._http.aclose()

    async def _request(
        self,
        method: str,
        path: str,
        *,
        params: list[tuple[str, str]] | None = None,
        json: Any = None,
        headers: dict[str, str] | None = None,
    ) -> Any:
        try:
            response = await self._http.request(
                method,
                path,
                params=params,
                json=json,
                headers={**self._headers, **(headers or {})},
            )
        except httpx.HTTPError as e:
            logger.warning("Backend %s %s failed: %s", method, path, e)
            raise BackendError(f"Backend request failed: {e}") from e

        if response.status_code == 409:
            raise SessionConflictError(
                "That time slot was just booked by someone else", status_code=409
            )
        if response.status_code >= 400:
            logger.warning(
                "Backend %s %s returned %d: %s",
                method,
                path,
                response.status_code,
                response.text,
            )
            raise BackendError(
                f"Backend returned HTTP {response.status_code}",
                status_code=response.status_code,
            )
        if not response.content:
            return None
        try:
            return response.json()
        except ValueError as e:
            logger.warning(
                "Backend %s %s returned a non-JSON body: %.200s", method, path, response.text
            )
            raise BackendError(
                "Backend returned invalid JSON", status_code=response.status_code
            ) from e

    async def _select(self, table: str, params: list[tuple[str, str]]) -> list[dict[str, Any]]:
        rows = await self._request("GET", f"{REST_PREFIX}/{table}", params=params)
        return list(rows or [])

    async def _insert(self, table: str, row: dict[str, Any]) -> dict[str, Any]:
        rows = await self._request(
            "POST",
            f"{REST_PREFIX}/{table}",
            json=row,
            headers={"Prefer": "return=representation"},
        )
        if not rows:
            raise BackendError(f"Insert into {table} returned no row")
        return rows[0]  # type: ignore[no-any-return]

    async def _update(self, table: str, filters: list[tuple[str, str]], values: dict[str, Any]) -> None:
        await self._request("PATCH", f"{REST_PREFIX}/{table}", params=filters, json=values)

    async def invoke_function(self, name: str, body: dict[str, Any]) -> dict[str, Any]:
        result = await self._request("POST", f"{FUNCTIONS_PREFIX}/{name}", json=body)
        return dict(result or {})

    async def get_tutor_availability(self, tutor_id: str) -> WeeklyAvailability | None:
        try:
            rows = await self._select(
                "tutor_availability",
                [("tutor_id", f"eq.{tutor_id}"), ("select", "availability")],
            )
        except BackendError as e:
            raise AvailabilityFetchError(f"Availability query failed: {e.message}") from e
        if not rows or rows[0].get("availability") is None:
            return None
        try:
            return WeeklyAvailability.model_validate(rows[0]["availability"])
        except ValidationError as e:
            logger.warning("Stored availability for tutor %s is malformed: %s", tutor_id, e)
            raise AvailabilityFetchError("Stored availability is malformed") from e

    async def get_tutor_booked_sessions(
        self, tutor_id: str, range_start: date, range_end: date
    ) -> list[BookedSession]:
        try:
            rows = await self._select(
                "sessions",
                [
                    ("tutor_id", f"eq.{tutor_id}"),
                    ("start_time", f"gte.{range_start.isoformat()}"),
                    ("start_time", f"lt.{range_end.isoformat()}"),
                    ("status", "neq.cancelled"),
                    ("select", "start_time,end_time"),
                ],
            )
        except BackendError as e:
            raise AvailabilityFetchError(f"Booked sessions query failed: {e.message}") from e
        return [
            BookedSession.from_datetimes(
                datetime.fromisoformat(row["start_time"]),
                datetime.fromisoformat(row["end_time"]),
            )
            for row in rows
        ]

    async def save_tutor_availability(
        self, tutor_id: str, availability: WeeklyAvailability
    ) -> WeeklyAvailability:
        row = await self._request(
            "POST",
            f"{REST_PREFIX}/tutor_availability",
            params=[("on_conflict", "tutor_id")],
            json={"tutor_id": tutor_id, "availability": availability.model_dump()},
            headers={"Prefer": "resolution=merge-duplicates,return=representation"},
        )
        logger.info("Saved availability for tutor %s", tutor_id)
        if row:
            return WeeklyAvailability.model_validate(row[0]["availability"])
        return availability

    async def create_session(
        self,
        student_id: str,
        tutor_id: str,
        start_time: datetime,
        end_time: datetime,
    ) -> CreatedSession:
        try:
            row = await self._insert(
                "sessions",
                {
                    "student_id": student_id,
                    "tutor_id": tutor_id,
                    "start_time": start_time.isoformat(),
                    "end_time": end_time.isoformat(),
                    "status": "scheduled",
                    "payment_status": "unpaid",
                },
            )
        except SessionConflictError:
            raise
        except BackendError as e:
            raise SessionCreationError(f"Session creation failed: {e.message}") from e
        logger.info("Created session %s for tutor %s", row["id"], tutor_id)
        return CreatedSession.model_validate(row)

    async def mark_session_paid(self, session_id: str) -> None:
        await self._update(
            "sessions",
            [("id", f"eq.{session_id}")],
            {"status": "confirmed", "payment_status": "paid", "updated_at": _utcnow_iso()},
        )

    async def get_session_details(self, session_id: str) -> dict[str, Any] | None:
        rows = await self._select(
            "sessions",
            [("id", f"eq.{session_id}"), ("select", SESSION_DETAILS_SELECT)],
        )
        return rows[0] if rows else None

    async def create_payment_transaction(
        self, session_id: str, student_id: str, tutor_id: str, amount: float
    ) -> str:
        row = await self._insert(
            "payment_transactions",
            {
                "session_id": session_id,
                "student_id": student_id,
                "tutor_id": tutor_id,
                "amount": amount,
                "status": "pending",
            },
        )
        return str(row["id"])

    async def find_session_transaction(self, session_id: str) -> dict[str, Any] | None:
        rows = await self._select(
            "payment_transactions",
            [
                ("session_id", f"eq.{session_id}"),
                ("order", "created_at.desc"),
                ("limit", "1"),
            ],
        )
        return rows[0] if rows else None

    async def attach_payment_intent(self, transaction_id: str, payment_intent_id: str) -> None:
        await self._update(
            "payment_transactions",
            [("id", f"eq.{transaction_id}")],
            {"stripe_payment_intent_id": payment_intent_id, "status": "processing"},
        )

    async def find_transaction_id_by_intent(self, payment_intent_id: str) -> str | None:
        rows = await self._select(
            "payment_transactions",
            [("stripe_payment_intent_id", f"eq.{payment_intent_id}"), ("select", "id")],
        )
        return str(rows[0]["id"]) if rows else None

    async def set_transaction_status(self, transaction_id: str, status: str) -> None:
        await self._update(
            "payment_transactions",
            [("id", f"eq.{transaction_id}")],
            {"status": status, "updated_at": _utcnow_iso()},
        )

    async def fail_transactions_for_intent(self, payment_intent_id: str) -> None:
        await self._update(
            "payment_transactions",
            [("stripe_payment_intent_id", f"eq.{payment_intent_id}")],
            {"status": "failed", "updated_at": _utcnow_iso()},
        )

    async def create_notification(
        self,
        user_id: str,
        notification_type: str,
        title: str,
        message: str,
        metadata: dict[str, Any],
    ) -> None:
        await self._insert(
            "notifications",
            {
                "user_id": user_id,
                "type": notification_type,
                "title": title,
                "message": message,
                "metadata": metadata,
            },
        )

    async def send_session_emails(self, payload: dict[str, Any]) -> dict[str, Any]:
        return await self.invoke_function("send-session-emails", payload)

    async def get_term_courses(self, term: str) -> list[Course]:
        term = term.strip()
        if not term:
            return []
        try:
            rows = await self._request(
                "POST", f"{FUNCTIONS_PREFIX}/{TERM_COURSES_FUNCTION}", json={"term_code": term}
            )
        except BackendError as e:
            raise CourseFetchError(f"Course query for term {term} failed: {e.message}") from e

        if not isinstance(rows, list) or not rows:
            # Older terms only exist as a per-term table
            logger.info("No courses from function for term %s, reading table", term)
            try:
                rows = await self._select(f"courses-{term}", [("select", "*")])
            except BackendError as e:
                raise CourseFetchError(f"Course table for term {term} failed: {e.message}") from e

        return [course_from_row(row) for row in rows]
