"""Tests for the managed-backend REST client against a mock transport."""

import json
from collections.abc import Callable
from datetime import date, datetime

import httpx
import pytest
from tests.conftest import make_settings

from tutorbook.backend.client import BackendClient
from tutorbook.database import get_backend
from tutorbook.errors import (
    AvailabilityFetchError,
    BackendError,
    CourseFetchError,
    SessionConflictError,
    SessionCreationError,
)
from tutorbook.schemas.scheduling import BookedSession, TimeRange, WeeklyAvailability

Handler = Callable[[httpx.Request], httpx.Response]


def _client(handler: Handler) -> BackendClient:
    http = httpx.AsyncClient(transport=httpx.MockTransport(handler), base_url="http://backend.test")
    return BackendClient(make_settings(backend_service_key="service-key"), http_client=http)


class TestTransport:
    async def test_auth_headers_sent(self) -> None:
        seen: list[httpx.Request] = []

        def handler(request: httpx.Request) -> httpx.Response:
            seen.append(request)
            return httpx.Response(200, json=[])

        await _client(handler).get_tutor_availability("t1")

        assert seen[0].headers["apikey"] == "service-key"
        assert seen[0].headers["authorization"] == "Bearer service-key"
        assert seen[0].url.path == "/rest/v1/tutor_availability"
        assert seen[0].url.params["tutor_id"] == "eq.t1"

    async def test_http_error_status(self) -> None:
        client = _client(lambda request: httpx.Response(500, text="boom"))

        with pytest.raises(BackendError) as exc_info:
            await client.invoke_function("send-session-emails", {})
        assert exc_info.value.status_code == 500

    async def test_transport_error(self) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.ConnectError("refused", request=request)

        with pytest.raises(BackendError):
            await _client(handler).find_session_transaction("s1")

    async def test_empty_body(self) -> None:
        client = _client(lambda request: httpx.Response(204))
        await client.mark_session_paid("s1")

    async def test_non_json_success_body(self) -> None:
        client = _client(lambda request: httpx.Response(200, text="<html>gateway</html>"))

        with pytest.raises(BackendError) as exc_info:
            await client.find_session_transaction("s1")
        assert exc_info.value.status_code == 200
        assert exc_info.value.message == "Backend returned invalid JSON"

    async def test_non_json_availability_is_fetch_error(self) -> None:
        client = _client(lambda request: httpx.Response(200, text="<html>gateway</html>"))

        with pytest.raises(AvailabilityFetchError):
            await client.get_tutor_availability("t1")


class TestBackendDependency:
    async def test_uses_injected_settings(self) -> None:
        dependency = get_backend(make_settings(backend_url="http://custom.test"))

        client = await dependency.__anext__()
        try:
            assert client.base_url.startswith("http://custom.test")
        finally:
            await dependency.aclose()


class TestAvailability:
    async def test_parses_stored_availability(self) -> None:
        stored = {"monday": [{"start": "09:00", "end": "12:00"}], "friday": []}
        client = _client(lambda request: httpx.Response(200, json=[{"availability": stored}]))

        availability = await client.get_tutor_availability("t1")

        assert availability == WeeklyAvailability(
            monday=[TimeRange(start="09:00", end="12:00")]
        )

    async def test_missing_row(self) -> None:
        client = _client(lambda request: httpx.Response(200, json=[]))
        assert await client.get_tutor_availability("t1") is None

    async def test_malformed_row(self) -> None:
        stored = {"monday": [{"start": "12:00", "end": "09:00"}]}
        client = _client(lambda request: httpx.Response(200, json=[{"availability": stored}]))

        with pytest.raises(AvailabilityFetchError):
            await client.get_tutor_availability("t1")

    async def test_fetch_failure(self) -> None:
        client = _client(lambda request: httpx.Response(503))

        with pytest.raises(AvailabilityFetchError):
            await client.get_tutor_availability("t1")

    async def test_booked_sessions_query(self) -> None:
        seen: list[httpx.Request] = []

        def handler(request: httpx.Request) -> httpx.Response:
            seen.append(request)
            return httpx.Response(
                200,
                json=[
                    {"start_time": "2025-06-02T10:00:00", "end_time": "2025-06-02T10:30:00"},
                    {"start_time": "2025-06-03T23:00:00", "end_time": "2025-06-04T01:00:00"},
                ],
            )

        booked = await _client(handler).get_tutor_booked_sessions(
            "t1", date(2025, 6, 1), date(2025, 6, 29)
        )

        assert booked == [
            BookedSession(day=date(2025, 6, 2), start="10:00", end="10:30"),
            BookedSession(day=date(2025, 6, 3), start="23:00", end="23:59"),
        ]
        params = seen[0].url.params
        assert params.get_list("start_time") == ["gte.2025-06-01", "lt.2025-06-29"]
        assert params["status"] == "neq.cancelled"

    async def test_save_upserts(self) -> None:
        seen: list[httpx.Request] = []

        def handler(request: httpx.Request) -> httpx.Response:
            seen.append(request)
            return httpx.Response(201, json=[json.loads(request.content)])

        availability = WeeklyAvailability(sunday=[TimeRange(start="10:00", end="11:00")])
        saved = await _client(handler).save_tutor_availability("t1", availability)

        assert saved == availability
        assert seen[0].method == "POST"
        assert seen[0].url.params["on_conflict"] == "tutor_id"
        assert "merge-duplicates" in seen[0].headers["prefer"]


class TestSessions:
    async def test_create_session(self) -> None:
        seen: list[dict] = []

        def handler(request: httpx.Request) -> httpx.Response:
            body = json.loads(request.content)
            seen.append(body)
            return httpx.Response(201, json=[{"id": "sess-9", **body}])

        created = await _client(handler).create_session(
            "student-1", "t1", datetime(2025, 6, 2, 9, 0), datetime(2025, 6, 2, 10, 0)
        )

        assert created.id == "sess-9"
        assert created.status == "scheduled"
        assert seen[0]["payment_status"] == "unpaid"
        assert seen[0]["start_time"] == "2025-06-02T09:00:00"

    async def test_conflict(self) -> None:
        client = _client(lambda request: httpx.Response(409, json={"code": "23505"}))

        with pytest.raises(SessionConflictError):
            await client.create_session(
                "student-1", "t1", datetime(2025, 6, 2, 9, 0), datetime(2025, 6, 2, 10, 0)
            )

    async def test_other_failure(self) -> None:
        client = _client(lambda request: httpx.Response(500))

        with pytest.raises(SessionCreationError):
            await client.create_session(
                "student-1", "t1", datetime(2025, 6, 2, 9, 0), datetime(2025, 6, 2, 10, 0)
            )


class TestLedger:
    async def test_transaction_lookup_by_intent(self) -> None:
        client = _client(lambda request: httpx.Response(200, json=[{"id": 42}]))
        assert await client.find_transaction_id_by_intent("pi_1") == "42"

    async def test_fail_transactions_patch(self) -> None:
        seen: list[httpx.Request] = []

        def handler(request: httpx.Request) -> httpx.Response:
            seen.append(request)
            return httpx.Response(204)

        await _client(handler).fail_transactions_for_intent("pi_1")

        assert seen[0].method == "PATCH"
        assert seen[0].url.params["stripe_payment_intent_id"] == "eq.pi_1"
        assert json.loads(seen[0].content)["status"] == "failed"


class TestCourses:
    async def test_courses_from_function(self) -> None:
        seen: list[httpx.Request] = []

        def handler(request: httpx.Request) -> httpx.Response:
            seen.append(request)
            return httpx.Response(
                200,
                json=[{"id": "c1", "course_number": "CS-101", "course_title": "Intro", "units": 4}],
            )

        courses = await _client(handler).get_term_courses("20251")

        assert len(seen) == 1
        assert seen[0].url.path == "/functions/v1/query_term_courses"
        assert json.loads(seen[0].content) == {"term_code": "20251"}
        assert courses[0].id == "c1"
        assert courses[0].department == "CS"
        assert courses[0].units == "4"

    async def test_empty_function_result_falls_back_to_term_table(self) -> None:
        seen: list[httpx.Request] = []

        def handler(request: httpx.Request) -> httpx.Response:
            seen.append(request)
            if request.url.path.startswith("/functions/v1/"):
                return httpx.Response(200, json=[])
            return httpx.Response(
                200,
                json=[
                    {
                        "id": 7,
                        "Course number": "MATH-3A",
                        "Course title": "Calculus",
                        "Instructor": "Noether",
                    }
                ],
            )

        courses = await _client(handler).get_term_courses("20251")

        assert seen[1].method == "GET"
        assert seen[1].url.path == "/rest/v1/courses-20251"
        assert seen[1].url.params["select"] == "*"
        assert courses[0].id == "7"
        assert courses[0].course_title == "Calculus"
        assert courses[0].instructor == "Noether"
        assert courses[0].department == "MATH"

    async def test_blank_term_makes_no_request(self) -> None:
        seen: list[httpx.Request] = []

        def handler(request: httpx.Request) -> httpx.Response:
            seen.append(request)
            return httpx.Response(200, json=[])

        assert await _client(handler).get_term_courses("  ") == []
        assert seen == []

    async def test_function_error_does_not_fall_back(self) -> None:
        seen: list[httpx.Request] = []

        def handler(request: httpx.Request) -> httpx.Response:
            seen.append(request)
            return httpx.Response(500, json={"message": "boom"})

        with pytest.raises(CourseFetchError):
            await _client(handler).get_term_courses("20251")
        assert len(seen) == 1

    async def test_missing_term_table(self) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            if request.url.path.startswith("/functions/v1/"):
                return httpx.Response(200, json=[])
            return httpx.Response(404, json={"message": "relation does not exist"})

        with pytest.raises(CourseFetchError):
            await _client(handler).get_term_courses("19991")
