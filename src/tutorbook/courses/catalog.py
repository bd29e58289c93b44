"""Term course catalog: map raw backend rows to courses, list departments, filter."""

from collections.abc import Iterable
from typing import Any
from uuid import uuid4

from tutorbook.schemas.course import Course

ALL_DEPARTMENTS = "all"


def _optional_str(value: Any) -> str | None:
    if value is None or value == "":
        return None
    return str(value)


def course_from_row(row: dict[str, Any]) -> Course:
    """Build a `Course` from either the function's or the per-term table's row shape.

    The per-term tables use spreadsheet-style column names ("Course number").
    A row without a department falls back to the course number's prefix,
    e.g. "CS" for "CS-101".
    """
    course_number = str(row.get("Course number") or row.get("course_number") or "")
    department = row.get("department")
    if not department and "-" in course_number:
        department = course_number.split("-", 1)[0]
    return Course(
        id=str(row.get("id") or uuid4()),
        course_number=course_number,
        course_title=str(row.get("Course title") or row.get("course_title") or ""),
        instructor=_optional_str(row.get("Instructor") or row.get("instructor")),
        department=department or "Unknown",
        units=_optional_str(row.get("units")),
        days=_optional_str(row.get("days")),
        time=_optional_str(row.get("time")),
        location=_optional_str(row.get("location")),
        description=_optional_str(row.get("description")),
    )


def list_departments(courses: Iterable[Course]) -> list[str]:
    return sorted({course.department for course in courses if course.department})


def filter_courses(
    courses: Iterable[Course],
    search: str | None = None,
    department: str | None = None,
) -> list[Course]:
    """Case-insensitive search over number, title and instructor, plus a department match.

    A blank search or a department of "all" applies no filter.
    """
    needle = (search or "").strip().lower()
    result = []
    for course in courses:
        if needle and not any(
            needle in (value or "").lower()
            for value in (course.course_number, course.course_title, course.instructor)
        ):
            continue
        if department and department != ALL_DEPARTMENTS and course.department != department:
            continue
        result.append(course)
    return result
