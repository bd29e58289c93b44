"""Course catalog route: one term's courses, searchable and filterable by department."""

from fastapi import APIRouter, Depends, HTTPException, Query

from tutorbook.backend.base import CourseSource
from tutorbook.courses.catalog import filter_courses, list_departments
from tutorbook.database import get_backend
from tutorbook.errors import TutorbookError
from tutorbook.schemas.course import CourseListResponse

router = APIRouter(prefix="/api/courses", tags=["courses"])


@router.get("", response_model=CourseListResponse)
async def list_courses(
    term: str = Query(min_length=1),
    search: str | None = None,
    department: str | None = None,
    backend: CourseSource = Depends(get_backend),
) -> CourseListResponse:
    """List a term's courses. `departments` always covers the whole term."""
    try:
        courses = await backend.get_term_courses(term)
    except TutorbookError as e:
        raise HTTPException(status_code=503, detail=e.message) from e
    return CourseListResponse(
        term=term,
        departments=list_departments(courses),
        courses=filter_courses(courses, search=search, department=department),
    )
