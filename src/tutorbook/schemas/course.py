from pydantic import BaseModel, Field


class Course(BaseModel):
    id: str
    course_number: str = ""
    course_title: str = ""
    instructor: str | None = None
    department: str = "Unknown"
    units: str | None = None
    days: str | None = None
    time: str | None = None
    location: str | None = None
    description: str | None = None


class CourseListResponse(BaseModel):
    term: str
    departments: list[str] = Field(default_factory=list)
    courses: list[Course] = Field(default_factory=list)
