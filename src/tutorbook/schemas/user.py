from pydantic import BaseModel, EmailStr, Field


class Tutor(BaseModel):
    id: str
    name: str = Field(max_length=200)
    first_name: str | None = None
    hourly_rate: float | None = Field(default=None, ge=0)

    @property
    def display_name(self) -> str:
        return self.first_name or self.name.split(" ")[0]


class Student(BaseModel):
    id: str
    name: str = Field(default="", max_length=200)
    email: EmailStr
