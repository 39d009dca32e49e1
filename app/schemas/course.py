from datetime import date

from pydantic import BaseModel, Field

from app.schemas.user import UserSummary


class CourseCreate(BaseModel):
    title: str = Field(min_length=1, max_length=255)
    code: str = Field(min_length=1, max_length=50)
    description: str | None = None
    start_date: date | None = None
    end_date: date | None = None
    # honoured only when an admin creates the course
    instructor_id: int | None = None


class CourseUpdate(BaseModel):
    title: str | None = Field(default=None, min_length=1, max_length=255)
    code: str | None = Field(default=None, min_length=1, max_length=50)
    description: str | None = None
    start_date: date | None = None
    end_date: date | None = None
    active: bool | None = None
    instructor_id: int | None = None


class CourseRead(BaseModel):
    id: int
    title: str
    code: str
    description: str | None = None
    instructor_id: int
    start_date: date | None = None
    end_date: date | None = None
    active: bool
    instructor: UserSummary | None = None
    # only computed for students
    enrolled: bool | None = None

    class Config:
        from_attributes = True


class CourseDeleteResult(BaseModel):
    message: str
    outcome: str
