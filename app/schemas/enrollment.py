from datetime import datetime

from pydantic import BaseModel, Field

from app.models.enrollment import EnrollmentStatus
from app.schemas.user import UserSummary


class EnrollmentOut(BaseModel):
    id: int
    user_id: int
    course_id: int
    enrollment_date: datetime
    grade: float | None = None
    status: EnrollmentStatus

    class Config:
        from_attributes = True


class RosterEntry(EnrollmentOut):
    student: UserSummary


class EnrollmentUpdate(BaseModel):
    grade: float | None = Field(default=None, ge=0)
    status: EnrollmentStatus | None = None
