from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from app.core.deps import get_db
from app.core.permissions import require_student
from app.models.user import User
from app.schemas.enrollment import EnrollmentOut
from app.services import enrollments as enrollment_service

router = APIRouter()


@router.get("/me", response_model=list[EnrollmentOut])
def my_enrollments(
    db: Session = Depends(get_db),
    me: User = Depends(require_student),
):
    return enrollment_service.my_enrollments(db, me)
