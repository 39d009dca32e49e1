from fastapi import APIRouter, Depends, status
from sqlalchemy.orm import Session

from app.core.current_user import get_current_user
from app.core.deps import get_db
from app.core.permissions import require_admin, require_instructor, require_student
from app.models.user import User
from app.schemas.course import CourseCreate, CourseDeleteResult, CourseRead, CourseUpdate
from app.schemas.enrollment import EnrollmentOut, EnrollmentUpdate, RosterEntry
from app.schemas.message import Message
from app.services import courses as course_service
from app.services import enrollments as enrollment_service
from app.services.courses import DeleteOutcome
from app.services.policy import CourseView, view_course, visible_courses

router = APIRouter()

DELETE_MESSAGES = {
    DeleteOutcome.HARD_DELETED: "Course deleted successfully",
    DeleteOutcome.SOFT_DELETED: (
        "Course has enrolled students and has been deactivated instead of deleted"
    ),
}


def _course_read(view: CourseView) -> CourseRead:
    return CourseRead.model_validate(view.course).model_copy(
        update={"enrolled": view.enrolled}
    )


@router.get("", response_model=list[CourseRead])
def list_courses(
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    return [_course_read(v) for v in visible_courses(db, current_user)]


@router.post("", response_model=CourseRead, status_code=status.HTTP_201_CREATED)
def create_course(
    payload: CourseCreate,
    db: Session = Depends(get_db),
    actor: User = Depends(require_instructor),
):
    course = course_service.create_course(db, actor, payload)
    return _course_read(CourseView(course))


@router.post(
    "/enroll/{course_id}",
    response_model=EnrollmentOut,
    status_code=status.HTTP_201_CREATED,
    responses={
        400: {"description": "Cannot enroll in inactive course"},
        404: {"description": "Course not found"},
        409: {"description": "Already enrolled in this course"},
    },
)
def enroll(
    course_id: int,
    db: Session = Depends(get_db),
    me: User = Depends(require_student),
):
    return enrollment_service.enroll(db, me, course_id)


@router.delete("/enroll/{course_id}", response_model=Message)
def unenroll(
    course_id: int,
    db: Session = Depends(get_db),
    me: User = Depends(require_student),
):
    enrollment_service.unenroll(db, me, course_id)
    return {"message": "Successfully unenrolled from course"}


@router.get("/{course_id}", response_model=CourseRead)
def get_course(
    course_id: int,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    return _course_read(view_course(db, current_user, course_id))


@router.put("/{course_id}", response_model=CourseRead)
def update_course(
    course_id: int,
    payload: CourseUpdate,
    db: Session = Depends(get_db),
    actor: User = Depends(require_instructor),
):
    course = course_service.update_course(db, actor, course_id, payload)
    return _course_read(CourseView(course))


@router.delete("/{course_id}", response_model=CourseDeleteResult)
def delete_course(
    course_id: int,
    db: Session = Depends(get_db),
    admin: User = Depends(require_admin),
):
    outcome = course_service.delete_course(db, admin, course_id)
    return {"message": DELETE_MESSAGES[outcome], "outcome": outcome.value}


@router.get("/{course_id}/enrollments", response_model=list[RosterEntry])
def course_roster(
    course_id: int,
    db: Session = Depends(get_db),
    actor: User = Depends(require_instructor),
):
    return enrollment_service.course_roster(db, actor, course_id)


@router.patch(
    "/{course_id}/enrollments/{enrollment_id}", response_model=EnrollmentOut
)
def update_enrollment(
    course_id: int,
    enrollment_id: int,
    payload: EnrollmentUpdate,
    db: Session = Depends(get_db),
    actor: User = Depends(require_instructor),
):
    return enrollment_service.update_enrollment(
        db, actor, course_id, enrollment_id, payload
    )
