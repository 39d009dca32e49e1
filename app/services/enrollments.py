import logging
from datetime import datetime, timezone

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session, selectinload

from app.core.errors import Conflict, Forbidden, InvalidState, NotFound
from app.models.course import Course
from app.models.enrollment import ALLOWED_TRANSITIONS, Enrollment
from app.models.user import User
from app.schemas.enrollment import EnrollmentUpdate
from app.services.policy import Action, policy_for

logger = logging.getLogger(__name__)


def _find_enrollment(db: Session, user_id: int, course_id: int) -> Enrollment | None:
    return (
        db.query(Enrollment)
        .filter(Enrollment.user_id == user_id, Enrollment.course_id == course_id)
        .first()
    )


def enroll(db: Session, student: User, course_id: int) -> Enrollment:
    if not policy_for(student.role).can_access(Action.ENROLL, student.id, student.id):
        raise Forbidden("Only students can enroll in courses")

    course = db.get(Course, course_id)
    if course is None:
        raise NotFound("Course not found")
    if not course.active:
        raise InvalidState("Cannot enroll in inactive course")
    if _find_enrollment(db, student.id, course_id) is not None:
        raise Conflict("Already enrolled in this course")

    enrollment = Enrollment(
        user_id=student.id,
        course_id=course_id,
        enrollment_date=datetime.now(timezone.utc),
    )
    db.add(enrollment)

    # uq_enrollments_user_course catches the concurrent double-enroll
    try:
        db.commit()
    except IntegrityError:
        db.rollback()
        raise Conflict("Already enrolled in this course") from None

    db.refresh(enrollment)
    logger.info("user %s enrolled in course %s", student.id, course_id)
    return enrollment


def unenroll(db: Session, student: User, course_id: int) -> None:
    if not policy_for(student.role).can_access(Action.UNENROLL, student.id, student.id):
        raise Forbidden("Only students can unenroll from courses")

    enrollment = _find_enrollment(db, student.id, course_id)
    if enrollment is None:
        raise NotFound("Not enrolled in this course")

    db.delete(enrollment)
    db.commit()
    logger.info("user %s unenrolled from course %s", student.id, course_id)


def my_enrollments(db: Session, student: User) -> list[Enrollment]:
    return (
        db.query(Enrollment)
        .filter(Enrollment.user_id == student.id)
        .order_by(Enrollment.id)
        .all()
    )


def _get_managed_course(db: Session, actor: User, course_id: int) -> Course:
    course = db.get(Course, course_id)
    if course is None:
        raise NotFound("Course not found")
    if not policy_for(actor.role).can_access(Action.UPDATE, course.instructor_id, actor.id):
        raise Forbidden("Not course instructor")
    return course


def course_roster(db: Session, actor: User, course_id: int) -> list[Enrollment]:
    _get_managed_course(db, actor, course_id)
    return (
        db.query(Enrollment)
        .options(selectinload(Enrollment.student))
        .filter(Enrollment.course_id == course_id)
        .order_by(Enrollment.id)
        .all()
    )


def update_enrollment(
    db: Session,
    actor: User,
    course_id: int,
    enrollment_id: int,
    payload: EnrollmentUpdate,
) -> Enrollment:
    """Set grade and/or status on one enrollment of a course the actor manages."""
    _get_managed_course(db, actor, course_id)

    enrollment = db.get(Enrollment, enrollment_id)
    if enrollment is None or enrollment.course_id != course_id:
        raise NotFound("Enrollment not found")

    if payload.status is not None and payload.status != enrollment.status:
        if payload.status not in ALLOWED_TRANSITIONS[enrollment.status]:
            raise InvalidState(
                f"Cannot change enrollment status from {enrollment.status.value} "
                f"to {payload.status.value}"
            )
        enrollment.status = payload.status

    if payload.grade is not None:
        enrollment.grade = payload.grade

    db.commit()
    db.refresh(enrollment)
    return enrollment
