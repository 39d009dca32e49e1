import enum
import logging

from sqlalchemy import func
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from app.core.errors import Conflict, Forbidden, NotFound
from app.models.course import Course
from app.models.enrollment import Enrollment
from app.models.user import Role, User
from app.schemas.course import CourseCreate, CourseUpdate
from app.services.policy import Action, policy_for

logger = logging.getLogger(__name__)


class DeleteOutcome(str, enum.Enum):
    HARD_DELETED = "hard_deleted"
    SOFT_DELETED = "soft_deleted"


def _get_course(db: Session, course_id: int) -> Course:
    course = db.get(Course, course_id)
    if course is None:
        raise NotFound("Course not found")
    return course


def _ensure_code_available(db: Session, code: str, course_id: int | None = None) -> None:
    existing = db.query(Course).filter(Course.code == code).first()
    if existing is not None and existing.id != course_id:
        raise Conflict("Course code already exists")


def _get_instructor(db: Session, instructor_id: int) -> User:
    instructor = db.get(User, instructor_id)
    if instructor is None or instructor.role != Role.INSTRUCTOR:
        raise NotFound("Instructor not found")
    return instructor


def _commit_course(db: Session, course: Course) -> Course:
    # the unique index on code is the real guard; the pre-check only gives a
    # nicer error on the common path
    try:
        db.commit()
    except IntegrityError:
        db.rollback()
        raise Conflict("Course code already exists") from None
    db.refresh(course)
    return course


def create_course(db: Session, actor: User, payload: CourseCreate) -> Course:
    policy = policy_for(actor.role)
    if not policy.can_access(Action.CREATE, actor_id=actor.id):
        raise Forbidden("You do not have permission to create courses")

    _ensure_code_available(db, payload.code)

    instructor_id = actor.id
    if policy.can_assign_instructor and payload.instructor_id is not None:
        instructor_id = _get_instructor(db, payload.instructor_id).id

    course = Course(
        title=payload.title,
        code=payload.code,
        description=payload.description,
        start_date=payload.start_date,
        end_date=payload.end_date,
        instructor_id=instructor_id,
        active=True,
    )
    db.add(course)
    course = _commit_course(db, course)
    logger.info("course %s (%s) created by user %s", course.id, course.code, actor.id)
    return course


def update_course(
    db: Session, actor: User, course_id: int, payload: CourseUpdate
) -> Course:
    course = _get_course(db, course_id)

    policy = policy_for(actor.role)
    if not policy.can_access(Action.UPDATE, course.instructor_id, actor.id):
        raise Forbidden("You do not have permission to update this course")

    changes = payload.model_dump(exclude_unset=True)

    code = changes.get("code")
    if code and code != course.code:
        _ensure_code_available(db, code, course.id)
        course.code = code

    if changes.get("title"):
        course.title = changes["title"]
    if "description" in changes:
        course.description = changes["description"]
    if changes.get("start_date") is not None:
        course.start_date = changes["start_date"]
    if changes.get("end_date") is not None:
        course.end_date = changes["end_date"]
    if changes.get("active") is not None:
        course.active = changes["active"]

    # ownership only moves when an admin says so
    new_instructor_id = changes.get("instructor_id")
    if (
        policy.can_assign_instructor
        and new_instructor_id is not None
        and new_instructor_id != course.instructor_id
    ):
        course.instructor_id = _get_instructor(db, new_instructor_id).id

    return _commit_course(db, course)


def delete_course(db: Session, actor: User, course_id: int) -> DeleteOutcome:
    """
    Remove a course, or deactivate it when students are still enrolled.

    The course row survives a soft delete and stays retrievable by id.
    """
    course = _get_course(db, course_id)

    if not policy_for(actor.role).can_access(Action.DELETE, course.instructor_id, actor.id):
        raise Forbidden("You do not have permission to delete this course")

    enrollment_count = (
        db.query(func.count(Enrollment.id))
        .filter(Enrollment.course_id == course.id)
        .scalar()
    ) or 0

    if enrollment_count > 0:
        course.active = False
        db.commit()
        logger.info(
            "course %s has %s enrollments; deactivated instead of deleted",
            course.id,
            enrollment_count,
        )
        return DeleteOutcome.SOFT_DELETED

    db.delete(course)
    db.commit()
    logger.info("course %s deleted", course_id)
    return DeleteOutcome.HARD_DELETED
