"""
Role policies: who may do what, and which courses each role can see.

Each role gets one policy object implementing the same contract, so route
and service code asks ``policy_for(user.role)`` instead of branching on the
role string. Adding a role means adding a policy class and registering it in
``POLICIES``.
"""

import abc
import enum
from dataclasses import dataclass

from sqlalchemy.orm import Session, selectinload

from app.core.errors import Forbidden, NotFound
from app.models.course import Course
from app.models.enrollment import Enrollment
from app.models.user import Role, User


class Action(str, enum.Enum):
    READ = "read"
    CREATE = "create"
    UPDATE = "update"
    DELETE = "delete"
    ENROLL = "enroll"
    UNENROLL = "unenroll"


@dataclass(frozen=True)
class CourseView:
    """A course as seen by one viewer. ``enrolled`` is only set for students."""

    course: Course
    enrolled: bool | None = None


def _courses_query(db: Session):
    return db.query(Course).options(selectinload(Course.instructor))


class RolePolicy(abc.ABC):
    """
    Contract every role policy implements.

    ``can_access`` answers the action checks that do not depend on the course
    row. Reading a course does, so READ for students (and the visibility side
    of READ for every role) is answered by ``visible_courses`` and
    ``view_course`` instead.
    """

    role: Role

    @abc.abstractmethod
    def can_access(
        self,
        action: Action,
        resource_owner_id: int | None = None,
        actor_id: int | None = None,
    ) -> bool:
        ...

    @abc.abstractmethod
    def visible_courses(self, db: Session, actor: User) -> list[CourseView]:
        ...

    @abc.abstractmethod
    def view_course(self, db: Session, actor: User, course: Course) -> CourseView | None:
        """Return the viewer's view of ``course``, or None when it is hidden."""
        ...

    @property
    def can_change_role_or_status(self) -> bool:
        return False

    @property
    def can_assign_instructor(self) -> bool:
        return False


class AdminPolicy(RolePolicy):
    role = Role.ADMIN

    def can_access(self, action, resource_owner_id=None, actor_id=None) -> bool:
        return True

    def visible_courses(self, db, actor):
        return [CourseView(c) for c in _courses_query(db).order_by(Course.id).all()]

    def view_course(self, db, actor, course):
        return CourseView(course)

    @property
    def can_change_role_or_status(self) -> bool:
        return True

    @property
    def can_assign_instructor(self) -> bool:
        return True


class InstructorPolicy(RolePolicy):
    role = Role.INSTRUCTOR

    def can_access(self, action, resource_owner_id=None, actor_id=None) -> bool:
        if action == Action.CREATE:
            return True
        if action in (Action.READ, Action.UPDATE, Action.DELETE):
            return actor_id is not None and resource_owner_id == actor_id
        # READ included: a student's access to a course depends on the row,
        # see view_course
        return False

    def visible_courses(self, db, actor):
        courses = (
            _courses_query(db)
            .filter(Course.instructor_id == actor.id)
            .order_by(Course.id)
            .all()
        )
        return [CourseView(c) for c in courses]

    def view_course(self, db, actor, course):
        if course.instructor_id != actor.id:
            return None
        return CourseView(course)


class StudentPolicy(RolePolicy):
    role = Role.STUDENT

    def can_access(self, action, resource_owner_id=None, actor_id=None) -> bool:
        if action in (Action.ENROLL, Action.UNENROLL):
            # students only ever act on their own enrollments
            return actor_id is not None and resource_owner_id == actor_id
        # course READ depends on the row; view_course answers it
        return False

    def visible_courses(self, db, actor):
        enrolled = (
            _courses_query(db)
            .join(Enrollment, Enrollment.course_id == Course.id)
            .filter(Enrollment.user_id == actor.id)
            .order_by(Course.id)
            .all()
        )
        available = (
            _courses_query(db)
            .filter(Course.active.is_(True))
            .order_by(Course.id)
            .all()
        )

        # enrolled rows win over the active catalogue on id collisions
        views: dict[int, CourseView] = {}
        for course in enrolled:
            views[course.id] = CourseView(course, enrolled=True)
        for course in available:
            views.setdefault(course.id, CourseView(course, enrolled=False))
        return list(views.values())

    def view_course(self, db, actor, course):
        is_enrolled = (
            db.query(Enrollment.id)
            .filter(Enrollment.user_id == actor.id, Enrollment.course_id == course.id)
            .first()
            is not None
        )
        if not is_enrolled and not course.active:
            return None
        return CourseView(course, enrolled=is_enrolled)


POLICIES: dict[Role, RolePolicy] = {
    Role.ADMIN: AdminPolicy(),
    Role.INSTRUCTOR: InstructorPolicy(),
    Role.STUDENT: StudentPolicy(),
}


def policy_for(role: Role | str) -> RolePolicy:
    try:
        return POLICIES[Role(role)]
    except (KeyError, ValueError):
        raise Forbidden(f"Unknown role: {role}") from None


def can_access(
    role: Role | str,
    action: Action,
    resource_owner_id: int | None = None,
    actor_id: int | None = None,
) -> bool:
    return policy_for(role).can_access(action, resource_owner_id, actor_id)


def can_manage_user(actor: User, target_user_id: int) -> bool:
    """Any user may read/update their own record; admins may touch anyone's."""
    return actor.id == target_user_id or policy_for(actor.role).can_change_role_or_status


def can_change_role_or_status(actor: User) -> bool:
    return policy_for(actor.role).can_change_role_or_status


def visible_courses(db: Session, actor: User) -> list[CourseView]:
    return policy_for(actor.role).visible_courses(db, actor)


def view_course(db: Session, actor: User, course_id: int) -> CourseView:
    course = _courses_query(db).filter(Course.id == course_id).first()
    if course is None:
        raise NotFound("Course not found")

    view = policy_for(actor.role).view_course(db, actor, course)
    if view is None:
        raise Forbidden("You do not have access to this course")
    return view
