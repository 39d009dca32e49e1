import logging

from sqlalchemy import func
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from app.core.errors import Conflict, Forbidden, NotFound, Unauthorized
from app.core.security import create_access_token, hash_password, verify_password
from app.models.course import Course
from app.models.user import Role, User
from app.schemas.user import UserCreate, UserRegister, UserUpdate
from app.services.policy import can_change_role_or_status, can_manage_user

logger = logging.getLogger(__name__)

# roles a visitor may pick for themselves on the public sign-up form
SELF_REGISTER_ROLES = {Role.STUDENT, Role.INSTRUCTOR}


def issue_token(user: User) -> str:
    return create_access_token(data={"sub": str(user.id), "role": user.role.value})


def _ensure_email_available(db: Session, email: str) -> None:
    if db.query(User).filter(User.email == email).first() is not None:
        raise Conflict("Email already registered")


def _commit_user(db: Session, user: User, last_admin_detail: str | None = None) -> User:
    try:
        if last_admin_detail is not None:
            _recheck_admins_after_flush(db, last_admin_detail, active_only=True)
        db.commit()
    except IntegrityError:
        db.rollback()
        raise Conflict("Email already registered") from None
    db.refresh(user)
    return user


def _get_user(db: Session, user_id: int) -> User:
    user = db.get(User, user_id)
    if user is None:
        raise NotFound("User not found")
    return user


def _count_admins(db: Session, active_only: bool = False) -> int:
    query = db.query(func.count(User.id)).filter(User.role == Role.ADMIN)
    if active_only:
        query = query.filter(User.active.is_(True))
    return query.scalar() or 0


def _ensure_not_last_admin(db: Session, detail: str, active_only: bool = False) -> None:
    # early exit only; _recheck_admins_after_flush is the authoritative check
    admin_ids = db.query(User.id).filter(User.role == Role.ADMIN)
    if active_only:
        admin_ids = admin_ids.filter(User.active.is_(True))
    if len(admin_ids.with_for_update().all()) <= 1:
        raise Conflict(detail)


def _recheck_admins_after_flush(db: Session, detail: str, active_only: bool = False) -> None:
    """
    Count admins again inside the writing transaction.

    The flush takes the write lock (SQLite serializes writers there, other
    backends lock the touched row), so a concurrent request that removed
    another admin after our first check is visible here.
    """
    db.flush()
    if _count_admins(db, active_only) < 1:
        db.rollback()
        raise Conflict(detail)


def register(db: Session, payload: UserRegister) -> User:
    if payload.role not in SELF_REGISTER_ROLES:
        raise Forbidden("Admin accounts can only be created by an admin")

    _ensure_email_available(db, payload.email)

    user = User(
        first_name=payload.first_name,
        last_name=payload.last_name,
        email=payload.email,
        hashed_password=hash_password(payload.password),
        role=payload.role,
        active=True,
    )
    db.add(user)
    user = _commit_user(db, user)
    logger.info("registered user %s as %s", user.id, user.role.value)
    return user


def authenticate(db: Session, email: str, password: str) -> User:
    user = db.query(User).filter(User.email == email).first()
    if user is None:
        raise Unauthorized("Invalid email or password")
    if not user.active:
        raise Forbidden("Account is deactivated")
    if not verify_password(password, user.hashed_password):
        raise Unauthorized("Invalid email or password")
    return user


def list_users(db: Session, role: Role | None = None) -> list[User]:
    query = db.query(User)
    if role is not None:
        query = query.filter(User.role == role)
    return query.order_by(User.id).all()


def list_instructors(db: Session) -> list[User]:
    return list_users(db, Role.INSTRUCTOR)


def get_user(db: Session, actor: User, user_id: int) -> User:
    if not can_manage_user(actor, user_id):
        raise Forbidden("You do not have permission to view this user")
    return _get_user(db, user_id)


def create_user(db: Session, payload: UserCreate) -> User:
    _ensure_email_available(db, payload.email)

    user = User(
        first_name=payload.first_name,
        last_name=payload.last_name,
        email=payload.email,
        hashed_password=hash_password(payload.password),
        role=payload.role,
        active=True,
    )
    db.add(user)
    return _commit_user(db, user)


def update_user(db: Session, actor: User, user_id: int, payload: UserUpdate) -> User:
    user = _get_user(db, user_id)

    if not can_manage_user(actor, user_id):
        raise Forbidden("You do not have permission to update this user")

    # applies to admins' own records as well: only the admin policy passes
    touches_role_or_status = payload.role is not None or payload.active is not None
    if touches_role_or_status and not can_change_role_or_status(actor):
        raise Forbidden("You do not have permission to change role or status")

    # either change can leave the system without a usable admin
    usable_admin = user.role == Role.ADMIN and user.active
    demoting = usable_admin and payload.role is not None and payload.role != user.role
    deactivating = usable_admin and payload.active is False
    last_admin_detail = None
    if demoting:
        last_admin_detail = "Cannot change the role of the last admin user"
    elif deactivating:
        last_admin_detail = "Cannot deactivate the last admin user"
    if last_admin_detail is not None:
        _ensure_not_last_admin(db, last_admin_detail, active_only=True)

    if payload.email and payload.email != user.email:
        _ensure_email_available(db, payload.email)
        user.email = payload.email

    if payload.first_name:
        user.first_name = payload.first_name
    if payload.last_name:
        user.last_name = payload.last_name
    if payload.password:
        user.hashed_password = hash_password(payload.password)
    if payload.role is not None:
        user.role = payload.role
    if payload.active is not None:
        user.active = payload.active

    return _commit_user(db, user, last_admin_detail)


def delete_user(db: Session, user_id: int) -> None:
    user = _get_user(db, user_id)

    detail = "Cannot delete the last admin user"
    is_admin = user.role == Role.ADMIN
    if is_admin:
        _ensure_not_last_admin(db, detail)

    owned_courses = (
        db.query(func.count(Course.id)).filter(Course.instructor_id == user.id).scalar()
    ) or 0
    if owned_courses > 0:
        raise Conflict("User still instructs courses; reassign them first")

    db.delete(user)
    if is_admin:
        _recheck_admins_after_flush(db, detail)
    db.commit()
    logger.info("user %s deleted", user_id)
