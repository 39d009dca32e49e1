from fastapi import APIRouter, Depends, status
from sqlalchemy.orm import Session

from app.core.current_user import get_current_user
from app.core.deps import get_db
from app.core.permissions import require_admin
from app.models.user import Role, User
from app.schemas.message import Message
from app.schemas.user import UserCreate, UserRead, UserSummary, UserUpdate
from app.services import users as user_service

router = APIRouter()

# Mounted separately at /api/instructors; feeds the course form's picker.
instructors_router = APIRouter()


@router.get("", response_model=list[UserRead])
def list_users(
    role: Role | None = None,
    db: Session = Depends(get_db),
    admin: User = Depends(require_admin),
):
    return user_service.list_users(db, role)


@router.post("", response_model=UserRead, status_code=status.HTTP_201_CREATED)
def create_user(
    payload: UserCreate,
    db: Session = Depends(get_db),
    admin: User = Depends(require_admin),
):
    return user_service.create_user(db, payload)


@router.get("/{user_id}", response_model=UserRead)
def get_user(
    user_id: int,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    return user_service.get_user(db, current_user, user_id)


@router.put("/{user_id}", response_model=UserRead)
def update_user(
    user_id: int,
    payload: UserUpdate,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    return user_service.update_user(db, current_user, user_id, payload)


@router.delete(
    "/{user_id}",
    response_model=Message,
    responses={409: {"description": "Cannot delete the last admin user"}},
)
def delete_user(
    user_id: int,
    db: Session = Depends(get_db),
    admin: User = Depends(require_admin),
):
    user_service.delete_user(db, user_id)
    return {"message": "User deleted successfully"}


@instructors_router.get("", response_model=list[UserSummary])
def list_instructors(
    db: Session = Depends(get_db),
    admin: User = Depends(require_admin),
):
    return user_service.list_instructors(db)
