from fastapi import APIRouter, Depends, status
from sqlalchemy.orm import Session

from app.core.current_user import get_current_user
from app.core.deps import get_db
from app.models.user import User
from app.schemas.auth import LoginRequest
from app.schemas.token import Token
from app.schemas.user import UserRead, UserRegister
from app.services import users as user_service

router = APIRouter()


def _token_response(user: User) -> Token:
    return Token(
        access_token=user_service.issue_token(user),
        user=UserRead.model_validate(user),
    )


@router.post(
    "/register",
    response_model=Token,
    status_code=status.HTTP_201_CREATED,
    responses={
        403: {"description": "Admin role cannot be self-assigned"},
        409: {"description": "Email already registered"},
    },
)
def register(payload: UserRegister, db: Session = Depends(get_db)):
    user = user_service.register(db, payload)
    return _token_response(user)


@router.post(
    "/login",
    response_model=Token,
    responses={
        401: {"description": "Invalid email or password"},
        403: {"description": "Account is deactivated"},
    },
)
def login(payload: LoginRequest, db: Session = Depends(get_db)):
    user = user_service.authenticate(db, payload.email, payload.password)
    return _token_response(user)


@router.get("/me", response_model=UserRead)
def me(current_user: User = Depends(get_current_user)):
    return current_user
