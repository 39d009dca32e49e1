from typing import Annotated

from pydantic import AfterValidator, BaseModel, EmailStr, Field

from app.models.user import Role

# bcrypt only looks at the first 72 bytes of its input
PASSWORD_MAX_BYTES = 72


def _check_password_bytes(value: str) -> str:
    if len(value.encode("utf-8")) > PASSWORD_MAX_BYTES:
        raise ValueError(f"Password must be at most {PASSWORD_MAX_BYTES} bytes when UTF-8 encoded")
    return value


Password = Annotated[
    str, Field(min_length=6, max_length=72), AfterValidator(_check_password_bytes)
]


class UserCreate(BaseModel):
    """Admin-side creation: every field is required, role included."""

    first_name: str = Field(min_length=1, max_length=100)
    last_name: str = Field(min_length=1, max_length=100)
    email: EmailStr
    password: Password
    role: Role


class UserRegister(BaseModel):
    first_name: str = Field(min_length=1, max_length=100)
    last_name: str = Field(min_length=1, max_length=100)
    email: EmailStr
    password: Password
    role: Role = Role.STUDENT


class UserUpdate(BaseModel):
    first_name: str | None = Field(default=None, min_length=1, max_length=100)
    last_name: str | None = Field(default=None, min_length=1, max_length=100)
    email: EmailStr | None = None
    password: Password | None = None
    role: Role | None = None
    active: bool | None = None


class UserSummary(BaseModel):
    id: int
    first_name: str
    last_name: str
    email: EmailStr

    class Config:
        from_attributes = True


class UserRead(UserSummary):
    role: Role
    active: bool
