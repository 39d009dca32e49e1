from fastapi import Depends, HTTPException, status

from app.core.current_user import get_current_user
from app.models.user import Role, User


def require_roles(*roles: Role):
    """Dependency factory: only let through users whose role is in ``roles``."""

    allowed = set(roles)

    def dependency(current_user: User = Depends(get_current_user)) -> User:
        if current_user.role not in allowed:
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail="Insufficient role for this action",
            )
        return current_user

    return dependency


require_admin = require_roles(Role.ADMIN)
require_instructor = require_roles(Role.ADMIN, Role.INSTRUCTOR)
require_student = require_roles(Role.STUDENT)
