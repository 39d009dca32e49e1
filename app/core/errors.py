"""
Domain errors raised by the service layer.

Routers never build HTTP responses for these themselves; the handler
registered in ``app.main`` maps each kind to its status code.
"""

from fastapi import Request, status
from fastapi.responses import JSONResponse


class DomainError(Exception):
    status_code = status.HTTP_400_BAD_REQUEST

    def __init__(self, detail: str):
        super().__init__(detail)
        self.detail = detail


class NotFound(DomainError):
    status_code = status.HTTP_404_NOT_FOUND


class Conflict(DomainError):
    status_code = status.HTTP_409_CONFLICT


class InvalidState(DomainError):
    status_code = status.HTTP_400_BAD_REQUEST


class Forbidden(DomainError):
    status_code = status.HTTP_403_FORBIDDEN


class Unauthorized(DomainError):
    status_code = status.HTTP_401_UNAUTHORIZED


async def domain_error_handler(request: Request, exc: DomainError) -> JSONResponse:
    return JSONResponse(status_code=exc.status_code, content={"detail": exc.detail})
