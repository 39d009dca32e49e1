import logging

from fastapi import FastAPI, Request, status
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from sqlalchemy.exc import SQLAlchemyError

from app.core.config import CORS_ORIGINS, LOG_LEVEL, validate_runtime_config
from app.core.errors import DomainError, domain_error_handler
from app.core.logging_middleware import LoggingMiddleware
from app.db.init_db import init_db
from app.routers.auth import router as auth_router
from app.routers.courses import router as courses_router
from app.routers.enrollments import router as enrollments_router
from app.routers.users import instructors_router
from app.routers.users import router as users_router

logging.basicConfig(level=LOG_LEVEL)
logger = logging.getLogger(__name__)

app = FastAPI(title="Course Enrollment API")

# Middleware
app.add_middleware(LoggingMiddleware)
app.add_middleware(
    CORSMiddleware,
    allow_origins=CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Errors
app.add_exception_handler(DomainError, domain_error_handler)


@app.exception_handler(SQLAlchemyError)
async def database_error_handler(request: Request, exc: SQLAlchemyError):
    logger.exception("database error on %s %s", request.method, request.url.path)
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content={"detail": "Internal server error"},
    )


# Health check
@app.get("/health")
def health():
    return {"status": "ok"}


# Startup event
@app.on_event("startup")
def on_startup():
    validate_runtime_config()
    init_db()


# Include routers
app.include_router(auth_router, prefix="/api/auth", tags=["auth"])
app.include_router(courses_router, prefix="/api/courses", tags=["courses"])
app.include_router(enrollments_router, prefix="/api/enrollments", tags=["enrollments"])
app.include_router(users_router, prefix="/api/users", tags=["users"])
app.include_router(instructors_router, prefix="/api/instructors", tags=["users"])
