import logging
import time

from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request

logger = logging.getLogger(__name__)


class LoggingMiddleware(BaseHTTPMiddleware):
    """Access log: one line per request with status and wall time."""

    async def dispatch(self, request: Request, call_next):
        start = time.monotonic()

        try:
            response = await call_next(request)
        except Exception:
            logger.exception(
                "%s %s -> unhandled error (%.2fs)",
                request.method,
                request.url.path,
                time.monotonic() - start,
            )
            raise

        duration = time.monotonic() - start
        user_agent = request.headers.get("user-agent", "-")
        logger.info(
            "%s %s -> %s (%.2fs) [%s]",
            request.method,
            request.url.path,
            response.status_code,
            duration,
            user_agent,
        )

        return response
