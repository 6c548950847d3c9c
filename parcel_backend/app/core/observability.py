"""
Observability middleware and logging setup.

Every request gets a correlation id (taken from ``X-Correlation-ID`` or
generated), echoed back on the response and attached to its log line.
"""

import time
import uuid
import logging
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request
from starlette.responses import Response

logger = logging.getLogger("parcel_backend.requests")

LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
CORRELATION_HEADER = "X-Correlation-ID"


def configure_logging(level: str = "INFO"):
    """Root logging configuration, applied once at startup."""
    logging.basicConfig(level=level.upper(), format=LOG_FORMAT)


def _level_for(status_code: int) -> int:
    if status_code >= 500:
        return logging.ERROR
    if status_code >= 400:
        return logging.WARNING
    return logging.INFO


class ObservabilityMiddleware(BaseHTTPMiddleware):
    async def dispatch(self, request: Request, call_next) -> Response:
        correlation_id = request.headers.get(CORRELATION_HEADER) or uuid.uuid4().hex
        request.state.correlation_id = correlation_id
        started = time.perf_counter()

        context = {
            "correlation_id": correlation_id,
            "method": request.method,
            "path": request.url.path,
            "ip": request.client.host if request.client else "unknown",
        }

        try:
            response = await call_next(request)
        except Exception:
            context["duration_ms"] = round((time.perf_counter() - started) * 1000, 2)
            logger.exception("%s %s -> unhandled error", request.method, request.url.path, extra=context)
            raise

        duration_ms = round((time.perf_counter() - started) * 1000, 2)
        response.headers[CORRELATION_HEADER] = correlation_id
        response.headers["X-Process-Time"] = str(duration_ms)

        context.update(status_code=response.status_code, duration_ms=duration_ms)
        logger.log(
            _level_for(response.status_code),
            "%s %s -> %s (%sms)",
            request.method, request.url.path, response.status_code, duration_ms,
            extra=context,
        )
        return response
