"""Request tracing middleware for the PrintQuote API."""
import logging
import time
import uuid

from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request
from starlette.responses import Response

logger = logging.getLogger("printquote-api.middleware")

# Health checkers and scrapers hit these every few seconds
SKIP_LOG_PATHS = frozenset({"/health", "/metrics"})


class RequestTimingMiddleware(BaseHTTPMiddleware):
    """
    Propagates the caller's X-Request-ID (or mints one), reports handling time
    in X-Process-Time as milliseconds and logs one line per request. Client
    errors log at INFO, server errors at WARNING.
    """

    async def dispatch(self, request: Request, call_next) -> Response:
        request_id = request.headers.get("X-Request-ID") or uuid.uuid4().hex
        request.state.request_id = request_id
        began = time.perf_counter()

        response = await call_next(request)

        elapsed_ms = round((time.perf_counter() - began) * 1000, 2)
        response.headers["X-Request-ID"] = request_id
        response.headers["X-Process-Time"] = f"{elapsed_ms}"

        path = request.url.path
        if path in SKIP_LOG_PATHS:
            return response

        level = logging.WARNING if response.status_code >= 500 else logging.INFO
        logger.log(
            level,
            f"{request.method} {path} -> {response.status_code}",
            extra={
                "request_id": request_id,
                "http_method": request.method,
                "http_path": path,
                "http_status": response.status_code,
                "duration_ms": elapsed_ms,
            },
        )
        return response
