"""
Request/response logging middleware for tracking API interactions.
"""
import logging
import time
import uuid
from typing import Callable

from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request
from starlette.responses import Response

from iat_api.core.logging_config import request_id_context

logger = logging.getLogger(__name__)


class RequestLoggingMiddleware(BaseHTTPMiddleware):
    """
    Middleware to log incoming requests and outgoing responses.

    Logs method, path, client host, status code, duration and outcome with
    the request id attached, and echoes the id in ``X-Request-ID``.
    Request bodies are never logged: submissions carry survey answers.
    """

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        request_id = request.headers.get("X-Request-ID") or str(uuid.uuid4())
        token = request_id_context.set(request_id)

        start_time = time.perf_counter()
        method = request.method
        path = str(request.url.path)
        client_host = request.client.host if request.client else "unknown"

        logger.debug(
            "Incoming request",
            extra={"method": method, "path": path, "client_host": client_host},
        )

        try:
            response = await call_next(request)

            duration_ms = round((time.perf_counter() - start_time) * 1000, 2)
            status_code = response.status_code
            response.headers["X-Request-ID"] = request_id

            extra_fields = {
                "method": method,
                "path": path,
                "status_code": status_code,
                "duration_ms": duration_ms,
                "client_host": client_host,
            }

            if status_code >= 500:
                logger.error(
                    "Server error response", extra={**extra_fields, "outcome": "error"}
                )
            elif status_code >= 400:
                logger.warning(
                    "Client error response", extra={**extra_fields, "outcome": "rejected"}
                )
            else:
                logger.info(
                    "Request completed", extra={**extra_fields, "outcome": "success"}
                )

            return response
        finally:
            request_id_context.reset(token)
