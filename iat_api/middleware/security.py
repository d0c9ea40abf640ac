"""
Request body size enforcement.
"""
from typing import Callable

from fastapi import Request, Response
from fastapi.responses import JSONResponse
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.types import ASGIApp

from iat_api.core.error_responses import ErrorCodes, ErrorMessages


class RequestSizeLimitMiddleware(BaseHTTPMiddleware):
    """
    Middleware to enforce maximum request body size limits.

    Requests whose Content-Length exceeds the limit are answered with 413
    before the body is read.
    """

    def __init__(self, app: ASGIApp, max_body_size: int = 10 * 1024 * 1024):
        """
        Args:
            app: ASGI application
            max_body_size: Maximum request body size in bytes (default: 10MB)
        """
        super().__init__(app)
        self.max_body_size = max_body_size

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        content_length = request.headers.get("content-length")
        if content_length and content_length.isdigit():
            if int(content_length) > self.max_body_size:
                return JSONResponse(
                    status_code=413,
                    content={
                        "success": False,
                        "message": ErrorMessages.REQUEST_TOO_LARGE,
                        "error": ErrorCodes.PAYLOAD_TOO_LARGE,
                    },
                )

        return await call_next(request)
