"""
Performance monitoring middleware for tracking API response times.
"""
import logging
import time
from typing import Callable

from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request
from starlette.responses import Response

logger = logging.getLogger(__name__)


class PerformanceMonitoringMiddleware(BaseHTTPMiddleware):
    """
    Middleware to monitor and log API endpoint performance.

    Adds ``X-Process-Time`` to every response and warns about requests
    slower than the threshold.
    """

    def __init__(self, app, slow_request_threshold: float = 1.0):
        """
        Args:
            app: FastAPI application
            slow_request_threshold: Seconds after which a request counts as slow
        """
        super().__init__(app)
        self.slow_request_threshold = slow_request_threshold

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        start_time = time.perf_counter()

        response = await call_next(request)

        process_time = time.perf_counter() - start_time
        response.headers["X-Process-Time"] = str(round(process_time, 4))

        if process_time > self.slow_request_threshold:
            route = request.scope.get("route")
            route_path = route.path if route else str(request.url.path)
            logger.warning(
                f"Slow request: {request.method} {route_path} "
                f"took {process_time:.4f}s (threshold: {self.slow_request_threshold}s)",
                extra={
                    "method": request.method,
                    "path": route_path,
                    "duration_ms": round(process_time * 1000, 2),
                },
            )

        return response
