"""
Middleware package for request/response processing.
"""
from .performance import PerformanceMonitoringMiddleware
from .request_logging import RequestLoggingMiddleware
from .security import RequestSizeLimitMiddleware

__all__ = [
    "PerformanceMonitoringMiddleware",
    "RequestLoggingMiddleware",
    "RequestSizeLimitMiddleware",
]
