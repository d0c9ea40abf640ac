"""
Main FastAPI application.
"""
import asyncio
import http
import logging
import uuid
from contextlib import asynccontextmanager
from typing import AsyncGenerator, Optional

import uvicorn
from fastapi import Depends, FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from iat_api.api.api import api_router
from iat_api.api.deps import get_store
from iat_api.api.health import connection_state
from iat_api.core.config import settings
from iat_api.core.error_responses import ErrorCodes, ErrorMessages
from iat_api.core.error_tracking import (
    capture_error,
    flush_error_tracking,
    init_error_tracking,
)
from iat_api.core.logging_config import setup_logging
from iat_api.middleware import (
    PerformanceMonitoringMiddleware,
    RequestLoggingMiddleware,
    RequestSizeLimitMiddleware,
)
from iat_api.storage import ResultStore, create_store

# Initialize logging configuration at startup
setup_logging()

logger = logging.getLogger(__name__)

_STARTUP_HINTS = (
    "Check that DATABASE_URL points at a running database server",
    "Check that this host is allowed to reach the database (firewall/IP allow-list)",
    "Check the database credentials and the database name in DATABASE_URL",
)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """
    Application lifespan event handler.

    - On startup: initializes error tracking, builds the result store and
      connects it within DB_STARTUP_TIMEOUT. A failed connection aborts
      startup so the process exits.
    - On shutdown: closes the store and flushes pending error reports.
    """
    init_error_tracking(settings)

    store: Optional[ResultStore] = getattr(app.state, "store", None)
    if store is None:
        store = create_store(settings)
        app.state.store = store

    try:
        await asyncio.wait_for(store.connect(), timeout=settings.DB_STARTUP_TIMEOUT)
    except Exception as e:
        logger.error(f"Could not connect to storage at startup: {e}")
        for hint in _STARTUP_HINTS:
            logger.error(f"Hint: {hint}")
        raise

    logger.info(
        f"{settings.APP_NAME} {settings.APP_VERSION} started",
        extra={"outcome": "success"},
    )

    yield

    logger.info("Application shutting down - closing storage")
    await store.close()
    flush_error_tracking()


# OpenAPI tags metadata
tags_metadata = [
    {
        "name": "health",
        "description": "Liveness and storage connectivity checks",
    },
    {
        "name": "test-results",
        "description": "Submission, listing and counting of IAT test results",
    },
]


def _status_code_name(status_code: int) -> str:
    try:
        return http.HTTPStatus(status_code).phrase.upper().replace(" ", "_")
    except ValueError:
        return ErrorCodes.INTERNAL_SERVER_ERROR


def create_application(store: Optional[ResultStore] = None) -> FastAPI:
    """
    Create and configure the FastAPI application.

    Args:
        store: Result store to use instead of the one described by
            DATABASE_URL. It is connected during startup.
    """
    app = FastAPI(
        title=settings.APP_NAME,
        version=settings.APP_VERSION,
        lifespan=lifespan,
        description=(
            "**IAT Results API** - storage for implicit-association test results.\n\n"
            "Clients submit reaction-time series together with their computed "
            "bias analysis; results can then be listed, fetched and counted."
        ),
        docs_url=f"{settings.API_PREFIX}/docs",
        redoc_url=f"{settings.API_PREFIX}/redoc",
        openapi_url=f"{settings.API_PREFIX}/openapi.json",
        openapi_tags=tags_metadata,
    )
    if store is not None:
        app.state.store = store

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.CORS_ORIGINS,
        allow_credentials=True,
        allow_methods=["GET", "POST", "OPTIONS"],
        allow_headers=["Content-Type", "X-Request-ID"],
    )

    app.add_middleware(RequestLoggingMiddleware)

    app.add_middleware(
        PerformanceMonitoringMiddleware,
        slow_request_threshold=settings.SLOW_REQUEST_THRESHOLD,
    )

    app.add_middleware(RequestSizeLimitMiddleware, max_body_size=settings.MAX_BODY_SIZE)

    app.include_router(api_router, prefix=settings.API_PREFIX)

    @app.get(settings.API_PREFIX, tags=["health"])
    async def api_info(store: ResultStore = Depends(get_store)):
        """
        Service banner with name, version and storage state.
        """
        return {
            "success": True,
            "message": f"{settings.APP_NAME} is running",
            "service": settings.APP_NAME,
            "version": settings.APP_VERSION,
            "environment": settings.ENV,
            "database": connection_state(store),
            "docs": f"{settings.API_PREFIX}/docs",
        }

    @app.exception_handler(StarletteHTTPException)
    async def http_exception_handler(request: Request, exc: StarletteHTTPException):
        """
        Render HTTP exceptions in the response envelope.

        Endpoint errors carry a dict detail from the ``raise_*`` builders.
        Routing errors carry a plain string; unknown paths get NOT_FOUND
        with the requested path.
        """
        if isinstance(exc.detail, dict):
            content = {"success": False, **exc.detail}
        elif exc.status_code == status.HTTP_404_NOT_FOUND:
            content = {
                "success": False,
                "message": ErrorMessages.RESOURCE_NOT_FOUND,
                "error": ErrorCodes.NOT_FOUND,
                "path": request.url.path,
            }
        else:
            content = {
                "success": False,
                "message": str(exc.detail),
                "error": _status_code_name(exc.status_code),
            }

        if exc.status_code >= 500:
            capture_error(
                exc,
                context={
                    "path": str(request.url.path),
                    "method": request.method,
                    "status_code": exc.status_code,
                },
                tags={"error_type": "HTTPException"},
            )

        return JSONResponse(
            status_code=exc.status_code,
            content=content,
            headers=getattr(exc, "headers", None),
        )

    @app.exception_handler(RequestValidationError)
    async def validation_exception_handler(
        request: Request, exc: RequestValidationError
    ):
        """
        Handle request validation errors (query parameters, malformed JSON).
        """
        errors = [
            {
                "loc": list(error.get("loc", [])),
                "msg": str(error.get("msg", "")),
                "type": str(error.get("type", "")),
            }
            for error in exc.errors()
        ]
        logger.warning(
            f"Request validation failed: {errors}",
            extra={"error_code": ErrorCodes.VALIDATION_ERROR},
        )

        return JSONResponse(
            status_code=status.HTTP_400_BAD_REQUEST,
            content={
                "success": False,
                "message": ErrorMessages.INVALID_QUERY,
                "error": ErrorCodes.VALIDATION_ERROR,
                "details": errors,
            },
        )

    @app.exception_handler(Exception)
    async def generic_exception_handler(request: Request, exc: Exception):
        """
        Handle unexpected exceptions.

        Each one gets an error_id that is logged with the traceback and
        returned to the caller so it can be traced in the logs.
        """
        error_id = str(uuid.uuid4())

        logger.exception(
            f"Unhandled exception [error_id={error_id}]: {exc}",
            extra={"error_id": error_id},
        )

        capture_error(
            exc,
            context={
                "path": str(request.url.path),
                "method": request.method,
                "error_id": error_id,
            },
            tags={"error_type": exc.__class__.__name__},
        )

        content = {
            "success": False,
            "message": ErrorMessages.GENERIC_SERVER_ERROR,
            "error": ErrorCodes.INTERNAL_SERVER_ERROR,
            "error_id": error_id,
        }
        if settings.is_development:
            content["details"] = str(exc)

        return JSONResponse(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            content=content,
        )

    return app


app = create_application()


def run() -> None:
    """Entry point for the ``iat-api`` console script."""
    uvicorn.run(
        "iat_api.main:app",
        host=settings.HOST,
        port=settings.PORT,
        log_config=None,
    )
