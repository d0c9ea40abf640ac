"""
Standardized error response messages and builders.

Every error leaves the API in the same envelope::

    {"success": false, "message": "...", "error": "ERROR_CODE", "details": ...}

Endpoints raise through the ``raise_*`` builders below; the HTTPException
handler in ``iat_api.main`` renders the envelope. ``details`` is optional.

Usage:
    from iat_api.core.error_responses import ErrorCodes, ErrorMessages, raise_not_found

    if record is None:
        raise_not_found(ErrorMessages.result_not_found(record_id))
"""

from typing import Any, Dict, NoReturn, Optional

from fastapi import HTTPException, status

from iat_api.core.config import settings


class ErrorCodes:
    """Machine-readable error codes returned in the ``error`` field."""

    # 400
    MISSING_USER_ID = "MISSING_USER_ID"
    MISSING_RESULTS = "MISSING_RESULTS"
    MISSING_ANALYSIS = "MISSING_ANALYSIS"
    INVALID_RESULTS_STRUCTURE = "INVALID_RESULTS_STRUCTURE"
    VALIDATION_ERROR = "VALIDATION_ERROR"

    # 404
    NOT_FOUND = "NOT_FOUND"

    # 409
    DUPLICATE_ENTRY = "DUPLICATE_ENTRY"

    # 413
    PAYLOAD_TOO_LARGE = "PAYLOAD_TOO_LARGE"

    # 500
    INTERNAL_SERVER_ERROR = "INTERNAL_SERVER_ERROR"
    QUERY_ERROR = "QUERY_ERROR"
    STATS_ERROR = "STATS_ERROR"
    STORAGE_CHECK_FAILED = "STORAGE_CHECK_FAILED"

    # 503
    DATABASE_NOT_CONNECTED = "DATABASE_NOT_CONNECTED"
    STORAGE_CONNECTION_ERROR = "STORAGE_CONNECTION_ERROR"


class ErrorMessages:
    """Centralized user-facing error messages."""

    # Bad Request (400)
    MISSING_USER_ID = "User ID is required."
    MISSING_RESULTS = "Test results are required."
    MISSING_ANALYSIS = "Analysis data is required."
    VALIDATION_FAILED = "Data validation failed."
    INVALID_QUERY = "Invalid request parameters."

    # Not Found (404)
    RESOURCE_NOT_FOUND = "The requested resource was not found."

    # Conflict (409)
    DUPLICATE_TEST_RESULT = "Duplicate test result."

    # Payload Too Large (413)
    REQUEST_TOO_LARGE = "Request body too large."

    # Server Errors (500)
    GENERIC_SERVER_ERROR = "Internal server error. Please try again later."
    STORAGE_CHECK_FAILED = "Storage connectivity check failed."

    # Service Unavailable (503)
    DATABASE_NOT_CONNECTED = "Database is not connected."
    STORAGE_CONNECTION_FAILED = "Database connection failed. Please try again later."

    @staticmethod
    def invalid_result_series(field: str) -> str:
        """Message when one of the reaction-time series is not a list."""
        return f"Test results field '{field}' must be a list of numbers."

    @staticmethod
    def result_not_found(record_id: str) -> str:
        """Message when a specific test result is not found."""
        return f"Test result {record_id} not found."


def _error_detail(
    message: str, code: str, details: Optional[Any] = None
) -> Dict[str, Any]:
    detail: Dict[str, Any] = {"message": message, "error": code}
    if details is not None:
        detail["details"] = details
    return detail


def raise_bad_request(
    detail: str,
    code: str = ErrorCodes.VALIDATION_ERROR,
    details: Optional[Any] = None,
) -> NoReturn:
    """Raise a 400 Bad Request exception.

    Use for client errors where the request is malformed or invalid.
    """
    raise HTTPException(
        status_code=status.HTTP_400_BAD_REQUEST,
        detail=_error_detail(detail, code, details),
    )


def raise_not_found(detail: str, code: str = ErrorCodes.NOT_FOUND) -> NoReturn:
    """Raise a 404 Not Found exception.

    Use when a requested resource doesn't exist.
    """
    raise HTTPException(
        status_code=status.HTTP_404_NOT_FOUND,
        detail=_error_detail(detail, code),
    )


def raise_conflict(
    detail: str,
    code: str = ErrorCodes.DUPLICATE_ENTRY,
    details: Optional[Any] = None,
) -> NoReturn:
    """Raise a 409 Conflict exception.

    Use when the request conflicts with current state (e.g., duplicate creation).
    """
    raise HTTPException(
        status_code=status.HTTP_409_CONFLICT,
        detail=_error_detail(detail, code, details),
    )


def raise_server_error(
    detail: str,
    code: str = ErrorCodes.INTERNAL_SERVER_ERROR,
    debug_detail: Optional[str] = None,
) -> NoReturn:
    """Raise a 500 Internal Server Error exception.

    Always use user-friendly messages. ``debug_detail`` carries the
    technical cause and is only returned when running in development.
    """
    details = debug_detail if settings.is_development else None
    raise HTTPException(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        detail=_error_detail(detail, code, details),
    )


def raise_service_unavailable(
    detail: str,
    code: str = ErrorCodes.STORAGE_CONNECTION_ERROR,
    details: Optional[Any] = None,
) -> NoReturn:
    """Raise a 503 Service Unavailable exception.

    Use when the database cannot be reached so clients can tell the
    outage apart from a bad request.
    """
    raise HTTPException(
        status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
        detail=_error_detail(detail, code, details),
    )
