"""
Storage-layer exceptions.

Stores translate driver errors into these so the API layer can map them to
HTTP responses without knowing which backend is in use.
"""
from typing import Any, Dict, List, Optional


class StorageError(Exception):
    """Base class for storage failures.

    Attributes:
        operation: Human-readable name of the operation that failed
        original_error: The underlying exception, if any
    """

    def __init__(
        self,
        operation: str,
        original_error: Optional[BaseException] = None,
        message: Optional[str] = None,
    ):
        self.operation = operation
        self.original_error = original_error
        self.message = message or (
            f"Failed to {operation}: {original_error}"
            if original_error is not None
            else f"Failed to {operation}"
        )
        super().__init__(self.message)


class StorageUnavailableError(StorageError):
    """The database is not connected or could not be reached."""


class DuplicateRecordError(StorageError):
    """A record with the same unique key already exists."""

    def __init__(
        self,
        operation: str,
        key: Optional[Dict[str, Any]] = None,
        original_error: Optional[BaseException] = None,
    ):
        self.key = key or {}
        super().__init__(operation, original_error, f"Duplicate key during {operation}")


class StorageValidationError(StorageError):
    """The database rejected the record's shape or values."""

    def __init__(
        self,
        operation: str,
        errors: Optional[List[Dict[str, str]]] = None,
        original_error: Optional[BaseException] = None,
    ):
        self.errors = errors or []
        super().__init__(operation, original_error)
