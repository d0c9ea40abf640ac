"""
Storage interface for test result documents.

The API layer only talks to a ``ResultStore``. One instance is built per
process in the application lifespan and injected into endpoints, so tests
can substitute an in-memory store.
"""
import uuid
from abc import ABC, abstractmethod
from datetime import datetime
from typing import Any, Callable, Dict, Optional

from iat_api.schemas.test_results import (
    TestResultCounts,
    TestResultCreate,
    TestResultPage,
    TestResultRecord,
)


def new_record_id() -> str:
    """Opaque 32-character hex identifier."""
    return uuid.uuid4().hex


class ResultStore(ABC):
    """Persistence for TestResultRecord documents.

    Records are insert-only: there is no update or delete operation.
    """

    backend_name: str = "abstract"

    def __init__(self, id_factory: Optional[Callable[[], str]] = None):
        self._id_factory = id_factory or new_record_id
        self._connected = False

    @property
    def is_connected(self) -> bool:
        """Whether the last connection attempt or operation reached storage."""
        return self._connected

    def new_id(self) -> str:
        return self._id_factory()

    @abstractmethod
    async def connect(self) -> None:
        """Open the connection and prepare the collection.

        Raises:
            StorageUnavailableError: If storage cannot be reached
        """

    @abstractmethod
    async def close(self) -> None:
        """Release connections. Safe to call more than once."""

    @abstractmethod
    async def insert(self, submission: TestResultCreate) -> TestResultRecord:
        """Persist a new record and return it with id and timestamps."""

    @abstractmethod
    async def list(
        self, page: int, limit: int, user_id: Optional[str] = None
    ) -> TestResultPage:
        """Return one page of records, newest first, and the filtered total."""

    @abstractmethod
    async def get(self, record_id: str) -> Optional[TestResultRecord]:
        """Return the record with this id, or None."""

    @abstractmethod
    async def count(self, since: datetime) -> TestResultCounts:
        """Return the total count and the count created at or after ``since``."""

    @abstractmethod
    async def smoke_test(self) -> Dict[str, Any]:
        """Write, read back and delete a probe document.

        Returns:
            Dict with ``testInsertId`` and ``testReadSuccess``
        """

    def describe(self) -> Dict[str, Any]:
        """Non-sensitive description of the backend for status endpoints."""
        return {"backend": self.backend_name, "database": None}
