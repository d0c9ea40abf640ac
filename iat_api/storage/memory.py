"""
In-process result store.

Keeps records in a dict. Used by the test suite and for running the API
without a database (``DATABASE_URL=memory://``).
"""
import logging
from datetime import datetime
from typing import Any, Callable, Dict, Optional

from iat_api.core.datetime_utils import utc_now
from iat_api.schemas.test_results import (
    TestResultCounts,
    TestResultCreate,
    TestResultPage,
    TestResultRecord,
    TestResultSummary,
)
from iat_api.storage.base import ResultStore
from iat_api.storage.errors import DuplicateRecordError, StorageUnavailableError

logger = logging.getLogger(__name__)


class InMemoryResultStore(ResultStore):
    """Dict-backed ResultStore. Data lives only as long as the instance."""

    backend_name = "memory"

    def __init__(self, id_factory: Optional[Callable[[], str]] = None):
        super().__init__(id_factory)
        self._records: Dict[str, TestResultRecord] = {}
        self._probes: Dict[str, Dict[str, Any]] = {}

    def _require_connection(self, operation: str) -> None:
        if not self._connected:
            raise StorageUnavailableError(operation, message="Store is not connected")

    async def connect(self) -> None:
        self._connected = True
        logger.info("In-memory result store ready")

    async def close(self) -> None:
        self._connected = False

    async def insert(self, submission: TestResultCreate) -> TestResultRecord:
        self._require_connection("insert test result")
        record_id = self.new_id()
        if record_id in self._records:
            raise DuplicateRecordError("insert test result", key={"id": record_id})

        now = utc_now()
        record = TestResultRecord(
            id=record_id,
            created_at=now,
            updated_at=now,
            **submission.model_copy(deep=True).model_dump(),
        )
        self._records[record_id] = record
        return record.model_copy(deep=True)

    async def list(
        self, page: int, limit: int, user_id: Optional[str] = None
    ) -> TestResultPage:
        self._require_connection("list test results")
        matching = [
            record
            for record in reversed(self._records.values())
            if user_id is None or record.user_id == user_id
        ]
        # Stable sort keeps later inserts first among equal timestamps.
        matching.sort(key=lambda record: record.created_at, reverse=True)
        start = (page - 1) * limit
        items = [
            TestResultSummary.model_validate(
                record.model_dump(exclude={"survey_responses", "device_info"})
            )
            for record in matching[start : start + limit]
        ]
        return TestResultPage(items=items, total=len(matching))

    async def get(self, record_id: str) -> Optional[TestResultRecord]:
        self._require_connection("get test result")
        record = self._records.get(record_id)
        return record.model_copy(deep=True) if record else None

    async def count(self, since: datetime) -> TestResultCounts:
        self._require_connection("count test results")
        today = sum(
            1 for record in self._records.values() if record.created_at >= since
        )
        return TestResultCounts(total=len(self._records), today=today)

    async def smoke_test(self) -> Dict[str, Any]:
        self._require_connection("run storage check")
        probe_id = self.new_id()
        self._probes[probe_id] = {"test": True, "timestamp": utc_now()}
        read_back = self._probes.get(probe_id)
        del self._probes[probe_id]
        return {"testInsertId": probe_id, "testReadSuccess": read_back is not None}

    def describe(self) -> Dict[str, Any]:
        return {"backend": self.backend_name, "database": "memory"}
