"""
SQLAlchemy-backed result store.

Runs on the async engine (asyncpg for PostgreSQL, aiosqlite for SQLite).
Driver errors are translated into the storage exceptions in
``iat_api.storage.errors``:

- unique-key violations -> DuplicateRecordError
- constraint/data violations -> StorageValidationError
- connection failures, pool timeouts, invalidated connections
  -> StorageUnavailableError
- anything else -> StorageError
"""
import logging
from contextlib import asynccontextmanager
from datetime import datetime
from typing import Any, AsyncGenerator, Callable, Dict, Optional

from sqlalchemy import delete, func, select, text
from sqlalchemy.exc import (
    DataError,
    DBAPIError,
    DisconnectionError,
    IntegrityError,
    InterfaceError,
    OperationalError,
    SQLAlchemyError,
)
from sqlalchemy.exc import TimeoutError as PoolTimeoutError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker
from sqlalchemy.orm import defer

from iat_api.core.datetime_utils import ensure_timezone_aware, utc_now
from iat_api.models import Base, ConnectionCheck, TestResultDocument, create_engine_for
from iat_api.schemas.test_results import (
    BiasAnalysis,
    ResultSeries,
    TestResultCounts,
    TestResultCreate,
    TestResultPage,
    TestResultRecord,
    TestResultSummary,
)
from iat_api.storage.base import ResultStore
from iat_api.storage.errors import (
    DuplicateRecordError,
    StorageError,
    StorageUnavailableError,
    StorageValidationError,
)

logger = logging.getLogger(__name__)

_UNAVAILABLE_ERRORS = (
    OperationalError,
    InterfaceError,
    DisconnectionError,
    PoolTimeoutError,
)


def translate_storage_error(
    exc: BaseException, operation: str, key: Optional[Dict[str, Any]] = None
) -> StorageError:
    """Map a driver/SQLAlchemy exception onto a storage exception."""
    if isinstance(exc, IntegrityError):
        reason = str(exc.orig).lower()
        if "unique" in reason or "duplicate" in reason:
            return DuplicateRecordError(operation, key=key, original_error=exc)
        return StorageValidationError(
            operation,
            errors=[{"field": "record", "message": str(exc.orig)}],
            original_error=exc,
        )
    if isinstance(exc, DataError):
        return StorageValidationError(
            operation,
            errors=[{"field": "record", "message": str(exc.orig)}],
            original_error=exc,
        )
    if isinstance(exc, _UNAVAILABLE_ERRORS) or isinstance(exc, OSError):
        return StorageUnavailableError(operation, original_error=exc)
    if isinstance(exc, DBAPIError) and exc.connection_invalidated:
        return StorageUnavailableError(operation, original_error=exc)
    return StorageError(operation, original_error=exc)


class SQLResultStore(ResultStore):
    """ResultStore on a relational database with JSON document columns."""

    backend_name = "sql"

    def __init__(
        self,
        database_url: str,
        *,
        pool_size: int = 10,
        max_overflow: int = 0,
        pool_timeout: int = 10,
        pool_recycle: int = 30,
        pool_pre_ping: bool = True,
        echo: bool = False,
        create_tables: bool = True,
        id_factory: Optional[Callable[[], str]] = None,
    ):
        super().__init__(id_factory)
        self.engine = create_engine_for(
            database_url,
            pool_size=pool_size,
            max_overflow=max_overflow,
            pool_timeout=pool_timeout,
            pool_recycle=pool_recycle,
            pool_pre_ping=pool_pre_ping,
            echo=echo,
        )
        self.create_tables = create_tables
        self._sessionmaker = async_sessionmaker(
            self.engine, class_=AsyncSession, expire_on_commit=False
        )

    @asynccontextmanager
    async def _session(
        self, operation: str, key: Optional[Dict[str, Any]] = None
    ) -> AsyncGenerator[AsyncSession, None]:
        """Session scope that translates storage errors and tracks connectivity."""
        try:
            async with self._sessionmaker() as session:
                yield session
        except (SQLAlchemyError, OSError) as e:
            error = translate_storage_error(e, operation, key)
            if isinstance(error, StorageUnavailableError):
                self._connected = False
            raise error from e
        self._connected = True

    async def connect(self) -> None:
        try:
            async with self.engine.begin() as conn:
                if self.create_tables:
                    await conn.run_sync(Base.metadata.create_all)
                await conn.execute(text("SELECT 1"))
        except (SQLAlchemyError, OSError) as e:
            self._connected = False
            raise StorageUnavailableError("connect to database", original_error=e) from e

        self._connected = True
        logger.info(
            f"Connected to {self.engine.dialect.name} database "
            f"'{self.engine.url.database}'"
        )

    async def close(self) -> None:
        await self.engine.dispose()
        self._connected = False
        logger.info("Database connection pool closed")

    async def insert(self, submission: TestResultCreate) -> TestResultRecord:
        record_id = self.new_id()
        now = utc_now()
        document = TestResultDocument(
            id=record_id,
            user_id=submission.user_id,
            test_date=submission.test_date,
            results=submission.results.model_dump(by_alias=True),
            analysis=submission.analysis.model_dump(by_alias=True),
            survey_responses=submission.survey_responses,
            device_info=submission.device_info,
            created_at=now,
            updated_at=now,
        )

        async with self._session("insert test result", key={"id": record_id}) as session:
            session.add(document)
            await session.commit()

        return _to_record(document)

    async def list(
        self, page: int, limit: int, user_id: Optional[str] = None
    ) -> TestResultPage:
        count_stmt = select(func.count()).select_from(TestResultDocument)
        stmt = select(TestResultDocument).options(
            defer(TestResultDocument.survey_responses),
            defer(TestResultDocument.device_info),
        )
        if user_id is not None:
            count_stmt = count_stmt.where(TestResultDocument.user_id == user_id)
            stmt = stmt.where(TestResultDocument.user_id == user_id)

        stmt = (
            stmt.order_by(
                TestResultDocument.created_at.desc(), TestResultDocument.id.desc()
            )
            .offset((page - 1) * limit)
            .limit(limit)
        )

        async with self._session("list test results") as session:
            total = await session.scalar(count_stmt)
            documents = (await session.scalars(stmt)).all()

        return TestResultPage(
            items=[_to_summary(document) for document in documents],
            total=total or 0,
        )

    async def get(self, record_id: str) -> Optional[TestResultRecord]:
        async with self._session("get test result") as session:
            document = await session.get(TestResultDocument, record_id)

        return _to_record(document) if document is not None else None

    async def count(self, since: datetime) -> TestResultCounts:
        async with self._session("count test results") as session:
            total = await session.scalar(
                select(func.count()).select_from(TestResultDocument)
            )
            today = await session.scalar(
                select(func.count())
                .select_from(TestResultDocument)
                .where(TestResultDocument.created_at >= since)
            )

        return TestResultCounts(total=total or 0, today=today or 0)

    async def smoke_test(self) -> Dict[str, Any]:
        async with self._session("run storage check") as session:
            probe = ConnectionCheck(test=True, message="Storage connection test")
            session.add(probe)
            await session.commit()
            probe_id = probe.id

            read_back = await session.scalar(
                select(ConnectionCheck.id).where(ConnectionCheck.id == probe_id)
            )

            await session.execute(
                delete(ConnectionCheck).where(ConnectionCheck.id == probe_id)
            )
            await session.commit()

        return {"testInsertId": probe_id, "testReadSuccess": read_back is not None}

    def describe(self) -> Dict[str, Any]:
        url = self.engine.url
        return {
            "backend": self.backend_name,
            "dialect": self.engine.dialect.name,
            "database": url.database,
            "host": url.host,
        }


def _to_summary(document: TestResultDocument) -> TestResultSummary:
    return TestResultSummary(
        id=document.id,
        user_id=document.user_id,
        test_date=ensure_timezone_aware(document.test_date),
        results=ResultSeries.model_validate(document.results or {}),
        analysis=BiasAnalysis.model_validate(document.analysis or {}),
        created_at=ensure_timezone_aware(document.created_at),
        updated_at=ensure_timezone_aware(document.updated_at),
    )


def _to_record(document: TestResultDocument) -> TestResultRecord:
    summary = _to_summary(document)
    return TestResultRecord(
        **summary.model_dump(),
        survey_responses=document.survey_responses or {},
        device_info=document.device_info or {},
    )
