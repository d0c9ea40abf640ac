"""
Result storage backends.
"""
import logging

from iat_api.core.config import Settings
from iat_api.storage.base import ResultStore, new_record_id
from iat_api.storage.errors import (
    DuplicateRecordError,
    StorageError,
    StorageUnavailableError,
    StorageValidationError,
)
from iat_api.storage.memory import InMemoryResultStore
from iat_api.storage.sql import SQLResultStore

logger = logging.getLogger(__name__)

MEMORY_URL = "memory://"
DEVELOPMENT_DATABASE_URL = "sqlite:///./iat_results.db"


def create_store(settings: Settings) -> ResultStore:
    """
    Build the result store described by the settings.

    ``DATABASE_URL=memory://`` selects the in-process store. An empty
    ``DATABASE_URL`` falls back to a local SQLite file except in production.

    Raises:
        RuntimeError: If DATABASE_URL is empty in production
    """
    database_url = settings.DATABASE_URL.strip()
    if not database_url:
        if settings.ENV == "production":
            raise RuntimeError(
                "DATABASE_URL is not set or is empty. "
                "Set it to the database connection string before starting the API."
            )
        logger.warning(
            f"DATABASE_URL not set; using development database {DEVELOPMENT_DATABASE_URL}"
        )
        database_url = DEVELOPMENT_DATABASE_URL

    if database_url.startswith(MEMORY_URL):
        return InMemoryResultStore()

    return SQLResultStore(
        database_url,
        pool_size=settings.DB_POOL_SIZE,
        max_overflow=settings.DB_POOL_MAX_OVERFLOW,
        pool_timeout=settings.DB_POOL_TIMEOUT,
        pool_recycle=settings.DB_POOL_RECYCLE,
        pool_pre_ping=settings.DB_POOL_PRE_PING,
        echo=settings.DEBUG,
        create_tables=settings.DB_CREATE_TABLES,
    )


__all__ = [
    "create_store",
    "new_record_id",
    "ResultStore",
    "InMemoryResultStore",
    "SQLResultStore",
    "StorageError",
    "StorageUnavailableError",
    "DuplicateRecordError",
    "StorageValidationError",
]
