"""
Health check and status endpoints.
"""
import logging
import time

from fastapi import APIRouter, Depends

from iat_api.api.deps import get_store
from iat_api.core.config import settings
from iat_api.core.datetime_utils import utc_now
from iat_api.core.error_responses import (
    ErrorCodes,
    ErrorMessages,
    raise_server_error,
)
from iat_api.storage.base import ResultStore
from iat_api.storage.errors import StorageError

logger = logging.getLogger(__name__)

router = APIRouter()

_started_at = time.monotonic()


def connection_state(store: ResultStore) -> str:
    return "connected" if store.is_connected else "disconnected"


@router.get("/health")
async def health_check(store: ResultStore = Depends(get_store)):
    """
    Health check endpoint.

    Always answers 200 while the process is up; the storage connection
    state is reported in ``database``.
    """
    return {
        "status": "OK",
        "timestamp": utc_now().isoformat(),
        "service": settings.APP_NAME,
        "version": settings.APP_VERSION,
        "uptime": round(time.monotonic() - _started_at, 3),
        "database": connection_state(store),
        "storage": store.describe(),
    }


@router.get("/storage-check")
@router.get("/test-atlas", include_in_schema=False)
async def storage_check(store: ResultStore = Depends(get_store)):
    """
    Write, read back and delete a probe record.

    Used by clients before submitting to confirm storage is reachable.
    """
    try:
        probe = await store.smoke_test()
    except StorageError as e:
        logger.error(f"Storage check failed: {e}")
        raise_server_error(
            ErrorMessages.STORAGE_CHECK_FAILED,
            code=ErrorCodes.STORAGE_CHECK_FAILED,
            debug_detail=str(e),
        )

    return {
        "success": True,
        "message": "Storage connection is working.",
        "database": store.describe().get("database"),
        "connectionState": connection_state(store),
        "testInsertId": probe["testInsertId"],
        "testReadSuccess": probe["testReadSuccess"],
        "timestamp": utc_now().isoformat(),
    }
