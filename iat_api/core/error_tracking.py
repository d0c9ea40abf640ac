"""
Sentry error tracking.

Initialization is a no-op when ``SENTRY_DSN`` is empty, so every caller can
use ``capture_error`` unconditionally.
"""
import logging
from datetime import date, datetime
from typing import Any, Dict, Optional

import sentry_sdk
from sentry_sdk.integrations.fastapi import FastApiIntegration
from sentry_sdk.integrations.logging import LoggingIntegration
from sentry_sdk.integrations.starlette import StarletteIntegration

from iat_api.core.config import Settings

logger = logging.getLogger(__name__)

_initialized = False


def _serialize_value(value: Any) -> Any:
    """Convert a context value to a JSON-compatible type."""
    if value is None or isinstance(value, (bool, int, float, str)):
        return value
    if isinstance(value, (datetime, date)):
        return value.isoformat()
    if isinstance(value, dict):
        return {str(k): _serialize_value(v) for k, v in value.items()}
    if isinstance(value, (list, tuple, set)):
        return [_serialize_value(item) for item in value]
    return str(value)


def init_error_tracking(settings: Settings) -> bool:
    """Initialize the Sentry SDK with FastAPI/Starlette integrations.

    Returns:
        True if Sentry was initialized, False if skipped (no DSN) or failed.
    """
    global _initialized

    if not settings.SENTRY_DSN:
        logger.debug("Sentry initialization skipped (DSN not configured)")
        return False

    try:
        sentry_sdk.init(
            dsn=settings.SENTRY_DSN,
            environment=settings.ENV,
            release=settings.APP_VERSION,
            traces_sample_rate=settings.SENTRY_TRACES_SAMPLE_RATE,
            integrations=[
                LoggingIntegration(level=None, event_level=None),
                FastApiIntegration(transaction_style="endpoint"),
                StarletteIntegration(transaction_style="endpoint"),
            ],
            send_default_pii=False,
        )
    except Exception as e:
        logger.error(f"Failed to initialize Sentry: {e}", exc_info=True)
        return False

    _initialized = True
    logger.info(
        f"Sentry initialized for environment '{settings.ENV}' "
        f"with {settings.SENTRY_TRACES_SAMPLE_RATE * 100:.0f}% trace sampling"
    )
    return True


def capture_error(
    exception: BaseException,
    *,
    context: Optional[Dict[str, Any]] = None,
    tags: Optional[Dict[str, str]] = None,
) -> Optional[str]:
    """Capture an exception and send it to Sentry.

    Returns:
        Event ID if captured, None if Sentry is not initialized.
    """
    if not _initialized:
        return None

    with sentry_sdk.new_scope() as scope:
        if context:
            scope.set_context("additional", _serialize_value(context))
        for key, value in (tags or {}).items():
            scope.set_tag(key, value)
        return sentry_sdk.capture_exception(exception)


def flush_error_tracking(timeout: float = 2.0) -> None:
    """Flush pending events before shutdown."""
    if _initialized:
        sentry_sdk.flush(timeout=timeout)
