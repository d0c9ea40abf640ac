"""Per-installation user id and device metadata.

The user id is generated once and kept in a small JSON state file so every
submission from the same installation carries the same id.
"""

import json
import locale
import logging
import platform
import secrets
import shutil
import string
import time
from pathlib import Path
from typing import Any, Dict, Optional, Union
from zoneinfo import ZoneInfoNotFoundError

import httpx
from tzlocal import get_localzone_name

from iat_client import __version__
from iat_client.config import DEFAULT_STATE_PATH

logger = logging.getLogger(__name__)

_BASE36_ALPHABET = string.digits + string.ascii_lowercase
USER_ID_SUFFIX_LENGTH = 7


def generate_user_id(now_ms: Optional[int] = None) -> str:
    """Build ``user_<epoch-ms>_<7 random base36 chars>``."""
    if now_ms is None:
        now_ms = int(time.time() * 1000)
    suffix = "".join(
        secrets.choice(_BASE36_ALPHABET) for _ in range(USER_ID_SUFFIX_LENGTH)
    )
    return f"user_{now_ms}_{suffix}"


class UserIdStore:
    """File-backed key/value state for the client.

    Attributes:
        path: Location of the JSON state file
    """

    USER_ID_KEY = "userId"

    def __init__(self, path: Union[str, Path, None] = None):
        self.path = Path(path) if path is not None else DEFAULT_STATE_PATH

    def _load(self) -> Dict[str, Any]:
        if not self.path.exists():
            return {}
        try:
            state = json.loads(self.path.read_text(encoding="utf-8"))
        except (OSError, ValueError) as e:
            logger.warning(f"Ignoring unreadable client state at {self.path}: {e}")
            return {}
        return state if isinstance(state, dict) else {}

    def _save(self, state: Dict[str, Any]) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        self.path.write_text(json.dumps(state, indent=2), encoding="utf-8")

    def get_user_id(self) -> Optional[str]:
        user_id = self._load().get(self.USER_ID_KEY)
        return user_id if isinstance(user_id, str) and user_id else None

    def set_user_id(self, user_id: str) -> None:
        state = self._load()
        state[self.USER_ID_KEY] = user_id
        self._save(state)

    def get_or_create_user_id(self) -> str:
        """Return the persisted user id, creating and persisting one if absent."""
        user_id = self.get_user_id()
        if user_id:
            logger.debug(f"Using existing user id {user_id}")
            return user_id

        user_id = generate_user_id()
        self.set_user_id(user_id)
        logger.info(f"Generated new user id {user_id}")
        return user_id


def _language() -> str:
    language = locale.getlocale()[0]
    return language.replace("_", "-") if language else "unknown"


def _screen_size() -> str:
    size = shutil.get_terminal_size(fallback=(0, 0))
    if size.columns <= 0 or size.lines <= 0:
        return "unknown"
    return f"{size.columns}x{size.lines}"


def _timezone() -> str:
    """IANA name of the local zone, e.g. ``Asia/Taipei``."""
    try:
        return get_localzone_name() or "unknown"
    except ZoneInfoNotFoundError:
        return "unknown"


def user_agent() -> str:
    return (
        f"iat-client/{__version__} httpx/{httpx.__version__} "
        f"Python/{platform.python_version()}"
    )


def collect_device_info() -> Dict[str, str]:
    """Coarse, read-only description of the submitting environment."""
    return {
        "browser": user_agent(),
        "language": _language(),
        "screenSize": _screen_size(),
        "timezone": _timezone(),
        "platform": platform.system() or "unknown",
    }
