"""
Database base configuration for SQLAlchemy models.

Uses SQLAlchemy 2.0 style with DeclarativeBase. Engines are not created at
import time: the SQL result store builds its own async engine from the
configured URL so each application (and each test) owns its connection pool.
"""
from typing import Any, Dict

from sqlalchemy.ext.asyncio import AsyncEngine, create_async_engine
from sqlalchemy.orm import DeclarativeBase
from sqlalchemy.pool import AsyncAdaptedQueuePool, StaticPool

# Build the async URL by string-prefix replacement on the configured URL.
_SYNC_PREFIX_MAP = {
    "postgresql+asyncpg://": "postgresql+asyncpg://",
    "postgresql+psycopg2://": "postgresql+asyncpg://",
    "postgresql://": "postgresql+asyncpg://",
    "postgres://": "postgresql+asyncpg://",
    "sqlite+aiosqlite://": "sqlite+aiosqlite://",
    "sqlite://": "sqlite+aiosqlite://",
}


class Base(DeclarativeBase):
    """
    SQLAlchemy 2.0 declarative base class.
    """

    pass


def to_async_url(database_url: str) -> str:
    """
    Map a database URL onto its async driver.

    Raises:
        ValueError: If the URL scheme has no async driver mapping
    """
    for sync_prefix, async_prefix in _SYNC_PREFIX_MAP.items():
        if database_url.startswith(sync_prefix):
            return async_prefix + database_url[len(sync_prefix) :]
    raise ValueError(
        f"No async driver mapping for DATABASE_URL prefix. "
        f"Supported prefixes: {list(_SYNC_PREFIX_MAP.keys())}"
    )


def create_engine_for(
    database_url: str,
    *,
    pool_size: int = 10,
    max_overflow: int = 0,
    pool_timeout: int = 10,
    pool_recycle: int = 30,
    pool_pre_ping: bool = True,
    echo: bool = False,
) -> AsyncEngine:
    """
    Create an async engine with a bounded connection pool.

    In-memory SQLite databases exist per connection, so they get a single
    shared connection instead of a pool.
    """
    async_url = to_async_url(database_url)
    kwargs: Dict[str, Any] = {"echo": echo}

    if async_url.startswith("sqlite") and (
        ":memory:" in async_url or async_url.rstrip("/").endswith("sqlite+aiosqlite:")
    ):
        kwargs.update(
            poolclass=StaticPool,
            connect_args={"check_same_thread": False},
        )
    else:
        kwargs.update(
            poolclass=AsyncAdaptedQueuePool,
            pool_size=pool_size,
            max_overflow=max_overflow,
            pool_timeout=pool_timeout,
            pool_recycle=pool_recycle,
            pool_pre_ping=pool_pre_ping,
        )

    return create_async_engine(async_url, **kwargs)
