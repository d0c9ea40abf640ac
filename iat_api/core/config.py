"""
Application configuration settings.
"""

from typing import List, Literal, Self

from pydantic import Field, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    # Application
    APP_NAME: str = "IAT Results API"
    APP_VERSION: str = "0.1.0"
    ENV: Literal["development", "test", "staging", "production"] = "production"
    DEBUG: bool = False
    LOG_LEVEL: str = "INFO"

    # API
    API_PREFIX: str = "/api"

    # CORS
    CORS_ORIGINS: List[str] = [
        "http://localhost:3000",
        "http://127.0.0.1:3000",
    ]

    # Server
    HOST: str = "0.0.0.0"
    PORT: int = 5000

    # Database
    # Empty in production is a startup error; development falls back to a
    # local SQLite file.
    DATABASE_URL: str = Field(
        default="",
        repr=False,
        description="Database connection string (postgresql:// or sqlite://)",
    )
    DB_POOL_SIZE: int = 10  # Connections kept open in the pool
    DB_POOL_MAX_OVERFLOW: int = 0  # Extra connections beyond the pool size
    DB_POOL_TIMEOUT: int = 10  # Seconds to wait for a pooled connection
    DB_POOL_RECYCLE: int = 30  # Recycle connections older than this (seconds)
    DB_POOL_PRE_PING: bool = True
    DB_STARTUP_TIMEOUT: float = Field(
        default=10.0,
        gt=0,
        description="Seconds to wait for the database at startup before exiting",
    )
    DB_CREATE_TABLES: bool = True

    # Test result submissions
    STRICT_VALIDATION: bool = Field(
        default=False,
        description=(
            "Reject malformed results/analysis structures instead of "
            "defaulting and filtering them"
        ),
    )
    DEFAULT_BIAS_LEVEL: str = "無或極弱偏見"
    LIST_DEFAULT_LIMIT: int = Field(default=20, ge=1)
    LIST_MAX_LIMIT: int = Field(default=100, ge=1)

    # Request handling
    MAX_BODY_SIZE: int = 10 * 1024 * 1024  # 10MB
    SLOW_REQUEST_THRESHOLD: float = 1.0  # seconds

    # Sentry Error Tracking
    SENTRY_DSN: str = Field(
        default="",
        description="Sentry DSN for error tracking (leave empty to disable)",
    )
    SENTRY_TRACES_SAMPLE_RATE: float = Field(
        default=0.1,
        ge=0.0,
        le=1.0,
        description="Sentry traces sample rate (0.0-1.0, 0.1 = 10% of transactions)",
    )

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=True,
        extra="ignore",
    )

    @property
    def is_development(self) -> bool:
        return self.ENV == "development"

    @model_validator(mode="after")
    def validate_list_limits(self) -> Self:
        """Default page size may not exceed the maximum page size."""
        if self.LIST_DEFAULT_LIMIT > self.LIST_MAX_LIMIT:
            raise ValueError(
                f"LIST_DEFAULT_LIMIT ({self.LIST_DEFAULT_LIMIT}) must not exceed "
                f"LIST_MAX_LIMIT ({self.LIST_MAX_LIMIT})"
            )
        return self


settings = Settings()
