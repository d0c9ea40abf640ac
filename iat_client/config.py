"""Configuration for the result submission client."""

from pathlib import Path

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

DEFAULT_STATE_PATH = Path.home() / ".iat_client" / "state.json"


class ClientSettings(BaseSettings):
    """Client settings loaded from ``IAT_*`` environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=True,
        extra="ignore",
    )

    IAT_API_BASE_URL: str = "http://localhost:5000/api"
    IAT_CLIENT_STATE_PATH: Path = DEFAULT_STATE_PATH
    IAT_CLIENT_SKIP_PREFLIGHT: bool = False
    IAT_CLIENT_TIMEOUT: float = Field(default=30.0, gt=0)
