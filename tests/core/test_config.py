"""
Tests for application settings.
"""
import pytest
from pydantic import ValidationError

from iat_api.core.config import Settings


class TestSettingsDefaults:
    def test_defaults(self, monkeypatch):
        for name in ("ENV", "DATABASE_URL", "STRICT_VALIDATION", "PORT"):
            monkeypatch.delenv(name, raising=False)

        settings = Settings(_env_file=None)

        assert settings.API_PREFIX == "/api"
        assert settings.PORT == 5000
        assert settings.ENV == "production"
        assert settings.is_development is False
        assert settings.STRICT_VALIDATION is False
        assert settings.LIST_DEFAULT_LIMIT == 20
        assert settings.LIST_MAX_LIMIT == 100
        assert settings.DB_POOL_SIZE == 10
        assert settings.DB_POOL_TIMEOUT == 10

    def test_database_url_hidden_from_repr(self):
        settings = Settings(
            _env_file=None, DATABASE_URL="postgresql://user:secret@db/iat"
        )
        assert "secret" not in repr(settings)


class TestSettingsFromEnvironment:
    def test_environment_overrides(self, monkeypatch):
        monkeypatch.setenv("ENV", "development")
        monkeypatch.setenv("STRICT_VALIDATION", "true")
        monkeypatch.setenv("LIST_MAX_LIMIT", "50")

        settings = Settings(_env_file=None)

        assert settings.is_development is True
        assert settings.STRICT_VALIDATION is True
        assert settings.LIST_MAX_LIMIT == 50

    def test_invalid_env_rejected(self, monkeypatch):
        monkeypatch.setenv("ENV", "qa")
        with pytest.raises(ValidationError):
            Settings(_env_file=None)


class TestListLimitValidation:
    def test_default_limit_above_max_rejected(self):
        with pytest.raises(ValidationError, match="LIST_DEFAULT_LIMIT"):
            Settings(_env_file=None, LIST_DEFAULT_LIMIT=200, LIST_MAX_LIMIT=100)

    def test_startup_timeout_must_be_positive(self):
        with pytest.raises(ValidationError):
            Settings(_env_file=None, DB_STARTUP_TIMEOUT=0)
