"""
Tests for application wiring: middleware, exception handlers and lifespan.
"""
import asyncio
from unittest.mock import AsyncMock, patch

import pytest
from fastapi.testclient import TestClient

from iat_api.main import create_application
from iat_api.storage import InMemoryResultStore, StorageUnavailableError


class _FailingStore(InMemoryResultStore):
    async def connect(self) -> None:
        raise StorageUnavailableError("connect to database", message="refused")


class _SlowStore(InMemoryResultStore):
    async def connect(self) -> None:
        await asyncio.sleep(5)


class TestUnknownRoutes:
    def test_unknown_path_returns_404_envelope(self, memory_client):
        response = memory_client.get("/api/does-not-exist")

        assert response.status_code == 404
        assert response.json() == {
            "success": False,
            "message": "The requested resource was not found.",
            "error": "NOT_FOUND",
            "path": "/api/does-not-exist",
        }

    def test_wrong_method_uses_envelope(self, memory_client):
        response = memory_client.delete("/api/test-results")

        assert response.status_code == 405
        body = response.json()
        assert body["success"] is False
        assert body["error"] == "METHOD_NOT_ALLOWED"


class TestRequestSizeLimit:
    @patch("iat_api.core.config.settings.MAX_BODY_SIZE", 1024)
    def test_oversized_body_returns_413(self):
        store = InMemoryResultStore()
        with TestClient(create_application(store=store)) as client:
            response = client.post(
                "/api/test-results",
                json={"userId": "u1", "surveyResponses": {"notes": "x" * 4096}},
            )

        assert response.status_code == 413
        assert response.json()["error"] == "PAYLOAD_TOO_LARGE"

    def test_normal_body_passes(self, memory_client):
        response = memory_client.post("/api/test-results", json={"userId": "u1"})
        assert response.status_code == 201


class TestRequestHeaders:
    def test_request_id_generated(self, memory_client):
        response = memory_client.get("/api/health")
        assert response.headers["X-Request-ID"]

    def test_request_id_propagated(self, memory_client):
        response = memory_client.get("/api/health", headers={"X-Request-ID": "abc-123"})
        assert response.headers["X-Request-ID"] == "abc-123"

    def test_process_time_header(self, memory_client):
        response = memory_client.get("/api/health")
        assert float(response.headers["X-Process-Time"]) >= 0

    def test_cors_preflight_for_frontend_origin(self, memory_client):
        response = memory_client.options(
            "/api/test-results",
            headers={
                "Origin": "http://localhost:3000",
                "Access-Control-Request-Method": "POST",
                "Access-Control-Request-Headers": "Content-Type",
            },
        )
        assert response.status_code == 200
        assert (
            response.headers["access-control-allow-origin"] == "http://localhost:3000"
        )


class TestUnhandledExceptions:
    def test_unexpected_error_returns_500_with_error_id(self):
        store = InMemoryResultStore()
        app = create_application(store=store)
        with TestClient(app, raise_server_exceptions=False) as client:
            with patch.object(
                store, "count", AsyncMock(side_effect=RuntimeError("boom"))
            ):
                response = client.get("/api/test-results/count/all")

        assert response.status_code == 500
        body = response.json()
        assert body["success"] is False
        assert body["error"] == "INTERNAL_SERVER_ERROR"
        assert body["error_id"]
        assert "details" not in body

    @patch("iat_api.core.config.settings.ENV", "development")
    def test_development_includes_details(self):
        store = InMemoryResultStore()
        app = create_application(store=store)
        with TestClient(app, raise_server_exceptions=False) as client:
            with patch.object(
                store, "count", AsyncMock(side_effect=RuntimeError("boom"))
            ):
                response = client.get("/api/test-results/count/all")

        assert response.status_code == 500
        assert response.json()["details"] == "boom"


class TestLifespan:
    def test_store_connected_on_startup_and_closed_on_shutdown(self):
        store = InMemoryResultStore()
        with TestClient(create_application(store=store)):
            assert store.is_connected is True
        assert store.is_connected is False

    def test_failed_connection_aborts_startup(self):
        app = create_application(store=_FailingStore())
        with pytest.raises(StorageUnavailableError):
            with TestClient(app):
                pass

    @patch("iat_api.core.config.settings.DB_STARTUP_TIMEOUT", 0.05)
    def test_connection_timeout_aborts_startup(self):
        app = create_application(store=_SlowStore())
        with pytest.raises(TimeoutError):
            with TestClient(app):
                pass

    @patch("iat_api.core.config.settings.DATABASE_URL", "memory://")
    def test_store_built_from_settings(self):
        app = create_application()
        with TestClient(app) as client:
            assert isinstance(app.state.store, InMemoryResultStore)
            assert client.get("/api/health").json()["database"] == "connected"
