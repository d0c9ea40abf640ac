"""
Pytest configuration and shared fixtures for testing.
"""
import os
import time
from typing import Any, Dict

import pytest
import pytest_asyncio
from fastapi.testclient import TestClient

from iat_api.main import create_application
from iat_api.storage import InMemoryResultStore, SQLResultStore


def pytest_addoption(parser: pytest.Parser) -> None:
    parser.addoption(
        "--run-integration",
        action="store_true",
        default=False,
        help="Run integration tests that require live external services",
    )


def pytest_collection_modifyitems(
    config: pytest.Config, items: list[pytest.Item]
) -> None:
    if config.getoption("--run-integration"):
        return
    skip_integration = pytest.mark.skip(reason="need --run-integration option to run")
    for item in items:
        if "integration" in item.keywords:
            item.add_marker(skip_integration)


def sqlite_url(tmp_path) -> str:
    """File-backed SQLite URL inside the test's temporary directory."""
    return f"sqlite:///{tmp_path / 'results.db'}"


@pytest.fixture
def memory_store():
    """A fresh, not yet connected in-memory store."""
    return InMemoryResultStore()


@pytest.fixture(params=["memory", "sql"])
def any_store(request, tmp_path):
    """Each store backend in turn, not yet connected."""
    if request.param == "memory":
        return InMemoryResultStore()
    return SQLResultStore(sqlite_url(tmp_path))


@pytest_asyncio.fixture(params=["memory", "sql"])
async def connected_store(request, tmp_path):
    """Each store backend in turn, connected for the test and closed after."""
    if request.param == "memory":
        store = InMemoryResultStore()
    else:
        store = SQLResultStore(sqlite_url(tmp_path))
    await store.connect()
    yield store
    await store.close()


@pytest.fixture
def app(any_store):
    """The full application (routes, middleware, handlers) on a test store."""
    return create_application(store=any_store)


@pytest.fixture
def client(app):
    """
    Test client with the lifespan running, so the store is connected.
    """
    with TestClient(app) as test_client:
        yield test_client


@pytest.fixture
def memory_client(memory_store):
    """Test client on the in-memory store only, for tests that reach into it."""
    with TestClient(create_application(store=memory_store)) as test_client:
        yield test_client


@pytest.fixture
def valid_payload() -> Dict[str, Any]:
    """A well-formed submission."""
    return {
        "userId": "user_1718000000000_k3j9x2a",
        "testDate": "2024-06-10T08:00:00.000Z",
        "results": {
            "maleComputer": [512.4, 630.0, 588.1],
            "femaleSkincare": [470.2, 455.0],
            "femaleComputer": [702.9, 690.3],
            "maleSkincare": [655.5, 720.0],
        },
        "analysis": {
            "dScore": 0.42,
            "biasType": "male-tech",
            "biasLevel": "moderate",
            "biasDirection": "male-computer",
            "d1Score": 0.38,
            "d2Score": 0.46,
            "d3Score": 0.0,
            "d4Score": 0.0,
        },
        "surveyResponses": {"age": "25-34", "gender": "prefer-not-to-say"},
        "deviceInfo": {"browser": "Mozilla/5.0", "language": "zh-TW"},
    }


@pytest.fixture
def utc_plus_8_local_time():
    """Run the test with the process local time zone set to UTC+8 (no DST)."""
    if not hasattr(time, "tzset"):
        pytest.skip("time.tzset is not available on this platform")
    previous = os.environ.get("TZ")
    os.environ["TZ"] = "CST-8"
    time.tzset()
    yield
    if previous is None:
        os.environ.pop("TZ", None)
    else:
        os.environ["TZ"] = previous
    time.tzset()
