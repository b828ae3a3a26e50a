"""
Shared fixtures.

The environment is pinned before anything from ``canteen`` is imported,
so cached settings always see the in-memory backend and a cheap bcrypt
cost.
"""

import os

os.environ["STORAGE_BACKEND"] = "memory"
os.environ["BCRYPT_ROUNDS"] = "4"
os.environ["LEDGER_EXPORT_ENABLED"] = "false"
os.environ["ENV_MODE"] = "development"

from datetime import datetime, timedelta, timezone

import pytest
import pytest_asyncio
from fastapi.testclient import TestClient

from canteen.core.config import get_settings
from canteen.core.security import PasswordHasher, get_password_hasher
from canteen.services.order_service import OrderService
from canteen.services.storage import reset_storage
from canteen.services.storage.database import DatabaseStorage
from canteen.services.storage.memory import MemoryStorage


class FakeClock:
    """Returns strictly increasing timestamps, one minute apart."""

    def __init__(self, start: datetime = datetime(2024, 1, 15, 12, 0, tzinfo=timezone.utc)):
        self.current = start

    def __call__(self) -> datetime:
        self.current += timedelta(minutes=1)
        return self.current


@pytest.fixture
def hasher() -> PasswordHasher:
    return PasswordHasher(rounds=4)


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def memory_storage() -> MemoryStorage:
    return MemoryStorage()


@pytest_asyncio.fixture
async def database_storage(tmp_path):
    storage = DatabaseStorage(f"sqlite+aiosqlite:///{tmp_path / 'canteen.db'}")
    await storage.init()
    yield storage
    await storage.close()


@pytest_asyncio.fixture(params=["memory", "database"])
async def storage(request, tmp_path):
    """Each storage backend in turn."""
    if request.param == "memory":
        yield MemoryStorage()
        return

    backend = DatabaseStorage(f"sqlite+aiosqlite:///{tmp_path / 'canteen.db'}")
    await backend.init()
    yield backend
    await backend.close()


@pytest.fixture
def service(memory_storage, hasher, clock) -> OrderService:
    return OrderService(memory_storage, hasher, clock=clock)


@pytest.fixture
def settings_env(monkeypatch):
    """Set environment variables and reload the cached settings."""

    def apply(**values):
        for key, value in values.items():
            monkeypatch.setenv(key.upper(), str(value))
        get_settings.cache_clear()
        return get_settings()

    yield apply
    monkeypatch.undo()
    get_settings.cache_clear()


@pytest.fixture
def client():
    """TestClient over a fresh in-memory storage."""
    from canteen.main import app

    reset_storage()
    get_password_hasher.cache_clear()
    with TestClient(app) as test_client:
        yield test_client
    reset_storage()


@pytest.fixture
def signed_up(client):
    """Register account A / S1 with password p."""
    response = client.post("/api/signup", json={"name": "A", "srn": "S1", "password": "p"})
    assert response.status_code == 201
    return {"name": "A", "srn": "S1", "password": "p"}
