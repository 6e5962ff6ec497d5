import pytest
from fastapi.testclient import TestClient
from mongomock_motor import AsyncMongoMockClient

from swipematch.core import config
from swipematch.core.db import Database, get_database
from swipematch.core.kv import MemoryKeyValueStore
from swipematch.core.security import create_access_token
from swipematch.main import app

TEST_SECRET = "test-secret"


@pytest.fixture
def database():
    return Database(mongo_client=AsyncMongoMockClient(), kv=MemoryKeyValueStore(), db_name="swipematch_test")


@pytest.fixture
def client(database, monkeypatch):
    monkeypatch.setattr(config, "JWT_SECRET", TEST_SECRET)
    app.dependency_overrides[get_database] = lambda: database
    # No context manager: startup would try to reach a real MongoDB
    yield TestClient(app)
    app.dependency_overrides.clear()


@pytest.fixture
def auth_headers(monkeypatch):
    monkeypatch.setattr(config, "JWT_SECRET", TEST_SECRET)

    def _headers(user_id: str) -> dict:
        return {"Authorization": f"Bearer {create_access_token(user_id)}"}

    return _headers
