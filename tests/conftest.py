"""Pytest fixtures for BeaconHub.

Apps are built per test against a fresh SQLite file under tmp_path and driven
through TestClient as a context manager so the lifespan (store init) runs.
"""

from pathlib import Path

import pytest
from fastapi.testclient import TestClient

from beaconhub.app import create_app
from beaconhub.config import Settings
from beaconhub.db import DocumentStore, StorageError

TEST_API_KEY = "test-api-key-12345"


class BrokenStore(DocumentStore):
    """Store whose every data operation fails."""

    async def init(self) -> None:
        self.connected = True

    async def ping(self) -> bool:
        return False

    async def _fail(self, *args, **kwargs):
        raise StorageError("database unavailable")

    find_all = _fail
    find_one = _fail
    find_max = _fail
    insert_one = _fail
    insert_many = _fail
    update_one = _fail
    delete_one = _fail
    count = _fail


@pytest.fixture
def db_path(tmp_path: Path) -> str:
    return str(tmp_path / "beaconhub-test.db")


@pytest.fixture
def settings(db_path: str) -> Settings:
    return Settings(api_key=TEST_API_KEY, db_path=db_path, log_level="WARNING")


@pytest.fixture
def auth_headers() -> dict:
    return {"X-API-Key": TEST_API_KEY}


@pytest.fixture
def make_client():
    """Factory: build a started TestClient for the given settings/store."""
    clients = []

    def _make(settings: Settings, store: DocumentStore = None) -> TestClient:
        client = TestClient(create_app(settings, store))
        client.__enter__()
        clients.append(client)
        return client

    yield _make

    for client in clients:
        client.__exit__(None, None, None)


@pytest.fixture
def client(make_client, settings) -> TestClient:
    return make_client(settings)


@pytest.fixture
def broken_client(make_client, settings) -> TestClient:
    return make_client(settings, BrokenStore(settings.db_path))
