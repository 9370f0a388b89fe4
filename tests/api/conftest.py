# tests/api/conftest.py
from unittest.mock import AsyncMock

import pytest
from fastapi.testclient import TestClient

from track4health.api.auth import get_current_user
from track4health.api.dependencies import get_record_store, get_sync_service
from track4health.api.utilities.limiter import limiter
from track4health.main import app
from track4health.services.record_store import RecordStore


@pytest.fixture
def record_store() -> RecordStore:
    storage = AsyncMock()
    storage.load_collection.return_value = []
    return RecordStore(storage)


@pytest.fixture
def mock_sync_service() -> AsyncMock:
    sync_service = AsyncMock()
    sync_service.push_session.return_value = True
    return sync_service


@pytest.fixture
def client(record_store, mock_sync_service, fmt_user):
    """
    TestClient without the lifespan: nothing connects to Redis or the remote
    API. The signed-in user is `fmt_user` unless a test overrides it again.
    """
    limiter.reset()
    app.dependency_overrides[get_current_user] = lambda: fmt_user
    app.dependency_overrides[get_record_store] = lambda: record_store
    app.dependency_overrides[get_sync_service] = lambda: mock_sync_service
    yield TestClient(app)
    app.dependency_overrides.clear()
