# tests/api/test_api_auth.py
import asyncio
from datetime import timedelta
from unittest.mock import AsyncMock

import pytest
from fastapi.testclient import TestClient
from redis.exceptions import ConnectionError as RedisConnectionError

from track4health.api.auth import create_access_token
from track4health.api.dependencies import get_auth_service
from track4health.api.utilities.limiter import limiter
from track4health.main import app
from track4health.modules.remote_api import RemoteApiError
from track4health.services.auth_service import AuthService


@pytest.fixture
def mock_storage() -> AsyncMock:
    storage = AsyncMock()
    storage.load_collection.return_value = []
    storage.load_item.return_value = None
    storage.current_user_lock = asyncio.Lock()
    return storage


@pytest.fixture
def mock_remote_api() -> AsyncMock:
    return AsyncMock()


@pytest.fixture
def auth_client(mock_storage, mock_remote_api):
    limiter.reset()
    app.dependency_overrides[get_auth_service] = lambda: AuthService(storage=mock_storage, remote_api=mock_remote_api)
    yield TestClient(app)
    app.dependency_overrides.clear()


def _bearer(username: str, role: str = "fmt") -> dict:
    token = create_access_token({"sub": username, "role": role}, timedelta(minutes=5))
    return {"Authorization": f"Bearer {token}"}


def test_health_check():
    response = TestClient(app).get("/health")
    assert response.status_code == 200
    assert response.json()["status"] == "ok"


def test_login_success_returns_token_and_user(auth_client, mock_remote_api, fmt_user):
    mock_remote_api.login.return_value = fmt_user

    response = auth_client.post("/api/v1/auth/login", json={"username": "fmt", "password": "secret"})

    assert response.status_code == 200
    data = response.json()
    assert data["token"]["token_type"] == "bearer"
    assert data["user"]["username"] == "fmt"
    assert data["user"]["isOnline"] is True


def test_login_wrong_credentials(auth_client, mock_remote_api):
    mock_remote_api.login.return_value = None
    response = auth_client.post("/api/v1/auth/login", json={"username": "fmt", "password": "wrong"})
    assert response.status_code == 401


def test_login_with_storage_down(auth_client, mock_storage, mock_remote_api, fmt_user):
    mock_remote_api.login.return_value = fmt_user
    mock_storage.load_collection.side_effect = RedisConnectionError("down")
    response = auth_client.post("/api/v1/auth/login", json={"username": "fmt", "password": "secret"})
    assert response.status_code == 503


def test_login_with_broken_server_response(auth_client, mock_storage, mock_remote_api, fmt_user):
    mock_storage.load_collection.return_value = [fmt_user]
    mock_remote_api.login.side_effect = RemoteApiError("Failed to parse server response.")

    response = auth_client.post("/api/v1/auth/login", json={"username": "fmt", "password": "WRONG"})

    assert response.status_code == 502
    mock_storage.save_item.assert_not_awaited()


def test_me_requires_signed_in_user(auth_client, mock_storage, fmt_user):
    mock_storage.load_item.return_value = fmt_user
    assert auth_client.get("/api/v1/auth/me", headers=_bearer("fmt")).json()["id"] == "3"

    # Valid token, but someone else is signed in on the device.
    assert auth_client.get("/api/v1/auth/me", headers=_bearer("other")).status_code == 401


def test_me_rejects_garbage_token(auth_client):
    response = auth_client.get("/api/v1/auth/me", headers={"Authorization": "Bearer not-a-jwt"})
    assert response.status_code == 401


def test_logout(auth_client, mock_storage, fmt_user):
    mock_storage.load_item.return_value = fmt_user
    response = auth_client.post("/api/v1/auth/logout", headers=_bearer("fmt"))
    assert response.status_code == 204
    mock_storage.delete.assert_awaited_once_with("track4health_user")
