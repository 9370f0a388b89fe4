# tests/services/test_auth_service.py
import asyncio
from unittest.mock import AsyncMock

import pytest
import redis.asyncio as redis

from track4health.db.storage_client import CACHED_USERS_KEY, CURRENT_USER_KEY, StorageClient
from track4health.models.user_models import Location
from track4health.modules.remote_api import NoConnectivityError, RemoteApiError, RemoteUnreachableError
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
def auth_service(mock_storage, mock_remote_api) -> AuthService:
    return AuthService(storage=mock_storage, remote_api=mock_remote_api)


@pytest.mark.asyncio
class TestLogin:

    async def test_remote_login_caches_and_stores_current_user(self, auth_service, mock_storage, mock_remote_api, fmt_user):
        mock_remote_api.login.return_value = fmt_user

        user = await auth_service.login("fmt", "secret")

        assert user.username == "fmt"
        assert user.is_online is True
        assert user.last_active is not None
        mock_storage.save_collection.assert_awaited_once_with(CACHED_USERS_KEY, [fmt_user])
        mock_storage.save_item.assert_awaited_once_with(CURRENT_USER_KEY, user)

    async def test_remote_login_replaces_stale_cache_entry(self, auth_service, mock_storage, mock_remote_api, fmt_user, master_user):
        stale = fmt_user.model_copy(update={"name": "Old Name"})
        mock_storage.load_collection.return_value = [stale, master_user]
        mock_remote_api.login.return_value = fmt_user

        await auth_service.login("fmt", "secret")

        mock_storage.save_collection.assert_awaited_once_with(CACHED_USERS_KEY, [master_user, fmt_user])

    async def test_rejected_credentials_return_none(self, auth_service, mock_storage, mock_remote_api):
        mock_remote_api.login.return_value = None

        assert await auth_service.login("fmt", "wrong") is None
        mock_storage.save_item.assert_not_awaited()

    async def test_offline_login_uses_cached_user(self, auth_service, mock_storage, mock_remote_api, fmt_user):
        mock_remote_api.login.side_effect = NoConnectivityError("No internet connection")
        mock_storage.load_collection.return_value = [fmt_user]

        user = await auth_service.login("fmt", "anything")

        assert user.id == fmt_user.id
        assert user.is_online is True
        mock_storage.save_collection.assert_not_awaited()
        mock_storage.save_item.assert_awaited_once()

    async def test_offline_login_unknown_user_is_refused(self, auth_service, mock_storage, mock_remote_api):
        mock_remote_api.login.side_effect = RemoteUnreachableError("Could not reach the server (login.php).")

        assert await auth_service.login("ghost", "pw") is None
        mock_storage.save_item.assert_not_awaited()

    async def test_bad_server_response_does_not_fall_back(self, auth_service, mock_storage, mock_remote_api, fmt_user):
        mock_remote_api.login.side_effect = RemoteApiError("Failed to parse server response.")
        mock_storage.load_collection.return_value = [fmt_user]

        with pytest.raises(RemoteApiError):
            await auth_service.login("fmt", "WRONG")
        mock_storage.save_item.assert_not_awaited()


@pytest.mark.asyncio
class TestSession:

    async def test_logout_clears_current_user(self, auth_service, mock_storage, fmt_user):
        mock_storage.load_item.return_value = fmt_user
        await auth_service.logout()
        mock_storage.delete.assert_awaited_once_with(CURRENT_USER_KEY)

    async def test_heartbeat_without_user(self, auth_service, mock_storage):
        assert await auth_service.heartbeat() is None
        mock_storage.save_item.assert_not_awaited()

    async def test_heartbeat_refreshes_last_active(self, auth_service, mock_storage, fmt_user):
        mock_storage.load_item.return_value = fmt_user

        user = await auth_service.heartbeat()

        assert user.is_online is True
        assert user.last_active is not None
        mock_storage.save_item.assert_awaited_once_with(CURRENT_USER_KEY, user)


@pytest.mark.asyncio
class TestLocation:

    async def test_update_location_pushes_to_remote(self, auth_service, mock_storage, mock_remote_api, fmt_user):
        mock_storage.load_item.return_value = fmt_user

        user = await auth_service.update_location(24.86, 67.01)

        assert user.location == Location(latitude=24.86, longitude=67.01)
        mock_remote_api.update_location.assert_awaited_once_with("3", 24.86, 67.01)

    async def test_remote_failure_keeps_local_fix(self, auth_service, mock_storage, mock_remote_api, fmt_user):
        mock_storage.load_item.return_value = fmt_user
        mock_remote_api.update_location.side_effect = NoConnectivityError("No internet connection")

        user = await auth_service.update_location(24.86, 67.01)

        assert user.location.latitude == 24.86
        mock_storage.save_item.assert_awaited_once()

    async def test_fix_without_user_is_ignored(self, auth_service, mock_storage, mock_remote_api):
        await auth_service.on_location(Location(latitude=1.0, longitude=2.0))
        mock_storage.save_item.assert_not_awaited()
        mock_remote_api.update_location.assert_not_awaited()


class SlowRedis:
    """Dict-backed stand-in for the Redis connection that yields on every call."""

    def __init__(self):
        self.data = {}

    async def get(self, key):
        await asyncio.sleep(0)
        return self.data.get(key)

    async def set(self, key, value):
        await asyncio.sleep(0)
        self.data[key] = value

    async def delete(self, key):
        await asyncio.sleep(0)
        return 1 if self.data.pop(key, None) is not None else 0


@pytest.mark.asyncio
async def test_heartbeat_and_location_fix_both_survive(mock_remote_api, fmt_user):
    pool = redis.ConnectionPool.from_url("redis://localhost:6379/15", decode_responses=True)
    storage = StorageClient(pool=pool)
    storage._redis = SlowRedis()
    await storage.save_item(CURRENT_USER_KEY, fmt_user.model_copy(update={"is_online": False}))
    auth_service = AuthService(storage=storage, remote_api=mock_remote_api)

    await asyncio.gather(auth_service.heartbeat(), auth_service.update_location(24.8, 67.0))

    stored = await auth_service.current_user()
    assert stored.is_online is True
    assert stored.location == Location(latitude=24.8, longitude=67.0)
