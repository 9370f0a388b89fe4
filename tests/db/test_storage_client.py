# tests/db/test_storage_client.py
import json
from unittest.mock import AsyncMock

import pytest
import redis.asyncio as redis

from track4health.db.storage_client import AWARENESS_SESSIONS_KEY, CURRENT_USER_KEY, StorageClient
from track4health.models.health_models import AwarenessSession
from track4health.models.user_models import User


@pytest.fixture
def storage():
    """StorageClient whose Redis connection is replaced by a mock; nothing connects."""
    pool = redis.ConnectionPool.from_url("redis://localhost:6379/15", decode_responses=True)
    client = StorageClient(pool=pool)
    client._redis = AsyncMock()
    return client


@pytest.mark.asyncio
class TestStorageClient:

    async def test_save_collection_writes_camel_case_snapshot(self, storage):
        session = AwarenessSession(village_name="Goth Ali", uc_name="Uc 1")
        await storage.save_collection(AWARENESS_SESSIONS_KEY, [session])

        key, raw = storage._redis.set.call_args[0]
        assert key == "awarenessSessions"
        stored = json.loads(raw)
        assert stored[0]["villageName"] == "Goth Ali"
        assert stored[0]["attendees"] == []

    async def test_load_collection_missing_key_is_empty(self, storage):
        storage._redis.get.return_value = None
        assert await storage.load_collection(AWARENESS_SESSIONS_KEY, AwarenessSession) == []

    async def test_load_collection_corrupted_is_empty(self, storage):
        storage._redis.get.return_value = "{not json"
        assert await storage.load_collection(AWARENESS_SESSIONS_KEY, AwarenessSession) == []

    async def test_load_collection_parses_snapshot(self, storage):
        storage._redis.get.return_value = json.dumps([{"id": "s1", "date": "2024-06-01", "villageName": "Goth Ali", "ucName": "Uc 1"}])
        sessions = await storage.load_collection(AWARENESS_SESSIONS_KEY, AwarenessSession)
        assert sessions[0].village_name == "Goth Ali"

    async def test_load_item_corrupted_is_removed(self, storage):
        storage._redis.get.return_value = '{"username": "no-id"}'
        assert await storage.load_item(CURRENT_USER_KEY, User) is None
        storage._redis.delete.assert_awaited_once_with(CURRENT_USER_KEY)

    async def test_save_and_load_item(self, storage):
        user = User(id="3", username="fmt", name="Fmt User", role="fmt")
        await storage.save_item(CURRENT_USER_KEY, user)
        raw = storage._redis.set.call_args[0][1]

        storage._redis.get.return_value = raw
        assert await storage.load_item(CURRENT_USER_KEY, User) == user
