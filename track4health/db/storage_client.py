import asyncio
import json
import logging
from typing import List, Optional, Sequence, Type, TypeVar

import redis.asyncio as redis
from pydantic import BaseModel, TypeAdapter, ValidationError

logger = logging.getLogger(__name__)

ModelT = TypeVar("ModelT", bound=BaseModel)

# ===== Storage keys =====
# Each key holds a full JSON snapshot; there is no schema version, so any
# format change is a breaking migration.
AWARENESS_SESSIONS_KEY = "awarenessSessions"
CHILD_SCREENINGS_KEY = "childScreenings"
CURRENT_USER_KEY = "track4health_user"
CACHED_USERS_KEY = "cached_users"
GPS_PHOTOS_KEY = "gpsPhotos"
PENDING_SYNC_KEY = "pending_sync_records"


class StorageClient:
    """
    Key/value snapshot storage on top of Redis.

    Mirrors the browser storage of the field app: every write replaces the
    whole value of a key, and a value that cannot be parsed is treated as absent.
    """

    def __init__(self, pool: redis.ConnectionPool):
        self._redis = redis.Redis(connection_pool=pool, decode_responses=True)
        # Serializes read-modify-write of `track4health_user` (heartbeat job vs. requests).
        self.current_user_lock = asyncio.Lock()

    # ===== Collections =====

    async def save_collection(self, key: str, items: Sequence[BaseModel]):
        """Overwrites `key` with the serialized list."""
        payload = [item.model_dump(mode="json", by_alias=True) for item in items]
        await self._redis.set(key, json.dumps(payload))

    async def load_collection(self, key: str, model: Type[ModelT]) -> List[ModelT]:
        """Reads the list stored under `key`. Missing or corrupted values yield []."""
        raw = await self._redis.get(key)
        if not raw:
            return []
        try:
            return TypeAdapter(List[model]).validate_json(raw)
        except ValidationError:
            logger.error(f"Stored value under '{key}' could not be parsed, treating it as empty.", exc_info=True)
            return []

    # ===== Single records =====

    async def save_item(self, key: str, item: BaseModel):
        await self._redis.set(key, item.model_dump_json(by_alias=True))

    async def load_item(self, key: str, model: Type[ModelT]) -> Optional[ModelT]:
        """Reads a single record. A corrupted value is removed and reported as absent."""
        raw = await self._redis.get(key)
        if not raw:
            return None
        try:
            return model.model_validate_json(raw)
        except ValidationError:
            logger.error(f"Stored value under '{key}' could not be parsed, removing it.", exc_info=True)
            await self._redis.delete(key)
            return None

    async def delete(self, key: str) -> int:
        return await self._redis.delete(key)
