import logging
import time
from typing import Dict, List

from ..db.storage_client import PENDING_SYNC_KEY, StorageClient
from ..models.health_models import REMOTE_RECORD_TYPES, PendingSyncRecord, SessionKind
from ..models.user_models import User
from ..modules.remote_api import NoConnectivityError, RemoteApiClient, RemoteApiError
from .health_data_service import ServiceError
from .record_store import RecordStore, Session

logger = logging.getLogger(__name__)


class SyncService:
    """
    Best-effort upload of local records to the remote API.

    Sessions saved while offline are queued under `pending_sync_records` and
    uploaded only when `flush_pending` is called.
    """

    def __init__(self, record_store: RecordStore, storage: StorageClient, remote_api: RemoteApiClient):
        self.record_store = record_store
        self.storage = storage
        self.remote_api = remote_api

    async def pending_records(self) -> List[PendingSyncRecord]:
        return await self.storage.load_collection(PENDING_SYNC_KEY, PendingSyncRecord)

    async def _enqueue(self, kind: SessionKind, sessions: List[Session]):
        record = PendingSyncRecord(
            type=REMOTE_RECORD_TYPES[kind],
            data=[s.model_dump(mode="json", by_alias=True) for s in sessions],
            timestamp=int(time.time() * 1000),
        )
        await self.storage.save_collection(PENDING_SYNC_KEY, [*await self.pending_records(), record])
        logger.info(f"Queued {len(sessions)} {record.type} for a later sync.")

    async def push_session(self, kind: SessionKind, session: Session) -> bool:
        """
        Sends one saved session to the remote API. Returns True when it was
        uploaded, False when it was queued or the upload failed.
        """
        try:
            if kind is SessionKind.AWARENESS:
                await self.remote_api.add_awareness_session(session)
            else:
                await self.remote_api.add_child_screening(session)
            return True
        except NoConnectivityError:
            await self._enqueue(kind, [session])
            return False
        except RemoteApiError as e:
            # Stays local only; an explicit upload_all can send it later.
            logger.warning(f"Uploading {kind.value} session {session.id} failed: {e}")
            return False

    async def upload_all(self, user: User, kind: SessionKind) -> int:
        """Sends the whole local collection through `sync_data.php`."""
        sessions = self.record_store.list_sessions(kind)
        if not sessions:
            return 0
        payload = [s.model_dump(mode="json", by_alias=True) for s in sessions]
        try:
            await self.remote_api.sync_data(user.id, REMOTE_RECORD_TYPES[kind], payload)
        except RemoteApiError as e:
            logger.error(f"Bulk upload of {kind.value} sessions failed: {e}", exc_info=True)
            raise ServiceError(f"Sync failed: {e}") from e
        logger.info(f"Uploaded {len(sessions)} {kind.value} session(s) for '{user.username}'.")
        return len(sessions)

    async def fetch_remote(self, kind: SessionKind) -> List[Session]:
        """Remote copy of a collection, or the locally stored snapshot when that fails."""
        try:
            if kind is SessionKind.AWARENESS:
                return await self.remote_api.get_awareness_sessions()
            return await self.remote_api.get_child_screenings()
        except RemoteApiError as e:
            logger.warning(f"Fetching {kind.value} sessions failed ({e}), using the local snapshot.")
            return self.record_store.list_sessions(kind)

    async def flush_pending(self, user: User) -> Dict[str, int]:
        """
        Uploads every queued record, grouped by type. The queue is cleared only
        when every group was accepted; otherwise it is left untouched.
        """
        pending = await self.pending_records()
        if not pending:
            return {}

        grouped: Dict[str, list] = {}
        for record in pending:
            grouped.setdefault(record.type, []).extend(record.data)

        try:
            for record_type, data in grouped.items():
                await self.remote_api.sync_data(user.id, record_type, data)
        except RemoteApiError as e:
            logger.error(f"Failed to sync offline data, {len(pending)} record(s) kept: {e}", exc_info=True)
            raise ServiceError(f"Failed to sync some offline data: {e}") from e

        await self.storage.delete(PENDING_SYNC_KEY)
        logger.info("All offline data synchronized successfully.")
        return {record_type: len(data) for record_type, data in grouped.items()}
