import logging
from datetime import date
from typing import Any, Dict, List, Mapping, Optional, Union

from pydantic import BaseModel
from redis.exceptions import RedisError

from ..db.storage_client import AWARENESS_SESSIONS_KEY, CHILD_SCREENINGS_KEY, StorageClient
from ..models.health_models import (
    ENTRY_MODELS,
    SESSION_MODELS,
    AwarenessSession,
    ChildScreening,
    NutritionStatus,
    SessionKind,
)
from ..modules.classification import classify_muac, to_title_case

logger = logging.getLogger(__name__)

Session = Union[AwarenessSession, ChildScreening]
Payload = Union[BaseModel, Mapping[str, Any]]

STORAGE_KEYS = {
    SessionKind.AWARENESS: AWARENESS_SESSIONS_KEY,
    SessionKind.SCREENING: CHILD_SCREENINGS_KEY,
}

# Fields a patch may never touch.
_SESSION_IMMUTABLE = {"id", "attendees", "children", "created_at"}
_ENTRY_IMMUTABLE = {"id", "status"}


def _as_fields(payload: Payload, partial: bool = False) -> Dict[str, Any]:
    """Turns a model or a mapping into snake_case attribute values."""
    if isinstance(payload, BaseModel):
        return payload.model_dump(exclude_unset=partial)
    return dict(payload)


def _with_derived_status(kind: SessionKind, entry):
    """Screened children always carry the status implied by their MUAC."""
    if kind is SessionKind.SCREENING:
        return entry.model_copy(update={"status": classify_muac(entry.muac)})
    return entry


class RecordStore:
    """
    In-memory collections of awareness sessions and child screenings.

    Every mutation builds a new list for the affected collection (copy-on-write)
    and then writes the whole collection to its storage key. A failed write is
    logged; the in-memory state stays authoritative for the running process.
    """

    def __init__(self, storage: StorageClient):
        self.storage = storage
        self._collections: Dict[SessionKind, List[Session]] = {kind: [] for kind in SessionKind}

    async def load(self):
        """Reads both collections from storage. Called once at startup."""
        for kind, key in STORAGE_KEYS.items():
            try:
                self._collections[kind] = await self.storage.load_collection(key, SESSION_MODELS[kind])
            except RedisError as e:
                logger.error(f"Could not load '{key}' from storage, starting empty: {e}", exc_info=True)
                self._collections[kind] = []
            logger.info(f"Loaded {len(self._collections[kind])} {kind.value} session(s).")

    async def _persist(self, kind: SessionKind):
        key = STORAGE_KEYS[kind]
        try:
            await self.storage.save_collection(key, self._collections[kind])
        except RedisError as e:
            logger.error(f"Failed to persist '{key}': {e}", exc_info=True)

    # ===== Queries =====

    def list_sessions(self, kind: SessionKind) -> List[Session]:
        return list(self._collections[kind])

    def get_session(self, kind: SessionKind, session_id: str) -> Optional[Session]:
        return next((s for s in self._collections[kind] if s.id == session_id), None)

    def sessions_by_date_range(self, kind: SessionKind, start: date, end: date) -> List[Session]:
        """Sessions whose date falls within [start, end]."""
        return [s for s in self._collections[kind] if start <= s.date <= end]

    def screenings_by_status(self, status: NutritionStatus) -> List[ChildScreening]:
        """Screenings with at least one child of the given status."""
        return [
            s for s in self._collections[SessionKind.SCREENING]
            if any(child.status == status for child in s.children)
        ]

    def entries_for(self, kind: SessionKind, village_name: str, on: date) -> list:
        """Persisted entries recorded in the same village on the same day."""
        village = to_title_case(village_name)
        entries = []
        for session in self._collections[kind]:
            if session.date == on and to_title_case(session.village_name) == village:
                entries.extend(session.entries)
        return entries

    # ===== Session mutations =====

    async def add_session(self, kind: SessionKind, data: Payload) -> Session:
        """Creates a session with a fresh id and an empty entry list."""
        model = SESSION_MODELS[kind]
        fields = {k: v for k, v in _as_fields(data).items() if k not in _SESSION_IMMUTABLE}
        session = model.model_validate(fields)

        self._collections[kind] = [*self._collections[kind], session]
        await self._persist(kind)
        logger.info(f"Added {kind.value} session {session.id}.")
        return session

    async def update_session(self, kind: SessionKind, session_id: str, patch: Payload) -> Optional[Session]:
        """Replaces every field except the id and the entry list. None when the id is unknown."""
        current = self.get_session(kind, session_id)
        if current is None:
            logger.warning(f"update_session: {kind.value} session {session_id} not found.")
            return None

        changes = {k: v for k, v in _as_fields(patch, partial=True).items() if k not in _SESSION_IMMUTABLE}
        updated = type(current).model_validate({**current.model_dump(), **changes})

        self._collections[kind] = [updated if s.id == session_id else s for s in self._collections[kind]]
        await self._persist(kind)
        return updated

    async def delete_session(self, kind: SessionKind, session_id: str) -> bool:
        remaining = [s for s in self._collections[kind] if s.id != session_id]
        if len(remaining) == len(self._collections[kind]):
            return False

        self._collections[kind] = remaining
        await self._persist(kind)
        logger.info(f"Deleted {kind.value} session {session_id}.")
        return True

    # ===== Entry mutations =====

    async def _replace_entries(self, kind: SessionKind, session: Session, entries: list) -> Session:
        updated = session.model_copy(update={session.entries_field: entries})
        self._collections[kind] = [updated if s.id == session.id else s for s in self._collections[kind]]
        await self._persist(kind)
        return updated

    async def add_child_to_session(self, session_id: str, child: Payload, kind: SessionKind):
        """
        Appends an entry (attendee or screened child) to a session. An entry
        without an id gets a fresh one. Returns the stored entry, or None when
        the session does not exist.
        """
        session = self.get_session(kind, session_id)
        if session is None:
            logger.warning(f"add_child_to_session: {kind.value} session {session_id} not found.")
            return None

        fields = {k: v for k, v in _as_fields(child).items() if k != "status"}
        entry = _with_derived_status(kind, ENTRY_MODELS[kind].model_validate(fields))
        await self._replace_entries(kind, session, [*session.entries, entry])
        return entry

    async def update_child_in_session(self, session_id: str, child_id: str, patch: Payload, kind: SessionKind):
        session = self.get_session(kind, session_id)
        current = next((e for e in session.entries if e.id == child_id), None) if session else None
        if current is None:
            logger.warning(f"update_child_in_session: entry {child_id} not found in session {session_id}.")
            return None

        changes = {k: v for k, v in _as_fields(patch, partial=True).items() if k not in _ENTRY_IMMUTABLE}
        updated = _with_derived_status(kind, type(current).model_validate({**current.model_dump(), **changes}))
        await self._replace_entries(kind, session, [updated if e.id == child_id else e for e in session.entries])
        return updated

    async def delete_child_from_session(self, session_id: str, child_id: str, kind: SessionKind) -> bool:
        session = self.get_session(kind, session_id)
        if session is None:
            return False
        remaining = [e for e in session.entries if e.id != child_id]
        if len(remaining) == len(session.entries):
            return False

        await self._replace_entries(kind, session, remaining)
        return True
