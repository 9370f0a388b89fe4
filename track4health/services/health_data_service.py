import logging
from datetime import date
from typing import Iterable, List, Literal, Optional, Sequence, Union

from ..models.health_models import (
    Attendee,
    AttendeeDraft,
    AwarenessSession,
    AwarenessSessionDraft,
    ChildScreening,
    ChildScreeningDraft,
    NutritionStatus,
    ScreenedChild,
    ScreenedChildDraft,
    SessionDraft,
    SessionKind,
)
from ..models.user_models import User
from ..modules.classification import (
    age_from_dob,
    classify_muac,
    dob_from_age,
    is_duplicate,
    to_title_case,
    validate_attendee,
    validate_child,
)
from .record_store import RecordStore, Session

logger = logging.getLogger(__name__)

ExportPeriod = Literal["today", "range", "all"]


# --- Custom Service Layer Exception Classes ---
class ServiceError(Exception):
    """General exception class for the service layer."""
    pass


class NotFoundError(ServiceError):
    """The addressed session or entry does not exist."""
    pass


class ValidationFailure(ServiceError):
    """A form could not be accepted. Carries every user-facing message."""

    def __init__(self, messages: Union[str, List[str]]):
        self.messages = [messages] if isinstance(messages, str) else list(messages)
        super().__init__("; ".join(self.messages))


class DuplicateEntryError(ServiceError):
    """Same name and father/guardian name already recorded for this village and day."""
    pass


_DUPLICATE_MESSAGES = {
    SessionKind.AWARENESS: "This attendee already exists for this session and village",
    SessionKind.SCREENING: "This child already exists for this screening and village",
}


class HealthDataService:
    """
    Submission gate for both data-entry workflows.

    Drafts are validated, names normalised, DOB/age back-filled and the
    nutritional status derived here, before anything reaches the record store.
    """

    def __init__(self, record_store: RecordStore):
        self.record_store = record_store

    # ===== Entry preparation =====

    def prepare_attendee(self, draft: AttendeeDraft, user: Optional[User] = None, today: Optional[date] = None) -> Attendee:
        today = today or date.today()
        errors = validate_attendee(draft, today)
        if errors:
            raise ValidationFailure(errors)

        age, dob = draft.age, draft.dob
        if age > 0 and not dob:
            dob = dob_from_age(age, "years", today)
        elif age <= 0 and dob:
            age = age_from_dob(dob, "years", today)

        return Attendee(
            **draft.model_dump(exclude={"name", "father_husband_name", "age", "dob", "user_name", "user_designation"}),
            name=to_title_case(draft.name),
            father_husband_name=to_title_case(draft.father_husband_name),
            age=age,
            dob=dob,
            user_name=draft.user_name or (user.name if user else None),
            user_designation=draft.user_designation or ((user.designation or user.role) if user else None),
        )

    def prepare_child(self, draft: ScreenedChildDraft, today: Optional[date] = None) -> ScreenedChild:
        today = today or date.today()
        errors = validate_child(draft, today)
        if errors:
            raise ValidationFailure(errors)

        age, dob = draft.age, draft.dob
        if age > 0 and not dob:
            dob = dob_from_age(age, "months", today)
        elif age <= 0 and dob:
            age = age_from_dob(dob, "months", today)

        return ScreenedChild(
            **draft.model_dump(exclude={"name", "father_name", "age", "dob"}),
            name=to_title_case(draft.name),
            father_name=to_title_case(draft.father_name),
            age=age,
            dob=dob,
            status=classify_muac(draft.muac),
        )

    def check_duplicate(
        self,
        kind: SessionKind,
        name: str,
        father_name: str,
        village_name: str,
        on: date,
        staged: Iterable = (),
        exclude_id: Optional[str] = None,
    ) -> bool:
        """
        True if the person is already staged, or persisted for the same village
        and day. `exclude_id` leaves out the entry being edited.
        """
        if is_duplicate(name, father_name, staged):
            return True
        if not village_name:
            return False
        persisted = [e for e in self.record_store.entries_for(kind, village_name, on) if e.id != exclude_id]
        return is_duplicate(name, father_name, persisted)

    # ===== Saving whole sessions =====

    def _session_fields(self, draft: SessionDraft, user: Optional[User]) -> dict:
        fields = draft.model_dump()
        fields["village_name"] = to_title_case(draft.village_name)
        fields["uc_name"] = to_title_case(draft.uc_name)
        if user:
            fields["user_name"] = draft.user_name or user.name
            fields["user_designation"] = draft.user_designation or user.designation or user.role
            fields["created_by"] = draft.created_by or user.username
        return fields

    def _prepare_batch(self, kind: SessionKind, drafts: Sequence, village_name: str, on: date, user: Optional[User], today: date) -> list:
        prepared, errors = [], []
        for index, draft in enumerate(drafts, start=1):
            try:
                if kind is SessionKind.AWARENESS:
                    entry = self.prepare_attendee(draft, user, today)
                else:
                    entry = self.prepare_child(draft, today)
            except ValidationFailure as e:
                errors.extend(f"Entry {index}: {message}" for message in e.messages)
                continue

            if self.check_duplicate(kind, entry.name, entry.guardian_name, village_name, on, prepared):
                logger.warning(f"Duplicate {kind.value} entry '{entry.name}' for {village_name} on {on}.")
                raise DuplicateEntryError(f"{_DUPLICATE_MESSAGES[kind]}: {entry.name}")
            prepared.append(entry)

        if errors:
            raise ValidationFailure(errors)
        return prepared

    async def _save(self, kind: SessionKind, draft: SessionDraft, drafts: Sequence, user: Optional[User], today: Optional[date]) -> Session:
        today = today or date.today()
        fields = self._session_fields(draft, user)
        entries = self._prepare_batch(kind, drafts, fields["village_name"], draft.date, user, today)

        session = await self.record_store.add_session(kind, fields)
        for entry in entries:
            await self.record_store.add_child_to_session(session.id, entry, kind)
        saved = self.record_store.get_session(kind, session.id)
        logger.info(f"Saved {kind.value} session {saved.id} in {saved.village_name} with {len(saved.entries)} entries.")
        return saved

    async def save_awareness_session(
        self,
        draft: AwarenessSessionDraft,
        attendees: Sequence[AttendeeDraft],
        user: Optional[User] = None,
        today: Optional[date] = None,
    ) -> AwarenessSession:
        if not draft.village_name.strip() or not draft.uc_name.strip() or not attendees:
            raise ValidationFailure("Village name, UC name, and at least one attendee are required")
        return await self._save(SessionKind.AWARENESS, draft, attendees, user, today)

    async def save_child_screening(
        self,
        draft: ChildScreeningDraft,
        children: Sequence[ScreenedChildDraft],
        user: Optional[User] = None,
        today: Optional[date] = None,
    ) -> ChildScreening:
        if not draft.village_name.strip() or not draft.uc_name.strip():
            raise ValidationFailure("Village name and UC name are required")
        if not children:
            raise ValidationFailure("At least one child is required")
        return await self._save(SessionKind.SCREENING, draft, children, user, today)

    # ===== Working on existing sessions =====

    def list_sessions(self, kind: SessionKind) -> List[Session]:
        return self.record_store.list_sessions(kind)

    def get_session(self, kind: SessionKind, session_id: str) -> Session:
        session = self.record_store.get_session(kind, session_id)
        if session is None:
            raise NotFoundError(f"Session {session_id} not found.")
        return session

    async def update_session(self, kind: SessionKind, session_id: str, patch: SessionDraft) -> Session:
        changes = patch.model_dump(exclude_unset=True)
        for name_field in ("village_name", "uc_name"):
            if name_field in changes:
                changes[name_field] = to_title_case(changes[name_field])
        updated = await self.record_store.update_session(kind, session_id, changes)
        if updated is None:
            raise NotFoundError(f"Session {session_id} not found.")
        return updated

    async def delete_session(self, kind: SessionKind, session_id: str):
        if not await self.record_store.delete_session(kind, session_id):
            raise NotFoundError(f"Session {session_id} not found.")

    async def add_entry(self, kind: SessionKind, session_id: str, draft, user: Optional[User] = None, today: Optional[date] = None):
        """Validates one attendee/child and appends it to an existing session."""
        session = self.get_session(kind, session_id)
        if kind is SessionKind.AWARENESS:
            entry = self.prepare_attendee(draft, user, today)
        else:
            entry = self.prepare_child(draft, today)

        if self.check_duplicate(kind, entry.name, entry.guardian_name, session.village_name, session.date):
            raise DuplicateEntryError(_DUPLICATE_MESSAGES[kind])
        return await self.record_store.add_child_to_session(session_id, entry, kind)

    async def update_entry(
        self,
        kind: SessionKind,
        session_id: str,
        entry_id: str,
        draft,
        user: Optional[User] = None,
        today: Optional[date] = None,
    ):
        """
        Re-validates the full entry form and replaces the stored entry.

        An attendee keeps the user who recorded it unless the form names
        another one. Renaming onto a person already recorded for the same
        village and day is rejected.
        """
        session = self.get_session(kind, session_id)
        current = next((e for e in session.entries if e.id == entry_id), None)
        if current is None:
            raise NotFoundError(f"Entry {entry_id} not found in session {session_id}.")

        if kind is SessionKind.AWARENESS:
            draft = draft.model_copy(update={
                "user_name": draft.user_name or current.user_name,
                "user_designation": draft.user_designation or current.user_designation,
            })
            entry = self.prepare_attendee(draft, user, today)
        else:
            entry = self.prepare_child(draft, today)

        if self.check_duplicate(kind, entry.name, entry.guardian_name, session.village_name, session.date, exclude_id=entry_id):
            raise DuplicateEntryError(_DUPLICATE_MESSAGES[kind])
        updated = await self.record_store.update_child_in_session(
            session_id, entry_id, entry.model_dump(exclude={"id"}), kind
        )
        if updated is None:
            raise NotFoundError(f"Entry {entry_id} not found in session {session_id}.")
        return updated

    async def delete_entry(self, kind: SessionKind, session_id: str, entry_id: str):
        if not await self.record_store.delete_child_from_session(session_id, entry_id, kind):
            raise NotFoundError(f"Entry {entry_id} not found in session {session_id}.")

    # ===== Filtering for export =====

    def filter_sessions(
        self,
        kind: SessionKind,
        period: ExportPeriod = "all",
        start: Optional[date] = None,
        end: Optional[date] = None,
        status: Optional[NutritionStatus] = None,
        today: Optional[date] = None,
    ) -> List[Session]:
        today = today or date.today()
        if period == "today":
            sessions = self.record_store.sessions_by_date_range(kind, today, today)
        elif period == "range":
            if not start or not end:
                raise ValidationFailure("Start and end dates are required for a range export")
            sessions = self.record_store.sessions_by_date_range(kind, start, end)
        else:
            sessions = self.record_store.list_sessions(kind)

        if status and kind is SessionKind.SCREENING:
            with_status = {s.id for s in self.record_store.screenings_by_status(status)}
            sessions = [s for s in sessions if s.id in with_status]
        return sessions
