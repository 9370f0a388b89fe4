# track4health/models/health_models.py

import uuid
from datetime import date as date_type, datetime, timezone
from enum import Enum
from typing import ClassVar, List, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from .user_models import Location

Gender = Literal["male", "female", "other"]
NutritionStatus = Literal["SAM", "MAM", "Normal"]
# "none" marks an attendee whose vaccination was not screened.
AttendeeVaccineStatus = Literal["none", "0-Dose", "1st-Dose", "2nd-Dose", "3rd-Dose", "MR-1"]
ChildVaccineStatus = Literal["0-Dose", "1st-Dose", "2nd-Dose", "3rd-Dose", "MR-1", "MR-2", "Completed"]


def new_id() -> str:
    return str(uuid.uuid4())


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


class SessionKind(str, Enum):
    """The two top-level collections kept by the record store."""
    AWARENESS = "awareness"
    SCREENING = "screening"


class CamelModel(BaseModel):
    """Base for everything serialized with the camelCase wire/storage names."""
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


# ===== Entries =====

class AttendeeDraft(CamelModel):
    """An attendee as typed into the form, before validation and normalisation."""
    name: str = ""
    father_husband_name: str = ""
    age: int = Field(0, ge=0, description="Age in years; 0 when only the DOB is known")
    dob: Optional[str] = Field(None, description="YYYY-MM-DD")
    gender: Gender = "male"
    under_five_children: int = Field(0, ge=0)
    contact_number: Optional[str] = None
    remarks: str = ""
    belongs_to_same_uc: bool = Field(True, alias="belongsToSameUC")
    address: Optional[str] = None
    vaccination: AttendeeVaccineStatus = "none"
    vaccine_due: bool = False
    user_name: Optional[str] = None
    user_designation: Optional[str] = None

    @property
    def guardian_name(self) -> str:
        return self.father_husband_name


class Attendee(AttendeeDraft):
    """Represents a single attendee of an awareness session."""
    id: str = Field(default_factory=new_id)


class ScreenedChildDraft(CamelModel):
    """A child as typed into the screening form. Status is never part of the input."""
    name: str = ""
    father_name: str = ""
    age: int = Field(0, ge=0, description="Age in months")
    dob: Optional[str] = Field(None, description="YYYY-MM-DD")
    muac: float = Field(0, ge=0, description="Mid-upper arm circumference in cm")
    gender: Gender = "male"
    vaccination: ChildVaccineStatus = "0-Dose"
    vaccine_due: bool = False
    remarks: str = ""
    belongs_to_same_uc: bool = Field(True, alias="belongsToSameUC")
    address: Optional[str] = None

    @property
    def guardian_name(self) -> str:
        return self.father_name


class ScreenedChild(ScreenedChildDraft):
    """A screened child; `status` is derived from MUAC when the child is recorded."""
    id: str = Field(default_factory=new_id)
    status: NutritionStatus = "Normal"


# ===== Sessions =====

class SessionDraft(CamelModel):
    """Fields shared by both session types."""
    date: date_type = Field(default_factory=date_type.today)
    village_name: str = ""
    uc_name: str = ""
    user_name: str = ""
    user_designation: str = ""
    location: Optional[Location] = None
    images: List[str] = Field(default_factory=list, description="Image data URLs")
    created_by: str = ""


class AwarenessSessionDraft(SessionDraft):
    session_number: int = Field(1, ge=1)


class ChildScreeningDraft(SessionDraft):
    screening_number: int = Field(1, ge=1)


class AwarenessSession(AwarenessSessionDraft):
    """
    An awareness session held in a village, with its ordered attendee list.
    Stored as part of the `awarenessSessions` snapshot.
    """
    entries_field: ClassVar[str] = "attendees"

    id: str = Field(default_factory=new_id)
    attendees: List[Attendee] = Field(default_factory=list)
    created_at: datetime = Field(default_factory=utc_now)

    @property
    def entries(self) -> List[Attendee]:
        return self.attendees


class ChildScreening(ChildScreeningDraft):
    """
    A nutrition screening round in a village, with its screened children.
    Stored as part of the `childScreenings` snapshot.
    """
    entries_field: ClassVar[str] = "children"

    id: str = Field(default_factory=new_id)
    children: List[ScreenedChild] = Field(default_factory=list)
    created_at: datetime = Field(default_factory=utc_now)

    @property
    def entries(self) -> List[ScreenedChild]:
        return self.children


SESSION_MODELS = {
    SessionKind.AWARENESS: AwarenessSession,
    SessionKind.SCREENING: ChildScreening,
}

ENTRY_MODELS = {
    SessionKind.AWARENESS: Attendee,
    SessionKind.SCREENING: ScreenedChild,
}

# Record type names used by sync_data.php and the pending queue.
REMOTE_RECORD_TYPES = {
    SessionKind.AWARENESS: "sessions",
    SessionKind.SCREENING: "screenings",
}


class PendingSyncRecord(CamelModel):
    """Sessions saved while offline, waiting for an explicit flush."""
    type: Literal["sessions", "screenings"]
    data: List[dict] = Field(default_factory=list)
    timestamp: int = Field(..., description="Enqueue time in epoch milliseconds")
