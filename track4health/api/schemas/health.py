# track4health/api/schemas/health.py
from datetime import date as date_type
from typing import List

from pydantic import BaseModel, Field

from ...models.health_models import (
    AttendeeDraft,
    AwarenessSession,
    AwarenessSessionDraft,
    CamelModel,
    ChildScreening,
    ChildScreeningDraft,
    ScreenedChildDraft,
)


class AwarenessSessionCreateRequest(AwarenessSessionDraft):
    """A whole awareness session form with its staged attendees."""
    attendees: List[AttendeeDraft] = Field(default_factory=list)


class ChildScreeningCreateRequest(ChildScreeningDraft):
    """A whole screening form with its staged children."""
    children: List[ScreenedChildDraft] = Field(default_factory=list)


class StagedName(CamelModel):
    name: str
    father_name: str

    @property
    def guardian_name(self) -> str:
        return self.father_name


class DuplicateCheckRequest(CamelModel):
    name: str
    father_name: str = Field(..., description="Father's name, or father/husband name for attendees")
    village_name: str
    date: date_type = Field(default_factory=date_type.today)
    staged: List[StagedName] = Field(default_factory=list, description="Entries already staged in the open form")


class DuplicateCheckResponse(BaseModel):
    duplicate: bool


class SavedAwarenessSession(CamelModel):
    session: AwarenessSession
    synced: bool = Field(..., description="False when the session is only stored locally")


class SavedChildScreening(CamelModel):
    session: ChildScreening
    synced: bool = Field(..., description="False when the session is only stored locally")
