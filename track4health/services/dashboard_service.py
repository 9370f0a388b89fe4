from collections import Counter
from typing import Dict, List

from pydantic import BaseModel, Field

from ..models.health_models import SessionKind
from .record_store import RecordStore


class MonthlyFigures(BaseModel):
    month: str = Field(..., description="YYYY-MM")
    attendees: int = 0
    sam: int = 0
    mam: int = 0
    normal: int = 0


class DashboardSummary(BaseModel):
    total_sessions: int
    total_attendees: int
    total_screenings: int
    total_children: int
    status_counts: Dict[str, int]
    monthly: List[MonthlyFigures]


class DashboardService:
    """Aggregate figures over the local collections."""

    def __init__(self, record_store: RecordStore):
        self.record_store = record_store

    def summary(self) -> DashboardSummary:
        sessions = self.record_store.list_sessions(SessionKind.AWARENESS)
        screenings = self.record_store.list_sessions(SessionKind.SCREENING)

        status_counts = Counter({"SAM": 0, "MAM": 0, "Normal": 0})
        months: Dict[str, MonthlyFigures] = {}

        def month_of(key: str) -> MonthlyFigures:
            return months.setdefault(key, MonthlyFigures(month=key))

        for session in sessions:
            month_of(session.date.strftime("%Y-%m")).attendees += len(session.attendees)

        for screening in screenings:
            figures = month_of(screening.date.strftime("%Y-%m"))
            for child in screening.children:
                status_counts[child.status] += 1
                setattr(figures, child.status.lower(), getattr(figures, child.status.lower()) + 1)

        return DashboardSummary(
            total_sessions=len(sessions),
            total_attendees=sum(len(s.attendees) for s in sessions),
            total_screenings=len(screenings),
            total_children=sum(len(s.children) for s in screenings),
            status_counts=dict(status_counts),
            monthly=[months[key] for key in sorted(months)],
        )
