import logging
from datetime import date
from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException, Request, Response, status

from ..models.health_models import Attendee, AttendeeDraft, AwarenessSession, AwarenessSessionDraft, SessionKind
from ..models.user_models import User
from ..services.health_data_service import ExportPeriod, HealthDataService, ServiceError
from ..services.sync_service import SyncService
from ..tools.exporter import export_sessions
from .auth import get_current_user
from .dependencies import get_health_data_service, get_sync_service
from .schemas.health import (
    AwarenessSessionCreateRequest,
    DuplicateCheckRequest,
    DuplicateCheckResponse,
    SavedAwarenessSession,
)
from .utilities.errors import to_http_exception
from .utilities.limiter import limiter

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/awareness-sessions", tags=["Awareness Sessions"])

KIND = SessionKind.AWARENESS


@router.get("", response_model=List[AwarenessSession], summary="List awareness sessions")
@limiter.limit("60/minute")
async def list_sessions(
    request: Request,
    start: Optional[date] = None,
    end: Optional[date] = None,
    user: User = Depends(get_current_user),
    service: HealthDataService = Depends(get_health_data_service),
):
    try:
        if start and end:
            return service.filter_sessions(KIND, "range", start, end)
        return service.list_sessions(KIND)
    except ServiceError as e:
        raise to_http_exception(e)


@router.post("", response_model=SavedAwarenessSession, status_code=status.HTTP_201_CREATED, summary="Save a session with its attendees")
@limiter.limit("30/minute")
async def save_session(
    request: Request,
    create_request: AwarenessSessionCreateRequest,
    user: User = Depends(get_current_user),
    service: HealthDataService = Depends(get_health_data_service),
    sync_service: SyncService = Depends(get_sync_service),
):
    try:
        session = await service.save_awareness_session(create_request, create_request.attendees, user)
    except ServiceError as e:
        raise to_http_exception(e)
    synced = await sync_service.push_session(KIND, session)
    return SavedAwarenessSession(session=session, synced=synced)


@router.get("/export", summary="Download sessions as a JSON file")
@limiter.limit("10/minute")
async def export(
    request: Request,
    period: ExportPeriod = "all",
    start: Optional[date] = None,
    end: Optional[date] = None,
    user: User = Depends(get_current_user),
    service: HealthDataService = Depends(get_health_data_service),
):
    try:
        sessions = service.filter_sessions(KIND, period, start, end)
    except ServiceError as e:
        raise to_http_exception(e)
    if not sessions:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="No data available for export")

    filename, content = export_sessions(sessions)
    return Response(
        content=content,
        media_type="application/json",
        headers={"Content-Disposition": f'attachment; filename="{filename}"'},
    )


@router.post("/duplicate-check", response_model=DuplicateCheckResponse, summary="Check whether an attendee is already recorded")
@limiter.limit("120/minute")
async def duplicate_check(
    request: Request,
    check: DuplicateCheckRequest,
    user: User = Depends(get_current_user),
    service: HealthDataService = Depends(get_health_data_service),
):
    duplicate = service.check_duplicate(KIND, check.name, check.father_name, check.village_name, check.date, check.staged)
    return DuplicateCheckResponse(duplicate=duplicate)


@router.get("/{session_id}", response_model=AwarenessSession)
@limiter.limit("60/minute")
async def get_session(
    request: Request,
    session_id: str,
    user: User = Depends(get_current_user),
    service: HealthDataService = Depends(get_health_data_service),
):
    try:
        return service.get_session(KIND, session_id)
    except ServiceError as e:
        raise to_http_exception(e)


@router.patch("/{session_id}", response_model=AwarenessSession, summary="Edit session details (attendees are kept)")
@limiter.limit("30/minute")
async def update_session(
    request: Request,
    session_id: str,
    patch: AwarenessSessionDraft,
    user: User = Depends(get_current_user),
    service: HealthDataService = Depends(get_health_data_service),
):
    try:
        return await service.update_session(KIND, session_id, patch)
    except ServiceError as e:
        raise to_http_exception(e)


@router.delete("/{session_id}", status_code=status.HTTP_204_NO_CONTENT)
@limiter.limit("30/minute")
async def delete_session(
    request: Request,
    session_id: str,
    user: User = Depends(get_current_user),
    service: HealthDataService = Depends(get_health_data_service),
):
    try:
        await service.delete_session(KIND, session_id)
    except ServiceError as e:
        raise to_http_exception(e)
    logger.info(f"Awareness session {session_id} deleted by '{user.username}'.")
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.post("/{session_id}/attendees", response_model=Attendee, status_code=status.HTTP_201_CREATED)
@limiter.limit("120/minute")
async def add_attendee(
    request: Request,
    session_id: str,
    draft: AttendeeDraft,
    user: User = Depends(get_current_user),
    service: HealthDataService = Depends(get_health_data_service),
):
    try:
        return await service.add_entry(KIND, session_id, draft, user)
    except ServiceError as e:
        raise to_http_exception(e)


@router.put("/{session_id}/attendees/{attendee_id}", response_model=Attendee)
@limiter.limit("120/minute")
async def update_attendee(
    request: Request,
    session_id: str,
    attendee_id: str,
    draft: AttendeeDraft,
    user: User = Depends(get_current_user),
    service: HealthDataService = Depends(get_health_data_service),
):
    try:
        return await service.update_entry(KIND, session_id, attendee_id, draft, user)
    except ServiceError as e:
        raise to_http_exception(e)


@router.delete("/{session_id}/attendees/{attendee_id}", status_code=status.HTTP_204_NO_CONTENT)
@limiter.limit("120/minute")
async def delete_attendee(
    request: Request,
    session_id: str,
    attendee_id: str,
    user: User = Depends(get_current_user),
    service: HealthDataService = Depends(get_health_data_service),
):
    try:
        await service.delete_entry(KIND, session_id, attendee_id)
    except ServiceError as e:
        raise to_http_exception(e)
    return Response(status_code=status.HTTP_204_NO_CONTENT)
