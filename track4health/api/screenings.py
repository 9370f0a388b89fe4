import logging
from datetime import date
from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException, Query, Request, Response, status

from ..models.health_models import ChildScreening, ChildScreeningDraft, NutritionStatus, ScreenedChild, ScreenedChildDraft, SessionKind
from ..models.user_models import User
from ..services.health_data_service import ExportPeriod, HealthDataService, ServiceError
from ..services.sync_service import SyncService
from ..tools.exporter import export_sessions
from .auth import get_current_user
from .dependencies import get_health_data_service, get_sync_service
from .schemas.health import (
    ChildScreeningCreateRequest,
    DuplicateCheckRequest,
    DuplicateCheckResponse,
    SavedChildScreening,
)
from .utilities.errors import to_http_exception
from .utilities.limiter import limiter

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/screenings", tags=["Child Screenings"])

KIND = SessionKind.SCREENING


@router.get("", response_model=List[ChildScreening], summary="List child screenings")
@limiter.limit("60/minute")
async def list_screenings(
    request: Request,
    start: Optional[date] = None,
    end: Optional[date] = None,
    status_filter: Optional[NutritionStatus] = Query(None, alias="status"),
    user: User = Depends(get_current_user),
    service: HealthDataService = Depends(get_health_data_service),
):
    try:
        period = "range" if start and end else "all"
        return service.filter_sessions(KIND, period, start, end, status_filter)
    except ServiceError as e:
        raise to_http_exception(e)


@router.post("", response_model=SavedChildScreening, status_code=status.HTTP_201_CREATED, summary="Save a screening with its children")
@limiter.limit("30/minute")
async def save_screening(
    request: Request,
    create_request: ChildScreeningCreateRequest,
    user: User = Depends(get_current_user),
    service: HealthDataService = Depends(get_health_data_service),
    sync_service: SyncService = Depends(get_sync_service),
):
    try:
        session = await service.save_child_screening(create_request, create_request.children, user)
    except ServiceError as e:
        raise to_http_exception(e)
    synced = await sync_service.push_session(KIND, session)
    return SavedChildScreening(session=session, synced=synced)


@router.get("/export", summary="Download screenings as a JSON file")
@limiter.limit("10/minute")
async def export(
    request: Request,
    period: ExportPeriod = "all",
    start: Optional[date] = None,
    end: Optional[date] = None,
    status_filter: Optional[NutritionStatus] = Query(None, alias="status"),
    user: User = Depends(get_current_user),
    service: HealthDataService = Depends(get_health_data_service),
):
    try:
        sessions = service.filter_sessions(KIND, period, start, end, status_filter)
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


@router.post("/duplicate-check", response_model=DuplicateCheckResponse, summary="Check whether a child is already recorded")
@limiter.limit("120/minute")
async def duplicate_check(
    request: Request,
    check: DuplicateCheckRequest,
    user: User = Depends(get_current_user),
    service: HealthDataService = Depends(get_health_data_service),
):
    duplicate = service.check_duplicate(KIND, check.name, check.father_name, check.village_name, check.date, check.staged)
    return DuplicateCheckResponse(duplicate=duplicate)


@router.get("/{screening_id}", response_model=ChildScreening)
@limiter.limit("60/minute")
async def get_screening(
    request: Request,
    screening_id: str,
    user: User = Depends(get_current_user),
    service: HealthDataService = Depends(get_health_data_service),
):
    try:
        return service.get_session(KIND, screening_id)
    except ServiceError as e:
        raise to_http_exception(e)


@router.patch("/{screening_id}", response_model=ChildScreening, summary="Edit screening details (children are kept)")
@limiter.limit("30/minute")
async def update_screening(
    request: Request,
    screening_id: str,
    patch: ChildScreeningDraft,
    user: User = Depends(get_current_user),
    service: HealthDataService = Depends(get_health_data_service),
):
    try:
        return await service.update_session(KIND, screening_id, patch)
    except ServiceError as e:
        raise to_http_exception(e)


@router.delete("/{screening_id}", status_code=status.HTTP_204_NO_CONTENT)
@limiter.limit("30/minute")
async def delete_screening(
    request: Request,
    screening_id: str,
    user: User = Depends(get_current_user),
    service: HealthDataService = Depends(get_health_data_service),
):
    try:
        await service.delete_session(KIND, screening_id)
    except ServiceError as e:
        raise to_http_exception(e)
    logger.info(f"Child screening {screening_id} deleted by '{user.username}'.")
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.post("/{screening_id}/children", response_model=ScreenedChild, status_code=status.HTTP_201_CREATED)
@limiter.limit("120/minute")
async def add_child(
    request: Request,
    screening_id: str,
    draft: ScreenedChildDraft,
    user: User = Depends(get_current_user),
    service: HealthDataService = Depends(get_health_data_service),
):
    try:
        return await service.add_entry(KIND, screening_id, draft, user)
    except ServiceError as e:
        raise to_http_exception(e)


@router.put("/{screening_id}/children/{child_id}", response_model=ScreenedChild)
@limiter.limit("120/minute")
async def update_child(
    request: Request,
    screening_id: str,
    child_id: str,
    draft: ScreenedChildDraft,
    user: User = Depends(get_current_user),
    service: HealthDataService = Depends(get_health_data_service),
):
    try:
        return await service.update_entry(KIND, screening_id, child_id, draft, user)
    except ServiceError as e:
        raise to_http_exception(e)


@router.delete("/{screening_id}/children/{child_id}", status_code=status.HTTP_204_NO_CONTENT)
@limiter.limit("120/minute")
async def delete_child(
    request: Request,
    screening_id: str,
    child_id: str,
    user: User = Depends(get_current_user),
    service: HealthDataService = Depends(get_health_data_service),
):
    try:
        await service.delete_entry(KIND, screening_id, child_id)
    except ServiceError as e:
        raise to_http_exception(e)
    return Response(status_code=status.HTTP_204_NO_CONTENT)
