import logging
from typing import Dict, List, Union

from fastapi import APIRouter, Depends, HTTPException, Request, status

from ..models.health_models import AwarenessSession, ChildScreening, PendingSyncRecord, SessionKind
from ..models.user_models import User
from ..services.health_data_service import ServiceError
from ..services.sync_service import SyncService
from .auth import get_current_user
from .dependencies import get_sync_service
from .utilities.limiter import limiter

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/sync", tags=["Sync"])


@router.get("/pending", response_model=List[PendingSyncRecord], summary="Records saved offline and not yet uploaded")
@limiter.limit("30/minute")
async def pending(
    request: Request,
    user: User = Depends(get_current_user),
    sync_service: SyncService = Depends(get_sync_service),
):
    return await sync_service.pending_records()


@router.post("/pending/flush", response_model=Dict[str, int], summary="Upload the offline queue now")
@limiter.limit("5/minute")
async def flush_pending(
    request: Request,
    user: User = Depends(get_current_user),
    sync_service: SyncService = Depends(get_sync_service),
):
    try:
        return await sync_service.flush_pending(user)
    except ServiceError as e:
        raise HTTPException(status_code=status.HTTP_502_BAD_GATEWAY, detail=str(e))


@router.post("/{kind}/upload", response_model=Dict[str, int], summary="Upload the whole local collection")
@limiter.limit("5/minute")
async def upload_all(
    request: Request,
    kind: SessionKind,
    user: User = Depends(get_current_user),
    sync_service: SyncService = Depends(get_sync_service),
):
    try:
        uploaded = await sync_service.upload_all(user, kind)
    except ServiceError as e:
        raise HTTPException(status_code=status.HTTP_502_BAD_GATEWAY, detail=str(e))
    return {"uploaded": uploaded}


@router.get("/{kind}/remote", response_model=List[Union[AwarenessSession, ChildScreening]], summary="Remote copy of a collection")
@limiter.limit("10/minute")
async def fetch_remote(
    request: Request,
    kind: SessionKind,
    user: User = Depends(get_current_user),
    sync_service: SyncService = Depends(get_sync_service),
):
    return await sync_service.fetch_remote(kind)
