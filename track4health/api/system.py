import logging
from typing import Any, Dict

from fastapi import APIRouter, Depends, HTTPException, Request, status

from ..models.user_models import User
from ..modules.remote_api import RemoteApiClient, RemoteApiError
from ..tools.connectivity import ConnectivityMonitor
from .auth import get_current_user, require_roles
from .dependencies import get_connectivity, get_remote_api
from .utilities.limiter import limiter

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/system", tags=["System"])


@router.get("/connectivity", summary="Last known reachability of the remote API")
@limiter.limit("60/minute")
async def connectivity(
    request: Request,
    user: User = Depends(get_current_user),
    monitor: ConnectivityMonitor = Depends(get_connectivity),
):
    return {"online": monitor.is_online}


@router.get("/db-status", summary="Remote database status (developers only)")
@limiter.limit("10/minute")
async def db_status(
    request: Request,
    user: User = Depends(require_roles("developer")),
    remote_api: RemoteApiClient = Depends(get_remote_api),
) -> Dict[str, Any]:
    try:
        return await remote_api.db_status()
    except RemoteApiError as e:
        logger.warning(f"Database status check failed: {e}")
        raise HTTPException(status_code=status.HTTP_502_BAD_GATEWAY, detail=str(e))
