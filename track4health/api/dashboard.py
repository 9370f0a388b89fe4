from fastapi import APIRouter, Depends, Request

from ..models.user_models import User
from ..services.dashboard_service import DashboardService, DashboardSummary
from .auth import get_current_user
from .dependencies import get_dashboard_service
from .utilities.limiter import limiter

router = APIRouter(prefix="/dashboard", tags=["Dashboard"])


@router.get("", response_model=DashboardSummary, summary="Totals, status counts and monthly figures")
@limiter.limit("60/minute")
async def summary(
    request: Request,
    user: User = Depends(get_current_user),
    service: DashboardService = Depends(get_dashboard_service),
):
    return service.summary()
