import logging
from typing import List

from fastapi import APIRouter, Depends, Request, Response, status

from ..models.user_models import ADMIN_ROLES, Location, NewUser, User
from ..services.auth_service import AuthService
from ..services.health_data_service import ServiceError
from ..services.user_service import UserService
from ..tools.location_channel import LocationChannel
from .auth import get_current_user, require_roles
from .dependencies import get_auth_service, get_location_channel, get_user_service
from .schemas.user import CreatedUserResponse
from .utilities.errors import to_http_exception
from .utilities.limiter import limiter

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/users", tags=["Users"])


@router.get("", response_model=List[User], summary="List users visible to the caller")
@limiter.limit("30/minute")
async def list_users(
    request: Request,
    user: User = Depends(require_roles(*ADMIN_ROLES)),
    service: UserService = Depends(get_user_service),
):
    try:
        return await service.list_users(user)
    except ServiceError as e:
        raise to_http_exception(e)


@router.post("", response_model=CreatedUserResponse, status_code=status.HTTP_201_CREATED)
@limiter.limit("10/minute")
async def create_user(
    request: Request,
    new_user: NewUser,
    user: User = Depends(require_roles(*ADMIN_ROLES)),
    service: UserService = Depends(get_user_service),
):
    try:
        created = await service.create_user(user, new_user)
    except ServiceError as e:
        raise to_http_exception(e)
    return CreatedUserResponse(id=created.id, username=created.username)


@router.delete("/{user_id}", status_code=status.HTTP_204_NO_CONTENT)
@limiter.limit("10/minute")
async def delete_user(
    request: Request,
    user_id: str,
    user: User = Depends(require_roles(*ADMIN_ROLES)),
    service: UserService = Depends(get_user_service),
):
    try:
        await service.delete_user(user, user_id)
    except ServiceError as e:
        raise to_http_exception(e)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.post("/me/location", response_model=User, summary="Report the device's current GPS fix")
@limiter.limit("120/minute")
async def update_my_location(
    request: Request,
    location: Location,
    user: User = Depends(get_current_user),
    channel: LocationChannel = Depends(get_location_channel),
    auth_service: AuthService = Depends(get_auth_service),
):
    await channel.publish(location)
    return await auth_service.current_user()
