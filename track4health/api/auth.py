import logging
from datetime import datetime, timedelta, timezone

import jwt
from fastapi import APIRouter, Depends, HTTPException, Request, Response, status
from fastapi.security import OAuth2PasswordBearer
from pydantic import ValidationError
from redis.exceptions import RedisError

from ..config.config import settings
from ..models.user_models import User
from ..modules.remote_api import RemoteApiError
from ..services.auth_service import AuthService
from .dependencies import get_auth_service
from .schemas.user import LoginRequest, LoginResponse, Token, TokenData
from .utilities.limiter import limiter

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/auth", tags=["Authentication"])
oauth2_scheme = OAuth2PasswordBearer(tokenUrl="/api/v1/auth/login")


def create_access_token(data: dict, expires_delta: timedelta) -> str:
    """Creates a signed JWT carrying `data` that expires after `expires_delta`."""
    to_encode = data.copy()
    to_encode.update({"exp": datetime.now(timezone.utc) + expires_delta})
    return jwt.encode(to_encode, settings.SECRET_KEY, algorithm=settings.ALGORITHM)


async def get_current_user(
    token: str = Depends(oauth2_scheme),
    auth_service: AuthService = Depends(get_auth_service),
) -> User:
    """
    Decodes the bearer token and checks that its user is still the one signed
    in on this device. Logging out (or another user signing in) invalidates
    every token issued before.
    """
    credentials_exception = HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail="Could not validate credentials",
        headers={"WWW-Authenticate": "Bearer"},
    )
    try:
        payload = jwt.decode(token, settings.SECRET_KEY, algorithms=[settings.ALGORITHM])
        token_data = TokenData.model_validate(payload)
    except (jwt.PyJWTError, ValidationError) as e:
        logger.warning(f"Token validation error: {e}")
        raise credentials_exception

    if token_data.sub is None:
        logger.warning(f"Token is valid but missing 'sub': {payload}")
        raise credentials_exception

    current = await auth_service.current_user()
    if current is None or current.username != token_data.sub:
        logger.warning(f"User '{token_data.sub}' has a valid token but is not signed in. Denying access.")
        raise credentials_exception
    return current


def require_roles(*roles: str):
    """Dependency factory: the signed-in user must hold one of `roles`."""
    async def checker(user: User = Depends(get_current_user)) -> User:
        if user.role not in roles:
            raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="You are not authorized to access this resource.")
        return user
    return checker


@router.post("/login", response_model=LoginResponse)
@limiter.limit("10/minute")
async def login(request: Request, login_request: LoginRequest, auth_service: AuthService = Depends(get_auth_service)):
    """Signs a user in on this device; falls back to cached users while offline."""
    logger.info(f"Login attempt for user '{login_request.username}'.")
    try:
        user = await auth_service.login(login_request.username, login_request.password)
    except RedisError as e:
        logger.error(f"Local storage error during login for '{login_request.username}': {e}", exc_info=True)
        raise HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail="Local storage is unavailable.")
    except RemoteApiError as e:
        raise HTTPException(status_code=status.HTTP_502_BAD_GATEWAY, detail=str(e))

    if user is None:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid username or password.")

    access_token = create_access_token(
        data={"sub": user.username, "role": user.role},
        expires_delta=timedelta(minutes=settings.ACCESS_TOKEN_EXPIRE_MINUTES),
    )
    return LoginResponse(token=Token(access_token=access_token), user=user)


@router.post("/logout", status_code=status.HTTP_204_NO_CONTENT)
@limiter.limit("30/minute")
async def logout(
    request: Request,
    current_user: User = Depends(get_current_user),
    auth_service: AuthService = Depends(get_auth_service),
):
    await auth_service.logout()
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.get("/me", response_model=User)
@limiter.limit("60/minute")
async def me(request: Request, current_user: User = Depends(get_current_user)):
    return current_user
