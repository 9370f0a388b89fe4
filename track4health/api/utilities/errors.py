# track4health/api/utilities/errors.py

from fastapi import HTTPException, status

from ...services.health_data_service import DuplicateEntryError, NotFoundError, ServiceError, ValidationFailure
from ...services.user_service import AuthorizationError, RemoteUnavailableError


def to_http_exception(e: ServiceError) -> HTTPException:
    """Maps a service-layer error onto the HTTP status the clients expect."""
    if isinstance(e, ValidationFailure):
        return HTTPException(status_code=status.HTTP_422_UNPROCESSABLE_ENTITY, detail=e.messages)
    if isinstance(e, DuplicateEntryError):
        return HTTPException(status_code=status.HTTP_409_CONFLICT, detail=str(e))
    if isinstance(e, NotFoundError):
        return HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(e))
    if isinstance(e, AuthorizationError):
        return HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail=str(e))
    if isinstance(e, RemoteUnavailableError):
        return HTTPException(status_code=status.HTTP_502_BAD_GATEWAY, detail=str(e))
    return HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))
