# track4health/modules/remote_api.py

import logging
from typing import Any, Dict, List, Optional

import httpx
from pydantic import TypeAdapter, ValidationError

from ..models.health_models import AwarenessSession, ChildScreening
from ..models.user_models import NewUser, User
from ..tools.connectivity import ConnectivityMonitor

logger = logging.getLogger(__name__)


# Custom exceptions for clearer error handling
class RemoteApiError(Exception):
    """Raised when the remote API answers with a failure envelope, garbage, or not at all."""
    pass


class NoConnectivityError(RemoteApiError):
    """Raised without touching the network when the device is known to be offline."""
    pass


class RemoteRejectedError(RemoteApiError):
    """The server was reached and answered with `success: false`."""
    pass


class RemoteUnreachableError(RemoteApiError):
    """The request was sent but no response came back (DNS, refused connection, timeout)."""
    pass


class RemoteApiClient:
    """
    Client for the Track4Health PHP/MySQL API.

    Every endpoint answers `{"success": true, ...}` or `{"success": false, "message": ...}`.
    There is no retry, backoff or idempotency key; callers decide what to do
    with a failure.
    """

    def __init__(self, http_client: httpx.AsyncClient, base_url: str, connectivity: ConnectivityMonitor):
        self._client = http_client
        self._base_url = base_url.rstrip("/")
        self._connectivity = connectivity

    def _url(self, endpoint: str) -> str:
        return f"{self._base_url}/{endpoint}"

    async def _request(self, method: str, endpoint: str, payload: Optional[Any] = None) -> Dict[str, Any]:
        """Sends one JSON request and returns the parsed success envelope."""
        if not self._connectivity.is_online:
            raise NoConnectivityError(f"Offline, {method} {endpoint} was not sent.")

        try:
            response = await self._client.request(method, self._url(endpoint), json=payload)
        except httpx.RequestError as e:
            logger.error(f"Network error while calling {endpoint}: {e}", exc_info=True)
            raise RemoteUnreachableError(f"Could not reach the server ({endpoint}).") from e

        try:
            body = response.json()
        except ValueError:
            logger.error(f"{endpoint} returned a non-JSON body (HTTP {response.status_code}).")
            raise RemoteApiError("Failed to parse server response.")

        if not isinstance(body, dict) or body.get("success") is not True:
            message = body.get("message") if isinstance(body, dict) else None
            logger.warning(f"{endpoint} reported a failure: {message}")
            raise RemoteRejectedError(message or "Request failed")

        return body

    # ===== Authentication & users =====

    async def login(self, username: str, password: str) -> Optional[User]:
        """Returns the user on success, None when the server rejects the credentials."""
        logger.info(f"Remote login attempt for user '{username}'.")
        try:
            body = await self._request("POST", "login.php", {"username": username, "password": password})
        except RemoteRejectedError as e:
            logger.warning(f"Remote login rejected for user '{username}': {e}")
            return None

        user_data = body.get("user")
        if not user_data:
            return None
        try:
            return User.model_validate(user_data)
        except ValidationError as e:
            raise RemoteApiError("Server returned an invalid user record.") from e

    async def get_users(self) -> List[User]:
        body = await self._request("GET", "users.php")
        try:
            return TypeAdapter(List[User]).validate_python(body.get("data") or [])
        except ValidationError as e:
            raise RemoteApiError("Server returned invalid user records.") from e

    async def add_user(self, new_user: NewUser) -> str:
        """Creates a user and returns the id assigned by the server."""
        body = await self._request("POST", "users.php", new_user.model_dump(mode="json", by_alias=True, exclude_none=True))
        return str(body.get("id", ""))

    async def delete_user(self, user_id: str) -> bool:
        body = await self._request("DELETE", "users.php", {"id": user_id})
        return body["success"]

    async def update_location(self, user_id: str, latitude: float, longitude: float) -> bool:
        body = await self._request(
            "POST", "update_location.php", {"userId": user_id, "latitude": latitude, "longitude": longitude}
        )
        return body["success"]

    # ===== Awareness sessions =====

    async def get_awareness_sessions(self) -> List[AwarenessSession]:
        body = await self._request("GET", "awareness_sessions.php")
        try:
            return TypeAdapter(List[AwarenessSession]).validate_python(body.get("data") or [])
        except ValidationError as e:
            raise RemoteApiError("Server returned invalid awareness sessions.") from e

    async def add_awareness_session(self, session: AwarenessSession) -> str:
        await self._request("POST", "awareness_sessions.php", session.model_dump(mode="json", by_alias=True))
        return session.id

    async def delete_awareness_session(self, session_id: str) -> bool:
        body = await self._request("DELETE", "awareness_sessions.php", {"id": session_id})
        return body["success"]

    # ===== Child screenings =====

    async def get_child_screenings(self) -> List[ChildScreening]:
        body = await self._request("GET", "screenings.php")
        try:
            return TypeAdapter(List[ChildScreening]).validate_python(body.get("data") or [])
        except ValidationError as e:
            raise RemoteApiError("Server returned invalid child screenings.") from e

    async def add_child_screening(self, screening: ChildScreening) -> str:
        await self._request("POST", "screenings.php", screening.model_dump(mode="json", by_alias=True))
        return screening.id

    async def delete_child_screening(self, screening_id: str) -> bool:
        body = await self._request("DELETE", "screenings.php", {"id": screening_id})
        return body["success"]

    # ===== Bulk sync & status =====

    async def sync_data(self, user_id: str, record_type: str, data: List[Dict[str, Any]]) -> bool:
        """Uploads a batch of serialized sessions (`record_type` is "sessions" or "screenings")."""
        logger.info(f"Syncing {len(data)} {record_type} for user '{user_id}'.")
        body = await self._request("POST", "sync_data.php", {"userId": user_id, "type": record_type, "data": data})
        return body["success"]

    async def db_status(self) -> Dict[str, Any]:
        """Database host, name and version as reported by `db_status.php`."""
        body = await self._request("GET", "db_status.php")
        return {key: body.get(key) for key in ("message", "host", "database", "version")}

    async def probe(self) -> bool:
        """HEAD request to `db_config.php`. Never raises; ignores the connectivity flag."""
        try:
            response = await self._client.head(self._url("db_config.php"))
            return response.status_code < 500
        except httpx.HTTPError as e:
            logger.debug(f"Connectivity probe failed: {e}")
            return False
