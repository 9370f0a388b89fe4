import logging
from typing import List

from ..db.storage_client import CACHED_USERS_KEY, StorageClient
from ..models.user_models import ADMIN_ROLES, NewUser, User
from ..modules.remote_api import RemoteApiClient, RemoteApiError
from .health_data_service import NotFoundError, ServiceError

logger = logging.getLogger(__name__)


class AuthorizationError(ServiceError):
    """Exception class for authorization-related errors."""
    pass


class RemoteUnavailableError(ServiceError):
    """The operation needs the remote API and it could not be completed."""
    pass


class UserService:
    """
    User management as allowed to developers and masters.

    Only a developer sees or creates developer accounts, a master can never
    delete one, and nobody can delete their own account.
    """

    def __init__(self, storage: StorageClient, remote_api: RemoteApiClient):
        self.storage = storage
        self.remote_api = remote_api

    @staticmethod
    def _ensure_admin(actor: User):
        if actor.role not in ADMIN_ROLES:
            logger.warning(f"User '{actor.username}' ({actor.role}) tried to manage users.")
            raise AuthorizationError("You are not authorized to manage users.")

    async def list_users(self, actor: User) -> List[User]:
        """Remote user list, or the cached users when the remote API is unreachable."""
        self._ensure_admin(actor)
        try:
            users = await self.remote_api.get_users()
        except RemoteApiError as e:
            logger.warning(f"Could not fetch users remotely ({e}), using cached users.")
            users = await self.storage.load_collection(CACHED_USERS_KEY, User)

        if actor.role != "developer":
            users = [u for u in users if u.role != "developer"]
        return users

    async def create_user(self, actor: User, new_user: NewUser) -> User:
        self._ensure_admin(actor)
        if new_user.role == "developer" and actor.role != "developer":
            raise AuthorizationError("Only a developer can create developer accounts.")

        try:
            user_id = await self.remote_api.add_user(new_user)
        except RemoteApiError as e:
            logger.error(f"Creating user '{new_user.username}' failed: {e}", exc_info=True)
            raise RemoteUnavailableError(f"Could not create the user: {e}") from e

        logger.info(f"User '{new_user.username}' ({new_user.role}) created by '{actor.username}'.")
        return User(**new_user.model_dump(exclude={"password"}), id=user_id)

    async def delete_user(self, actor: User, user_id: str):
        self._ensure_admin(actor)
        if user_id == actor.id:
            raise AuthorizationError("You cannot delete your own account.")

        try:
            target = next((u for u in await self.remote_api.get_users() if u.id == user_id), None)
        except RemoteApiError as e:
            logger.error(f"Could not look up user {user_id}: {e}", exc_info=True)
            raise RemoteUnavailableError(f"Could not delete the user: {e}") from e

        if target is None:
            raise NotFoundError(f"User {user_id} not found.")
        if target.role == "developer" and actor.role != "developer":
            raise AuthorizationError("A master cannot delete a developer account.")

        try:
            await self.remote_api.delete_user(user_id)
        except RemoteApiError as e:
            logger.error(f"Deleting user {user_id} failed: {e}", exc_info=True)
            raise RemoteUnavailableError(f"Could not delete the user: {e}") from e

        cached = await self.storage.load_collection(CACHED_USERS_KEY, User)
        await self.storage.save_collection(CACHED_USERS_KEY, [u for u in cached if u.id != user_id])
        logger.info(f"User {user_id} ({target.username}) deleted by '{actor.username}'.")
