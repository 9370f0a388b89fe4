# track4health/api/dependencies.py
from typing import Any

from fastapi import Depends, HTTPException, Request, status

from ..db.storage_client import StorageClient
from ..modules.remote_api import RemoteApiClient
from ..services.auth_service import AuthService
from ..services.dashboard_service import DashboardService
from ..services.health_data_service import HealthDataService
from ..services.record_store import RecordStore
from ..services.sync_service import SyncService
from ..services.user_service import UserService
from ..tools.connectivity import ConnectivityMonitor
from ..tools.location_channel import LocationChannel


def _from_state(request: Request, name: str) -> Any:
    """
    Reads a shared object built by the lifespan. If startup failed the object
    is missing and the route answers 503 instead of crashing.
    """
    value = getattr(request.app.state, name, None)
    if value is None:
        raise HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail="Service is starting up or storage is unavailable.")
    return value


def get_storage_client(request: Request) -> StorageClient:
    return _from_state(request, "storage_client")


def get_record_store(request: Request) -> RecordStore:
    return _from_state(request, "record_store")


def get_remote_api(request: Request) -> RemoteApiClient:
    return _from_state(request, "remote_api")


def get_connectivity(request: Request) -> ConnectivityMonitor:
    return _from_state(request, "connectivity")


def get_location_channel(request: Request) -> LocationChannel:
    return _from_state(request, "location_channel")


def get_auth_service(
    storage: StorageClient = Depends(get_storage_client),
    remote_api: RemoteApiClient = Depends(get_remote_api),
) -> AuthService:
    """
    Builds a fresh AuthService for each request from the shared clients
    created at startup.
    """
    return AuthService(storage=storage, remote_api=remote_api)


def get_user_service(
    storage: StorageClient = Depends(get_storage_client),
    remote_api: RemoteApiClient = Depends(get_remote_api),
) -> UserService:
    return UserService(storage=storage, remote_api=remote_api)


def get_health_data_service(record_store: RecordStore = Depends(get_record_store)) -> HealthDataService:
    return HealthDataService(record_store=record_store)


def get_sync_service(
    record_store: RecordStore = Depends(get_record_store),
    storage: StorageClient = Depends(get_storage_client),
    remote_api: RemoteApiClient = Depends(get_remote_api),
) -> SyncService:
    return SyncService(record_store=record_store, storage=storage, remote_api=remote_api)


def get_dashboard_service(record_store: RecordStore = Depends(get_record_store)) -> DashboardService:
    return DashboardService(record_store=record_store)
