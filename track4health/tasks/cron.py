import logging

from ..modules.remote_api import RemoteApiClient
from ..services.auth_service import AuthService
from ..tools.connectivity import ConnectivityMonitor

logger = logging.getLogger(__name__)


async def heartbeat_task(auth_service: AuthService):
    """Keeps the signed-in user marked online. Runs every HEARTBEAT_INTERVAL_SECONDS."""
    try:
        user = await auth_service.heartbeat()
        if user:
            logger.debug(f"Heartbeat for '{user.username}'.")
    except Exception as e:
        logger.error(f"Heartbeat failed: {e}", exc_info=True)


async def connectivity_probe_task(remote_api: RemoteApiClient, connectivity: ConnectivityMonitor):
    """Probes the remote API and updates the shared online/offline flag."""
    connectivity.set_online(await remote_api.probe())
