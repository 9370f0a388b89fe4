import logging

logger = logging.getLogger(__name__)


class ConnectivityMonitor:
    """
    Holds the last known reachability of the remote API.

    The remote client consults it before every request, and the periodic
    probe task updates it. Starts optimistic (online).
    """

    def __init__(self, online: bool = True):
        self._online = online

    @property
    def is_online(self) -> bool:
        return self._online

    def set_online(self, online: bool):
        if online == self._online:
            return
        self._online = online
        if online:
            logger.info("Remote API is reachable again.")
        else:
            logger.warning("Remote API is unreachable, working offline. Data will be saved locally.")
