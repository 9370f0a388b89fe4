import asyncio
import logging
from typing import AsyncIterator, Awaitable, Callable, List, Optional

from ..config.config import settings
from ..models.user_models import Location

logger = logging.getLogger(__name__)

LocationCallback = Callable[[Location], Awaitable[None]]
LocationProvider = Callable[[], Awaitable[Optional[Location]]]


class TrackingHandle:
    """Returned by `LocationChannel.track`; `cancel()` stops every feeder task."""

    def __init__(self, tasks: List[asyncio.Task]):
        self._tasks = tasks

    @property
    def active(self) -> bool:
        return any(not task.done() for task in self._tasks)

    def cancel(self):
        for task in self._tasks:
            task.cancel()
        logger.info("Location tracking stopped.")


class LocationChannel:
    """
    The single location channel of a device.

    Fixes may come from a continuous watch stream and from an interval poll at
    the same time. No ordering is enforced between the two: the last published
    fix wins.
    """

    def __init__(self):
        self._latest: Optional[Location] = None
        self._subscribers: List[LocationCallback] = []

    @property
    def latest(self) -> Optional[Location]:
        return self._latest

    def subscribe(self, callback: LocationCallback):
        self._subscribers.append(callback)

    async def publish(self, fix: Location):
        self._latest = fix
        for callback in self._subscribers:
            try:
                await callback(fix)
            except Exception as e:
                # A failing subscriber must not stop the feeders.
                logger.error(f"Location subscriber failed: {e}", exc_info=True)

    async def _consume_stream(self, stream: AsyncIterator[Location]):
        try:
            async for fix in stream:
                await self.publish(fix)
        except asyncio.CancelledError:
            raise
        except Exception as e:
            logger.error(f"Location watch stream failed: {e}", exc_info=True)

    async def _poll(self, provider: LocationProvider, interval: float):
        while True:
            try:
                fix = await provider()
            except Exception as e:
                logger.warning(f"Location poll failed: {e}")
                fix = None
            if fix is not None:
                await self.publish(fix)
            await asyncio.sleep(interval)

    def track(
        self,
        watch_stream: Optional[AsyncIterator[Location]] = None,
        poll_provider: Optional[LocationProvider] = None,
        interval: float = settings.LOCATION_POLL_SECONDS,
    ) -> TrackingHandle:
        """
        Starts the feeders as background tasks on the running loop.

        This is the entry point for a device-side GPS feeder (a watch stream,
        a poll provider, or both) embedding the package. The HTTP service has
        no GPS of its own, so it publishes fixes posted to `/users/me/location`
        directly instead.
        """
        tasks = []
        if watch_stream is not None:
            tasks.append(asyncio.create_task(self._consume_stream(watch_stream)))
        if poll_provider is not None:
            tasks.append(asyncio.create_task(self._poll(poll_provider, interval)))
        logger.info(f"Location tracking started with {len(tasks)} feeder(s).")
        return TrackingHandle(tasks)
