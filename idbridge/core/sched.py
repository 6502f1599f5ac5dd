"""Scheduler Module."""

import asyncio
import contextlib
from datetime import UTC, datetime, timedelta

from tzlocal import get_localzone

from idbridge import log
from idbridge.core.maintenance import IdCacheManager
from idbridge.exceptions import StorageError
from idbridge.models.schemas.cache import OptimizeResult

__all__ = ["MaintenanceScheduler"]


class MaintenanceScheduler:
    """Runs cache optimization periodically until asked to stop.

    The optimize pass uses synchronous database sessions, so it is pushed to a
    worker thread to keep the event loop free for resolutions.
    """

    def __init__(
        self,
        manager: IdCacheManager,
        interval: int,
        stop_event: asyncio.Event | None = None,
    ) -> None:
        """Initialize the maintenance scheduler.

        Args:
            manager (IdCacheManager): Cache manager whose `optimize` is run.
            interval (int): Seconds between runs. 0 disables the loop.
            stop_event (asyncio.Event | None): Event to signal shutdown.
        """
        self.manager = manager
        self.interval = interval
        self.stop_event = stop_event or asyncio.Event()

        self._running = False
        self._lock = asyncio.Lock()
        self._task: asyncio.Task | None = None
        self.last_result: OptimizeResult | None = None

    @property
    def is_running(self) -> bool:
        """Return whether the periodic loop is active."""
        return self._running

    async def run_once(self) -> OptimizeResult | None:
        """Run one optimize pass, logging instead of raising on storage errors."""
        async with self._lock:
            try:
                self.last_result = await asyncio.to_thread(self.manager.optimize)
            except StorageError as e:
                log.error(f"Cache maintenance failed: {e}")
                return None
            return self.last_result

    async def start(self) -> None:
        """Start the periodic loop."""
        if self._running:
            return
        if self.interval <= 0:
            log.info("Periodic cache maintenance is disabled")
            return

        self._running = True
        log.debug(f"Starting cache maintenance every {self.interval}s")
        self._task = asyncio.create_task(self._periodic_loop())

    async def stop(self) -> None:
        """Stop the periodic loop and wait for it to finish."""
        self._running = False
        self.stop_event.set()

        task = self._task
        if task and not task.done():
            task.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await task
        self._task = None

    async def _periodic_loop(self) -> None:
        while self._running and not self.stop_event.is_set():
            try:
                await self.run_once()

                next_run = datetime.now(UTC) + timedelta(seconds=self.interval)
                log.info(
                    "Next cache maintenance scheduled for: "
                    f"{next_run.astimezone(get_localzone())}"
                )

                with contextlib.suppress(asyncio.TimeoutError):
                    await asyncio.wait_for(self.stop_event.wait(), self.interval)
            except asyncio.CancelledError:
                log.debug("Cache maintenance loop cancelled")
                break
