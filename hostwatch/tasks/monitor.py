"""Background health monitoring loop."""

import asyncio
import logging
from typing import Optional

from hostwatch.core.health.service import HealthMonitorService
from hostwatch.core.settings import settings

logger = logging.getLogger(__name__)


class MonitorLoop:
    """Triggers an application pass and a host pass on every tick."""

    def __init__(
        self, service: HealthMonitorService, tick_seconds: Optional[float] = None
    ):
        self.service = service
        self.tick_seconds = tick_seconds or settings.scheduler_tick_seconds
        self._task: Optional[asyncio.Task] = None

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    def start(self) -> None:
        if self.running:
            return
        self._task = asyncio.create_task(self._run())
        logger.info(
            f"Health monitoring loop started with {self.tick_seconds}s ticks"
        )

    async def stop(self) -> None:
        """Cancel the loop and any evaluations it has in flight."""
        if self._task is None:
            return
        self._task.cancel()
        try:
            await self._task
        except asyncio.CancelledError:
            pass
        self._task = None
        logger.info("Health monitoring loop stopped")

    async def tick(self) -> None:
        """Run one application pass and one host pass concurrently."""
        results = await asyncio.gather(
            self.service.monitor_all_applications(),
            self.service.monitor_all_hosts(),
            return_exceptions=True,
        )
        for name, result in zip(("application", "host"), results):
            if isinstance(result, Exception):
                logger.error(f"{name.capitalize()} monitoring pass failed: {result}")

    async def _run(self) -> None:
        while True:
            try:
                await self.tick()
            except Exception as e:
                logger.error(f"Health monitoring tick failed: {e}")

            await asyncio.sleep(self.tick_seconds)
