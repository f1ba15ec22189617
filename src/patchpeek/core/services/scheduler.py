from __future__ import annotations

import asyncio
import logging
from typing import Awaitable, Callable, Optional

logger = logging.getLogger(__name__)


class RefreshScheduler:
    """Runs ``refresh`` once at start and then every ``interval_seconds``."""

    def __init__(self, refresh: Callable[[], Awaitable[object]], interval_seconds: float) -> None:
        self._refresh = refresh
        self._interval = interval_seconds
        self._task: Optional[asyncio.Task[None]] = None
        self.runs = 0

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    async def start(self, *, warm_up: bool = True) -> None:
        """Start the timer loop. With ``warm_up`` the first refresh completes before returning."""
        if self.running:
            return
        if warm_up:
            await self._tick()
        self._task = asyncio.create_task(self._loop(), name="patchpeek-refresh")
        logger.info(f"Scheduled refresh every {self._interval}s")

    async def stop(self) -> None:
        task, self._task = self._task, None
        if task is None:
            return
        task.cancel()
        try:
            await task
        except asyncio.CancelledError:
            pass

    async def wait(self) -> None:
        if self._task is not None:
            await self._task

    async def _loop(self) -> None:
        while True:
            await asyncio.sleep(self._interval)
            await self._tick()

    async def _tick(self) -> None:
        try:
            await self._refresh()
        except Exception:
            logger.exception("Scheduled refresh failed")
        finally:
            self.runs += 1
