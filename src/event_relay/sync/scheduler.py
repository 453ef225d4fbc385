"""Fixed-interval tick scheduler.

Fires a tick immediately and then every `interval_seconds`. Each firing runs
as its own task, so a slow tick does not delay the timer, but a firing that
finds a tick still in progress is skipped instead of overlapping it.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Any, Awaitable, Callable

logger = logging.getLogger(__name__)


class TickScheduler:
    """Runs an async tick function on a fixed cadence without overlap."""

    def __init__(
        self,
        tick: Callable[[], Awaitable[Any]],
        interval_seconds: float = 60.0,
    ):
        self.tick = tick
        self.interval_seconds = interval_seconds
        self._in_progress = False
        self._running = False
        self._tasks: set[asyncio.Task] = set()
        self._idle = asyncio.Event()
        self._idle.set()

    @property
    def in_progress(self) -> bool:
        return self._in_progress

    async def fire(self) -> Any | None:
        """Run one tick unless one is already running.

        Returns:
            The tick's result, or None if skipped or failed
        """
        if self._in_progress:
            logger.warning("Previous tick still running, skipping this one")
            return None

        self._in_progress = True
        self._idle.clear()
        try:
            return await self.tick()
        except Exception as e:
            logger.exception(f"Tick failed: {e}")
            return None
        finally:
            self._in_progress = False
            self._idle.set()

    def _launch(self) -> None:
        task = asyncio.create_task(self.fire())
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)

    def next_slot(self, previous: float, now: float) -> float:
        """First cadence slot after `previous` that is not in the past.

        Slots missed while the loop was blocked are dropped, not replayed.
        """
        slot = previous + self.interval_seconds
        if slot < now:
            missed = int((now - slot) // self.interval_seconds) + 1
            logger.warning(f"Timer fell behind, skipping {missed} firing(s)")
            slot += missed * self.interval_seconds
        return slot

    async def run(self) -> None:
        """Fire now and then every interval until stop() is called."""
        self._running = True
        logger.info(f"Scheduling ticks every {self.interval_seconds}s")

        loop = asyncio.get_running_loop()
        next_fire = loop.time()
        while self._running:
            self._launch()
            next_fire = self.next_slot(next_fire, loop.time())
            await asyncio.sleep(max(0.0, next_fire - loop.time()))

    def stop(self) -> None:
        """Stop firing. A tick already in flight runs to completion."""
        self._running = False

    async def wait_idle(self) -> None:
        """Wait for launched firings and any tick in flight to finish."""
        if self._tasks:
            await asyncio.gather(*self._tasks, return_exceptions=True)
        await self._idle.wait()
