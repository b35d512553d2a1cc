"""
Risk Monitor - Periodic Scheduler.

============================================================
PURPOSE
============================================================
Start/stop-able periodic timer driving an async callback.

- The first tick fires immediately on start
- Ticks are single-flight: if the previous tick is still
  running when the timer fires, the new tick is skipped and
  logged
- A tick that raises is logged; the timer keeps running
- stop() is idempotent, cancels the timer and waits for an
  in-flight tick to finish

============================================================
"""

import asyncio
import logging
from typing import Any, Awaitable, Callable, Optional


logger = logging.getLogger(__name__)


TickCallback = Callable[[], Awaitable[Any]]


class PeriodicScheduler:
    """Single-flight periodic timer for an async callback."""

    def __init__(
        self,
        callback: TickCallback,
        interval_seconds: float,
        name: str = "scheduler",
    ) -> None:
        if interval_seconds <= 0:
            raise ValueError(f"interval_seconds must be positive, got {interval_seconds}")
        self._callback = callback
        self._interval = interval_seconds
        self._name = name

        self._running = False
        self._timer_task: Optional[asyncio.Task] = None
        self._tick_task: Optional[asyncio.Task] = None

        self._ticks_started = 0
        self._ticks_skipped = 0
        self._ticks_failed = 0

    # --------------------------------------------------------
    # PROPERTIES
    # --------------------------------------------------------

    @property
    def is_running(self) -> bool:
        return self._running

    @property
    def interval_seconds(self) -> float:
        return self._interval

    @property
    def tick_in_flight(self) -> bool:
        return self._tick_task is not None and not self._tick_task.done()

    def stats(self) -> dict:
        return {
            "name": self._name,
            "running": self._running,
            "interval_seconds": self._interval,
            "ticks_started": self._ticks_started,
            "ticks_skipped": self._ticks_skipped,
            "ticks_failed": self._ticks_failed,
        }

    # --------------------------------------------------------
    # LIFECYCLE
    # --------------------------------------------------------

    async def start(self, interval_seconds: Optional[float] = None) -> None:
        """
        Start ticking. Restarts the timer if already running.

        Returns immediately; the first tick is scheduled before
        this coroutine returns.
        """
        if self._running:
            await self.stop()

        if interval_seconds is not None:
            if interval_seconds <= 0:
                raise ValueError(f"interval_seconds must be positive, got {interval_seconds}")
            self._interval = interval_seconds

        self._running = True
        self._spawn_tick()
        self._timer_task = asyncio.create_task(self._timer_loop())
        logger.info(f"{self._name} started (interval {self._interval}s)")

    async def stop(self) -> None:
        """Cancel the timer and wait for an in-flight tick. Idempotent."""
        if not self._running and self._timer_task is None and self._tick_task is None:
            return

        self._running = False

        if self._timer_task:
            self._timer_task.cancel()
            try:
                await self._timer_task
            except asyncio.CancelledError:
                pass
            self._timer_task = None

        await self.wait_idle()
        self._tick_task = None

        logger.info(f"{self._name} stopped")

    async def wait_idle(self) -> None:
        """Wait for the in-flight tick, if any, to finish."""
        task = self._tick_task
        if task is not None and not task.done():
            await asyncio.shield(task)

    # --------------------------------------------------------
    # INTERNALS
    # --------------------------------------------------------

    async def _timer_loop(self) -> None:
        while self._running:
            try:
                await asyncio.sleep(self._interval)
            except asyncio.CancelledError:
                break
            if self._running:
                self._spawn_tick()

    def _spawn_tick(self) -> None:
        if self.tick_in_flight:
            self._ticks_skipped += 1
            logger.warning(
                f"{self._name}: previous tick still running, skipping this tick "
                f"({self._ticks_skipped} skipped so far)"
            )
            return
        self._ticks_started += 1
        self._tick_task = asyncio.create_task(self._run_tick())

    async def _run_tick(self) -> None:
        try:
            await self._callback()
        except asyncio.CancelledError:
            raise
        except Exception as e:
            self._ticks_failed += 1
            logger.error(f"{self._name}: tick failed: {e}", exc_info=True)
