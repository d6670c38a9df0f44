"""
modules/reoptimization/monitor_loop.py
----------------------------------------
Cancellable periodic tasks on the running asyncio loop.

Each PeriodicTask owns one asyncio.Task:
    sleep(first_delay) → tick → sleep(interval) → tick → …

A tick that raises is logged and reported through `on_error`; the loop keeps
going. cancel() stops it between ticks or mid-sleep; reschedule() restarts
the countdown (used when the itinerary changes structurally).
"""

from __future__ import annotations
import asyncio
import logging
from typing import Awaitable, Callable, Optional

logger = logging.getLogger(__name__)

Tick = Callable[[], Awaitable[None]]
ErrorHook = Callable[[str, Exception], None]


class PeriodicTask:

    def __init__(
        self,
        name: str,
        interval: float,
        tick: Tick,
        first_delay: Optional[float] = None,
        on_error: Optional[ErrorHook] = None,
    ) -> None:
        if interval <= 0:
            raise ValueError("interval must be > 0")
        self.name = name
        self.interval = interval
        self.first_delay = interval if first_delay is None else first_delay
        self._tick = tick
        self._on_error = on_error
        self._task: Optional[asyncio.Task] = None
        self.ticks = 0

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    def start(self) -> None:
        """Start on the current event loop. No-op if already running."""
        if self.running:
            return
        self._task = asyncio.get_running_loop().create_task(
            self._run(self.first_delay), name=self.name,
        )
        logger.debug("%s scheduled (first tick in %.0fs)", self.name, self.first_delay)

    def cancel(self) -> None:
        if self._task is not None and not self._task.done():
            self._task.cancel()
            logger.debug("%s cancelled", self.name)
        self._task = None

    def reschedule(self, delay: Optional[float] = None) -> None:
        """Cancel and start again with a fresh first delay."""
        self.cancel()
        if delay is not None:
            self.first_delay = delay
        self.start()

    async def _run(self, delay: float) -> None:
        await asyncio.sleep(delay)
        while True:
            try:
                await self._tick()
            except asyncio.CancelledError:
                raise
            except Exception as exc:
                logger.exception("%s tick failed", self.name)
                if self._on_error is not None:
                    self._on_error(self.name, exc)
            self.ticks += 1
            await asyncio.sleep(self.interval)
