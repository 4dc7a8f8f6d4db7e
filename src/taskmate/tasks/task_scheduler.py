# src/taskmate/tasks/task_scheduler.py

from __future__ import annotations

"""
Task scheduler.

Two supervised polling loops on one event loop:
- alert loop (default every 60s): stages 1..3,
- end-of-day loop (default every 30min): congratulation messages.

Each loop awaits its tick before sleeping the rest of the period, so a slow
tick delays the next one instead of overlapping it. Overlap across processes is
handled by the store's conditional writes, not here.
"""

import asyncio
import contextlib
import logging
import time
from collections.abc import Awaitable, Callable

from .escalation import EscalationEngine

logger = logging.getLogger(__name__)


async def run_periodic(
        name: str,
        tick: Callable[[], Awaitable[object]],
        *,
        interval_seconds: float,
) -> None:
    """
    Call `tick` every interval_seconds, forever.

    - a tick that raises is logged; the loop keeps going
    - a tick longer than the period is logged as an overrun and the next one
      starts immediately (missed periods are not replayed)

    To stop the loop, cancel the coroutine/task.
    """
    period = max(0.01, float(interval_seconds))

    while True:
        started = time.monotonic()
        try:
            await tick()
        except asyncio.CancelledError:
            raise
        except Exception:
            logger.exception("%s tick crashed", name)

        elapsed = time.monotonic() - started
        if elapsed > period:
            logger.warning("%s tick overran its period (%.1fs > %.1fs)", name, elapsed, period)
            await asyncio.sleep(0)
        else:
            await asyncio.sleep(period - elapsed)


class EscalationScheduler:
    """
    Owns the alert and end-of-day loops.

    start() must be called from a running event loop; stop() cancels both loops
    and waits for them to finish.
    """

    def __init__(
            self,
            engine: EscalationEngine,
            *,
            alert_interval_seconds: float = 60.0,
            end_of_day_interval_seconds: float = 1800.0,
    ) -> None:
        self._engine = engine
        self._alert_interval = float(alert_interval_seconds)
        self._eod_interval = float(end_of_day_interval_seconds)
        self._tasks: list[asyncio.Task[None]] = []

    @property
    def running(self) -> bool:
        return any(not t.done() for t in self._tasks)

    def start(self) -> None:
        if self.running:
            logger.debug("Scheduler already running")
            return

        self._tasks = [
            asyncio.create_task(
                run_periodic("alerts", self._engine.run_alert_tick, interval_seconds=self._alert_interval),
                name="taskmate-alerts",
            ),
            asyncio.create_task(
                run_periodic("end-of-day", self._engine.run_end_of_day_tick, interval_seconds=self._eod_interval),
                name="taskmate-end-of-day",
            ),
        ]
        logger.info(
            "Scheduler started: alerts every %.0fs, end-of-day every %.0fs",
            self._alert_interval,
            self._eod_interval,
        )

    async def stop(self) -> None:
        tasks, self._tasks = self._tasks, []
        for t in tasks:
            t.cancel()
        for t in tasks:
            with contextlib.suppress(asyncio.CancelledError):
                await t
        if tasks:
            logger.info("Scheduler stopped")

    async def run_until(self, stop_event: asyncio.Event) -> None:
        """start(), wait for stop_event, stop()."""
        self.start()
        try:
            await stop_event.wait()
        finally:
            await self.stop()
