"""
POLL SCHEDULER

Fires the poll tick on a fixed wall-clock interval:
- first tick immediately, then every interval_seconds
- a firing while a tick is still running is skipped, not queued
- exceptions from a tick are logged and never stop the schedule
"""

import asyncio
import logging
from datetime import datetime
from typing import Awaitable, Callable, Dict, Optional

from .models import TickOutcome

logger = logging.getLogger(__name__)

Tick = Callable[[], Awaitable[Optional[TickOutcome]]]


class PollScheduler:
    """
    Single-flight periodic runner.

    The tick-in-progress flag is set before the tick starts and cleared in
    a finally block, so a slow or failed tick can never overlap the next.
    """

    def __init__(self, interval_seconds: float = 10.0):
        if interval_seconds <= 0:
            raise ValueError("interval_seconds must be > 0")
        self.interval_seconds = interval_seconds

        self._tick_in_progress = False
        self._current: Optional[asyncio.Task] = None
        self._stop_event: Optional[asyncio.Event] = None

        self.last_outcome: Optional[TickOutcome] = None
        self.last_tick_time: Optional[datetime] = None

        # Stats
        self.ticks_started = 0
        self.ticks_skipped = 0
        self.ticks_failed = 0

    @property
    def tick_in_progress(self) -> bool:
        return self._tick_in_progress

    @property
    def is_running(self) -> bool:
        return self._stop_event is not None and not self._stop_event.is_set()

    def fire(self, tick: Tick) -> bool:
        """
        One timer firing. Returns False if skipped because a tick is running.
        Must be called from inside the event loop.
        """
        if self._tick_in_progress:
            self.ticks_skipped += 1
            logger.debug("[SCHEDULER] Previous tick still running - skipping this firing")
            return False

        self._tick_in_progress = True
        self.ticks_started += 1
        self.last_tick_time = datetime.now()
        self._current = asyncio.create_task(self._guarded(tick), name="operator-poll-tick")
        return True

    async def _guarded(self, tick: Tick):
        try:
            outcome = await tick()
            if outcome is not None:
                self.last_outcome = outcome
        except asyncio.CancelledError:
            logger.info("[SCHEDULER] Tick cancelled")
            raise
        except Exception as e:
            self.ticks_failed += 1
            logger.exception(f"[SCHEDULER] Tick raised {type(e).__name__}: {e}")
        finally:
            self._tick_in_progress = False

    async def run(self, tick: Tick):
        """Fire now, then every interval_seconds until stop()."""
        self._stop_event = asyncio.Event()
        logger.info(f"[SCHEDULER] Polling every {self.interval_seconds}s")

        while not self._stop_event.is_set():
            self.fire(tick)
            try:
                await asyncio.wait_for(self._stop_event.wait(), timeout=self.interval_seconds)
            except asyncio.TimeoutError:
                continue

        logger.info("[SCHEDULER] Stopped")

    def stop(self):
        if self._stop_event is not None:
            self._stop_event.set()

    async def wait_idle(self):
        """Wait for the tick currently in progress, if any."""
        current = self._current
        if current is not None and not current.done():
            await asyncio.gather(current, return_exceptions=True)

    async def cancel_current(self):
        current = self._current
        if current is not None and not current.done():
            current.cancel()
            await asyncio.gather(current, return_exceptions=True)

    def get_stats(self) -> Dict:
        return {
            'interval_seconds': self.interval_seconds,
            'ticks_started': self.ticks_started,
            'ticks_skipped': self.ticks_skipped,
            'ticks_failed': self.ticks_failed,
            'tick_in_progress': self._tick_in_progress,
            'last_tick_time': self.last_tick_time.isoformat() if self.last_tick_time else None,
            'last_outcome': self.last_outcome.to_dict() if self.last_outcome else None,
        }
