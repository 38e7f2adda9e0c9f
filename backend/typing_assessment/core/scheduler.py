"""
Tick scheduling collaborators.

The state machine never owns a real clock. It is handed a scheduler that
calls back with a number of due ticks:

    * ``ManualScheduler`` fires only when a test tells it to.
    * ``AsyncioTickScheduler`` fires about once per interval on the running
      event loop and derives the number of due ticks from the clock delta,
      so a late or coalesced callback (backgrounded tab, suspended process)
      catches up instead of leaving the countdown behind.

A ``Clock`` abstraction supplies monotonic time; ``FakeClock`` replaces it
in tests.
"""

import asyncio
import logging
import time
from typing import Callable, Optional

logger = logging.getLogger(__name__)

TickCallback = Callable[[int], None]


# =============================================================================
# CLOCKS
# =============================================================================

class Clock:
    """Source of monotonic time in seconds."""

    def time(self) -> float:
        raise NotImplementedError


class RealClock(Clock):
    def time(self) -> float:
        return time.monotonic()


class FakeClock(Clock):
    """Clock that only moves when ``advance`` is called."""

    def __init__(self, start: float = 0.0) -> None:
        self._now = float(start)

    def time(self) -> float:
        return self._now

    def advance(self, seconds: float) -> None:
        if seconds < 0:
            raise ValueError("Cannot advance clock backwards")
        self._now += seconds


# =============================================================================
# SCHEDULERS
# =============================================================================

class TickScheduler:
    """
    Drives the countdown by invoking a callback with the number of due ticks.

    ``stop()`` must be synchronous: once it returns, no further callbacks
    are delivered for the stopped run.
    """

    def start(self, callback: TickCallback) -> None:
        raise NotImplementedError

    def stop(self) -> None:
        raise NotImplementedError

    @property
    def is_running(self) -> bool:
        raise NotImplementedError


class ManualScheduler(TickScheduler):
    """Deterministic scheduler; ticks only on ``fire()``."""

    def __init__(self) -> None:
        self._callback: Optional[TickCallback] = None
        self.start_count = 0
        self.stop_count = 0

    def start(self, callback: TickCallback) -> None:
        self._callback = callback
        self.start_count += 1

    def stop(self) -> None:
        if self._callback is not None:
            self.stop_count += 1
        self._callback = None

    @property
    def is_running(self) -> bool:
        return self._callback is not None

    def fire(self, ticks: int = 1) -> bool:
        """Deliver ``ticks`` due ticks in one callback. Returns False if stopped."""
        if self._callback is None:
            return False
        self._callback(ticks)
        return True


class AsyncioTickScheduler(TickScheduler):
    """
    Periodic scheduler on the running asyncio loop.

    Due ticks are ``floor(elapsed / interval) - delivered``, measured on the
    clock rather than counted per wake-up.
    """

    def __init__(self, interval: float = 1.0, clock: Optional[Clock] = None):
        if interval <= 0:
            raise ValueError(f"interval must be positive, got {interval}")
        self.interval = interval
        self.clock = clock or RealClock()
        self._task: Optional[asyncio.Task] = None

    def start(self, callback: TickCallback) -> None:
        self.stop()
        loop = asyncio.get_running_loop()
        self._task = loop.create_task(self._run(callback))

    def stop(self) -> None:
        if self._task is not None:
            self._task.cancel()
            self._task = None

    @property
    def is_running(self) -> bool:
        return self._task is not None and not self._task.done()

    async def _run(self, callback: TickCallback) -> None:
        started = self.clock.time()
        delivered = 0
        while True:
            await asyncio.sleep(self.interval)
            due = int((self.clock.time() - started) / self.interval) - delivered
            if due <= 0:
                continue
            if due > 1:
                logger.info(f"Tick scheduler catching up {due} ticks")
            delivered += due
            try:
                callback(due)
            except Exception:
                logger.exception("Tick callback failed")
