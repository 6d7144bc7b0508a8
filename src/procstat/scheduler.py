"""Fixed-rate tick scheduling with drift control."""

from __future__ import annotations

import asyncio
import time
from collections.abc import Callable

import structlog

log = structlog.get_logger()


class Scheduler:
    """Sleeps until absolute tick targets.

    The target advances by exactly one interval per tick, so time spent
    sampling never accumulates into drift. A tick that overruns its slot is
    followed immediately by the next one; missed ticks are never skipped.

    The sleep waits on the shutdown event, so a shutdown request wakes it
    early instead of waiting out the interval.
    """

    def __init__(
        self,
        interval: float,
        shutdown: asyncio.Event,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self.interval = interval
        self._shutdown = shutdown
        self._clock = clock
        self.target = clock()
        self.last_lag = 0.0
        self.max_lag = 0.0
        self.overruns = 0

    async def next(self) -> float:
        """Wait for the next tick target.

        Returns:
            Actual wake time from the scheduler clock.
        """
        self.target += self.interval
        delay = self.target - self._clock()

        if delay > 0:
            try:
                await asyncio.wait_for(self._shutdown.wait(), timeout=delay)
            except asyncio.TimeoutError:
                pass  # Normal wakeup
        else:
            self.overruns += 1
            log.debug("tick_overrun", behind=round(-delay, 6), overruns=self.overruns)

        now = self._clock()
        self.last_lag = max(0.0, now - self.target)
        self.max_lag = max(self.max_lag, self.last_lag)
        return now
