"""
packsource - Refresh Scheduler

Debounced, single-shot deferred refresh. An install arms a deadline; the
refresh runs once the deadline has passed and a poll observes it. Arming
again before it fires pushes the deadline out, so a burst of installs ends
in one refresh.

The scheduler does not own a loop. Hosts drive it with poll(), or block on
wait(), or await run() inside asyncio.
"""

from __future__ import annotations

import asyncio
import logging
import time
from typing import Callable, Optional

logger = logging.getLogger(__name__)

DEFAULT_WINDOW = 1.0  # seconds


class RefreshScheduler:
    """One deferred call to ``refresh`` per quiet period."""

    def __init__(
        self,
        refresh: Callable[[], None],
        window: float = DEFAULT_WINDOW,
        clock: Callable[[], float] = time.monotonic,
    ):
        self._refresh = refresh
        self.window = window
        self._clock = clock
        self._deadline: Optional[float] = None
        self.fired = 0

    @property
    def pending(self) -> bool:
        return self._deadline is not None

    @property
    def deadline(self) -> Optional[float]:
        return self._deadline

    def schedule(self) -> None:
        """Arm (or re-arm) the refresh ``window`` seconds from now."""
        self._deadline = self._clock() + self.window
        logger.debug(f"[Refresh] Armed, deadline in {self.window:.2f}s")

    def cancel(self) -> bool:
        """Disarm without refreshing. Returns True if a refresh was pending."""
        was_pending = self.pending
        self._deadline = None
        return was_pending

    def poll(self) -> bool:
        """
        Tick. Runs the refresh if the deadline has passed.

        Returns:
            True if the refresh ran on this tick.
        """
        if self._deadline is None or self._clock() < self._deadline:
            return False
        self._deadline = None
        self.fired += 1
        logger.info("[Refresh] Quiet period elapsed, refreshing")
        self._refresh()
        return True

    def wait(
        self,
        interval: float = 0.05,
        sleep: Callable[[float], None] = time.sleep,
    ) -> bool:
        """Block until the pending refresh has run. False if nothing was pending."""
        if not self.pending:
            return False
        while not self.poll():
            if not self.pending:
                return False
            sleep(interval)
        return True

    async def run(self, interval: float = 0.05) -> bool:
        """asyncio variant of wait()."""
        if not self.pending:
            return False
        while not self.poll():
            if not self.pending:
                return False
            await asyncio.sleep(interval)
        return True
