"""
refresh.py
Owned, cancellable polling timer for the news view's auto-refresh.
"""

import asyncio
import logging
from typing import Awaitable, Callable, Optional, Set

from . import config

logger = logging.getLogger(__name__)


class AutoRefreshTimer:
    """
    Calls ``callback`` every ``interval`` seconds on the running event loop
    until stopped. The first call happens one full interval after start().

    Each tick runs the callback as its own task, so stop() only cancels the
    pending tick; a cycle already under way is left to finish.

    Parameters
    ----------
    callback : coroutine function
        Invoked once per tick.
    interval : float
        Seconds between ticks.
    """

    def __init__(self, callback: Callable[[], Awaitable], interval: float = config.AUTO_REFRESH_INTERVAL):
        self.callback = callback
        self.interval = interval
        self._task: Optional[asyncio.Task] = None
        self._cycles: Set[asyncio.Task] = set()

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    def start(self) -> None:
        if self.running:
            return
        self._task = asyncio.get_running_loop().create_task(self._run())
        logger.debug(f"Auto-refresh scheduled every {self.interval}s")

    def stop(self) -> None:
        """Cancel the pending tick. Safe to call repeatedly."""
        if self._task is not None:
            self._task.cancel()
            self._task = None
            logger.debug("Auto-refresh cancelled")

    async def _run(self) -> None:
        loop = asyncio.get_running_loop()
        while True:
            await asyncio.sleep(self.interval)
            cycle = loop.create_task(self.callback())
            self._cycles.add(cycle)
            cycle.add_done_callback(self._cycle_done)

    def _cycle_done(self, cycle: asyncio.Task) -> None:
        self._cycles.discard(cycle)
        if cycle.cancelled():
            return
        error = cycle.exception()
        if error is not None:
            # A failed cycle must not end the polling loop.
            logger.error(f"Auto-refresh cycle failed: {error}")
