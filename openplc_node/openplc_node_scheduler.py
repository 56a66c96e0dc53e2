"""OpenPLC node polling scheduler."""

import asyncio
from typing import Callable, Optional

from .logger import get_logger

logger, _ = get_logger("openplc_node.scheduler", use_buffer=True)


class PollingScheduler:
    """
    Owns at most one recurring timer.

    The timer is an asyncio task that calls on_tick once per period. Ticks
    follow a fixed cadence on the loop clock and never wait for the work
    started by a previous tick.
    """

    def __init__(self, on_tick: Callable[[], None], name: str = "node"):
        self.name = name
        self._on_tick = on_tick
        self._timer: Optional[asyncio.Task] = None
        self.period: Optional[float] = None

    @property
    def is_running(self) -> bool:
        return self._timer is not None and not self._timer.done()

    def start(self, period: float) -> None:
        """Cancel any armed timer and arm a new one. Needs a running event loop."""
        if period <= 0:
            raise ValueError(f"Poll period must be positive, got: {period}")
        self.stop()
        self.period = period
        self._timer = asyncio.get_running_loop().create_task(
            self._run(period), name=f"OpenPLCPoll-{self.name}"
        )
        logger.debug("[%s] Polling started every %.3fs", self.name, period)

    def stop(self) -> None:
        """Cancel the armed timer, if any. Requests already issued are not affected."""
        if self._timer is None:
            return
        self._timer.cancel()
        self._timer = None
        logger.debug("[%s] Polling stopped", self.name)

    async def _run(self, period: float) -> None:
        loop = asyncio.get_running_loop()
        next_tick = loop.time() + period
        while True:
            await asyncio.sleep(max(0.0, next_tick - loop.time()))
            next_tick += period
            try:
                self._on_tick()
            except Exception:
                logger.exception("[%s] Poll tick failed", self.name)
