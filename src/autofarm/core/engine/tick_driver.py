from __future__ import annotations

import asyncio

import structlog

from autofarm.core.engine.state import RunState
from autofarm.stats.session import SessionStatsAggregator

log = structlog.get_logger()


class StatsTicker:
    """
    Periodic stats publisher: keeps elapsed time live while a run is active.

    Runs as its own task on the engine's loop, so it never overlaps with the
    tile loop mid-statement. Always paced by asyncio.sleep, independent of
    the engine's injectable sleep.
    """

    def __init__(self, *, stats: SessionStatsAggregator, state: RunState, interval: float) -> None:
        if interval <= 0:
            raise ValueError("interval must be > 0")
        self._stats = stats
        self._state = state
        self._interval = interval
        self._task: asyncio.Task[None] | None = None

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    def start(self) -> None:
        self.stop()
        self._task = asyncio.get_running_loop().create_task(self._run(), name="autofarm-stats-ticker")
        log.debug("ticker.started", interval=self._interval)

    def stop(self) -> None:
        if self._task is not None:
            self._task.cancel()
            self._task = None

    async def _run(self) -> None:
        while True:
            await asyncio.sleep(self._interval)
            if not self._state.is_active:
                continue
            try:
                self._stats.publish()
            except Exception:
                log.exception("ticker.publish_failed")
