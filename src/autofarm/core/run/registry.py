from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timezone
from threading import Lock
from typing import Callable

import structlog

from autofarm.core.config.farm import FarmConfig
from autofarm.core.engine.engine import AutoFarmEngine
from autofarm.core.engine.timing import EngineSettings
from autofarm.core.types import Coordinate, FarmStatus
from autofarm.services.base import GameService
from autofarm.stats.alltime import AllTimeStats
from autofarm.storage.stats_store import AllTimeStatsStore

log = structlog.get_logger()


class FarmExists(RuntimeError):
    pass


class FarmNotFound(KeyError):
    pass


class FarmBusy(RuntimeError):
    pass


@dataclass(frozen=True, slots=True)
class FarmRecord:
    actor_id: str
    engine: AutoFarmEngine
    service: GameService
    created_at_utc: datetime


class FarmRegistry:
    """
    Live engines of this process, one per actor.

    Also owns the hand-off of session stats to the all-time store:
    flush_stats() persists first and only then resets the engine's counters.
    It is refused unless the farm is STOPPED: a live run keeps its start time
    across a stats reset, so flushing mid-run would count its time twice.
    """

    def __init__(
        self,
        *,
        service_factory: Callable[[], GameService],
        store: AllTimeStatsStore,
        engine_settings: EngineSettings,
    ) -> None:
        self._lock = Lock()
        self._farms: dict[str, FarmRecord] = {}
        self._service_factory = service_factory
        self._store = store
        self._engine_settings = engine_settings

    @property
    def store(self) -> AllTimeStatsStore:
        return self._store

    def create(self, *, actor_id: str, start: Coordinate, config: FarmConfig) -> AutoFarmEngine:
        with self._lock:
            if actor_id in self._farms:
                raise FarmExists(f"farm for {actor_id!r} already exists")
            service = self._service_factory()
            engine = AutoFarmEngine(
                actor_id=actor_id,
                start_position=start,
                service=service,
                config=config,
                settings=self._engine_settings,
            )
            self._farms[actor_id] = FarmRecord(
                actor_id=actor_id,
                engine=engine,
                service=service,
                created_at_utc=datetime.now(timezone.utc),
            )
        log.info("registry.farm_created", actor_id=actor_id, x=start.x, y=start.y, timing=engine.timing.name)
        return engine

    def get(self, actor_id: str) -> AutoFarmEngine:
        with self._lock:
            rec = self._farms.get(actor_id)
        if rec is None:
            raise FarmNotFound(actor_id)
        return rec.engine

    def list(self) -> list[FarmRecord]:
        with self._lock:
            items = list(self._farms.values())
        items.sort(key=lambda r: r.created_at_utc)
        return items

    async def remove(self, actor_id: str) -> None:
        """Destroy the farm, wait for its in-flight tile, then close its service."""
        with self._lock:
            rec = self._farms.pop(actor_id, None)
        if rec is None:
            raise FarmNotFound(actor_id)
        rec.engine.destroy()
        await rec.engine.join()
        close = getattr(rec.service, "close", None)
        if callable(close):
            close()
        log.info("registry.farm_removed", actor_id=actor_id)

    def flush_stats(self, actor_id: str) -> AllTimeStats:
        engine = self.get(actor_id)
        status = engine.get_state().status
        if status is not FarmStatus.STOPPED:
            raise FarmBusy(f"farm for {actor_id!r} is {status.value}; stop it before flushing stats")
        merged = self._store.merge(actor_id, engine.get_stats())
        engine.reset_stats()
        return merged
