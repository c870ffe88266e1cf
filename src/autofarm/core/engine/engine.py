from __future__ import annotations

import asyncio
import time
from typing import Any, Awaitable, Callable, Mapping

import structlog

from autofarm.core.config.farm import FarmConfig
from autofarm.core.engine.lifecycle import FarmLifecycle
from autofarm.core.engine.sequencer import SequencerStep, SnakeSequencer
from autofarm.core.engine.state import RunState
from autofarm.core.engine.tick_driver import StatsTicker
from autofarm.core.engine.timing import EngineSettings, TimingProfile, profile_for
from autofarm.core.events.bus import EventBus, Subscription
from autofarm.core.events.farm import FARM_EVENT_TYPES, CompleteEvent, FarmEvent
from autofarm.core.events.system import StateChanged, StatsUpdated
from autofarm.core.types import Coordinate, FarmStatus
from autofarm.execution.combat import CombatStep
from autofarm.execution.executor import ActionExecutor, TileResult
from autofarm.execution.harvest import HarvestStep, RefreshCallback
from autofarm.services.base import GameService
from autofarm.stats.session import SessionStats, SessionStatsAggregator

log = structlog.get_logger()

EventCallback = Callable[[FarmEvent], None]
StatsCallback = Callable[[SessionStats], None]
StateCallback = Callable[[RunState], None]


class AutoFarmEngine:
    """
    Snake-pattern traversal engine for one actor.

    One asyncio task walks the grid: ask the sequencer for the next
    coordinate, run the executor on it, wait the profile's tile delay, repeat
    while ACTIVE. pause()/stop() only keep the next tile from starting; a
    tile already in flight finishes first.

    Subscriptions: on_event/on_stats/on_state/on_refresh hold one callback
    each (registering again replaces it); an exception raised by one of them
    is logged and dropped. Extra observers can subscribe to `bus` directly.
    """

    def __init__(
        self,
        *,
        actor_id: str,
        start_position: Coordinate,
        service: GameService,
        config: FarmConfig | None = None,
        settings: EngineSettings | None = None,
        bus: EventBus | None = None,
        clock: Callable[[], float] = time.time,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ) -> None:
        if not actor_id:
            raise ValueError("actor_id must be non-empty")

        self._actor_id = actor_id
        self._config = config if config is not None else FarmConfig()
        self._settings = settings if settings is not None else EngineSettings()
        self._bus = bus if bus is not None else EventBus()
        self._clock = clock
        self._sleep = sleep

        # Picked once; later config updates do not change pacing
        self._timing = profile_for(vip=self._config.vip)

        self._sequencer = SnakeSequencer(width=self._settings.grid_width, height=self._settings.grid_height)
        if not (1 <= start_position.x <= self._sequencer.width and 1 <= start_position.y <= self._sequencer.height):
            raise ValueError(f"start position {start_position} outside the grid")

        self._state = RunState.initial(start_position)
        self._stats = SessionStatsAggregator(bus=self._bus, actor_id=actor_id, state=self._state, clock=clock)
        self._lifecycle = FarmLifecycle(
            bus=self._bus,
            state=self._state,
            actor_id=actor_id,
            clock=clock,
            emit=self._emit,
        )
        self._ticker = StatsTicker(stats=self._stats, state=self._state, interval=self._settings.stats_interval)

        self._executor = ActionExecutor(
            service=service,
            actor_id=actor_id,
            state=self._state,
            stats=self._stats,
            get_config=self.get_config,
            emit=self._emit,
            combat=CombatStep(
                service=service,
                actor_id=actor_id,
                stats=self._stats,
                emit=self._emit,
                max_units=self._settings.max_units_per_attack,
            ),
            harvest=HarvestStep(
                service=service,
                actor_id=actor_id,
                state=self._state,
                stats=self._stats,
                timing=self._timing,
                emit=self._emit,
                get_refresh=lambda: self._refresh,
                poll_interval=self._settings.harvest_poll_interval,
                poll_attempts=self._settings.harvest_poll_attempts,
                sleep=sleep,
                clock=clock,
            ),
        )

        self._loop_task: asyncio.Task[None] | None = None
        self._slots: dict[str, list[Subscription]] = {}
        self._refresh: RefreshCallback | None = None

        log.debug(
            "engine.created",
            actor_id=actor_id,
            timing=self._timing.name,
            grid=(self._sequencer.width, self._sequencer.height),
        )

    # ---------------- Accessors ----------------

    @property
    def actor_id(self) -> str:
        return self._actor_id

    @property
    def bus(self) -> EventBus:
        return self._bus

    @property
    def timing(self) -> TimingProfile:
        return self._timing

    @property
    def running(self) -> bool:
        """
        True while the tile loop task exists (it may be finishing an in-flight tile).
        """
        return self._loop_task is not None and not self._loop_task.done()

    def get_config(self) -> FarmConfig:
        return self._config

    def get_state(self) -> RunState:
        return self._state.snapshot()

    def get_stats(self) -> SessionStats:
        return self._stats.snapshot()

    def update_config(self, partial: Mapping[str, Any]) -> bool:
        """
        Merge `partial` into the config. Only applied while stopped.

        Raises pydantic.ValidationError on unknown keys or bad values.
        """
        if self._state.status is not FarmStatus.STOPPED:
            log.info("engine.config_rejected", status=self._state.status.value)
            return False
        self._config = self._config.merged(partial)
        log.info("engine.config_updated", **self._config.model_dump(mode="json"))
        return True

    # ---------------- Subscriptions ----------------

    def on_event(self, callback: EventCallback) -> None:
        self._clear_slot("event")
        self._slots["event"] = self._bus.subscribe_many(
            event_types=FARM_EVENT_TYPES,
            handler=self._shielded("event", callback),
        )

    def on_stats(self, callback: StatsCallback) -> None:
        self._clear_slot("stats")
        self._slots["stats"] = [
            self._bus.subscribe(
                event_type=StatsUpdated.event_type,
                handler=self._shielded("stats", lambda e: callback(e.stats)),
            ),
        ]

    def on_state(self, callback: StateCallback) -> None:
        self._clear_slot("state")
        self._slots["state"] = [
            self._bus.subscribe(
                event_type=StateChanged.event_type,
                handler=self._shielded("state", lambda e: callback(e.state)),
            ),
        ]

    def on_refresh(self, callback: RefreshCallback) -> None:
        self._refresh = callback

    # ---------------- Lifecycle ----------------

    def start(self) -> None:
        """
        Begin (or restart) farming from the current position.

        Must be called from inside a running event loop.
        """
        if not self._lifecycle.start():
            return
        self._ticker.start()
        self._ensure_loop()

    def pause(self) -> None:
        if not self._lifecycle.pause():
            return
        self._ticker.stop()

    def resume(self) -> None:
        if not self._lifecycle.resume():
            return
        self._ticker.start()
        self._ensure_loop()

    def stop(self) -> SessionStats | None:
        """
        Stop the run and return the final session stats.

        Stats stay in place until reset_stats(), so the caller can persist them.
        Returns None when already stopped.
        """
        self._ticker.stop()
        if self._state.status is FarmStatus.STOPPED:
            return None
        final = self._stats.freeze_elapsed()
        self._lifecycle.stop(final_stats=final)
        return final

    def reset_stats(self) -> None:
        self._stats.reset()

    def destroy(self) -> None:
        self.stop()
        for slot in list(self._slots):
            self._clear_slot(slot)
        self._refresh = None
        log.debug("engine.destroyed", actor_id=self._actor_id)

    async def join(self) -> None:
        """
        Wait until the tile loop has exited (stop, pause or full-grid completion).
        """
        task = self._loop_task
        if task is not None:
            await task

    # ---------------- Tile loop ----------------

    def _ensure_loop(self) -> None:
        # A loop still finishing an in-flight tile picks the ACTIVE status back up
        if self.running:
            return
        self._loop_task = asyncio.get_running_loop().create_task(self._run_loop(), name=f"autofarm-{self._actor_id}")

    async def _run_loop(self) -> None:
        while self._state.is_active:
            step = self._sequencer.next_step(self._state.cursor, self._state.direction)
            if step is None:
                try:
                    self._complete()
                except Exception:
                    log.exception("engine.complete_notify_failed", actor_id=self._actor_id)
                    self.stop()
                return

            self._advance_cursor(step)
            try:
                result = await self._executor.process_tile(step.position)
                self._record(result)
            except Exception:
                # a failing bus subscriber must not end the run while status stays ACTIVE
                log.exception("engine.tile_aborted", x=step.position.x, y=step.position.y)

            await self._sleep(self._timing.tile_delay)
            # yield once between tiles even when sleep is instantaneous
            await asyncio.sleep(0)

    def _advance_cursor(self, step: SequencerStep) -> None:
        self._state.cursor = step.position
        self._state.direction = step.direction
        self._state.current_row = step.row

    def _record(self, result: TileResult) -> None:
        if result.success:
            # a tile that finished after stop() still counts for the session, not the reset run
            if self._state.status is not FarmStatus.STOPPED:
                self._state.tiles_completed += 1
            self._stats.record_tile_visited()
        else:
            log.info("engine.tile_failed", x=result.position.x, y=result.position.y, error=result.error)
        self._lifecycle.publish_state()

    def _complete(self) -> None:
        log.info("engine.grid_completed", actor_id=self._actor_id)
        self._emit(CompleteEvent, position=self._state.position, message="Entire map completed!")
        self.stop()

    # ---------------- Internals ----------------

    def _emit(
        self,
        event_cls: type[FarmEvent],
        *,
        position: Coordinate,
        message: str,
        data: dict[str, Any] | None = None,
    ) -> None:
        self._bus.publish(
            event_cls.create(
                actor_id=self._actor_id,
                position=position,
                message=message,
                data=data or {},
                sequence=self._state.next_sequence(),
            )
        )

    def _shielded(self, slot: str, callback: Callable[[Any], None]) -> Callable[[Any], None]:
        """Wrap a host callback so its failures are logged and never reach the loop."""

        def handler(event: Any) -> None:
            try:
                callback(event)
            except Exception:
                log.exception("engine.callback_failed", slot=slot, actor_id=self._actor_id)

        return handler

    def _clear_slot(self, slot: str) -> None:
        for sub in self._slots.pop(slot, []):
            self._bus.unsubscribe(sub)
