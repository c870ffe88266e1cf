from __future__ import annotations

from typing import Callable

import structlog

from autofarm.core.engine.state import RunState
from autofarm.core.events.bus import EventBus
from autofarm.core.events.farm import CompleteEvent, MoveEvent
from autofarm.core.events.system import StateChanged
from autofarm.core.logging.setup import bind_context
from autofarm.core.types import FarmStatus
from autofarm.stats.session import SessionStats

log = structlog.get_logger()

Emit = Callable[..., None]


class FarmLifecycle:
    """
    Explicit run-state transitions.

        STOPPED --start--> ACTIVE --pause--> PAUSED --resume--> ACTIVE
        ACTIVE | PAUSED --stop--> STOPPED

    Calls that match no transition return False and change nothing.
    Timers and tasks are the engine's business; this class only moves the
    state and announces it.
    """

    def __init__(
        self,
        *,
        bus: EventBus,
        state: RunState,
        actor_id: str,
        clock: Callable[[], float],
        emit: Emit,
    ) -> None:
        self._bus = bus
        self._state = state
        self._actor_id = actor_id
        self._clock = clock
        self._emit = emit

    @property
    def state(self) -> RunState:
        return self._state

    def start(self) -> bool:
        if self._state.status is FarmStatus.ACTIVE:
            return False

        bind_context(actor_id=self._actor_id, component="engine")

        self._state.start_time = self._clock()
        self._state.paused_time = None
        self._state.status = FarmStatus.ACTIVE
        self._state.check_invariants()
        self.publish_state()

        self._emit(MoveEvent, position=self._state.position, message="Auto-farm started")
        log.info("engine.started", x=self._state.position.x, y=self._state.position.y)
        return True

    def pause(self) -> bool:
        if self._state.status is not FarmStatus.ACTIVE:
            return False

        self._state.paused_time = self._clock()
        self._state.status = FarmStatus.PAUSED
        self._state.check_invariants()
        self.publish_state()

        self._emit(MoveEvent, position=self._state.position, message="Auto-farm paused")
        log.info("engine.paused", tiles_completed=self._state.tiles_completed)
        return True

    def resume(self) -> bool:
        if self._state.status is not FarmStatus.PAUSED:
            return False

        now = self._clock()
        # Fold the pause into start_time so now - start_time excludes it
        if self._state.start_time is not None and self._state.paused_time is not None:
            self._state.start_time += now - self._state.paused_time

        self._state.paused_time = None
        self._state.status = FarmStatus.ACTIVE
        self._state.check_invariants()
        self.publish_state()

        self._emit(MoveEvent, position=self._state.position, message="Auto-farm resumed")
        log.info("engine.resumed")
        return True

    def stop(self, *, final_stats: SessionStats) -> bool:
        if self._state.status is FarmStatus.STOPPED:
            return False

        self._state.status = FarmStatus.STOPPED
        self._state.tiles_completed = 0
        self._state.start_time = None
        self._state.paused_time = None
        self.publish_state()

        self._emit(
            CompleteEvent,
            position=self._state.position,
            message="Auto-farm stopped",
            data=final_stats.to_dict(),
        )
        log.info("engine.stopped", **final_stats.to_dict())
        return True

    def publish_state(self) -> None:
        self._bus.publish(
            StateChanged.create(
                actor_id=self._actor_id,
                state=self._state.snapshot(),
                sequence=self._state.next_sequence(),
            )
        )
