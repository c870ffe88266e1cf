from __future__ import annotations

from dataclasses import asdict, dataclass, replace
from typing import Any, Callable

import structlog

from autofarm.core.engine.state import RunState
from autofarm.core.events.bus import EventBus
from autofarm.core.events.system import StatsUpdated
from autofarm.core.types import Terrain

log = structlog.get_logger()


@dataclass(frozen=True, slots=True)
class SessionStats:
    """
    Counters for one start -> stop session.

    time_elapsed is in seconds and excludes paused intervals.
    """

    time_elapsed: float = 0.0
    metal_collected: int = 0
    energy_collected: int = 0
    tiles_visited: int = 0
    cave_items_found: int = 0
    forest_items_found: int = 0
    attacks_launched: int = 0
    attacks_won: int = 0
    attacks_lost: int = 0
    errors_encountered: int = 0

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


class SessionStatsAggregator:
    """
    Owns the session counters of one engine and publishes StatsUpdated.

    Counters only ever grow; reset() is the single way back to zero and is
    driven by the host after it has persisted the totals.
    """

    def __init__(
        self,
        *,
        bus: EventBus,
        actor_id: str,
        state: RunState,
        clock: Callable[[], float],
    ) -> None:
        self._bus = bus
        self._actor_id = actor_id
        self._state = state
        self._clock = clock
        self._stats = SessionStats()

    def snapshot(self) -> SessionStats:
        """
        Current counters with elapsed time computed from the run state.

        Once stopped, the last computed elapsed time is kept so the final
        snapshot survives the run-state reset.
        """
        if self._state.start_time is None:
            return self._stats
        return replace(self._stats, time_elapsed=self._state.elapsed(self._clock()))

    def freeze_elapsed(self) -> SessionStats:
        """
        Capture elapsed time into the counters (called right before stop resets timestamps).
        """
        self._stats = self.snapshot()
        return self._stats

    # ---------------- Recording ----------------

    def record_tile_visited(self) -> None:
        self._update(tiles_visited=self._stats.tiles_visited + 1)

    def record_harvest(self, *, terrain: Terrain | str, metal: int, energy: int, items: int) -> None:
        updates: dict[str, int] = {
            "metal_collected": self._stats.metal_collected + max(metal, 0),
            "energy_collected": self._stats.energy_collected + max(energy, 0),
        }
        if items > 0 and terrain == Terrain.CAVE:
            updates["cave_items_found"] = self._stats.cave_items_found + items
        elif items > 0 and terrain == Terrain.FOREST:
            updates["forest_items_found"] = self._stats.forest_items_found + items
        self._update(**updates)

    def record_attack_launched(self) -> None:
        self._update(attacks_launched=self._stats.attacks_launched + 1)

    def record_attack_result(self, *, won: bool) -> None:
        if won:
            self._update(attacks_won=self._stats.attacks_won + 1)
        else:
            self._update(attacks_lost=self._stats.attacks_lost + 1)

    def record_error(self) -> None:
        self._update(errors_encountered=self._stats.errors_encountered + 1)

    def reset(self) -> None:
        self._stats = SessionStats()
        log.info("stats.reset", actor_id=self._actor_id)
        self.publish()

    def publish(self) -> None:
        self._bus.publish(
            StatsUpdated.create(
                actor_id=self._actor_id,
                stats=self.snapshot(),
                sequence=self._state.next_sequence(),
            )
        )

    # ---------------- Internals ----------------

    def _update(self, **changes: Any) -> None:
        self._stats = replace(self._stats, **changes)
        self.publish()
