from __future__ import annotations

from dataclasses import dataclass
from typing import Awaitable, Callable, Literal

import structlog

from autofarm.core.engine.state import RunState
from autofarm.core.engine.timing import TimingProfile
from autofarm.core.events.farm import HarvestEvent
from autofarm.core.types import HARVESTABLE_TERRAIN, Coordinate, Terrain
from autofarm.services.base import ActorResources, GameService, ServiceError, TileInfo
from autofarm.stats.session import SessionStatsAggregator

log = structlog.get_logger()

Emit = Callable[..., None]
Sleep = Callable[[float], Awaitable[None]]
RefreshCallback = Callable[[], Awaitable[None]]
HarvestStatus = Literal["not_harvestable", "verified", "timeout"]


@dataclass(frozen=True, slots=True)
class HarvestOutcome:
    status: HarvestStatus
    metal: int = 0
    energy: int = 0
    items: int = 0
    attempts: int = 0


NOT_HARVESTABLE = HarvestOutcome(status="not_harvestable")


def _as_terrain(value: Terrain | str) -> Terrain | None:
    try:
        return Terrain(value)
    except ValueError:
        return None


def resource_gain(before: ActorResources, after: ActorResources) -> tuple[int, int, int]:
    return (after.metal - before.metal, after.energy - before.energy, after.items - before.items)


class HarvestStep:
    """
    Trigger a harvest and confirm it by polling the actor's resources.

    Flow:
      snapshot resources -> trigger -> poll every `poll_interval` up to
      `poll_attempts` times -> first increase wins.

    A poll that raises ServiceError is logged and the polling goes on.
    Running out of attempts is a neutral outcome (tile depleted or on
    cooldown), not an error. Either way the profile's extra delay is applied
    so the next harvest lands outside the service cooldown.
    """

    def __init__(
        self,
        *,
        service: GameService,
        actor_id: str,
        state: RunState,
        stats: SessionStatsAggregator,
        timing: TimingProfile,
        emit: Emit,
        get_refresh: Callable[[], RefreshCallback | None],
        poll_interval: float,
        poll_attempts: int,
        sleep: Sleep,
        clock: Callable[[], float],
    ) -> None:
        self._service = service
        self._actor_id = actor_id
        self._state = state
        self._stats = stats
        self._timing = timing
        self._emit = emit
        self._get_refresh = get_refresh
        self._poll_interval = poll_interval
        self._poll_attempts = poll_attempts
        self._sleep = sleep
        self._clock = clock

    async def run(self, position: Coordinate, tile: TileInfo) -> HarvestOutcome:
        terrain = _as_terrain(tile.terrain)
        if terrain is None or terrain not in HARVESTABLE_TERRAIN:
            return NOT_HARVESTABLE

        before = await self._service.get_actor_resources(self._actor_id)
        await self._service.trigger_harvest(self._actor_id, position)

        for attempt in range(1, self._poll_attempts + 1):
            await self._sleep(self._poll_interval)
            try:
                after = await self._service.get_actor_resources(self._actor_id)
            except ServiceError as exc:
                log.warning("harvest.poll_failed", attempt=attempt, error=str(exc))
                continue

            metal, energy, items = resource_gain(before, after)
            if metal > 0 or energy > 0 or items > 0:
                return await self._verified(position, terrain, metal, energy, items, attempt)

        log.info("harvest.timeout", x=position.x, y=position.y, terrain=terrain.value)
        self._emit(
            HarvestEvent,
            position=position,
            message=f"No harvest at ({position.x}, {position.y}): {terrain.value} on cooldown or depleted",
            data={"terrain": terrain.value, "verified": False},
        )
        await self._extra_delay()
        return HarvestOutcome(status="timeout", attempts=self._poll_attempts)

    async def _verified(
        self,
        position: Coordinate,
        terrain: Terrain,
        metal: int,
        energy: int,
        items: int,
        attempt: int,
    ) -> HarvestOutcome:
        await self._extra_delay()

        refresh = self._get_refresh()
        if refresh is not None:
            try:
                await refresh()
            except Exception as exc:
                log.warning("harvest.refresh_failed", error=str(exc))

        self._state.last_harvest_time = self._clock()
        self._stats.record_harvest(terrain=terrain, metal=metal, energy=energy, items=items)

        log.info("harvest.verified", terrain=terrain.value, metal=metal, energy=energy, items=items, attempt=attempt)
        self._emit(
            HarvestEvent,
            position=position,
            message=f"Harvested {terrain.value}: +{max(metal, 0)} Metal, +{max(energy, 0)} Energy",
            data={
                "terrain": terrain.value,
                "verified": True,
                "metal_gained": max(metal, 0),
                "energy_gained": max(energy, 0),
                "items_found": max(items, 0),
            },
        )
        return HarvestOutcome(
            status="verified",
            metal=max(metal, 0),
            energy=max(energy, 0),
            items=max(items, 0),
            attempts=attempt,
        )

    async def _extra_delay(self) -> None:
        if self._timing.harvest_extra_delay > 0:
            await self._sleep(self._timing.harvest_extra_delay)
