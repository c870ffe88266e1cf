from __future__ import annotations

from typing import Sequence

import pytest

from autofarm.core.types import Compass, Coordinate, Terrain
from autofarm.services.base import (
    ActorProfile,
    ActorResources,
    AttackResult,
    MoveResult,
    ServiceError,
    TileInfo,
)


class FakeGameService:
    """
    In-memory GameService. Tests poke the public attributes to shape the map.
    """

    def __init__(self) -> None:
        self.tiles: dict[Coordinate, TileInfo] = {}
        self.resources = ActorResources()
        # resources added when a harvest is triggered on that coordinate
        self.harvest_yield: dict[Coordinate, ActorResources] = {}
        self.profiles: dict[str, ActorProfile] = {}
        self.attack_result = AttackResult(ok=True, won=True)

        # coordinate -> position the service reports instead of the target
        self.mismatch: dict[Coordinate, Coordinate] = {}
        self.reject_moves: set[Coordinate] = set()
        self.broken_tiles: set[Coordinate] = set()

        self.moves: list[tuple[Coordinate, Compass]] = []
        self.harvests: list[Coordinate] = []
        self.attacks: list[tuple[str, list[str]]] = []
        self.resource_reads = 0

    async def move(self, actor_id: str, target: Coordinate, direction: Compass) -> MoveResult:
        self.moves.append((target, direction))
        if target in self.reject_moves:
            return MoveResult(ok=False, reason="blocked")
        return MoveResult(ok=True, position=self.mismatch.get(target, target))

    async def inspect_tile(self, position: Coordinate) -> TileInfo | None:
        if position in self.broken_tiles:
            raise RuntimeError(f"tile {position} exploded")
        return self.tiles.get(position, TileInfo(position=position, terrain=Terrain.WASTELAND))

    async def trigger_harvest(self, actor_id: str, position: Coordinate) -> None:
        self.harvests.append(position)
        gain = self.harvest_yield.get(position)
        if gain is not None:
            self.resources = ActorResources(
                metal=self.resources.metal + gain.metal,
                energy=self.resources.energy + gain.energy,
                items=self.resources.items + gain.items,
            )

    async def get_actor_resources(self, actor_id: str) -> ActorResources:
        self.resource_reads += 1
        return self.resources

    async def attack(self, actor_id: str, target_actor_id: str, unit_ids: Sequence[str]) -> AttackResult:
        self.attacks.append((target_actor_id, list(unit_ids)))
        return self.attack_result

    async def get_actor_profile(self, actor_id: str) -> ActorProfile:
        profile = self.profiles.get(actor_id)
        if profile is None:
            raise ServiceError(f"unknown actor {actor_id!r}", status_code=404)
        return profile


class FakeClock:
    def __init__(self, now: float = 1000.0) -> None:
        self.now = now

    def __call__(self) -> float:
        return self.now


class RecordingSleep:
    """
    Instant sleep that records each requested delay and advances the clock.
    """

    def __init__(self, clock: FakeClock) -> None:
        self.clock = clock
        self.delays: list[float] = []

    async def __call__(self, seconds: float) -> None:
        self.delays.append(seconds)
        self.clock.now += seconds


@pytest.fixture
def service() -> FakeGameService:
    return FakeGameService()


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def sleep(clock: FakeClock) -> RecordingSleep:
    return RecordingSleep(clock)
