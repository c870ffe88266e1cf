from __future__ import annotations

from dataclasses import dataclass, field
from typing import Protocol, Sequence

from autofarm.core.types import Compass, Coordinate, Terrain


class ServiceError(RuntimeError):
    """
    Transport or protocol failure while talking to the game service.
    """

    def __init__(self, message: str, *, status_code: int | None = None) -> None:
        super().__init__(message)
        self.status_code = status_code


@dataclass(frozen=True, slots=True)
class MoveResult:
    ok: bool
    position: Coordinate | None = None  # authoritative post-move position
    reason: str | None = None


@dataclass(frozen=True, slots=True)
class Occupant:
    actor_id: str
    is_base: bool = True


@dataclass(frozen=True, slots=True)
class TileInfo:
    position: Coordinate
    terrain: Terrain | str
    occupant: Occupant | None = None


@dataclass(frozen=True, slots=True)
class ActorResources:
    metal: int = 0
    energy: int = 0
    # discovered cave/forest items; a harvest can raise this instead of metal/energy
    items: int = 0


@dataclass(frozen=True, slots=True)
class Unit:
    unit_id: str
    strength: float = 0.0


@dataclass(frozen=True, slots=True)
class ActorProfile:
    actor_id: str
    rank: int = 1
    units: tuple[Unit, ...] = ()
    resources: ActorResources = field(default_factory=ActorResources)


@dataclass(frozen=True, slots=True)
class AttackResult:
    ok: bool
    won: bool = False
    metal_transferred: int = 0
    energy_transferred: int = 0
    experience_gained: int = 0
    units_lost: int = 0
    reason: str | None = None


class GameService(Protocol):
    """
    Collaborator contract consumed by the engine.

    Rejections the service reports on purpose come back as results with
    ok=False; anything else (network, malformed payload) raises ServiceError.
    """

    async def move(self, actor_id: str, target: Coordinate, direction: Compass) -> MoveResult:
        ...

    async def inspect_tile(self, position: Coordinate) -> TileInfo | None:
        ...

    async def trigger_harvest(self, actor_id: str, position: Coordinate) -> None:
        ...

    async def get_actor_resources(self, actor_id: str) -> ActorResources:
        ...

    async def attack(self, actor_id: str, target_actor_id: str, unit_ids: Sequence[str]) -> AttackResult:
        ...

    async def get_actor_profile(self, actor_id: str) -> ActorProfile:
        ...
