from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Literal

SweepDirection = Literal["forward", "backward"]


@dataclass(frozen=True, slots=True)
class Coordinate:
    """
    1-based grid coordinate (x = column, y = row).
    """

    x: int
    y: int

    def as_dict(self) -> dict[str, int]:
        return {"x": self.x, "y": self.y}


class Compass(str, Enum):
    """
    The eight movement primitives understood by the game service.
    """

    N = "N"
    NE = "NE"
    E = "E"
    SE = "SE"
    S = "S"
    SW = "SW"
    W = "W"
    NW = "NW"


class FarmStatus(str, Enum):
    STOPPED = "stopped"
    ACTIVE = "active"
    PAUSED = "paused"


class RankFilter(str, Enum):
    ALL = "all"
    LOWER = "lower"
    HIGHER = "higher"


class ResourceTarget(str, Enum):
    METAL = "metal"
    ENERGY = "energy"
    LOWEST = "lowest"


class Terrain(str, Enum):
    METAL = "Metal"
    ENERGY = "Energy"
    CAVE = "Cave"
    FOREST = "Forest"
    FACTORY = "Factory"
    WASTELAND = "Wasteland"
    BANK = "Bank"
    SHRINE = "Shrine"
    AUCTION_HOUSE = "AuctionHouse"


HARVESTABLE_TERRAIN: frozenset[Terrain] = frozenset(
    {Terrain.METAL, Terrain.ENERGY, Terrain.CAVE, Terrain.FOREST}
)
