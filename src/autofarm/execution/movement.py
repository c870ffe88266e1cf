from __future__ import annotations

from autofarm.core.types import Compass, Coordinate

# (sign dx, sign dy) -> compass; y grows southwards
_COMPASS_BY_DELTA: dict[tuple[int, int], Compass] = {
    (0, -1): Compass.N,
    (1, -1): Compass.NE,
    (1, 0): Compass.E,
    (1, 1): Compass.SE,
    (0, 1): Compass.S,
    (-1, 1): Compass.SW,
    (-1, 0): Compass.W,
    (-1, -1): Compass.NW,
}


def _sign(v: int) -> int:
    return (v > 0) - (v < 0)


def compass_for(current: Coordinate, target: Coordinate) -> Compass | None:
    """
    Map the delta between two coordinates to one movement primitive.

    Returns None when already on the target.
    """
    key = (_sign(target.x - current.x), _sign(target.y - current.y))
    if key == (0, 0):
        return None
    return _COMPASS_BY_DELTA[key]
