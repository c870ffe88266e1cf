from __future__ import annotations

from dataclasses import dataclass
from typing import Iterator

from autofarm.core.types import Coordinate, SweepDirection


@dataclass(frozen=True, slots=True)
class SequencerStep:
    position: Coordinate
    direction: SweepDirection
    row: int


class SnakeSequencer:
    """
    Boustrophedon ("snake") walk over a width x height grid, 1-based.

    Row 1 runs left to right, row 2 right to left, and so on. Every step
    changes exactly one axis by exactly one cell; row changes happen at the
    edge the sweep just reached.
    """

    def __init__(self, *, width: int, height: int) -> None:
        if width < 1 or height < 1:
            raise ValueError("grid dimensions must be >= 1")
        self._width = width
        self._height = height

    @property
    def width(self) -> int:
        return self._width

    @property
    def height(self) -> int:
        return self._height

    def next_step(self, current: Coordinate, direction: SweepDirection) -> SequencerStep | None:
        """
        Return the step after `current`, or None once the grid is exhausted.
        """
        x, y = current.x, current.y

        if direction == "forward":
            if x < self._width:
                nxt, nxt_dir = Coordinate(x + 1, y), direction
            else:
                nxt, nxt_dir = Coordinate(self._width, y + 1), "backward"
        else:
            if x > 1:
                nxt, nxt_dir = Coordinate(x - 1, y), direction
            else:
                nxt, nxt_dir = Coordinate(1, y + 1), "forward"

        if nxt.y > self._height:
            return None
        return SequencerStep(position=nxt, direction=nxt_dir, row=nxt.y)

    def walk(self, start: Coordinate, direction: SweepDirection = "forward") -> Iterator[SequencerStep]:
        """
        Yield every step after `start` until exhaustion.
        """
        cur, cur_dir = start, direction
        while True:
            step = self.next_step(cur, cur_dir)
            if step is None:
                return
            yield step
            cur, cur_dir = step.position, step.direction
