from __future__ import annotations

from dataclasses import dataclass, replace

from autofarm.core.types import Coordinate, FarmStatus, SweepDirection


@dataclass(slots=True)
class RunState:
    """
    Mutable run state owned by one engine.

    - position: last position the game service confirmed for the actor
    - cursor: last coordinate handed out by the sequencer; advances even
      when the move to it failed, so a failed tile is skipped
    - sequence: monotonic counter used to order published events

    Guardrails (checked by check_invariants):
      - ACTIVE implies start_time is set and paused_time is not
      - PAUSED implies paused_time is set
    """

    position: Coordinate
    start_position: Coordinate
    cursor: Coordinate
    current_row: int
    direction: SweepDirection = "forward"
    status: FarmStatus = FarmStatus.STOPPED
    tiles_completed: int = 0
    start_time: float | None = None
    paused_time: float | None = None
    last_harvest_time: float | None = None
    sequence: int = 0

    @classmethod
    def initial(cls, start: Coordinate) -> "RunState":
        return cls(
            position=start,
            start_position=start,
            cursor=start,
            current_row=start.y,
        )

    @property
    def is_active(self) -> bool:
        return self.status is FarmStatus.ACTIVE

    def next_sequence(self) -> int:
        self.sequence += 1
        return self.sequence

    def elapsed(self, now: float) -> float:
        """
        Active seconds since start; paused intervals are already folded into start_time.
        """
        if self.start_time is None:
            return 0.0
        if self.status is FarmStatus.PAUSED and self.paused_time is not None:
            return max(0.0, self.paused_time - self.start_time)
        return max(0.0, now - self.start_time)

    def check_invariants(self) -> None:
        if self.status is FarmStatus.ACTIVE:
            if self.start_time is None:
                raise RuntimeError("active run without start_time")
            if self.paused_time is not None:
                raise RuntimeError("active run with paused_time")
        if self.status is FarmStatus.PAUSED and self.paused_time is None:
            raise RuntimeError("paused run without paused_time")

    def snapshot(self) -> "RunState":
        return replace(self)
