from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING, ClassVar

from autofarm.core.events.base import Event

if TYPE_CHECKING:
    from autofarm.core.engine.state import RunState
    from autofarm.stats.session import SessionStats


@dataclass(frozen=True, slots=True)
class StatsUpdated(Event):
    """
    Emitted whenever session statistics change, and on every stats tick
    while a run is active (keeps elapsed time live).
    """

    event_type: ClassVar[str] = "system.stats_updated"

    actor_id: str
    stats: "SessionStats"


@dataclass(frozen=True, slots=True)
class StateChanged(Event):
    """
    Emitted whenever the run state is mutated.
    """

    event_type: ClassVar[str] = "system.state_changed"

    actor_id: str
    state: "RunState"
