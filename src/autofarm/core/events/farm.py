from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, ClassVar, Literal

from autofarm.core.events.base import Event
from autofarm.core.types import Coordinate

EventKind = Literal["move", "harvest", "combat", "error", "complete"]


@dataclass(frozen=True, slots=True)
class FarmEvent(Event):
    """
    Notification about one step of a farming run.

    Subclasses fix `kind`; hosts usually render these as a live log.
    """

    event_type: ClassVar[str] = "farm.event"
    kind: ClassVar[EventKind]

    actor_id: str
    position: Coordinate
    message: str
    data: dict[str, Any] = field(default_factory=dict)


@dataclass(frozen=True, slots=True)
class MoveEvent(FarmEvent):
    event_type: ClassVar[str] = "farm.move"
    kind: ClassVar[EventKind] = "move"


@dataclass(frozen=True, slots=True)
class HarvestEvent(FarmEvent):
    event_type: ClassVar[str] = "farm.harvest"
    kind: ClassVar[EventKind] = "harvest"


@dataclass(frozen=True, slots=True)
class CombatEvent(FarmEvent):
    event_type: ClassVar[str] = "farm.combat"
    kind: ClassVar[EventKind] = "combat"


@dataclass(frozen=True, slots=True)
class ErrorEvent(FarmEvent):
    event_type: ClassVar[str] = "farm.error"
    kind: ClassVar[EventKind] = "error"


@dataclass(frozen=True, slots=True)
class CompleteEvent(FarmEvent):
    event_type: ClassVar[str] = "farm.complete"
    kind: ClassVar[EventKind] = "complete"


FARM_EVENT_TYPES: tuple[str, ...] = (
    MoveEvent.event_type,
    HarvestEvent.event_type,
    CombatEvent.event_type,
    ErrorEvent.event_type,
    CompleteEvent.event_type,
)
