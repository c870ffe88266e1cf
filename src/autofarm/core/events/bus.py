from __future__ import annotations

from collections import defaultdict
from dataclasses import dataclass
from typing import Callable, DefaultDict, Iterable, TypeAlias

import structlog

from autofarm.core.events.base import Event

log = structlog.get_logger()

EventHandler: TypeAlias = Callable[[Event], None]


@dataclass(frozen=True)
class Subscription:
    """
    Handle returned by subscribe(); pass it to unsubscribe() to detach.
    """

    event_type: str
    handler: EventHandler


class EventBus:
    """
    In-process bus shared by one engine and its observers.

    Handlers run synchronously, in subscription order, on the publisher's
    call stack. A handler exception is logged and re-raised to the publisher;
    inside a tile that makes it a tile error.
    """

    def __init__(self) -> None:
        self._handlers: DefaultDict[str, list[EventHandler]] = defaultdict(list)

    def subscribe(self, *, event_type: str, handler: EventHandler) -> Subscription:
        if not event_type:
            raise ValueError("event_type must be non-empty")
        self._handlers[event_type].append(handler)
        return Subscription(event_type=event_type, handler=handler)

    def subscribe_many(self, *, event_types: Iterable[str], handler: EventHandler) -> list[Subscription]:
        return [self.subscribe(event_type=et, handler=handler) for et in event_types]

    def unsubscribe(self, subscription: Subscription) -> bool:
        handlers = self._handlers.get(subscription.event_type)
        if not handlers or subscription.handler not in handlers:
            return False
        handlers.remove(subscription.handler)
        return True

    def publish(self, event: Event) -> None:
        # copy: a handler may (un)subscribe while we iterate
        for handler in tuple(self._handlers.get(event.event_type, ())):
            try:
                handler(event)
            except Exception:
                log.warning("bus.handler_failed", event_type=event.event_type, sequence=event.sequence)
                raise

    def subscribers_for(self, event_type: str) -> Iterable[EventHandler]:
        return tuple(self._handlers.get(event_type, ()))
