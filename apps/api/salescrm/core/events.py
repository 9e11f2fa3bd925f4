from __future__ import annotations

import logging
from collections.abc import Callable
from dataclasses import dataclass
from typing import Any


logger = logging.getLogger("salescrm.events")


@dataclass(frozen=True)
class InternalEvent:
    name: str
    payload: dict[str, Any]


EventHandler = Callable[[InternalEvent], None]


class InProcessEventBus:
    """Synchronous fan-out of events published after a unit of work has committed.

    A handler that raises is logged and the remaining handlers still run; the
    publishing request keeps its committed result.
    """

    def __init__(self) -> None:
        self._handlers: dict[str, list[EventHandler]] = {}

    def subscribe(self, event_name: str, handler: EventHandler) -> None:
        handlers = self._handlers.setdefault(event_name, [])
        if handler not in handlers:
            handlers.append(handler)

    def publish(self, event: InternalEvent) -> int:
        delivered = 0
        for handler in self._handlers.get(event.name, ()):
            try:
                handler(event)
            except Exception:
                logger.exception("event.handler_failed", extra={"event_name": event.name})
                continue
            delivered += 1
        return delivered


event_bus = InProcessEventBus()
