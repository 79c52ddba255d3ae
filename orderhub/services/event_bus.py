from __future__ import annotations

import logging
from threading import Lock
from typing import Any, Callable, List, Optional, Tuple

from orderhub.services.order_events import Event

Handler = Callable[[Event], None]


class EventBus:
    """Synchronous in-process fan-out, handlers run in registration order."""

    def __init__(self) -> None:
        self._handlers: List[Tuple[Optional[str], Handler]] = []
        self._lock = Lock()
        self._logger = logging.getLogger(__name__)

    def subscribe(self, handler: Handler, event_name: str | None = None) -> None:
        """Registers a handler for one event name, or for every event when ``event_name`` is None."""
        with self._lock:
            self._handlers.append((event_name, handler))

    def unsubscribe(self, handler: Handler) -> None:
        with self._lock:
            self._handlers = [entry for entry in self._handlers if entry[1] is not handler]

    def publish(self, event: Event) -> None:
        with self._lock:
            handlers = [handler for name, handler in self._handlers if name is None or name == event.name]
        if not handlers:
            self._logger.debug("EventBus: no handlers for %s", event.name)
            return
        for handler in handlers:
            try:
                handler(event)
            except Exception:
                self._logger.exception("EventBus handler failed for %s", event.name, extra={"event": event.name})

    def emit(self, event_name: str, payload: dict[str, Any]) -> Event:
        event = Event(name=event_name, payload=payload)
        self.publish(event)
        return event
