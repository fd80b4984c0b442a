"""
Event delivery between the controller, the schedule engine and the relay.
"""

import asyncio
import logging
from enum import Enum
from typing import Any, Callable

logger = logging.getLogger(__name__)

Handler = Callable[[Any], None]


class EventType(Enum):
    """Events published by the core components."""

    UPDATE = "update"


class EventSource:
    """Delivers one event type from one producer to registered handlers."""

    def __init__(self, name: str, event_type: EventType = EventType.UPDATE):
        self.name = name
        self.event_type = event_type
        self._handlers: list[Handler] = []

    def subscribe(self, handler: Handler) -> None:
        """Register a handler; subscribing twice is a no-op."""
        if handler not in self._handlers:
            self._handlers.append(handler)

    def unsubscribe(self, handler: Handler) -> None:
        if handler in self._handlers:
            self._handlers.remove(handler)

    def has_subscriber(self, handler: Handler) -> bool:
        return handler in self._handlers

    def emit(self, payload: Any) -> None:
        """Call every handler with the payload."""
        for handler in list(self._handlers):
            try:
                handler(payload)
            except Exception as e:
                logger.error(
                    f"{self.name} {self.event_type.value} handler {handler!r} failed: {e}",
                    exc_info=True,
                )


class Debouncer:
    """Runs a callback once, ``delay`` seconds after the last trigger.

    Every trigger cancels the pending call and schedules a new one, so a
    burst of triggers produces a single call after the burst goes quiet.
    """

    def __init__(self, delay: float, callback: Callable[[], None]):
        self.delay = delay
        self.callback = callback
        self._handle: asyncio.TimerHandle | None = None

    @property
    def pending(self) -> bool:
        return self._handle is not None

    def trigger(self) -> None:
        """(Re)arm the timer. Must be called from the event loop."""
        self.cancel()
        loop = asyncio.get_running_loop()
        self._handle = loop.call_later(self.delay, self._fire)

    def cancel(self) -> None:
        if self._handle is not None:
            self._handle.cancel()
            self._handle = None

    def _fire(self) -> None:
        self._handle = None
        self.callback()
