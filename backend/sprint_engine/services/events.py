"""
Domain Event Emission

Fire-and-forget domain events (sprint_completed, milestone_reached, ...).
Consumers live outside the engine; an emitter failure is logged and never
reaches the operation that emitted the event.
"""

import logging
from typing import Any, Protocol, Union

from sprint_engine.enums import EventType

logger = logging.getLogger(__name__)


class EventEmitter(Protocol):
    """Anything with an `emit(event_type, payload)` method."""

    def emit(self, event_type: str, payload: dict[str, Any]) -> None: ...


class LoggingEventEmitter:
    """Default emitter: writes every event to the log."""

    def emit(self, event_type: str, payload: dict[str, Any]) -> None:
        logger.info(f"Event {event_type}: {payload}")


class RecordingEventEmitter:
    """Keeps emitted events in memory. Useful for tests and debugging."""

    def __init__(self):
        self.events: list[tuple[str, dict[str, Any]]] = []

    def emit(self, event_type: str, payload: dict[str, Any]) -> None:
        self.events.append((event_type, dict(payload)))

    def of_type(self, event_type: Union[str, EventType]) -> list[dict[str, Any]]:
        wanted = event_type.value if isinstance(event_type, EventType) else event_type
        return [payload for kind, payload in self.events if kind == wanted]


def emit_safely(
    emitter: EventEmitter, event_type: Union[str, EventType], payload: dict[str, Any]
) -> bool:
    """
    Emit an event, logging instead of raising on failure.

    Returns:
        True if the emitter accepted the event
    """
    kind = event_type.value if isinstance(event_type, EventType) else event_type
    try:
        emitter.emit(kind, payload)
        return True
    except Exception as e:
        logger.error(f"Failed to emit {kind} event: {e}")
        return False
