"""
Event bus for eremos run state changes.

Provides decoupled communication between the engine and presentation.
The coordinator owns one bus per instance (pass your own to share it);
there is no global bus.

Usage:
    bus = EventBus()
    bus.on(EventType.COMBAT_RESOLVED, my_handler)

    coordinator = RunLifecycleCoordinator(store, bus=bus, ...)

    # Handler receives event
    def my_handler(event: EngineEvent):
        print(f"Combat ended in {event.data['outcome']}")
"""

import logging
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Callable

logger = logging.getLogger(__name__)


class EventType(Enum):
    """Engine events that can be published."""

    # Run events
    RUN_STARTED = "run.started"
    RUN_ENDED = "run.ended"
    RUN_ABANDONED = "run.abandoned"
    DETECTION_CHANGED = "detection.changed"

    # Combat events
    COMBAT_STARTED = "combat.started"
    COMBAT_RESOLVED = "combat.resolved"
    LOOT_FINALIZED = "loot.finalized"
    BLUEPRINT_ACCEPTED = "blueprint.accepted"
    BOSS_REWARDED = "boss.rewarded"
    ESCAPE_RESOLVED = "escape.resolved"

    # Extraction events
    EXTRACTION_BLOCKED = "extraction.blocked"
    EXTRACTION_COMPLETED = "extraction.completed"

    # Hangar events
    SLOT_RECOVERED = "slot.recovered"
    SLOT_SCRAPPED = "slot.scrapped"


@dataclass
class EngineEvent:
    """
    Event payload for the event bus.

    Attributes:
        type: The event type (from EventType enum)
        data: Event-specific payload as dict
        run_id: ID of the run this event belongs to, if any
        timestamp: When the event was emitted
    """

    type: EventType
    data: dict = field(default_factory=dict)
    run_id: str = ""
    timestamp: datetime = field(default_factory=datetime.now)

    def __str__(self) -> str:
        return f"[{self.type.value}] {self.data}"


EventHandler = Callable[[EngineEvent], None]


class EventBus:
    """
    Synchronous event bus.

    Listeners are called immediately on emit(), in subscription order.
    A failing listener is logged and skipped.
    """

    def __init__(self, history_limit: int = 100):
        self._listeners: dict[EventType, list[EventHandler]] = {}
        self._history: list[EngineEvent] = []
        self._history_limit = history_limit

    def on(self, event_type: EventType, handler: EventHandler) -> None:
        """Subscribe to an event type."""
        handlers = self._listeners.setdefault(event_type, [])
        if handler not in handlers:
            handlers.append(handler)

    def off(self, event_type: EventType, handler: EventHandler) -> None:
        """Unsubscribe from an event type."""
        if event_type in self._listeners and handler in self._listeners[event_type]:
            self._listeners[event_type].remove(handler)

    def emit(self, event_type: EventType, run_id: str = "", **data) -> EngineEvent:
        """
        Emit an event to all subscribers.

        Returns:
            The emitted EngineEvent (for chaining/testing)
        """
        event = EngineEvent(type=event_type, data=data, run_id=run_id)

        self._history.append(event)
        if len(self._history) > self._history_limit:
            self._history = self._history[-self._history_limit :]

        for handler in list(self._listeners.get(event_type, [])):
            try:
                handler(event)
            except Exception:
                logger.exception("Error in handler for %s", event_type.value)

        return event

    def clear(self) -> None:
        """Clear all listeners."""
        self._listeners.clear()

    def get_history(self, event_type: EventType | None = None) -> list[EngineEvent]:
        """Recent events, optionally filtered by type."""
        if event_type is None:
            return list(self._history)
        return [e for e in self._history if e.type == event_type]

    def listener_count(self, event_type: EventType) -> int:
        return len(self._listeners.get(event_type, []))
