"""Event bus implementation for decoupled event handling."""

import logging
from enum import Enum
from typing import Any
from typing import Awaitable
from typing import Callable
from typing import Dict
from typing import Set

logger = logging.getLogger(__name__)


class EventType(str, Enum):
    """Domain events published after successful workflow transitions."""

    # Car request events
    CAR_REQUEST_CREATED = "car_request_created"
    CAR_REQUEST_ASSIGNED = "car_request_assigned"
    CAR_REQUEST_APPROVED = "car_request_approved"
    CAR_REQUEST_REJECTED = "car_request_rejected"
    CAR_REQUEST_CANCELLED = "car_request_cancelled"
    CAR_IN_TRANSIT = "car_in_transit"
    CAR_RETURNED = "car_returned"

    # Maintenance events
    MAINTENANCE_CREATED = "maintenance_created"
    MAINTENANCE_TRIAGED = "maintenance_triaged"
    MAINTENANCE_APPROVED = "maintenance_approved"
    MAINTENANCE_REJECTED = "maintenance_rejected"
    MAINTENANCE_STARTED = "maintenance_started"
    MAINTENANCE_COMPLETED = "maintenance_completed"


class EventBus:
    """Central event bus for publishing and subscribing to events."""

    def __init__(self):
        self._subscribers: Dict[EventType, Set[Callable[[Dict[str, Any]], Awaitable[None]]]] = {}

    async def publish(self, event_type: EventType, data: Dict[str, Any]) -> None:
        """Await every subscriber of *event_type* in turn.

        A failing subscriber is logged and skipped; the publisher never sees
        the error.
        """
        if event_type not in self._subscribers:
            return

        logger.debug("Publishing event %s with data: %s", event_type, data)

        for callback in list(self._subscribers[event_type]):
            try:
                await callback(data)
            except Exception:
                logger.exception("Error in event handler for %s", event_type)

    def subscribe(self, event_type: EventType, callback: Callable[[Dict[str, Any]], Awaitable[None]]) -> None:
        """Register an async *callback*; subscribing twice is a no-op."""
        if event_type not in self._subscribers:
            self._subscribers[event_type] = set()

        self._subscribers[event_type].add(callback)
        logger.debug("Added subscriber for event %s", event_type)

    def unsubscribe(self, event_type: EventType, callback: Callable[[Dict[str, Any]], Awaitable[None]]) -> None:
        """Remove *callback*; unknown callbacks are ignored."""
        if event_type in self._subscribers:
            self._subscribers[event_type].discard(callback)
            logger.debug("Removed subscriber for event %s", event_type)

            if not self._subscribers[event_type]:
                del self._subscribers[event_type]

    def subscriber_count(self, event_type: EventType) -> int:
        return len(self._subscribers.get(event_type, ()))


# Global event bus instance
event_bus = EventBus()
