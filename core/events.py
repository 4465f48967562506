"""
In-memory event bus for query and export lifecycle notifications.

Events are published by name with a mutable dict payload. Handlers may be
plain functions or coroutines and are called one after another in
subscription order, before publish() returns. A handler that raises stops
delivery and the exception propagates to the publisher; listeners that must
not interrupt an export are responsible for catching their own errors.

Example:
    bus = EventBus()

    async def on_exported(payload):
        print(f"{len(payload['results'])} grades exported")

    bus.subscribe(EventTypes.EXPORTED_GRADES, on_exported)
    await bus.publish(EventTypes.EXPORTED_GRADES, {"results": [], "errors": []})
"""

import inspect
import logging
from typing import Any, Awaitable, Callable, Dict, List, Union

logger = logging.getLogger(__name__)

EventHandler = Callable[[Dict[str, Any]], Union[None, Awaitable[None]]]


class EventTypes:
    """Lifecycle event names"""
    QUERY_CREATED = "query_created"
    QUERY_UPDATED = "query_updated"
    QUERY_DELETED = "query_deleted"
    PRE_EXPORT_GRADES = "pre_export_grades"
    EXPORTED_GRADES = "exported_grades"


class EventBus:
    """
    Synchronous-delivery event bus.

    Attributes:
        _handlers: Dictionary mapping event names to handler lists.
    """

    def __init__(self) -> None:
        self._handlers: Dict[str, List[EventHandler]] = {}
        self._event_count = 0

    def subscribe(self, event_type: str, handler: EventHandler) -> None:
        """Subscribe a handler to an event name."""
        self._handlers.setdefault(event_type, []).append(handler)
        logger.debug("Subscribed handler to: %s", event_type)

    def unsubscribe(self, event_type: str, handler: EventHandler) -> bool:
        """
        Unsubscribe a handler from an event name.

        Returns:
            True if handler was found and removed, False otherwise.
        """
        handlers = self._handlers.get(event_type)
        if not handlers:
            return False
        try:
            handlers.remove(handler)
        except ValueError:
            return False
        if not handlers:
            del self._handlers[event_type]
        return True

    async def publish(self, event_type: str, payload: Dict[str, Any]) -> Dict[str, Any]:
        """
        Deliver an event to every subscribed handler.

        Args:
            event_type: The event name.
            payload: Event data; handlers may mutate it in place.

        Returns:
            The payload after all handlers ran.
        """
        self._event_count += 1
        handlers = list(self._handlers.get(event_type, []))
        logger.debug("Publishing %s to %d handler(s)", event_type, len(handlers))

        for handler in handlers:
            result = handler(payload)
            if inspect.isawaitable(result):
                await result

        return payload

    def handler_count(self, event_type: str) -> int:
        return len(self._handlers.get(event_type, []))

    @property
    def event_count(self) -> int:
        return self._event_count


_event_bus: EventBus = EventBus()


def get_event_bus() -> EventBus:
    """Process-wide event bus used by the API and scheduler."""
    return _event_bus
