import logging
from typing import Any, Callable, Dict, List

from voxqueue.orchestrator.events import Event

logger = logging.getLogger(__name__)

EventHandler = Callable[[Event, Any], None]

class EventManager:
    """
    Synchronous fan-out of queue events.
    Handlers run in registration order; their exceptions are logged, never raised.
    """

    def __init__(self):
        self._handlers: Dict[Event, List[EventHandler]] = {}

    def subscribe(self, event: Event, handler: EventHandler):
        handlers = self._handlers.setdefault(event, [])
        if handler not in handlers:
            handlers.append(handler)

    def unsubscribe(self, event: Event, handler: EventHandler) -> bool:
        handlers = self._handlers.get(event, [])
        if handler in handlers:
            handlers.remove(handler)
            return True
        return False

    def listener_count(self, event: Event) -> int:
        return len(self._handlers.get(event, []))

    def clear(self):
        self._handlers.clear()

    def emit(self, event: Event, payload: Any = None):
        for handler in list(self._handlers.get(event, [])):
            try:
                handler(event, payload)
            except Exception as e:
                logger.error(f"Error handling event {event.name}: {e}", exc_info=True,
                             extra={"event": event.name})
