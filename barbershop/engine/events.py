# barbershop/engine/events.py
"""
Domain event sink.

The engine emits "appointment.created", "appointment.status_changed" and
"appointment.expired". Delivery (email, websocket push) is done by whatever
handlers are subscribed; a failing handler is logged and never breaks the
booking that triggered it.
"""

import logging
import threading
import time
from typing import Callable, Dict, List

logger = logging.getLogger(__name__)

APPOINTMENT_CREATED = "appointment.created"
APPOINTMENT_STATUS_CHANGED = "appointment.status_changed"
APPOINTMENT_EXPIRED = "appointment.expired"

Handler = Callable[[dict], None]


class EventSink:
    def __init__(self):
        self._lock = threading.Lock()
        self._handlers: List[Handler] = []

    def subscribe(self, handler: Handler) -> None:
        with self._lock:
            self._handlers.append(handler)

    def unsubscribe(self, handler: Handler) -> None:
        with self._lock:
            if handler in self._handlers:
                self._handlers.remove(handler)

    def emit(self, event_type: str, payload: Dict) -> None:
        event = {
            "type": event_type,
            **payload,
            "ts": int(time.time()),
        }
        with self._lock:
            handlers = list(self._handlers)

        logger.info(f"Event emitted: {event_type}")
        for handler in handlers:
            try:
                handler(event)
            except Exception as e:
                logger.error(f"Event handler failed for {event_type}: {e}")


event_sink = EventSink()
