"""Domain event constants and publisher.

Defines event type constants and a simple publish() callable used by the
allocation flow. Delivery to chat or notification channels happens outside
this service; here events are logged and buffered.
"""

from __future__ import annotations

import threading
from collections import deque
from typing import Any, Deque, Dict, List
import logging

logger = logging.getLogger(__name__)

CODE_ISSUED = "code.issued"

# Recent domain events for observation; oldest entries drop off once full
EVENT_BUFFER_SIZE = 256
EVENT_BUFFER: Deque[Dict[str, Any]] = deque(maxlen=EVENT_BUFFER_SIZE)
_BUFFER_LOCK = threading.Lock()


def publish(event_type: str, payload: Dict[str, Any]) -> None:
    """Publish a domain event.

    In this minimal implementation, we log the event for observability.
    """
    logger.info("event_publish type=%s payload=%s", event_type, payload)
    with _BUFFER_LOCK:
        EVENT_BUFFER.append({"type": event_type, "payload": payload})


def get_buffered_events(clear: bool = True) -> List[Dict[str, Any]]:
    """Return buffered domain events; optionally clear the buffer."""
    with _BUFFER_LOCK:
        events = list(EVENT_BUFFER)
        if clear:
            EVENT_BUFFER.clear()
    return events

__all__ = [
    "CODE_ISSUED",
    "publish",
    "get_buffered_events",
    "EVENT_BUFFER",
    "EVENT_BUFFER_SIZE",
]
