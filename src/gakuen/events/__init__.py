from .event_bus import EventBus, Handler
from .types import EVENT_PAYLOADS, EventType

__all__ = [
    "EVENT_PAYLOADS",
    "EventBus",
    "EventType",
    "Handler",
]
