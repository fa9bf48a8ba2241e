from .bus import Event, EventBus, Subscription
from .container_events import (
    ChangesCommittedEvent,
    ChangesDiscardedEvent,
    ItemSetChangedEvent,
    PropertySetChangedEvent,
)

__all__ = [
    "ChangesCommittedEvent",
    "ChangesDiscardedEvent",
    "Event",
    "EventBus",
    "ItemSetChangedEvent",
    "PropertySetChangedEvent",
    "Subscription",
]
