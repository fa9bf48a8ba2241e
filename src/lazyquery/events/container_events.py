"""Events published by containers and views."""

from dataclasses import dataclass, field
from typing import Any

from .bus import Event


@dataclass(kw_only=True)
class ItemSetChangedEvent(Event):
    """Rows were added, removed, re-sorted or re-filtered."""
    container: Any = None


@dataclass(kw_only=True)
class PropertySetChangedEvent(Event):
    """A container property (column) was added or removed."""
    container: Any = None
    property_ids: tuple = field(default_factory=tuple)


@dataclass(kw_only=True)
class ChangesCommittedEvent(Event):
    container: Any = None
    added: int = 0
    modified: int = 0
    removed: int = 0


@dataclass(kw_only=True)
class ChangesDiscardedEvent(Event):
    container: Any = None
