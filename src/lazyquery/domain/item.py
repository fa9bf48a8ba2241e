"""Property cells and property-keyed items handled by query views.

An *item* is one row: an ordered mapping from property id to a value cell.
Cells carry a type tag and a read-only flag and notify listeners when their
value changes, which is how a view learns that a cached row was edited.

Library code sometimes needs to write cells that callers see as read-only
(the status property, the debug properties).  Rather than clearing the flag,
writing and restoring it, cells expose a private ``_write`` path and items a
private ``_write_system_value`` path that ignore the flag.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass
from enum import Enum
from typing import Any, Callable, Dict, Iterator, List, Optional, Protocol, runtime_checkable

from ..errors import ReadOnlyPropertyError


class QueryItemStatus(Enum):
    """Buffered lifecycle state of a row."""

    NONE = "none"
    ADDED = "added"
    MODIFIED = "modified"
    REMOVED = "removed"


@dataclass(frozen=True)
class ValueChangeEvent:
    property: "Property"
    old_value: Any
    new_value: Any


ValueChangeListener = Callable[[ValueChangeEvent], None]


@runtime_checkable
class ValueChangeNotifier(Protocol):
    """Cells that can report value changes to subscribers."""

    def add_listener(self, listener: ValueChangeListener) -> None: ...

    def remove_listener(self, listener: ValueChangeListener) -> None: ...


class Property(ABC):
    """A typed value cell with a read-only flag and change listeners."""

    def __init__(self, type_: type = object, read_only: bool = False) -> None:
        self._type = type_
        self._read_only = read_only
        self._listeners: List[ValueChangeListener] = []

    @property
    def type(self) -> type:
        return self._type

    @property
    def read_only(self) -> bool:
        return self._read_only

    @read_only.setter
    def read_only(self, read_only: bool) -> None:
        self._read_only = bool(read_only)

    @property
    def value(self) -> Any:
        return self._get()

    @value.setter
    def value(self, value: Any) -> None:
        if self._read_only:
            raise ReadOnlyPropertyError(f"Property is read-only: {self!r}")
        self._write(value)

    def _write(self, value: Any) -> None:
        """Store *value* regardless of the read-only flag and notify listeners."""
        old_value = self._get()
        self._set(value)
        if old_value is value or old_value == value:
            return
        event = ValueChangeEvent(self, old_value, value)
        for listener in list(self._listeners):
            listener(event)

    def add_listener(self, listener: ValueChangeListener) -> None:
        if listener not in self._listeners:
            self._listeners.append(listener)

    def remove_listener(self, listener: ValueChangeListener) -> None:
        if listener in self._listeners:
            self._listeners.remove(listener)

    @property
    def listener_count(self) -> int:
        return len(self._listeners)

    @abstractmethod
    def _get(self) -> Any: ...

    @abstractmethod
    def _set(self, value: Any) -> None: ...


class ObjectProperty(Property):
    """Cell holding its own value."""

    def __init__(self, value: Any = None, type_: Optional[type] = None, read_only: bool = False) -> None:
        if type_ is None:
            type_ = type(value) if value is not None else object
        super().__init__(type_, read_only)
        self._value = value

    def _get(self) -> Any:
        return self._value

    def _set(self, value: Any) -> None:
        self._value = value

    def __repr__(self) -> str:
        return f"ObjectProperty({self._value!r}, read_only={self._read_only})"


class AttributeProperty(Property):
    """Cell bound to an attribute of a domain object."""

    def __init__(self, obj: Any, name: str, type_: type = object, read_only: bool = False) -> None:
        super().__init__(type_, read_only)
        self._obj = obj
        self._name = name

    @property
    def name(self) -> str:
        return self._name

    def _get(self) -> Any:
        return getattr(self._obj, self._name)

    def _set(self, value: Any) -> None:
        setattr(self._obj, self._name, value)

    def __repr__(self) -> str:
        return f"AttributeProperty({type(self._obj).__name__}.{self._name})"


class Item(ABC):
    """One row.  Items compare and hash by identity."""

    @abstractmethod
    def get_item_property(self, property_id: Any) -> Optional[Property]: ...

    @abstractmethod
    def get_item_property_ids(self) -> List[Any]: ...

    @abstractmethod
    def add_item_property(self, property_id: Any, prop: Property) -> bool: ...

    @abstractmethod
    def remove_item_property(self, property_id: Any) -> bool: ...

    def properties(self) -> Iterator[Property]:
        for property_id in self.get_item_property_ids():
            prop = self.get_item_property(property_id)
            if prop is not None:
                yield prop

    def _write_system_value(self, property_id: Any, value: Any) -> bool:
        """Privileged write used by the library; returns ``False`` if absent."""
        prop = self.get_item_property(property_id)
        if prop is None:
            return False
        prop._write(value)
        return True

    def __contains__(self, property_id: object) -> bool:
        return self.get_item_property(property_id) is not None

    def __getitem__(self, property_id: Any) -> Any:
        prop = self.get_item_property(property_id)
        if prop is None:
            raise KeyError(property_id)
        return prop.value

    def __setitem__(self, property_id: Any, value: Any) -> None:
        prop = self.get_item_property(property_id)
        if prop is None:
            raise KeyError(property_id)
        prop.value = value

    def get(self, property_id: Any, default: Any = None) -> Any:
        prop = self.get_item_property(property_id)
        return default if prop is None else prop.value

    def to_dict(self) -> Dict[Any, Any]:
        return {pid: self.get(pid) for pid in self.get_item_property_ids()}


class PropertysetItem(Item):
    """Item backed by an ordered dict of cells."""

    def __init__(self, properties: Optional[Dict[Any, Property]] = None) -> None:
        self._properties: Dict[Any, Property] = dict(properties or {})

    def get_item_property(self, property_id: Any) -> Optional[Property]:
        return self._properties.get(property_id)

    def get_item_property_ids(self) -> List[Any]:
        return list(self._properties)

    def add_item_property(self, property_id: Any, prop: Property) -> bool:
        if property_id in self._properties:
            return False
        self._properties[property_id] = prop
        return True

    def remove_item_property(self, property_id: Any) -> bool:
        return self._properties.pop(property_id, None) is not None

    def __repr__(self) -> str:
        return f"PropertysetItem({self.to_dict()!r})"


class CompositeItem(Item):
    """Item made of named sub-items, searched in insertion order.

    Properties added directly to the composite land in the default sub-item,
    which is always present under :data:`DEFAULT_ITEM_KEY`.
    """

    DEFAULT_ITEM_KEY = "default-item"

    def __init__(self) -> None:
        self._item_keys: List[str] = []
        self._items: Dict[str, Item] = {}
        self._default_item = PropertysetItem()
        self.add_item(self.DEFAULT_ITEM_KEY, self._default_item)

    def add_item(self, key: str, item: Item) -> None:
        if key not in self._items:
            self._item_keys.append(key)
        self._items[key] = item

    def remove_item(self, key: str) -> None:
        if key in self._items:
            self._item_keys.remove(key)
            del self._items[key]

    def get_item_keys(self) -> List[str]:
        return list(self._item_keys)

    def get_item(self, key: str) -> Optional[Item]:
        return self._items.get(key)

    def get_item_property_ids(self) -> List[Any]:
        property_ids: List[Any] = []
        for key in self._item_keys:
            property_ids.extend(self._items[key].get_item_property_ids())
        return property_ids

    def get_item_property(self, property_id: Any) -> Optional[Property]:
        for key in self._item_keys:
            prop = self._items[key].get_item_property(property_id)
            if prop is not None:
                return prop
        return None

    def add_item_property(self, property_id: Any, prop: Property) -> bool:
        return self._default_item.add_item_property(property_id, prop)

    def remove_item_property(self, property_id: Any) -> bool:
        return self._default_item.remove_item_property(property_id)

    def __repr__(self) -> str:
        return f"CompositeItem(keys={self._item_keys!r})"
