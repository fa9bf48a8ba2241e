"""Id-addressed container facade over a query view.

The container translates item ids into view indices through the view's id
list and announces changes to the row set and to the property set on an
:class:`~lazyquery.events.EventBus`.  Committing, discarding and bulk
deleting are followed by a refresh so that the next read reflects the store.
"""

from __future__ import annotations

import logging
from typing import Any, List, Optional, Sequence

from .core.lazy_query_view import LazyQueryView
from .core.query_view import QueryView
from .domain.definition import QueryDefinition
from .domain.filters import Filter
from .domain.item import Item, Property
from .domain.query import QueryFactory
from .errors import ItemIndexError, UnsupportedOperationError
from .events import (
    ChangesCommittedEvent,
    ChangesDiscardedEvent,
    EventBus,
    ItemSetChangedEvent,
    PropertySetChangedEvent,
)

logger = logging.getLogger(__name__)


class LazyQueryContainer:
    def __init__(self, query_view: QueryView, event_bus: Optional[EventBus] = None) -> None:
        self._view = query_view
        self.event_bus = event_bus or EventBus()

    @classmethod
    def from_factory(
        cls,
        query_definition: QueryDefinition,
        query_factory: QueryFactory,
        event_bus: Optional[EventBus] = None,
        **view_options: Any,
    ) -> "LazyQueryContainer":
        return cls(LazyQueryView(query_definition, query_factory, **view_options), event_bus)

    @property
    def query_view(self) -> QueryView:
        return self._view

    # ------------------------------------------------------------------
    # Notifications
    # ------------------------------------------------------------------
    def _notify_item_set_changed(self) -> None:
        self.event_bus.publish(ItemSetChangedEvent(container=self))

    def _notify_property_set_changed(self) -> None:
        if not self.event_bus.has_subscribers(PropertySetChangedEvent):
            return
        self.event_bus.publish(
            PropertySetChangedEvent(container=self, property_ids=tuple(self.get_container_property_ids()))
        )

    # ------------------------------------------------------------------
    # Properties
    # ------------------------------------------------------------------
    def add_container_property(
        self,
        property_id: Any,
        type_: type = object,
        default_value: Any = None,
        read_only: bool = True,
        sortable: bool = False,
    ) -> bool:
        self._view.get_query_definition().add_property(
            property_id, type_, default_value, read_only, sortable
        )
        self._notify_property_set_changed()
        return True

    def remove_container_property(self, property_id: Any) -> bool:
        self._view.get_query_definition().remove_property(property_id)
        self._notify_property_set_changed()
        return True

    def get_container_property_ids(self) -> List[Any]:
        return self._view.get_query_definition().get_property_ids()

    def get_sortable_container_property_ids(self) -> List[Any]:
        return self._view.get_query_definition().get_sortable_property_ids()

    def get_type(self, property_id: Any) -> type:
        return self._view.get_query_definition().get_property_type(property_id)

    # ------------------------------------------------------------------
    # Ids and items
    # ------------------------------------------------------------------
    def size(self) -> int:
        return self._view.size()

    def __len__(self) -> int:
        return self.size()

    def get_item_ids(self, start_index: Optional[int] = None, count: Optional[int] = None) -> Sequence[Any]:
        """All ids, or the ids of ``count`` rows starting at ``start_index``.

        The range form clamps the end to the container size.
        """
        id_list = self._view.get_item_id_list()
        if start_index is None and count is None:
            return id_list
        start_index = start_index or 0
        size = self.size()
        if start_index < 0 or start_index > size:
            raise ItemIndexError(f"Start index {start_index} outside of [0, {size}]")
        if count is None:
            count = size - start_index
        if count < 0:
            raise ValueError(f"Number of items must not be negative, got {count}")
        end = min(start_index + count, size)
        return [id_list[index] for index in range(start_index, end)]

    def get_item(self, item_id: Any) -> Optional[Item]:
        if item_id is None:
            return None
        index = self.index_of_id(item_id)
        if index == -1:
            return None
        return self._view.get_item(index)

    def get_container_property(self, item_id: Any, property_id: Any) -> Optional[Property]:
        item = self.get_item(item_id)
        if item is None:
            return None
        return item.get_item_property(property_id)

    def get_id_by_index(self, index: int) -> Any:
        return self._view.get_item_id_list()[index]

    def index_of_id(self, item_id: Any) -> int:
        return self._view.get_item_id_list().index_of(item_id)

    def contains_id(self, item_id: Any) -> bool:
        return self.index_of_id(item_id) != -1

    def is_first_id(self, item_id: Any) -> bool:
        return self.index_of_id(item_id) == 0

    def is_last_id(self, item_id: Any) -> bool:
        index = self.index_of_id(item_id)
        return index != -1 and index == self.size() - 1

    def first_item_id(self) -> Any:
        return self.get_id_by_index(0)

    def last_item_id(self) -> Any:
        return self.get_id_by_index(self.size() - 1)

    def next_item_id(self, item_id: Any) -> Any:
        index = self.index_of_id(item_id)
        if index == -1 or index == self.size() - 1:
            return None
        return self.get_id_by_index(index + 1)

    def prev_item_id(self, item_id: Any) -> Any:
        index = self.index_of_id(item_id)
        if index <= 0:
            return None
        return self.get_id_by_index(index - 1)

    # ------------------------------------------------------------------
    # Buffered editing
    # ------------------------------------------------------------------
    def add_item(self, item_id: Any = None) -> Any:
        """Add a new row at the top and return its id.

        Rows cannot be added under a caller supplied id.
        """
        if item_id is not None:
            raise UnsupportedOperationError("Items cannot be added with a given id.")
        index = self._view.add_item()
        new_id = self.get_id_by_index(index)
        self._notify_item_set_changed()
        return new_id

    def add_item_at(self, index: int, item_id: Any = None) -> Any:
        raise UnsupportedOperationError("Items are always added at index 0.")

    def add_item_after(self, previous_item_id: Any, item_id: Any = None) -> Any:
        raise UnsupportedOperationError("Items are always added at index 0.")

    def remove_item(self, item_id: Any) -> bool:
        index = self.index_of_id(item_id)
        if index == -1:
            return False
        self._view.remove_item(index)
        self._notify_item_set_changed()
        return True

    def remove_all_items(self) -> bool:
        deleted = self._view.remove_all_items()
        logger.debug("Bulk delete through %r returned %s", self._view, deleted)
        self.refresh()
        return True

    def is_modified(self) -> bool:
        return self._view.is_modified()

    def commit(self) -> None:
        added = len(self._view.get_added_items())
        modified = len(self._view.get_modified_items())
        removed = len(self._view.get_removed_items())
        self._view.commit()
        self.event_bus.publish(
            ChangesCommittedEvent(container=self, added=added, modified=modified, removed=removed)
        )
        self.refresh()

    def discard(self) -> None:
        self._view.discard()
        self.event_bus.publish(ChangesDiscardedEvent(container=self))
        self.refresh()

    def is_buffered(self) -> bool:
        return True

    def set_buffered(self, buffered: bool) -> None:
        raise UnsupportedOperationError("LazyQueryContainer is always buffered.")

    # ------------------------------------------------------------------
    # Sorting, refreshing and filtering
    # ------------------------------------------------------------------
    def sort(self, sort_property_ids: Sequence[Any], ascending_states: Sequence[bool]) -> None:
        self._view.sort(sort_property_ids, ascending_states)
        self._notify_item_set_changed()

    def refresh(self) -> None:
        self._view.refresh()
        self._notify_item_set_changed()

    def add_container_filter(self, flt: Filter) -> None:
        self._view.add_filter(flt)
        self._notify_item_set_changed()

    def remove_container_filter(self, flt: Filter) -> None:
        self._view.remove_filter(flt)
        self._notify_item_set_changed()

    def remove_all_container_filters(self) -> None:
        self._view.remove_filters()
        self._notify_item_set_changed()

    def get_container_filters(self) -> List[Filter]:
        return self._view.get_filters()

    def add_default_filter(self, flt: Filter) -> None:
        self._view.add_default_filter(flt)
        self._notify_item_set_changed()

    def remove_default_filter(self, flt: Filter) -> None:
        self._view.remove_default_filter(flt)
        self._notify_item_set_changed()

    def remove_default_filters(self) -> None:
        self._view.remove_default_filters()
        self._notify_item_set_changed()

    def get_default_filters(self) -> List[Filter]:
        return self._view.get_default_filters()

    def __repr__(self) -> str:
        return f"LazyQueryContainer({self._view!r})"
