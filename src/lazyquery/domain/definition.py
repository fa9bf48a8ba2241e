"""Query definition: the property schema, batch size, sort and filter state."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Dict, List, Optional, Sequence, Tuple

from ..config import DEFAULT_BATCH_SIZE, UNLIMITED_QUERY_SIZE
from ..errors import SortStateError
from .filters import Filter


@dataclass
class PropertyDefinition:
    property_id: Any
    type: type = object
    default_value: Any = None
    read_only: bool = False
    sortable: bool = False


class QueryDefinition:
    """Describes the rows a query factory should produce.

    The definition is shared by the view and the factory; the view writes
    the current sort state into it right before constructing a new query.
    """

    def __init__(
        self,
        batch_size: int = DEFAULT_BATCH_SIZE,
        id_property_id: Any = None,
        composite_items: bool = False,
    ) -> None:
        if batch_size <= 0:
            raise ValueError(f"batch_size must be positive, got {batch_size}")
        self._properties: Dict[Any, PropertyDefinition] = {}
        self.batch_size = batch_size
        self.id_property_id = id_property_id
        self.composite_items = composite_items
        self.max_query_size = UNLIMITED_QUERY_SIZE
        self.max_nested_property_depth = 0

        self._default_filters: List[Filter] = []
        self._filters: List[Filter] = []
        self._default_sort: Tuple[Tuple[Any, ...], Tuple[bool, ...]] = ((), ())
        self._sort: Tuple[Tuple[Any, ...], Tuple[bool, ...]] = ((), ())

    # ------------------------------------------------------------------
    # Properties
    # ------------------------------------------------------------------
    def add_property(
        self,
        property_id: Any,
        type_: type = object,
        default_value: Any = None,
        read_only: bool = False,
        sortable: bool = False,
    ) -> None:
        self._properties[property_id] = PropertyDefinition(
            property_id, type_, default_value, read_only, sortable
        )

    def remove_property(self, property_id: Any) -> None:
        self._properties.pop(property_id, None)

    def get_property_ids(self) -> List[Any]:
        return list(self._properties)

    def get_sortable_property_ids(self) -> List[Any]:
        return [pid for pid, prop in self._properties.items() if prop.sortable]

    def has_property(self, property_id: Any) -> bool:
        return property_id in self._properties

    def get_property(self, property_id: Any) -> PropertyDefinition:
        try:
            return self._properties[property_id]
        except KeyError:
            raise KeyError(f"Unknown property id: {property_id!r}") from None

    def get_property_type(self, property_id: Any) -> type:
        return self.get_property(property_id).type

    def get_property_default_value(self, property_id: Any) -> Any:
        return self.get_property(property_id).default_value

    def is_property_read_only(self, property_id: Any) -> bool:
        return self.get_property(property_id).read_only

    def is_property_sortable(self, property_id: Any) -> bool:
        return self.get_property(property_id).sortable

    # ------------------------------------------------------------------
    # Filters
    # ------------------------------------------------------------------
    def add_default_filter(self, flt: Filter) -> None:
        self._default_filters.append(flt)

    def remove_default_filter(self, flt: Filter) -> None:
        if flt in self._default_filters:
            self._default_filters.remove(flt)

    def remove_default_filters(self) -> None:
        self._default_filters.clear()

    def get_default_filters(self) -> List[Filter]:
        return list(self._default_filters)

    def add_filter(self, flt: Filter) -> None:
        self._filters.append(flt)

    def remove_filter(self, flt: Filter) -> None:
        if flt in self._filters:
            self._filters.remove(flt)

    def remove_filters(self) -> None:
        self._filters.clear()

    def get_filters(self) -> List[Filter]:
        return list(self._filters)

    def get_effective_filters(self) -> List[Filter]:
        """Default filters followed by user filters."""
        return self._default_filters + self._filters

    # ------------------------------------------------------------------
    # Sort state
    # ------------------------------------------------------------------
    @staticmethod
    def _validate_sort(
        sort_property_ids: Sequence[Any], ascending_states: Sequence[bool]
    ) -> Tuple[Tuple[Any, ...], Tuple[bool, ...]]:
        ids, states = tuple(sort_property_ids), tuple(bool(s) for s in ascending_states)
        if len(ids) != len(states):
            raise SortStateError(
                f"Sort state arrays need to have same length ({len(ids)} != {len(states)})."
            )
        return ids, states

    def set_default_sort_state(
        self, sort_property_ids: Sequence[Any], ascending_states: Sequence[bool]
    ) -> None:
        self._default_sort = self._validate_sort(sort_property_ids, ascending_states)

    def set_sort_state(
        self, sort_property_ids: Sequence[Any], ascending_states: Sequence[bool]
    ) -> None:
        self._sort = self._validate_sort(sort_property_ids, ascending_states)

    @property
    def default_sort_property_ids(self) -> Tuple[Any, ...]:
        return self._default_sort[0]

    @property
    def default_sort_ascending_states(self) -> Tuple[bool, ...]:
        return self._default_sort[1]

    @property
    def sort_property_ids(self) -> Tuple[Any, ...]:
        return self._sort[0]

    @property
    def sort_ascending_states(self) -> Tuple[bool, ...]:
        return self._sort[1]

    def get_effective_sort_state(self) -> Tuple[Tuple[Any, ...], Tuple[bool, ...]]:
        """The current sort state, or the default one when none is set."""
        if self._sort[0]:
            return self._sort
        return self._default_sort

    def __repr__(self) -> str:
        return (
            f"QueryDefinition(properties={self.get_property_ids()!r}, "
            f"batch_size={self.batch_size}, id_property_id={self.id_property_id!r})"
        )
