"""Item id sequences handed out by query views.

Views without an id property address rows by position, so their ids are
simply ``0..size-1`` (:class:`NaturalNumbersList`).  Views with an id
property resolve ids lazily by reading the id cell of the row at a given
position (:class:`LazyIdList`), remembering where each id was seen so that
reverse lookups rarely have to scan.
"""

from __future__ import annotations

import logging
from collections.abc import Sequence
from typing import TYPE_CHECKING, Any, Callable, Dict, List

from ..errors import ItemIndexError, UnsupportedOperationError

if TYPE_CHECKING:  # pragma: no cover - import only for type checking
    from .query_view import QueryView

logger = logging.getLogger(__name__)

IdListFactory = Callable[["QueryView", Any], "LazyIdList"]


class _IdSequence(Sequence):
    def __getitem__(self, index):
        if isinstance(index, slice):
            return [self._get(i) for i in range(*index.indices(len(self)))]
        if not isinstance(index, int) or isinstance(index, bool):
            raise TypeError(f"indices must be integers, not {type(index).__name__}")
        if index < 0 or index >= len(self):
            raise ItemIndexError(f"List size: {len(self)} and index requested: {index}")
        return self._get(index)

    def __contains__(self, value: object) -> bool:
        return self.index_of(value) != -1

    def index(self, value: Any, start: int = 0, stop: int | None = None) -> int:
        position = self.index_of(value)
        if position == -1 or position < start or (stop is not None and position >= stop):
            raise ValueError(f"{value!r} is not in list")
        return position

    def _get(self, index: int) -> Any:
        raise NotImplementedError

    def index_of(self, value: object) -> int:
        raise NotImplementedError


class NaturalNumbersList(_IdSequence):
    """Immutable sequence ``0, 1, ..., size - 1``."""

    def __init__(self, size: int) -> None:
        self._size = size

    def __len__(self) -> int:
        return self._size

    def _get(self, index: int) -> int:
        return index

    def index_of(self, value: object) -> int:
        if not isinstance(value, int) or isinstance(value, bool):
            return -1
        if value < 0 or value >= self._size:
            return -1
        return value

    def to_array(self) -> List[int]:
        return list(range(self._size))

    def __repr__(self) -> str:
        return f"NaturalNumbersList({self._size})"


class LazyIdList(_IdSequence):
    """Ids read on demand from the id property of each row.

    Materialising the whole list would load every row, so :meth:`to_array`
    is not supported.
    """

    def __init__(self, view: "QueryView", id_property_id: Any) -> None:
        self._view = view
        self._id_property_id = id_property_id
        # id -> position among queried rows (added rows excluded)
        self._id_index_map: Dict[Any, int] = {}

    def __len__(self) -> int:
        return self._view.size()

    def _read_id(self, index: int) -> Any:
        return self._view.get_item(index).get(self._id_property_id)

    def _get(self, index: int) -> Any:
        item_id = self._read_id(index)
        added_count = len(self._view.get_added_items())
        if index >= added_count:
            self._id_index_map[item_id] = index - added_count
        return item_id

    def to_array(self) -> List[Any]:
        raise UnsupportedOperationError("Lazy id lists cannot be materialised.")

    def index_of(self, value: object) -> int:
        if value is None:
            return -1
        added_items = self._view.get_added_items()
        # Few added rows; check them directly.
        for index, item in enumerate(added_items):
            if item.get(self._id_property_id) == value:
                return index
        cached = self._id_index_map.get(value)
        if cached is not None:
            return len(added_items) + cached
        return self._search(value, len(added_items))

    def _search(self, value: object, first: int) -> int:
        return self._linear_search(value, first)

    def _linear_search(self, value: object, first: int) -> int:
        for index in range(first, self._view.size()):
            if self._get(index) == value:
                return index
        return -1

    def __repr__(self) -> str:
        return f"{type(self).__name__}(id_property_id={self._id_property_id!r}, size={len(self)})"


class SmartLazyIdList(LazyIdList):
    """Lazy id list using binary search over rows sorted ascending by id."""

    def _search(self, value: object, first: int) -> int:
        low, high = first, self._view.size() - 1
        iterations = 0
        try:
            # Endpoints out of order: the rows are not sorted ascending by id.
            ordered = low >= high or not self._get(low) > self._get(high)  # type: ignore[operator]
            while ordered and low <= high:
                mid = low + (high - low) // 2
                candidate = self._get(mid)
                iterations += 1
                if value < candidate:  # type: ignore[operator]
                    high = mid - 1
                elif value > candidate:  # type: ignore[operator]
                    low = mid + 1
                else:
                    logger.debug(
                        "Found index of %r in %d iterations over %d rows",
                        value,
                        iterations,
                        self._view.size(),
                    )
                    return mid
        except TypeError:
            ordered = False
        if ordered:
            logger.debug("No row with id %r after %d iterations", value, iterations)
            return -1
        logger.warning(
            "Binary search for %r failed; make sure rows are sorted by id. "
            "Switching to linear search.",
            value,
        )
        return self._linear_search(value, first)


def default_id_list_factory(view: "QueryView", id_property_id: Any) -> LazyIdList:
    return LazyIdList(view, id_property_id)


def smart_id_list_factory(view: "QueryView", id_property_id: Any) -> LazyIdList:
    return SmartLazyIdList(view, id_property_id)
