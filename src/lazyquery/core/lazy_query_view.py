"""Lazy loading, caching and buffering query view.

``LazyQueryView`` fetches rows from a :class:`~lazyquery.domain.query.Query`
in batches aligned to the definition's batch size, keeps at most
``max_cache_size`` of them in memory (least recently used first out) and
buffers additions, edits and removals until :meth:`LazyQueryView.commit` or
:meth:`LazyQueryView.discard`.

Visible index space::

    [0, len(added))            rows added since the last commit, newest first
    [len(added), size())       queried rows, in query order

Removed rows stay visible (with frozen, read-only cells) until the view is
refreshed after a commit.  Changing the sort state or the filters drops the
current query; a new one is constructed on the next access.
"""

from __future__ import annotations

import logging
import time
from itertools import chain
from typing import Any, Dict, List, Optional, Sequence, Tuple

from ..config import (
    DEBUG_PROPERTY_ID_BATCH_INDEX,
    DEBUG_PROPERTY_ID_BATCH_QUERY_TIME,
    DEBUG_PROPERTY_ID_QUERY_INDEX,
    DEFAULT_MAX_CACHE_SIZE,
    PROPERTY_ID_ITEM_STATUS,
)
from ..domain.definition import QueryDefinition
from ..domain.filters import Filter
from ..domain.item import Item, Property, QueryItemStatus, ValueChangeEvent, ValueChangeNotifier
from ..domain.query import Query, QueryFactory
from ..errors import (
    ConstructionError,
    ItemIndexError,
    LazyQueryError,
    PendingChangesError,
    SortStateError,
)
from .access_log import AccessLog
from .id_lists import IdListFactory, NaturalNumbersList, default_id_list_factory
from .query_view import QueryView

logger = logging.getLogger(__name__)


class LazyQueryView(QueryView):
    """Batch loading, caching and buffered editing on top of a query factory.

    Parameters
    ----------
    query_definition:
        Property schema, batch size, filters and sort defaults.
    query_factory:
        Builds a new query whenever the sort state or filters change.  The
        definition is bound to the factory here if it has none yet.
    max_cache_size:
        Upper bound on cached queried rows.  Rows with pending modifications
        or removals are pinned and may push the cache above the bound.
    discard_on_refresh:
        When ``True`` (default) :meth:`refresh` silently abandons buffered
        changes, which also happens on every :meth:`sort` and filter change.
        When ``False`` such a refresh raises :class:`PendingChangesError`.
    id_list_factory:
        Builds the id list for definitions with an id property.
    """

    def __init__(
        self,
        query_definition: QueryDefinition,
        query_factory: QueryFactory,
        *,
        max_cache_size: int = DEFAULT_MAX_CACHE_SIZE,
        discard_on_refresh: bool = True,
        id_list_factory: IdListFactory = default_id_list_factory,
    ) -> None:
        self._query_definition = query_definition
        self._query_factory = query_factory
        if query_factory.query_definition is None:
            query_factory.set_query_definition(query_definition)
        self._max_cache_size = max_cache_size
        self.discard_on_refresh = discard_on_refresh
        self._id_list_factory = id_list_factory

        self._sort_property_ids: Tuple[Any, ...] = ()
        self._ascending_states: Tuple[bool, ...] = ()

        self._query: Optional[Query] = None
        self._query_size: Optional[int] = None
        self._query_count = 0
        self._batch_count = 0
        self._item_id_list: Optional[Sequence[Any]] = None

        self._item_cache: Dict[int, Item] = {}
        self._access_log = AccessLog()
        # Observed cell -> owning cached row
        self._property_items: Dict[Property, Item] = {}

        # Newest first.  Modified/removed are ordered sets keyed by identity.
        self._added_items: List[Item] = []
        self._modified_items: Dict[Item, None] = {}
        self._removed_items: Dict[Item, None] = {}
        # Read-only flags of removed rows before they were frozen
        self._frozen_states: Dict[Item, Dict[Any, bool]] = {}
        # Padding rows standing in for rows missing from a short batch
        self._placeholders: Dict[Item, None] = {}

    # ------------------------------------------------------------------
    # Configuration and diagnostics
    # ------------------------------------------------------------------
    def get_query_definition(self) -> QueryDefinition:
        return self._query_definition

    def get_batch_size(self) -> int:
        return self._query_definition.batch_size

    @property
    def max_cache_size(self) -> int:
        return self._max_cache_size

    @max_cache_size.setter
    def max_cache_size(self, max_cache_size: int) -> None:
        if max_cache_size < 0:
            raise ValueError(f"max_cache_size must not be negative, got {max_cache_size}")
        self._max_cache_size = max_cache_size
        self._evict()

    @property
    def query_count(self) -> int:
        """Number of queries constructed so far; increases on every requery."""
        return self._query_count

    @property
    def batch_count(self) -> int:
        """Batches loaded through the current query."""
        return self._batch_count

    @property
    def cache_size(self) -> int:
        return len(self._item_cache)

    def is_cached(self, index: int) -> bool:
        position = index - len(self._added_items)
        return position in self._item_cache

    @property
    def sort_state(self) -> Tuple[Tuple[Any, ...], Tuple[bool, ...]]:
        return self._sort_property_ids, self._ascending_states

    # ------------------------------------------------------------------
    # Query lifecycle
    # ------------------------------------------------------------------
    def _get_query(self) -> Query:
        if self._query is None:
            definition = self._query_definition
            definition.set_sort_state(self._sort_property_ids, self._ascending_states)
            sort_ids, ascending = definition.get_effective_sort_state()
            self._query = self._query_factory.construct_query(sort_ids, ascending)
            self._query_count += 1
            self._query_size = None
            logger.debug(
                "Constructed query #%d sorted by %s %s",
                self._query_count,
                sort_ids,
                ascending,
            )
        return self._query

    def _get_query_size(self) -> int:
        query = self._get_query()
        if self._query_size is None:
            self._query_size = query.size()
        # Capped on read; the cap may change while the query is live.
        max_query_size = self._query_definition.max_query_size
        if -1 < max_query_size < self._query_size:
            return max_query_size
        return self._query_size

    def size(self) -> int:
        return self._get_query_size() + len(self._added_items)

    def __len__(self) -> int:
        return self.size()

    def sort(self, sort_property_ids: Sequence[Any], ascending_states: Sequence[bool]) -> None:
        sort_property_ids = tuple(sort_property_ids)
        ascending_states = tuple(bool(state) for state in ascending_states)
        if len(sort_property_ids) != len(ascending_states):
            raise SortStateError(
                f"Sort state arrays need to have same length "
                f"({len(sort_property_ids)} != {len(ascending_states)})."
            )
        definition = self._query_definition
        for property_id in sort_property_ids:
            if definition.has_property(property_id) and not definition.is_property_sortable(property_id):
                raise SortStateError(f"Property is not sortable: {property_id!r}")
        self._check_refresh_allowed()
        self._sort_property_ids = sort_property_ids
        self._ascending_states = ascending_states
        self.refresh()

    def _check_refresh_allowed(self) -> None:
        if self.is_modified() and not self.discard_on_refresh:
            raise PendingChangesError(
                "Refresh would discard uncommitted changes; commit or discard first."
            )

    def refresh(self) -> None:
        """Drop the query and the cache, then discard buffered changes."""
        self._check_refresh_allowed()
        if self.is_modified():
            logger.warning(
                "Refresh discards pending changes (%d added, %d modified, %d removed)",
                len(self._added_items),
                len(self._modified_items),
                len(self._removed_items),
            )
        self._clear_cache()
        self._query = None
        self._query_size = None
        self._batch_count = 0
        self.discard()

    def _clear_cache(self) -> None:
        for prop in self._property_items:
            prop.remove_listener(self._on_value_change)
        self._property_items.clear()
        self._item_cache.clear()
        self._access_log.clear()
        self._item_id_list = None

    # ------------------------------------------------------------------
    # Reading
    # ------------------------------------------------------------------
    def get_item(self, index: int) -> Item:
        size = self.size()
        if index < 0 or index >= size:
            raise ItemIndexError(f"View size: {size} and item index requested: {index}")
        added_count = len(self._added_items)
        if index < added_count:
            return self._added_items[index]
        position = index - added_count
        item = self._item_cache.get(position)
        if item is None:
            return self._query_item(position)
        self._access_log.touch(position)
        return item

    def _query_item(self, position: int) -> Item:
        """Load the batch containing *position* and return its row."""
        batch_size = self.get_batch_size()
        start = position - position % batch_size
        count = min(batch_size, self._get_query_size() - start)
        query = self._get_query()

        started = time.perf_counter()
        items = list(query.load_items(start, count))
        elapsed_ms = int((time.perf_counter() - started) * 1000)
        logger.debug(
            "Loaded batch #%d of query #%d: rows %d-%d (%d returned) in %d ms",
            self._batch_count,
            self._query_count,
            start,
            start + count - 1,
            len(items),
            elapsed_ms,
        )

        loaded: List[Item] = []
        for offset in range(count):
            index = start + offset
            if index in self._item_cache:
                # Keep the cached row; it may carry pending edits.
                self._access_log.touch(index)
                continue
            if offset < len(items):
                item = items[offset]
                missing = False
            else:
                # The store shrank since size() was read.
                item = self._construct_item(query)
                missing = True
            self._item_cache[index] = item
            self._access_log.touch(index)
            loaded.append(item)
            if missing:
                self._placeholders[item] = None
                self._mark_removed(item)

        for item in loaded:
            item._write_system_value(DEBUG_PROPERTY_ID_BATCH_INDEX, self._batch_count)
            item._write_system_value(DEBUG_PROPERTY_ID_QUERY_INDEX, self._query_count)
            item._write_system_value(DEBUG_PROPERTY_ID_BATCH_QUERY_TIME, elapsed_ms)
            self._subscribe(item)

        self._batch_count += 1
        self._access_log.touch(position)
        requested = self._item_cache[position]
        self._evict()
        return requested

    def _subscribe(self, item: Item) -> None:
        for prop in item.properties():
            if isinstance(prop, ValueChangeNotifier):
                prop.add_listener(self._on_value_change)
                self._property_items[prop] = item

    def _unsubscribe(self, item: Item) -> None:
        for prop in item.properties():
            if isinstance(prop, ValueChangeNotifier):
                prop.remove_listener(self._on_value_change)
                self._property_items.pop(prop, None)

    def _is_pinned(self, item: Item) -> bool:
        return item in self._modified_items or item in self._removed_items

    def _evict(self) -> None:
        """Evict least recently used unpinned rows until the cache fits."""
        skipped = 0
        while len(self._item_cache) > self._max_cache_size:
            position = self._access_log.oldest()
            item = self._item_cache[position]
            if self._is_pinned(item):
                self._access_log.touch(position)
                skipped += 1
                if skipped >= len(self._item_cache):
                    logger.debug(
                        "Cache holds %d rows over its bound of %d; all pinned",
                        len(self._item_cache),
                        self._max_cache_size,
                    )
                    break
                continue
            self._access_log.pop_oldest()
            del self._item_cache[position]
            self._unsubscribe(item)

    # ------------------------------------------------------------------
    # Buffered changes
    # ------------------------------------------------------------------
    def _construct_item(self, query: Query) -> Item:
        try:
            item = query.construct_item()
        except LazyQueryError:
            raise
        except Exception as exc:
            raise ConstructionError(f"Error constructing item: {exc}") from exc
        if item is None:
            raise ConstructionError("Query returned no item from construct_item().")
        return item

    def add_item(self) -> int:
        """Construct a new row and insert it at index 0; return that index."""
        item = self._construct_item(self._get_query())
        item._write_system_value(PROPERTY_ID_ITEM_STATUS, QueryItemStatus.ADDED)
        self._added_items.insert(0, item)
        if isinstance(self._item_id_list, NaturalNumbersList):
            self._item_id_list = None
        return 0

    def _on_value_change(self, event: ValueChangeEvent) -> None:
        item = self._property_items.get(event.property)
        if item is None:
            return
        status_property = item.get_item_property(PROPERTY_ID_ITEM_STATUS)
        if event.property is status_property:
            return
        if item in self._removed_items:
            return
        if status_property is not None and status_property.value is not QueryItemStatus.MODIFIED:
            item._write_system_value(PROPERTY_ID_ITEM_STATUS, QueryItemStatus.MODIFIED)
        self._modified_items.setdefault(item, None)

    def remove_item(self, index: int) -> None:
        """Mark the row at *index* removed; it stays visible until refreshed."""
        item = self.get_item(index)
        if item in self._removed_items:
            return
        self._mark_removed(item)

    def _mark_removed(self, item: Item) -> None:
        item._write_system_value(PROPERTY_ID_ITEM_STATUS, QueryItemStatus.REMOVED)
        states: Dict[Any, bool] = {}
        for property_id in item.get_item_property_ids():
            prop = item.get_item_property(property_id)
            states[property_id] = prop.read_only
            prop.read_only = True
        self._frozen_states[item] = states
        self._removed_items[item] = None

    def remove_all_items(self) -> bool:
        """Delete every persisted row immediately, bypassing the buffers."""
        deleted = self._get_query().delete_all_items()
        self._clear_cache()
        self._query_size = None
        return deleted

    def is_modified(self) -> bool:
        return bool(self._added_items or self._modified_items or self._removed_items)

    def get_item_status(self, item: Item) -> QueryItemStatus:
        """Lifecycle state derived from buffer membership."""
        if item in self._removed_items:
            return QueryItemStatus.REMOVED
        if any(added is item for added in self._added_items):
            return QueryItemStatus.ADDED
        if item in self._modified_items:
            return QueryItemStatus.MODIFIED
        return QueryItemStatus.NONE

    def commit(self) -> None:
        """Persist buffered changes, then clear the buffers.

        Rows are saved in the order they were added.  A row both added and
        removed is never sent to the query, nor is a padding row from a short
        batch; a removed row is not also sent as modified.  If saving fails
        the buffers and statuses are left untouched and the error propagates.
        """
        added_set = set(self._added_items)
        added = [item for item in reversed(self._added_items) if item not in self._removed_items]
        modified = [
            item
            for item in self._modified_items
            if item not in self._removed_items and item not in added_set
        ]
        removed = [
            item
            for item in self._removed_items
            if item not in added_set and item not in self._placeholders
        ]

        self._get_query().save_items(added, modified, removed)
        logger.debug(
            "Committed %d added, %d modified, %d removed rows",
            len(added),
            len(modified),
            len(removed),
        )
        self._reset_statuses()
        self._clear_buffers()

    def discard(self) -> None:
        """Abandon buffered changes without touching the store."""
        if self.is_modified():
            logger.debug(
                "Discarding %d added, %d modified, %d removed rows",
                len(self._added_items),
                len(self._modified_items),
                len(self._removed_items),
            )
        self._reset_statuses()
        for item, states in self._frozen_states.items():
            for property_id, read_only in states.items():
                prop = item.get_item_property(property_id)
                if prop is not None:
                    prop.read_only = read_only
        self._clear_buffers()

    def _reset_statuses(self) -> None:
        for item in chain(self._added_items, self._modified_items, self._removed_items):
            item._write_system_value(PROPERTY_ID_ITEM_STATUS, QueryItemStatus.NONE)

    def _clear_buffers(self) -> None:
        if self._added_items and isinstance(self._item_id_list, NaturalNumbersList):
            self._item_id_list = None
        self._added_items.clear()
        self._modified_items.clear()
        self._removed_items.clear()
        self._frozen_states.clear()
        self._placeholders.clear()

    def get_added_items(self) -> Tuple[Item, ...]:
        return tuple(self._added_items)

    def get_modified_items(self) -> Tuple[Item, ...]:
        return tuple(self._modified_items)

    def get_removed_items(self) -> Tuple[Item, ...]:
        return tuple(self._removed_items)

    # ------------------------------------------------------------------
    # Ids and filters
    # ------------------------------------------------------------------
    def get_item_id_list(self) -> Sequence[Any]:
        if self._item_id_list is None:
            id_property_id = self._query_definition.id_property_id
            if id_property_id is not None:
                self._item_id_list = self._id_list_factory(self, id_property_id)
            else:
                self._item_id_list = NaturalNumbersList(self.size())
        elif isinstance(self._item_id_list, NaturalNumbersList) and len(self._item_id_list) != self.size():
            self._item_id_list = NaturalNumbersList(self.size())
        return self._item_id_list

    def add_filter(self, flt: Filter) -> None:
        self._check_refresh_allowed()
        self._query_definition.add_filter(flt)
        self.refresh()

    def remove_filter(self, flt: Filter) -> None:
        self._check_refresh_allowed()
        self._query_definition.remove_filter(flt)
        self.refresh()

    def remove_filters(self) -> None:
        self._check_refresh_allowed()
        self._query_definition.remove_filters()
        self.refresh()

    def get_filters(self) -> List[Filter]:
        return self._query_definition.get_filters()

    def add_default_filter(self, flt: Filter) -> None:
        self._check_refresh_allowed()
        self._query_definition.add_default_filter(flt)
        self.refresh()

    def remove_default_filter(self, flt: Filter) -> None:
        self._check_refresh_allowed()
        self._query_definition.remove_default_filter(flt)
        self.refresh()

    def remove_default_filters(self) -> None:
        self._check_refresh_allowed()
        self._query_definition.remove_default_filters()
        self.refresh()

    def get_default_filters(self) -> List[Filter]:
        return self._query_definition.get_default_filters()

    def __repr__(self) -> str:
        return (
            f"LazyQueryView(query_count={self._query_count}, cached={len(self._item_cache)}, "
            f"added={len(self._added_items)}, modified={len(self._modified_items)}, "
            f"removed={len(self._removed_items)})"
        )
