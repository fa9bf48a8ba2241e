"""In-memory query over a list of row dictionaries.

Loaded items are copies of the stored rows, so edits stay local to the view
until :meth:`ListQuery.save_items` copies them back.  The store list is
shared by every query the factory constructs.
"""

from __future__ import annotations

import logging
import weakref
from typing import Any, Dict, List, MutableSequence, Optional, Sequence

from ...domain.definition import QueryDefinition
from ...domain.item import Item
from ...domain.query import Query, QueryFactory
from ...domain.records import build_item, item_values
from ...errors import ConstructionError, PersistenceError

logger = logging.getLogger(__name__)

Row = Dict[Any, Any]


def _sort_key(value: Any) -> tuple:
    # ``None`` sorts before every other value.
    return (value is not None, value)


class ListQuery(Query):
    def __init__(
        self,
        definition: QueryDefinition,
        rows: MutableSequence[Row],
        sort_property_ids: Sequence[Any] = (),
        ascending_states: Sequence[bool] = (),
    ) -> None:
        self._definition = definition
        self._rows = rows
        self._sort_property_ids = tuple(sort_property_ids)
        self._ascending_states = tuple(ascending_states)
        self._result: Optional[List[Row]] = None
        # Loaded copy -> stored row; entries go away with evicted copies
        self._origins: weakref.WeakKeyDictionary[Item, Row] = weakref.WeakKeyDictionary()

    def _matching_rows(self) -> List[Row]:
        if self._result is None:
            filters = self._definition.get_effective_filters()
            rows = [
                row
                for row in self._rows
                if all(f.passes(build_item(self._definition, row)) for f in filters)
            ]
            # Stable sorts applied from the least to the most significant key.
            for property_id, ascending in reversed(
                list(zip(self._sort_property_ids, self._ascending_states))
            ):
                rows.sort(key=lambda row: _sort_key(row.get(property_id)), reverse=not ascending)
            self._result = rows
        return self._result

    def size(self) -> int:
        return len(self._matching_rows())

    def load_items(self, start_index: int, count: int) -> List[Item]:
        items = []
        for row in self._matching_rows()[start_index:start_index + count]:
            item = build_item(self._definition, row)
            self._origins[item] = row
            items.append(item)
        return items

    def save_items(self, added: List[Item], modified: List[Item], removed: List[Item]) -> None:
        # Resolve everything first so that a bad item aborts the whole batch.
        updates = []
        for item in modified:
            row = self._origins.get(item)
            if row is None:
                raise PersistenceError(f"Modified item was not loaded by this query: {item!r}")
            updates.append((row, item_values(item, self._definition)))
        deletions = []
        for item in removed:
            row = self._origins.get(item)
            if row is None:
                raise PersistenceError(f"Removed item was not loaded by this query: {item!r}")
            deletions.append(row)

        for item in added:
            self._rows.append(item_values(item, self._definition))
        for row, values in updates:
            row.update(values)
        for row in deletions:
            for index, candidate in enumerate(self._rows):
                if candidate is row:
                    del self._rows[index]
                    break
        self._result = None
        logger.debug(
            "Saved %d added, %d modified, %d removed rows; store holds %d",
            len(added),
            len(updates),
            len(deletions),
            len(self._rows),
        )

    def delete_all_items(self) -> bool:
        del self._rows[:]
        self._result = None
        self._origins.clear()
        return True

    def construct_item(self) -> Item:
        return build_item(self._definition)


class ListQueryFactory(QueryFactory):
    """Constructs :class:`ListQuery` instances over one shared row list."""

    def __init__(self, rows: Optional[MutableSequence[Row]] = None) -> None:
        super().__init__()
        self.rows: MutableSequence[Row] = rows if rows is not None else []

    def construct_query(
        self, sort_property_ids: Sequence[Any], ascending_states: Sequence[bool]
    ) -> ListQuery:
        if self.query_definition is None:
            raise ConstructionError("ListQueryFactory has no query definition.")
        return ListQuery(self.query_definition, self.rows, sort_property_ids, ascending_states)
