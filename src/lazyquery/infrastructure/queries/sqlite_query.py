"""Query over one SQLite table.

Property ids of the definition map to column names.  Only columns that
exist in the table are read and written; the reserved status and debug
properties live on the items only.  Rows are addressed by ``rowid`` when
saving, so the table must be an ordinary rowid table.
"""

from __future__ import annotations

import logging
import sqlite3
import weakref
from typing import Any, Dict, List, Optional, Sequence, Set, Tuple

from ...domain.definition import QueryDefinition
from ...domain.filters import combine_sql
from ...domain.item import Item
from ...domain.query import Query, QueryFactory
from ...domain.records import build_item, item_values
from ...errors import ConstructionError, DatabaseError, SortStateError
from ..db.pool import ConnectionPool

_logger = logging.getLogger(__name__)

_ROWID = "__lazyquery_rowid__"


def quote_identifier(name: Any) -> str:
    return '"' + str(name).replace('"', '""') + '"'


def table_columns(pool: ConnectionPool, table: str) -> List[str]:
    try:
        with pool.connection() as conn:
            rows = conn.execute(f"PRAGMA table_info({quote_identifier(table)})").fetchall()
    except sqlite3.Error as exc:
        raise DatabaseError(f"Cannot inspect table {table!r}: {exc}") from exc
    if not rows:
        raise DatabaseError(f"No such table: {table!r}")
    return [row["name"] for row in rows]


class SqliteQuery(Query):
    def __init__(
        self,
        definition: QueryDefinition,
        pool: ConnectionPool,
        table: str,
        columns: Sequence[str],
        sort_property_ids: Sequence[Any] = (),
        ascending_states: Sequence[bool] = (),
    ) -> None:
        self._definition = definition
        self._pool = pool
        self._table = table
        self._columns: Set[str] = set(columns)
        self._select_columns = [pid for pid in definition.get_property_ids() if pid in self._columns]
        self._order_by = self._build_order_by(sort_property_ids, ascending_states)
        self._where, self._params = self._build_where()
        # Loaded item -> rowid; entries go away with evicted items
        self._rowids: weakref.WeakKeyDictionary[Item, int] = weakref.WeakKeyDictionary()

    def _build_order_by(self, sort_property_ids: Sequence[Any], ascending_states: Sequence[bool]) -> str:
        sortable = set(self._definition.get_sortable_property_ids())
        terms = []
        for property_id, ascending in zip(sort_property_ids, ascending_states):
            # Whitelist to keep identifiers out of reach of callers.
            if property_id not in sortable or property_id not in self._columns:
                raise SortStateError(f"Cannot sort by {property_id!r}")
            terms.append(f"{quote_identifier(property_id)} {'ASC' if ascending else 'DESC'}")
        terms.append("rowid ASC")
        return ", ".join(terms)

    def _build_where(self) -> Tuple[str, List[Any]]:
        filters = self._definition.get_effective_filters()
        for flt in filters:
            unknown = [pid for pid in flt.property_ids() if pid not in self._columns]
            if unknown:
                raise DatabaseError(f"Filter references unknown columns: {unknown!r}")
        return combine_sql(filters)

    def size(self) -> int:
        sql = f"SELECT COUNT(*) FROM {quote_identifier(self._table)} WHERE {self._where}"
        try:
            with self._pool.connection() as conn:
                return conn.execute(sql, self._params).fetchone()[0]
        except sqlite3.Error as exc:
            raise DatabaseError(f"Count failed on {self._table!r}: {exc}") from exc

    def load_items(self, start_index: int, count: int) -> List[Item]:
        columns = ", ".join(quote_identifier(c) for c in self._select_columns)
        select = f"rowid AS {_ROWID}" + (f", {columns}" if columns else "")
        sql = (
            f"SELECT {select} FROM {quote_identifier(self._table)} WHERE {self._where} "
            f"ORDER BY {self._order_by} LIMIT ? OFFSET ?"
        )
        try:
            with self._pool.connection() as conn:
                rows = conn.execute(sql, [*self._params, count, start_index]).fetchall()
        except sqlite3.Error as exc:
            raise DatabaseError(f"Load failed on {self._table!r}: {exc}") from exc

        items = []
        for row in rows:
            values = {key: row[key] for key in row.keys() if key != _ROWID}
            item = build_item(self._definition, values)
            self._rowids[item] = row[_ROWID]
            items.append(item)
        return items

    def _persistent_values(self, item: Item) -> Dict[Any, Any]:
        return {
            pid: value
            for pid, value in item_values(item, self._definition).items()
            if pid in self._columns
        }

    def _rowid_of(self, item: Item) -> int:
        try:
            return self._rowids[item]
        except KeyError:
            raise DatabaseError(f"Item was not loaded by this query: {item!r}") from None

    def save_items(self, added: List[Item], modified: List[Item], removed: List[Item]) -> None:
        table = quote_identifier(self._table)
        updates = [(self._rowid_of(item), self._persistent_values(item)) for item in modified]
        deletions = [self._rowid_of(item) for item in removed]
        try:
            with self._pool.connection() as conn:
                for item in added:
                    values = self._persistent_values(item)
                    if values:
                        names = ", ".join(quote_identifier(c) for c in values)
                        marks = ", ".join("?" for _ in values)
                        conn.execute(f"INSERT INTO {table} ({names}) VALUES ({marks})", list(values.values()))
                    else:
                        conn.execute(f"INSERT INTO {table} DEFAULT VALUES")
                for rowid, values in updates:
                    if not values:
                        continue
                    assignments = ", ".join(f"{quote_identifier(c)} = ?" for c in values)
                    conn.execute(
                        f"UPDATE {table} SET {assignments} WHERE rowid = ?",
                        [*values.values(), rowid],
                    )
                if deletions:
                    conn.executemany(f"DELETE FROM {table} WHERE rowid = ?", [(r,) for r in deletions])
        except sqlite3.Error as exc:
            raise DatabaseError(f"Save failed on {self._table!r}: {exc}") from exc
        _logger.debug(
            "Saved %d added, %d modified, %d removed rows to %s",
            len(added),
            len(updates),
            len(deletions),
            self._table,
        )

    def delete_all_items(self) -> bool:
        try:
            with self._pool.connection() as conn:
                conn.execute(f"DELETE FROM {quote_identifier(self._table)}")
        except sqlite3.Error as exc:
            raise DatabaseError(f"Delete failed on {self._table!r}: {exc}") from exc
        self._rowids.clear()
        return True

    def construct_item(self) -> Item:
        return build_item(self._definition)


class SqliteQueryFactory(QueryFactory):
    def __init__(self, pool: ConnectionPool, table: str) -> None:
        super().__init__()
        self._pool = pool
        self._table = table
        self._columns: Optional[List[str]] = None

    @property
    def table(self) -> str:
        return self._table

    def columns(self) -> List[str]:
        if self._columns is None:
            self._columns = table_columns(self._pool, self._table)
        return list(self._columns)

    def construct_query(
        self, sort_property_ids: Sequence[Any], ascending_states: Sequence[bool]
    ) -> SqliteQuery:
        if self.query_definition is None:
            raise ConstructionError("SqliteQueryFactory has no query definition.")
        return SqliteQuery(
            self.query_definition,
            self._pool,
            self._table,
            self.columns(),
            sort_property_ids,
            ascending_states,
        )
