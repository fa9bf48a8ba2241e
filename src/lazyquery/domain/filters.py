"""Container filters.

A filter decides whether a row belongs to the result set.  Each filter can
evaluate itself against an :class:`~lazyquery.domain.item.Item` (used by the
in-memory query) and render itself as a SQL ``WHERE`` fragment (used by the
SQLite query).  Property ids double as column names in SQL; callers are
expected to whitelist them, which :class:`SqliteQuery` does.
"""

from __future__ import annotations

import operator
import re
from dataclasses import dataclass
from typing import Any, Callable, Dict, List, Sequence, Tuple

from .item import Item

SqlFragment = Tuple[str, List[Any]]

_OPERATORS: Dict[str, Callable[[Any, Any], bool]] = {
    "<": operator.lt,
    "<=": operator.le,
    ">": operator.gt,
    ">=": operator.ge,
    "!=": operator.ne,
    "=": operator.eq,
}


class Filter:
    """Base class for filters."""

    def passes(self, item: Item) -> bool:
        raise NotImplementedError

    def applies_to(self, property_id: Any) -> bool:
        raise NotImplementedError

    def property_ids(self) -> List[Any]:
        raise NotImplementedError

    def to_sql(self) -> SqlFragment:
        raise NotImplementedError


@dataclass(frozen=True)
class Compare(Filter):
    """``property <op> value``; ``None`` values never pass."""

    property_id: Any
    op: str
    value: Any

    def __post_init__(self) -> None:
        if self.op not in _OPERATORS:
            raise ValueError(f"Unsupported comparison operator: {self.op!r}")

    def passes(self, item: Item) -> bool:
        actual = item.get(self.property_id)
        if actual is None:
            return False
        try:
            return _OPERATORS[self.op](actual, self.value)
        except TypeError:
            return False

    def applies_to(self, property_id: Any) -> bool:
        return property_id == self.property_id

    def property_ids(self) -> List[Any]:
        return [self.property_id]

    def to_sql(self) -> SqlFragment:
        return f'"{self.property_id}" {self.op} ?', [self.value]


class Equal(Compare):
    def __init__(self, property_id: Any, value: Any) -> None:
        super().__init__(property_id, "=", value)


@dataclass(frozen=True)
class IsNull(Filter):
    property_id: Any

    def passes(self, item: Item) -> bool:
        return item.get(self.property_id) is None

    def applies_to(self, property_id: Any) -> bool:
        return property_id == self.property_id

    def property_ids(self) -> List[Any]:
        return [self.property_id]

    def to_sql(self) -> SqlFragment:
        return f'"{self.property_id}" IS NULL', []


@dataclass(frozen=True)
class Like(Filter):
    """SQL ``LIKE`` semantics: ``%`` matches any run, ``_`` one character."""

    property_id: Any
    pattern: str
    case_sensitive: bool = False

    def _regex(self) -> "re.Pattern[str]":
        parts = []
        for char in self.pattern:
            if char == "%":
                parts.append(".*")
            elif char == "_":
                parts.append(".")
            else:
                parts.append(re.escape(char))
        flags = re.DOTALL if self.case_sensitive else re.DOTALL | re.IGNORECASE
        return re.compile("".join(parts), flags)

    def passes(self, item: Item) -> bool:
        actual = item.get(self.property_id)
        if actual is None:
            return False
        return self._regex().fullmatch(str(actual)) is not None

    def applies_to(self, property_id: Any) -> bool:
        return property_id == self.property_id

    def property_ids(self) -> List[Any]:
        return [self.property_id]

    def to_sql(self) -> SqlFragment:
        if self.case_sensitive:
            return f'"{self.property_id}" GLOB ?', [_like_to_glob(self.pattern)]
        return f'LOWER("{self.property_id}") LIKE ?', [self.pattern.lower()]


def _like_to_glob(pattern: str) -> str:
    out = []
    for char in pattern:
        if char == "%":
            out.append("*")
        elif char == "_":
            out.append("?")
        elif char in "*?[":
            out.append(f"[{char}]")
        else:
            out.append(char)
    return "".join(out)


class _Junction(Filter):
    _keyword = ""

    def __init__(self, *filters: Filter) -> None:
        if not filters:
            raise ValueError(f"{type(self).__name__} needs at least one filter")
        self.filters: Tuple[Filter, ...] = tuple(filters)

    def applies_to(self, property_id: Any) -> bool:
        return any(f.applies_to(property_id) for f in self.filters)

    def property_ids(self) -> List[Any]:
        ids: List[Any] = []
        for f in self.filters:
            ids.extend(pid for pid in f.property_ids() if pid not in ids)
        return ids

    def to_sql(self) -> SqlFragment:
        clauses, params = [], []
        for f in self.filters:
            clause, values = f.to_sql()
            clauses.append(f"({clause})")
            params.extend(values)
        return f" {self._keyword} ".join(clauses), params

    def __eq__(self, other: object) -> bool:
        return type(other) is type(self) and other.filters == self.filters

    def __hash__(self) -> int:
        return hash((type(self), self.filters))

    def __repr__(self) -> str:
        return f"{type(self).__name__}{self.filters!r}"


class And(_Junction):
    _keyword = "AND"

    def passes(self, item: Item) -> bool:
        return all(f.passes(item) for f in self.filters)


class Or(_Junction):
    _keyword = "OR"

    def passes(self, item: Item) -> bool:
        return any(f.passes(item) for f in self.filters)


@dataclass(frozen=True)
class Not(Filter):
    filter: Filter

    def passes(self, item: Item) -> bool:
        return not self.filter.passes(item)

    def applies_to(self, property_id: Any) -> bool:
        return self.filter.applies_to(property_id)

    def property_ids(self) -> List[Any]:
        return self.filter.property_ids()

    def to_sql(self) -> SqlFragment:
        clause, params = self.filter.to_sql()
        return f"NOT ({clause})", params


def combine_sql(filters: Sequence[Filter]) -> SqlFragment:
    """Join *filters* with ``AND``; an empty sequence yields ``("1=1", [])``."""
    if not filters:
        return "1=1", []
    return And(*filters).to_sql()
