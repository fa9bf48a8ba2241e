"""Lazy loading, caching and buffered editing views over paged queries."""

from .container import LazyQueryContainer
from .core import LazyQueryView, NaturalNumbersList, LazyIdList, SmartLazyIdList
from .domain import QueryDefinition, QueryFactory, Query, QueryItemStatus
from .errors import LazyQueryError

__version__ = "0.1.0"

__all__ = [
    "LazyIdList",
    "LazyQueryContainer",
    "LazyQueryError",
    "LazyQueryView",
    "NaturalNumbersList",
    "Query",
    "QueryDefinition",
    "QueryFactory",
    "QueryItemStatus",
    "SmartLazyIdList",
    "__version__",
]
