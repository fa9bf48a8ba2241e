"""Lazy loading query views and their id lists."""

from .access_log import AccessLog
from .id_lists import (
    LazyIdList,
    NaturalNumbersList,
    SmartLazyIdList,
    default_id_list_factory,
    smart_id_list_factory,
)
from .lazy_query_view import LazyQueryView
from .query_view import QueryView

__all__ = [
    "AccessLog",
    "LazyIdList",
    "LazyQueryView",
    "NaturalNumbersList",
    "QueryView",
    "SmartLazyIdList",
    "default_id_list_factory",
    "smart_id_list_factory",
]
