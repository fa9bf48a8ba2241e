"""Bundled query implementations."""

from .bean_query import AbstractBeanQuery, AttributeRecordAdapter, BeanItem, BeanQueryFactory, RecordAdapter
from .list_query import ListQuery, ListQueryFactory
from .sqlite_query import SqliteQuery, SqliteQueryFactory

__all__ = [
    "AbstractBeanQuery",
    "AttributeRecordAdapter",
    "BeanItem",
    "BeanQueryFactory",
    "ListQuery",
    "ListQueryFactory",
    "RecordAdapter",
    "SqliteQuery",
    "SqliteQueryFactory",
]
