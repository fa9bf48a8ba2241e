"""Domain model: items, definitions, filters and query contracts."""

from .definition import PropertyDefinition, QueryDefinition
from .filters import And, Compare, Equal, Filter, IsNull, Like, Not, Or
from .item import (
    AttributeProperty,
    CompositeItem,
    Item,
    ObjectProperty,
    Property,
    PropertysetItem,
    QueryItemStatus,
    ValueChangeEvent,
    ValueChangeNotifier,
)
from .query import Query, QueryFactory
from .records import build_item, item_values

__all__ = [
    "And",
    "AttributeProperty",
    "Compare",
    "CompositeItem",
    "Equal",
    "Filter",
    "IsNull",
    "Item",
    "Like",
    "Not",
    "ObjectProperty",
    "Or",
    "Property",
    "PropertyDefinition",
    "PropertysetItem",
    "Query",
    "QueryDefinition",
    "QueryFactory",
    "QueryItemStatus",
    "ValueChangeEvent",
    "ValueChangeNotifier",
    "build_item",
    "item_values",
]
