"""Helpers turning plain mappings into items and back."""

from __future__ import annotations

from typing import Any, Dict, Mapping, Optional

from ..config import DEBUG_PROPERTY_IDS, PROPERTY_ID_ITEM_STATUS
from .definition import QueryDefinition
from .item import Item, ObjectProperty, PropertysetItem, QueryItemStatus


def build_item(definition: QueryDefinition, values: Optional[Mapping[Any, Any]] = None) -> PropertysetItem:
    """Create one cell per definition property.

    Values missing from *values* fall back to the property default.  The
    status property, when declared, always starts as ``QueryItemStatus.NONE``
    unless *values* says otherwise.
    """
    values = values or {}
    item = PropertysetItem()
    for property_id in definition.get_property_ids():
        prop_def = definition.get_property(property_id)
        if property_id in values:
            value = values[property_id]
        elif property_id == PROPERTY_ID_ITEM_STATUS:
            value = QueryItemStatus.NONE
        else:
            value = prop_def.default_value
        item.add_item_property(
            property_id,
            ObjectProperty(value, prop_def.type, prop_def.read_only),
        )
    return item


def item_values(item: Item, definition: QueryDefinition, *, persistent_only: bool = True) -> Dict[Any, Any]:
    """Return ``{property_id: value}`` for the definition's properties.

    With *persistent_only* the reserved status and debug properties are left
    out, which is what storage backends want.
    """
    skipped = {PROPERTY_ID_ITEM_STATUS, *DEBUG_PROPERTY_IDS} if persistent_only else set()
    values: Dict[Any, Any] = {}
    for property_id in definition.get_property_ids():
        if property_id in skipped:
            continue
        prop = item.get_item_property(property_id)
        if prop is not None:
            values[property_id] = prop.value
    return values
