"""Custom item data roles exposed by the table model."""

from __future__ import annotations

from enum import IntEnum
from typing import Dict

from PySide6.QtCore import Qt


class Roles(IntEnum):
    """Custom roles exposed to QML or widgets."""

    ITEM_STATUS = Qt.UserRole + 1
    ITEM_ID = Qt.UserRole + 2


def role_names(base: Dict[int, bytes] | None = None) -> Dict[int, bytes]:
    """Return a mapping of Qt role numbers to byte names."""

    mapping: Dict[int, bytes] = {} if base is None else dict(base)
    mapping.update(
        {
            Roles.ITEM_STATUS: b"itemStatus",
            Roles.ITEM_ID: b"itemId",
        }
    )
    return mapping
