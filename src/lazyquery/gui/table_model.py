"""Qt table model presenting a :class:`LazyQueryContainer`.

Rows map to container indices and columns to container property ids.  Rows
are only loaded when a view asks for their data, so the batch loading of
the underlying :class:`~lazyquery.core.LazyQueryView` follows scrolling.
"""

from __future__ import annotations

import logging
from typing import Any, Dict, List, Optional

from PySide6.QtCore import QAbstractTableModel, QByteArray, QModelIndex, QObject, Qt

from ..config import PROPERTY_ID_ITEM_STATUS
from ..container import LazyQueryContainer
from ..core.lazy_query_view import LazyQueryView
from ..domain.item import Item, QueryItemStatus
from ..errors import ReadOnlyPropertyError
from ..errors.handler import ErrorHandler, ErrorSeverity
from ..events import ItemSetChangedEvent, PropertySetChangedEvent, Subscription
from .roles import Roles, role_names

logger = logging.getLogger(__name__)

_STATUS_TEXT: Dict[QueryItemStatus, str] = {
    QueryItemStatus.NONE: "",
    QueryItemStatus.ADDED: "Added",
    QueryItemStatus.MODIFIED: "Modified",
    QueryItemStatus.REMOVED: "Removed",
}


def status_text(status: Optional[QueryItemStatus]) -> str:
    """Short label for the status column; ``None`` reads as unchanged."""
    if status is None:
        return ""
    return _STATUS_TEXT[status]


class LazyQueryTableModel(QAbstractTableModel):
    """Table model over a lazy query container."""

    def __init__(
        self,
        container: LazyQueryContainer,
        error_handler: Optional[ErrorHandler] = None,
        parent: QObject | None = None,
    ) -> None:
        super().__init__(parent)
        self._container = container
        self._error_handler = error_handler or ErrorHandler(logger, container.event_bus)
        self._columns: List[Any] = list(container.get_container_property_ids())
        self._subscriptions: List[Subscription] = [
            container.event_bus.subscribe(ItemSetChangedEvent, self._on_container_changed),
            container.event_bus.subscribe(PropertySetChangedEvent, self._on_container_changed),
        ]

    @property
    def container(self) -> LazyQueryContainer:
        return self._container

    def close(self) -> None:
        """Stop listening to container events."""
        for subscription in self._subscriptions:
            self._container.event_bus.unsubscribe(subscription)
        self._subscriptions.clear()

    # ------------------------------------------------------------------
    # Qt model API
    # ------------------------------------------------------------------
    def rowCount(self, parent: QModelIndex = QModelIndex()) -> int:  # noqa: N802
        if parent.isValid():
            return 0
        with self._error_handler.suppress(operation="rowCount"):
            return self._container.size()
        return 0

    def columnCount(self, parent: QModelIndex = QModelIndex()) -> int:  # noqa: N802
        if parent.isValid():
            return 0
        return len(self._columns)

    def roleNames(self) -> Dict[int, QByteArray]:  # noqa: N802
        return {role: QByteArray(name) for role, name in role_names(super().roleNames()).items()}

    def headerData(self, section: int, orientation: Qt.Orientation, role: int = Qt.DisplayRole) -> Any:  # noqa: N802
        if role != Qt.DisplayRole:
            return None
        if orientation == Qt.Horizontal:
            if 0 <= section < len(self._columns):
                return str(self._columns[section])
            return None
        return section + 1

    def data(self, index: QModelIndex, role: int = Qt.DisplayRole) -> Any:
        if not index.isValid():
            return None
        with self._error_handler.suppress(operation="data", row=index.row(), column=index.column()):
            if role == Roles.ITEM_ID:
                return self._container.get_id_by_index(index.row())
            item = self._item_at(index.row())
            if role == Roles.ITEM_STATUS:
                return self._status_of(item)
            if role not in (Qt.DisplayRole, Qt.EditRole):
                return None
            property_id = self._columns[index.column()]
            value = item.get(property_id)
            if role == Qt.DisplayRole and property_id == PROPERTY_ID_ITEM_STATUS:
                return status_text(value)
            return value
        return None

    def setData(self, index: QModelIndex, value: Any, role: int = Qt.EditRole) -> bool:  # noqa: N802
        if not index.isValid() or role != Qt.EditRole:
            return False
        try:
            item = self._item_at(index.row())
            prop = item.get_item_property(self._columns[index.column()])
            if prop is None or prop.read_only:
                return False
            prop.value = value
        except ReadOnlyPropertyError:
            return False
        except Exception as exc:
            self._error_handler.handle(
                exc,
                ErrorSeverity.ERROR,
                {"operation": "setData", "row": index.row(), "column": index.column()},
            )
            return False
        # The status column changes along with the edited cell.
        row = index.row()
        self.dataChanged.emit(self.index(row, 0), self.index(row, len(self._columns) - 1))
        return True

    def flags(self, index: QModelIndex) -> Qt.ItemFlags:
        if not index.isValid():
            return Qt.NoItemFlags
        base = Qt.ItemIsEnabled | Qt.ItemIsSelectable
        with self._error_handler.suppress(ErrorSeverity.WARNING, operation="flags"):
            prop = self._item_at(index.row()).get_item_property(self._columns[index.column()])
            if prop is not None and not prop.read_only:
                return base | Qt.ItemIsEditable
        return base

    def sort(self, column: int, order: Qt.SortOrder = Qt.AscendingOrder) -> None:
        if not 0 <= column < len(self._columns):
            return
        property_id = self._columns[column]
        if property_id not in self._container.get_sortable_container_property_ids():
            return
        with self._error_handler.suppress(operation="sort", column=column):
            self._container.sort([property_id], [order == Qt.AscendingOrder])

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------
    def _item_at(self, row: int) -> Item:
        return self._container.query_view.get_item(row)

    def _status_of(self, item: Item) -> QueryItemStatus:
        view = self._container.query_view
        if isinstance(view, LazyQueryView):
            return view.get_item_status(item)
        status = item.get(PROPERTY_ID_ITEM_STATUS)
        return status if status is not None else QueryItemStatus.NONE

    def _on_container_changed(self, event: Any) -> None:
        if event.container is not self._container:
            return
        self.beginResetModel()
        self._columns = list(self._container.get_container_property_ids())
        self.endResetModel()
