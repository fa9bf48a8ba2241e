"""Queries over plain domain objects ("beans").

Subclasses of :class:`AbstractBeanQuery` only deal with objects: they
construct, count, load and save them.  A :class:`RecordAdapter` turns each
object into an item whose cells read and write the object's attributes, so
edits made through the view land directly on the object handed back to
:meth:`AbstractBeanQuery.save_beans`.
"""

from __future__ import annotations

import logging
from abc import abstractmethod
from typing import Any, Dict, Generic, List, Mapping, Optional, Protocol, Sequence, Tuple, Type, TypeVar

from ...config import DEBUG_PROPERTY_IDS, PROPERTY_ID_ITEM_STATUS
from ...domain.definition import QueryDefinition
from ...domain.item import AttributeProperty, CompositeItem, Item, ObjectProperty, PropertysetItem
from ...domain.query import Query, QueryFactory
from ...errors import ConstructionError, LazyQueryError, UnsupportedOperationError

logger = logging.getLogger(__name__)

T = TypeVar("T")

BEAN_ITEM_KEY = "bean"


class BeanItem(PropertysetItem):
    """Item whose cells are bound to the attributes of :attr:`bean`."""

    def __init__(self, bean: Any) -> None:
        super().__init__()
        self.bean = bean

    def __repr__(self) -> str:
        return f"BeanItem({self.bean!r})"


class RecordAdapter(Protocol):
    """Marshals domain objects to items and back."""

    def to_item(self, obj: Any, definition: QueryDefinition) -> BeanItem: ...

    def from_item(self, item: Item) -> Any: ...


def _resolve_owner(obj: Any, path: str) -> Optional[Tuple[Any, str]]:
    """Return ``(owner, attribute)`` for a dotted *path*, or ``None``."""
    *parents, name = path.split(".")
    owner = obj
    for part in parents:
        owner = getattr(owner, part, None)
        if owner is None:
            return None
    if not hasattr(owner, name):
        return None
    return owner, name


class AttributeRecordAdapter:
    """Binds one :class:`AttributeProperty` per definition property.

    Dotted property ids such as ``"address.city"`` reach into nested
    objects, up to ``definition.max_nested_property_depth`` levels deep.
    Properties the object does not have are skipped.
    """

    _reserved = frozenset((PROPERTY_ID_ITEM_STATUS, *DEBUG_PROPERTY_IDS))

    def to_item(self, obj: Any, definition: QueryDefinition) -> BeanItem:
        item = BeanItem(obj)
        for property_id in definition.get_property_ids():
            if property_id in self._reserved or not isinstance(property_id, str):
                continue
            if property_id.count(".") > definition.max_nested_property_depth:
                continue
            resolved = _resolve_owner(obj, property_id)
            if resolved is None:
                continue
            owner, name = resolved
            item.add_item_property(
                property_id,
                AttributeProperty(
                    owner,
                    name,
                    definition.get_property_type(property_id),
                    definition.is_property_read_only(property_id),
                ),
            )
        return item

    def from_item(self, item: Item) -> Any:
        if isinstance(item, CompositeItem):
            item = item.get_item(BEAN_ITEM_KEY)
        if not isinstance(item, BeanItem):
            raise TypeError(f"Not a bean item: {item!r}")
        return item.bean


class AbstractBeanQuery(Query, Generic[T]):
    """Query base class for stores that deal in domain objects.

    Parameters
    ----------
    definition:
        The shared query definition.
    configuration:
        Free-form options handed over by :class:`BeanQueryFactory`, for
        example a service object or a session.
    sort_property_ids, ascending_states:
        Sort state the subclass should honour in :meth:`load_beans`.
    """

    record_adapter: RecordAdapter = AttributeRecordAdapter()

    def __init__(
        self,
        definition: QueryDefinition,
        configuration: Optional[Mapping[str, Any]] = None,
        sort_property_ids: Sequence[Any] = (),
        ascending_states: Sequence[bool] = (),
    ) -> None:
        self.definition = definition
        self.configuration: Dict[str, Any] = dict(configuration or {})
        self.sort_property_ids = tuple(sort_property_ids)
        self.ascending_states = tuple(ascending_states)

    @abstractmethod
    def construct_bean(self) -> T:
        pass

    @abstractmethod
    def size(self) -> int:
        pass

    @abstractmethod
    def load_beans(self, start_index: int, count: int) -> List[T]:
        pass

    @abstractmethod
    def save_beans(self, added: List[T], modified: List[T], removed: List[T]) -> None:
        pass

    def construct_item(self) -> Item:
        try:
            bean = self.construct_bean()
            for property_id in self.definition.get_property_ids():
                if isinstance(property_id, str) and "." not in property_id and hasattr(bean, property_id):
                    setattr(bean, property_id, self.definition.get_property_default_value(property_id))
            return self._to_item(bean)
        except LazyQueryError:
            raise
        except Exception as exc:
            raise ConstructionError(
                "Error in bean construction or property population with default values."
            ) from exc

    def load_items(self, start_index: int, count: int) -> List[Item]:
        return [self._to_item(bean) for bean in self.load_beans(start_index, count)]

    def save_items(self, added: List[Item], modified: List[Item], removed: List[Item]) -> None:
        self.save_beans(self._from_items(added), self._from_items(modified), self._from_items(removed))

    def delete_all_items(self) -> bool:
        raise UnsupportedOperationError(f"{type(self).__name__} does not support deleting all items.")

    def _to_item(self, bean: T) -> Item:
        bean_item = self.record_adapter.to_item(bean, self.definition)
        if self.definition.composite_items:
            item: Item = CompositeItem()
            item.add_item(BEAN_ITEM_KEY, bean_item)
        else:
            item = bean_item
        # Status and debug cells, and anything else the bean lacks.
        for property_id in self.definition.get_property_ids():
            if item.get_item_property(property_id) is None:
                item.add_item_property(
                    property_id,
                    ObjectProperty(
                        self.definition.get_property_default_value(property_id),
                        self.definition.get_property_type(property_id),
                        self.definition.is_property_read_only(property_id),
                    ),
                )
        return item

    def _from_items(self, items: List[Item]) -> List[T]:
        return [self.record_adapter.from_item(item) for item in items]


class BeanQueryFactory(QueryFactory):
    """Instantiates a bean query class with the current definition and sort."""

    def __init__(
        self,
        query_class: Type[AbstractBeanQuery],
        configuration: Optional[Mapping[str, Any]] = None,
    ) -> None:
        super().__init__()
        self.query_class = query_class
        self.configuration: Dict[str, Any] = dict(configuration or {})

    def construct_query(
        self, sort_property_ids: Sequence[Any], ascending_states: Sequence[bool]
    ) -> AbstractBeanQuery:
        if self.query_definition is None:
            raise ConstructionError("BeanQueryFactory has no query definition.")
        try:
            query = self.query_class(
                self.query_definition,
                self.configuration,
                sort_property_ids,
                ascending_states,
            )
        except LazyQueryError:
            raise
        except Exception as exc:
            raise ConstructionError(f"Error instantiating {self.query_class.__name__}: {exc}") from exc
        logger.debug("Constructed %s sorted by %s", self.query_class.__name__, sort_property_ids)
        return query
