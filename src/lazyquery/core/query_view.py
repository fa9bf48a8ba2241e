from abc import ABC, abstractmethod
from typing import Any, List, Sequence, Tuple

from ..domain.definition import QueryDefinition
from ..domain.filters import Filter
from ..domain.item import Item


class QueryView(ABC):
    """Index-addressed, buffered view over the rows of a query."""

    @abstractmethod
    def get_query_definition(self) -> QueryDefinition:
        pass

    @property
    @abstractmethod
    def max_cache_size(self) -> int:
        pass

    @abstractmethod
    def size(self) -> int:
        """Queried rows plus rows added since the last commit/discard"""
        pass

    @abstractmethod
    def get_item(self, index: int) -> Item:
        pass

    @abstractmethod
    def sort(self, sort_property_ids: Sequence[Any], ascending_states: Sequence[bool]) -> None:
        pass

    @abstractmethod
    def refresh(self) -> None:
        pass

    @abstractmethod
    def add_item(self) -> int:
        pass

    @abstractmethod
    def remove_item(self, index: int) -> None:
        pass

    @abstractmethod
    def remove_all_items(self) -> bool:
        pass

    @abstractmethod
    def is_modified(self) -> bool:
        pass

    @abstractmethod
    def commit(self) -> None:
        pass

    @abstractmethod
    def discard(self) -> None:
        pass

    @abstractmethod
    def get_added_items(self) -> Tuple[Item, ...]:
        pass

    @abstractmethod
    def get_modified_items(self) -> Tuple[Item, ...]:
        pass

    @abstractmethod
    def get_removed_items(self) -> Tuple[Item, ...]:
        pass

    @abstractmethod
    def get_item_id_list(self) -> Sequence[Any]:
        pass

    @abstractmethod
    def add_filter(self, flt: Filter) -> None:
        pass

    @abstractmethod
    def remove_filter(self, flt: Filter) -> None:
        pass

    @abstractmethod
    def remove_filters(self) -> None:
        pass

    @abstractmethod
    def get_filters(self) -> List[Filter]:
        pass

    @abstractmethod
    def add_default_filter(self, flt: Filter) -> None:
        pass

    @abstractmethod
    def remove_default_filter(self, flt: Filter) -> None:
        pass

    @abstractmethod
    def remove_default_filters(self) -> None:
        pass

    @abstractmethod
    def get_default_filters(self) -> List[Filter]:
        pass
