from abc import ABC, abstractmethod
from typing import Any, List, Optional, Sequence

from .definition import QueryDefinition
from .item import Item


class Query(ABC):
    """One sort-bound cursor over the backing store."""

    @abstractmethod
    def size(self) -> int:
        """Number of persisted rows under the current sort and filters"""
        pass

    @abstractmethod
    def load_items(self, start_index: int, count: int) -> List[Item]:
        """Rows ``[start_index, start_index + count)`` in sort order"""
        pass

    @abstractmethod
    def save_items(self, added: List[Item], modified: List[Item], removed: List[Item]) -> None:
        """Persist three disjoint batches; failure aborts the whole batch"""
        pass

    @abstractmethod
    def delete_all_items(self) -> bool:
        """Immediate, unbuffered bulk delete"""
        pass

    @abstractmethod
    def construct_item(self) -> Item:
        """New item populated with definition defaults; raises ConstructionError"""
        pass


class QueryFactory(ABC):
    def __init__(self) -> None:
        self._query_definition: Optional[QueryDefinition] = None

    @property
    def query_definition(self) -> Optional[QueryDefinition]:
        return self._query_definition

    def set_query_definition(self, query_definition: QueryDefinition) -> None:
        self._query_definition = query_definition

    @abstractmethod
    def construct_query(
        self, sort_property_ids: Sequence[Any], ascending_states: Sequence[bool]
    ) -> Query:
        pass
