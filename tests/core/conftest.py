from typing import Any, List, Sequence

import pytest

from lazyquery.config import PROPERTY_ID_ITEM_STATUS
from lazyquery.domain.definition import QueryDefinition
from lazyquery.domain.item import Item, QueryItemStatus
from lazyquery.errors import PersistenceError
from lazyquery.infrastructure.queries.list_query import ListQuery, ListQueryFactory


class RecordingQuery(ListQuery):
    """List query that reports loads and saves to its factory."""

    def __init__(self, factory: "RecordingQueryFactory", *args: Any) -> None:
        super().__init__(*args)
        self._factory = factory

    def load_items(self, start_index: int, count: int) -> List[Item]:
        self._factory.loads.append((start_index, count))
        return super().load_items(start_index, count)

    def save_items(self, added, modified, removed) -> None:
        self._factory.saves.append((list(added), list(modified), list(removed)))
        if self._factory.fail_save:
            raise PersistenceError("store unavailable")
        super().save_items(added, modified, removed)


class RecordingQueryFactory(ListQueryFactory):
    def __init__(self, rows=None) -> None:
        super().__init__(rows)
        self.loads: List[tuple] = []
        self.saves: List[tuple] = []
        self.constructed = 0
        self.fail_save = False

    def construct_query(self, sort_property_ids: Sequence[Any], ascending_states: Sequence[bool]) -> ListQuery:
        self.constructed += 1
        return RecordingQuery(self, self.query_definition, self.rows, sort_property_ids, ascending_states)


def make_rows(count: int = 100):
    return [{"id": i, "name": f"task {i}", "priority": i % 5} for i in range(count)]


def make_definition(batch_size: int = 10, id_property_id: Any = None) -> QueryDefinition:
    definition = QueryDefinition(batch_size=batch_size, id_property_id=id_property_id)
    definition.add_property("id", int, None, read_only=True, sortable=True)
    definition.add_property("name", str, "", read_only=False, sortable=False)
    definition.add_property("priority", int, 0, read_only=False, sortable=True)
    definition.add_property(PROPERTY_ID_ITEM_STATUS, QueryItemStatus, QueryItemStatus.NONE, read_only=True)
    return definition


@pytest.fixture
def factory() -> RecordingQueryFactory:
    return RecordingQueryFactory(make_rows())


@pytest.fixture
def definition() -> QueryDefinition:
    return make_definition()


@pytest.fixture
def definition_factory():
    return make_definition
