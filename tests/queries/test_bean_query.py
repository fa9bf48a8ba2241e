from dataclasses import dataclass, field
from typing import List, Optional

import pytest

from lazyquery.config import PROPERTY_ID_ITEM_STATUS
from lazyquery.core.lazy_query_view import LazyQueryView
from lazyquery.domain.definition import QueryDefinition
from lazyquery.domain.item import AttributeProperty, CompositeItem, QueryItemStatus
from lazyquery.errors import ConstructionError, UnsupportedOperationError
from lazyquery.infrastructure.queries.bean_query import (
    AbstractBeanQuery,
    AttributeRecordAdapter,
    BeanItem,
    BeanQueryFactory,
)


@dataclass
class Address:
    city: str = ""


@dataclass
class Task:
    name: str = "untitled"
    done: bool = False
    address: Address = field(default_factory=Address)


class TaskQuery(AbstractBeanQuery[Task]):
    def construct_bean(self) -> Task:
        return Task()

    @property
    def store(self) -> List[Task]:
        return self.configuration["store"]

    def size(self) -> int:
        return len(self.store)

    def load_beans(self, start_index: int, count: int) -> List[Task]:
        beans = list(self.store)
        if self.sort_property_ids:
            beans.sort(key=lambda bean: getattr(bean, self.sort_property_ids[0]), reverse=not self.ascending_states[0])
        return beans[start_index:start_index + count]

    def save_beans(self, added: List[Task], modified: List[Task], removed: List[Task]) -> None:
        self.configuration["saved"].append((added, modified, removed))
        self.store.extend(added)
        for bean in removed:
            self.store.remove(bean)


class FailingTaskQuery(TaskQuery):
    def construct_bean(self) -> Task:
        raise RuntimeError("no beans today")


@pytest.fixture
def store():
    return [Task("write", address=Address("Oslo")), Task("review"), Task("ship", done=True)]


def make_definition(composite_items: bool = False, depth: int = 1) -> QueryDefinition:
    definition = QueryDefinition(batch_size=2, composite_items=composite_items)
    definition.max_nested_property_depth = depth
    definition.add_property("name", str, "new", sortable=True)
    definition.add_property("done", bool, False)
    definition.add_property("address.city", str, "")
    definition.add_property(PROPERTY_ID_ITEM_STATUS, QueryItemStatus, QueryItemStatus.NONE, read_only=True)
    return definition


def test_adapter_binds_attributes():
    definition = make_definition()
    task = Task("write", address=Address("Oslo"))

    item = AttributeRecordAdapter().to_item(task, definition)

    assert isinstance(item, BeanItem)
    assert isinstance(item.get_item_property("name"), AttributeProperty)
    assert item["address.city"] == "Oslo"
    item["address.city"] = "Bergen"
    assert task.address.city == "Bergen"
    assert PROPERTY_ID_ITEM_STATUS not in item
    assert AttributeRecordAdapter().from_item(item) is task


def test_adapter_respects_nesting_depth():
    item = AttributeRecordAdapter().to_item(Task(), make_definition(depth=0))
    assert "address.city" not in item


def test_edits_reach_beans_through_view(store):
    saved = []
    view = LazyQueryView(make_definition(), BeanQueryFactory(TaskQuery, {"store": store, "saved": saved}))

    assert view.size() == 3
    item = view.get_item(1)
    item["done"] = True
    assert store[1].done is True
    assert item[PROPERTY_ID_ITEM_STATUS] is QueryItemStatus.MODIFIED

    view.remove_item(2)
    view.add_item()
    view.get_item(0)["name"] = "plan"
    view.commit()

    [(added, modified, removed)] = saved
    assert [bean.name for bean in added] == ["plan"]
    assert modified == [store[1]]
    assert [bean.name for bean in removed] == ["ship"]
    assert [bean.name for bean in store] == ["write", "review", "plan"]


def test_sorting_is_passed_to_query(store):
    view = LazyQueryView(make_definition(), BeanQueryFactory(TaskQuery, {"store": store}))
    view.sort(["name"], [True])
    assert [view.get_item(i)["name"] for i in range(3)] == ["review", "ship", "write"]


def test_construct_item_applies_defaults(store):
    factory = BeanQueryFactory(TaskQuery, {"store": store})
    factory.set_query_definition(make_definition())
    item = factory.construct_query([], []).construct_item()
    assert item["name"] == "new"
    assert item.bean.name == "new"
    assert item[PROPERTY_ID_ITEM_STATUS] is QueryItemStatus.NONE


def test_composite_items_wrap_bean(store):
    factory = BeanQueryFactory(TaskQuery, {"store": store})
    factory.set_query_definition(make_definition(composite_items=True))
    query = factory.construct_query([], [])

    item = query.load_items(0, 1)[0]

    assert isinstance(item, CompositeItem)
    assert item.get_item("bean").bean is store[0]
    assert item[PROPERTY_ID_ITEM_STATUS] is QueryItemStatus.NONE
    assert query.record_adapter.from_item(item) is store[0]


def test_construction_failure_is_wrapped(store):
    factory = BeanQueryFactory(FailingTaskQuery, {"store": store})
    factory.set_query_definition(make_definition())
    with pytest.raises(ConstructionError):
        factory.construct_query([], []).construct_item()


def test_bulk_delete_is_unsupported(store):
    view = LazyQueryView(make_definition(), BeanQueryFactory(TaskQuery, {"store": store}))
    with pytest.raises(UnsupportedOperationError):
        view.remove_all_items()


def test_factory_wraps_instantiation_errors():
    class NeedsMore(TaskQuery):
        def __init__(self, definition, configuration, sort_property_ids, ascending_states, extra):
            super().__init__(definition, configuration, sort_property_ids, ascending_states)

    factory = BeanQueryFactory(NeedsMore)
    factory.set_query_definition(make_definition())
    with pytest.raises(ConstructionError):
        factory.construct_query([], [])
