import logging
from typing import Any, List, Sequence

import pytest

from lazyquery.config import (
    DEBUG_PROPERTY_ID_BATCH_INDEX,
    DEBUG_PROPERTY_ID_BATCH_QUERY_TIME,
    DEBUG_PROPERTY_ID_QUERY_INDEX,
    PROPERTY_ID_ITEM_STATUS,
)
from lazyquery.core.id_lists import LazyIdList, NaturalNumbersList
from lazyquery.core.lazy_query_view import LazyQueryView
from lazyquery.domain.definition import QueryDefinition
from lazyquery.domain.filters import Equal
from lazyquery.domain.item import Item, QueryItemStatus
from lazyquery.domain.query import Query, QueryFactory
from lazyquery.domain.records import build_item
from lazyquery.errors import (
    ConstructionError,
    ItemIndexError,
    PendingChangesError,
    PersistenceError,
    ReadOnlyPropertyError,
    SortStateError,
)


class ShortQuery(Query):
    """Claims ``reported`` rows but only ever returns ``available``."""

    def __init__(self, definition: QueryDefinition, reported: int, available: int) -> None:
        self._definition = definition
        self._reported = reported
        self._available = available
        self.loaded: List[Item] = []
        self.saves: List[tuple] = []

    def size(self) -> int:
        return self._reported

    def load_items(self, start_index: int, count: int) -> List[Item]:
        end = min(start_index + count, self._available)
        items = [build_item(self._definition, {"id": i}) for i in range(start_index, end)]
        self.loaded.extend(items)
        return items

    def save_items(self, added, modified, removed) -> None:
        for item in [*modified, *removed]:
            if not any(item is loaded for loaded in self.loaded):
                raise PersistenceError(f"Item was not loaded by this query: {item!r}")
        self.saves.append((list(added), list(modified), list(removed)))

    def delete_all_items(self) -> bool:
        return False

    def construct_item(self) -> Item:
        return build_item(self._definition)


class ShortQueryFactory(QueryFactory):
    def __init__(self, reported: int, available: int) -> None:
        super().__init__()
        self._reported = reported
        self._available = available

    def construct_query(self, sort_property_ids: Sequence[Any], ascending_states: Sequence[bool]) -> Query:
        return ShortQuery(self.query_definition, self._reported, self._available)


class BrokenQuery(ShortQuery):
    def construct_item(self) -> Item:
        raise RuntimeError("no default constructor")


class BrokenQueryFactory(ShortQueryFactory):
    def construct_query(self, sort_property_ids, ascending_states) -> Query:
        return BrokenQuery(self.query_definition, self._reported, self._available)


class TestReading:
    def test_size_reads_query_once(self, definition, factory):
        view = LazyQueryView(definition, factory)
        assert view.size() == 100
        assert len(view) == 100
        assert factory.constructed == 1
        assert view.query_count == 1

    def test_batches_are_aligned(self, definition, factory):
        view = LazyQueryView(definition, factory)

        item = view.get_item(25)

        assert item["id"] == 25
        assert factory.loads == [(20, 10)]
        assert all(view.is_cached(i) for i in range(20, 30))
        assert not view.is_cached(19)

        view.get_item(29)
        view.get_item(20)
        assert factory.loads == [(20, 10)]
        assert view.batch_count == 1

    def test_last_batch_is_trimmed(self, definition_factory, factory):
        view = LazyQueryView(definition_factory(batch_size=30), factory)
        assert view.get_item(95)["id"] == 95
        assert factory.loads == [(90, 10)]

    def test_out_of_range_index(self, definition, factory):
        view = LazyQueryView(definition, factory)
        with pytest.raises(ItemIndexError):
            view.get_item(100)
        with pytest.raises(IndexError):
            view.get_item(-1)
        with pytest.raises(ItemIndexError):
            view.remove_item(100)

    def test_max_query_size_caps_size(self, definition, factory):
        definition.max_query_size = 30
        view = LazyQueryView(definition, factory)
        assert view.size() == 30
        assert view.get_item(29)["id"] == 29
        with pytest.raises(ItemIndexError):
            view.get_item(30)

    def test_cap_applies_to_a_live_view(self, definition, factory):
        view = LazyQueryView(definition, factory)
        ids = view.get_item_id_list()
        assert view.size() == 100

        definition.max_query_size = 10

        assert view.size() == 10
        assert len(view.get_item_id_list()) == 10
        assert view.get_item_id_list() is not ids
        with pytest.raises(ItemIndexError):
            view.get_item(10)
        assert factory.constructed == 1

    def test_definition_is_bound_to_factory(self, definition, factory):
        LazyQueryView(definition, factory)
        assert factory.query_definition is definition

    def test_short_result_is_padded_with_removed_rows(self, definition_factory):
        definition = definition_factory()
        view = LazyQueryView(definition, ShortQueryFactory(reported=10, available=7))

        padded = view.get_item(8)

        assert padded["id"] is None
        assert padded[PROPERTY_ID_ITEM_STATUS] is QueryItemStatus.REMOVED
        assert len(view.get_removed_items()) == 3
        assert view.get_item(6)[PROPERTY_ID_ITEM_STATUS] is QueryItemStatus.NONE

    def test_commit_after_short_batch_skips_padding(self, definition_factory):
        definition = definition_factory()
        view = LazyQueryView(definition, ShortQueryFactory(reported=10, available=7))
        edited = view.get_item(0)
        edited["name"] = "renamed"
        view.remove_item(1)
        padded = view.get_item(8)

        view.commit()

        added, modified, removed = view._get_query().saves[-1]
        assert added == []
        assert modified == [edited]
        assert len(removed) == 1 and removed[0]["id"] == 1
        assert all(item is not padded for item in removed)
        assert not view.is_modified()
        assert padded[PROPERTY_ID_ITEM_STATUS] is QueryItemStatus.NONE

    def test_debug_properties(self, definition_factory, factory):
        definition = definition_factory()
        definition.add_property(DEBUG_PROPERTY_ID_QUERY_INDEX, int, 0, read_only=True)
        definition.add_property(DEBUG_PROPERTY_ID_BATCH_INDEX, int, 0, read_only=True)
        definition.add_property(DEBUG_PROPERTY_ID_BATCH_QUERY_TIME, int, 0, read_only=True)
        view = LazyQueryView(definition, factory)

        first = view.get_item(0)
        second = view.get_item(10)

        assert first[DEBUG_PROPERTY_ID_QUERY_INDEX] == 1
        assert first[DEBUG_PROPERTY_ID_BATCH_INDEX] == 0
        assert second[DEBUG_PROPERTY_ID_BATCH_INDEX] == 1
        assert first[DEBUG_PROPERTY_ID_BATCH_QUERY_TIME] >= 0
        assert not view.is_modified()


class TestCache:
    def test_cache_stays_within_bound(self, definition, factory):
        view = LazyQueryView(definition, factory, max_cache_size=20)
        for index in range(100):
            assert view.get_item(index)["id"] == index
            assert view.cache_size <= 20

    def test_modified_rows_are_pinned(self, definition, factory):
        view = LazyQueryView(definition, factory, max_cache_size=10)
        edited = view.get_item(0)
        edited["name"] = "changed"

        for index in range(10, 60):
            view.get_item(index)
            assert view.cache_size <= 10

        assert view.is_cached(0)
        assert view.get_item(0) is edited
        assert (0, 10) not in factory.loads[1:]

    def test_all_pinned_cache_may_exceed_bound(self, definition, factory):
        view = LazyQueryView(definition, factory, max_cache_size=10)
        for index in range(10):
            view.get_item(index)["priority"] = 9

        view.max_cache_size = 5

        assert view.cache_size == 10

    def test_requested_row_is_returned_when_batch_exceeds_cache(self, definition, factory):
        view = LazyQueryView(definition, factory, max_cache_size=3)
        assert view.get_item(7)["id"] == 7
        assert view.cache_size == 3
        assert view.is_cached(7)

    def test_reload_keeps_cached_rows(self, definition, factory):
        view = LazyQueryView(definition, factory, max_cache_size=5)
        first = view.get_item(0)
        first["name"] = "changed"

        view.get_item(1)

        assert factory.loads == [(0, 10), (0, 10)]
        assert view.get_item(0) is first
        assert view.get_item(0)["name"] == "changed"

    def test_negative_cache_size_is_rejected(self, definition, factory):
        view = LazyQueryView(definition, factory)
        with pytest.raises(ValueError):
            view.max_cache_size = -1


class TestBufferedChanges:
    def test_added_rows_come_first(self, definition, factory):
        view = LazyQueryView(definition, factory)

        assert view.add_item() == 0

        assert view.size() == 101
        added = view.get_item(0)
        assert added[PROPERTY_ID_ITEM_STATUS] is QueryItemStatus.ADDED
        assert view.get_item(1)["id"] == 0
        assert view.is_cached(1)
        assert view.get_item_status(added) is QueryItemStatus.ADDED

    def test_commit_saves_added_rows_in_insertion_order(self, definition, factory):
        view = LazyQueryView(definition, factory)
        for name in ("a", "b", "c"):
            view.add_item()
            view.get_item(0)["name"] = name

        assert [view.get_item(i)["name"] for i in range(3)] == ["c", "b", "a"]
        view.commit()

        added, modified, removed = factory.saves[0]
        assert [item["name"] for item in added] == ["a", "b", "c"]
        assert modified == [] and removed == []
        assert [row["name"] for row in factory.rows[-3:]] == ["a", "b", "c"]
        assert not view.is_modified()
        assert all(item[PROPERTY_ID_ITEM_STATUS] is QueryItemStatus.NONE for item in added)

    def test_edits_mark_rows_modified_once(self, definition, factory):
        view = LazyQueryView(definition, factory)
        item = view.get_item(3)

        item["name"] = "first"
        item["name"] = "second"

        assert item[PROPERTY_ID_ITEM_STATUS] is QueryItemStatus.MODIFIED
        assert view.get_modified_items() == (item,)
        assert view.is_modified()

        view.commit()

        assert factory.saves == [([], [item], [])]
        assert factory.rows[3]["name"] == "second"
        assert item[PROPERTY_ID_ITEM_STATUS] is QueryItemStatus.NONE
        assert view.get_modified_items() == ()

    def test_setting_same_value_is_not_a_modification(self, definition, factory):
        view = LazyQueryView(definition, factory)
        view.get_item(3)["name"] = "task 3"
        assert not view.is_modified()

    def test_edits_to_added_rows_are_not_recorded_as_modified(self, definition, factory):
        view = LazyQueryView(definition, factory)
        view.add_item()
        view.get_item(0)["name"] = "new"
        assert view.get_modified_items() == ()
        assert view.get_item(0)[PROPERTY_ID_ITEM_STATUS] is QueryItemStatus.ADDED

    def test_remove_freezes_row(self, definition, factory):
        view = LazyQueryView(definition, factory)
        view.remove_item(5)
        view.remove_item(5)

        item = view.get_item(5)
        assert item[PROPERTY_ID_ITEM_STATUS] is QueryItemStatus.REMOVED
        assert view.get_removed_items() == (item,)
        assert item.get_item_property("name").read_only
        with pytest.raises(ReadOnlyPropertyError):
            item["name"] = "late edit"

    def test_commit_removes_rows_and_refresh_shows_it(self, definition, factory):
        view = LazyQueryView(definition, factory)
        view.remove_item(5)

        view.commit()

        assert 5 not in [row["id"] for row in factory.rows]
        assert view.size() == 100
        view.refresh()
        assert view.size() == 99
        assert view.get_item(5)["id"] == 6

    def test_removed_row_is_not_saved_as_modified(self, definition, factory):
        view = LazyQueryView(definition, factory)
        item = view.get_item(2)
        item["name"] = "edited"
        view.remove_item(2)

        view.commit()

        assert factory.saves == [([], [], [item])]

    def test_added_then_removed_row_is_never_saved(self, definition, factory):
        view = LazyQueryView(definition, factory)
        view.add_item()
        view.remove_item(0)

        view.commit()

        assert factory.saves == [([], [], [])]
        assert len(factory.rows) == 100

    def test_discard_restores_state(self, definition, factory):
        view = LazyQueryView(definition, factory)
        edited = view.get_item(1)
        edited["name"] = "edited"
        removed = view.get_item(2)
        view.remove_item(2)
        view.add_item()

        view.discard()

        assert not view.is_modified()
        assert view.size() == 100
        assert factory.saves == []
        assert edited[PROPERTY_ID_ITEM_STATUS] is QueryItemStatus.NONE
        assert removed[PROPERTY_ID_ITEM_STATUS] is QueryItemStatus.NONE
        assert removed.get_item_property("name").read_only is False
        assert removed.get_item_property("id").read_only is True
        assert view.get_item_status(removed) is QueryItemStatus.NONE

    def test_failed_commit_keeps_buffers(self, definition, factory):
        view = LazyQueryView(definition, factory)
        item = view.get_item(4)
        item["name"] = "edited"
        factory.fail_save = True

        with pytest.raises(PersistenceError):
            view.commit()

        assert view.is_modified()
        assert view.get_modified_items() == (item,)
        assert item[PROPERTY_ID_ITEM_STATUS] is QueryItemStatus.MODIFIED
        assert factory.rows[4]["name"] == "task 4"

    def test_remove_all_items_bypasses_buffers(self, definition, factory):
        view = LazyQueryView(definition, factory)
        view.get_item(0)
        view.add_item()

        assert view.remove_all_items() is True

        assert factory.rows == []
        assert view.cache_size == 0
        assert len(view.get_added_items()) == 1
        assert view.size() == 1

    def test_construction_failure_is_wrapped(self, definition_factory):
        view = LazyQueryView(definition_factory(), BrokenQueryFactory(reported=0, available=0))
        with pytest.raises(ConstructionError) as excinfo:
            view.add_item()
        assert isinstance(excinfo.value.__cause__, RuntimeError)


class TestSortAndRefresh:
    def test_sort_requeries_once(self, definition, factory):
        view = LazyQueryView(definition, factory)
        view.get_item(0)
        view.get_item(50)
        queries, loads = view.query_count, len(factory.loads)

        view.sort(["priority"], [False])
        item = view.get_item(0)

        assert view.query_count == queries + 1
        assert factory.loads[loads:] == [(0, 10)]
        assert item["priority"] == 4
        assert item["id"] == 4
        assert view.sort_state == (("priority",), (False,))
        assert definition.sort_property_ids == ("priority",)
        assert view.batch_count == 1

    def test_sort_validation(self, definition, factory):
        view = LazyQueryView(definition, factory)
        with pytest.raises(SortStateError):
            view.sort(["id", "priority"], [True])
        with pytest.raises(SortStateError):
            view.sort(["name"], [True])
        assert view.sort_state == ((), ())

    def test_default_sort_applies_without_sort_state(self, definition, factory):
        definition.set_default_sort_state(["id"], [False])
        view = LazyQueryView(definition, factory)
        assert view.get_item(0)["id"] == 99

    def test_refresh_discards_changes_with_warning(self, definition, factory, caplog):
        view = LazyQueryView(definition, factory)
        view.get_item(0)["name"] = "edited"

        with caplog.at_level(logging.WARNING, logger="lazyquery.core.lazy_query_view"):
            view.sort(["id"], [True])

        assert not view.is_modified()
        assert "discards pending changes" in caplog.text
        assert factory.saves == []

    def test_refresh_can_refuse_to_discard(self, definition, factory):
        view = LazyQueryView(definition, factory, discard_on_refresh=False)
        view.get_item(0)["name"] = "edited"
        flt = Equal("priority", 1)

        with pytest.raises(PendingChangesError):
            view.refresh()
        with pytest.raises(PendingChangesError):
            view.sort(["id"], [False])
        with pytest.raises(PendingChangesError):
            view.add_filter(flt)

        assert view.sort_state == ((), ())
        assert view.get_filters() == []
        assert view.is_modified()

        view.commit()
        view.refresh()
        assert view.size() == 100

    def test_refresh_unsubscribes_cached_rows(self, definition, factory):
        view = LazyQueryView(definition, factory)
        item = view.get_item(0)
        view.refresh()
        item["name"] = "edited after refresh"
        assert not view.is_modified()


class TestFiltersAndIds:
    def test_filters_trigger_requery(self, definition, factory):
        view = LazyQueryView(definition, factory)
        assert view.size() == 100
        flt = Equal("priority", 1)

        view.add_filter(flt)

        assert view.get_filters() == [flt]
        assert view.size() == 20
        assert view.query_count == 2
        assert view.get_item(0)["id"] == 1

        view.remove_filter(flt)
        assert view.size() == 100

        view.add_filter(flt)
        view.remove_filters()
        assert view.get_filters() == []
        assert view.size() == 100

    def test_default_filters(self, definition, factory):
        view = LazyQueryView(definition, factory)
        flt = Equal("priority", 0)
        view.add_default_filter(flt)
        assert view.get_default_filters() == [flt]
        assert view.size() == 20
        view.remove_default_filter(flt)
        assert view.size() == 100

    def test_natural_number_ids_without_id_property(self, definition, factory):
        view = LazyQueryView(definition, factory)
        ids = view.get_item_id_list()
        assert isinstance(ids, NaturalNumbersList)
        assert len(ids) == 100

        view.add_item()
        assert len(view.get_item_id_list()) == 101

    def test_lazy_ids_with_id_property(self, definition_factory, factory):
        view = LazyQueryView(definition_factory(id_property_id="id"), factory)
        ids = view.get_item_id_list()
        assert isinstance(ids, LazyIdList)
        assert ids[42] == 42
        assert ids.index_of(42) == 42

        view.add_item()
        assert view.get_item_id_list() is ids
        assert ids.index_of(42) == 43
