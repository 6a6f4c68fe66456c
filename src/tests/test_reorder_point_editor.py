"""Tests for the reorder-point editor state machine."""

import pytest

from stock_catalog.services.catalog_tree_service import (
    CatalogGroup,
    CatalogMaterial,
    find_by_code,
    flatten,
)
from stock_catalog.services.exceptions import FetchFailure
from stock_catalog.services.reorder_point_service import ReorderPointData
from stock_catalog.views.reorder_point_editor import EditorMode, ReorderPointEditor, SelectionState


class FakeReorderPointStore:
    """In-memory ReorderPointStore."""

    def __init__(self):
        self.points = []
        self.fail = False
        self._next_id = 1

    async def list_points(self, user_id):
        return list(self.points)

    async def upsert_point(self, user_id, draft):
        if self.fail:
            raise FetchFailure("reorder points", "store unavailable")
        point_id = draft.id or self._next_id
        self._next_id += 1
        point = ReorderPointData(
            id=point_id,
            item_name=draft.item_name,
            reorder_quantity=float(draft.reorder_quantity),
            unit=draft.unit,
            is_group=len(draft.item_codes) > 1,
            item_codes=tuple(draft.item_codes),
            warehouse_codes=tuple(draft.warehouse_codes),
        )
        self.points = [p for p in self.points if p.id != point_id] + [point]
        return point

    async def delete_point(self, user_id, point_id):
        self.points = [p for p in self.points if p.id != point_id]
        return 1


@pytest.fixture
def store():
    return FakeReorderPointStore()


@pytest.fixture
def saved():
    return []


@pytest.fixture
def editor(store, saved, sample_tree, sample_warehouses, scheduler):
    rows = flatten(sample_tree)
    return ReorderPointEditor(
        store,
        "u1",
        catalog=lambda: (sample_tree, rows, sample_warehouses),
        on_saved=saved.append,
        scheduler=scheduler,
    )


class TestOpening:
    def test_starts_closed(self, editor):
        assert editor.mode is EditorMode.CLOSED
        assert not editor.is_open

    def test_open_for_unwatched_material_starts_new(self, editor):
        draft = editor.open_for_material("M1", [])
        assert editor.mode is EditorMode.EDITING_NEW
        assert draft.item_codes == ["M1"]

    def test_open_for_watched_material_edits_existing(self, editor):
        point = ReorderPointData(id=5, item_name="Kit", reorder_quantity=2, item_codes=("M1", "M2"))
        draft = editor.open_for_material("M2", [point])
        assert editor.mode is EditorMode.EDITING_EXISTING
        assert draft.id == 5

    def test_toggle_group_adds_leaves(self, editor, sample_tree):
        editor.open_new()
        editor.toggle_group(find_by_code(sample_tree, "G2"))
        assert editor.draft.item_codes == ["M3", "M4"]

    def test_toggle_fully_selected_group_clears_it(self, editor, sample_tree):
        paints = find_by_code(sample_tree, "G2")
        editor.open_new(["M1"])

        editor.toggle_group(paints)
        editor.toggle_group(paints)

        assert editor.draft.item_codes == ["M1"]
        assert editor.group_state(paints) is SelectionState.NONE

    def test_toggle_partial_group_adds_missing(self, editor, sample_tree):
        paints = find_by_code(sample_tree, "G2")
        editor.open_new(["M4"])
        assert editor.group_state(paints) is SelectionState.SOME

        editor.toggle_group(paints)

        assert editor.draft.item_codes == ["M4", "M3"]
        assert editor.group_state(paints) is SelectionState.ALL

    def test_nested_group_state(self, editor, sample_tree):
        editor.open_new(["M3"])
        assert editor.group_state(find_by_code(sample_tree, "G3")) is SelectionState.ALL
        assert editor.group_state(find_by_code(sample_tree, "G2")) is SelectionState.SOME
        assert editor.group_state(find_by_code(sample_tree, "G1")) is SelectionState.NONE

    def test_toggle_item_and_warehouse(self, editor):
        editor.open_new(["M1"])
        editor.toggle_item("M1")
        editor.toggle_warehouse("000000007")
        assert editor.draft.item_codes == []
        assert editor.draft.warehouse_codes == ["000000007"]

    def test_cancel_discards_draft(self, editor, store):
        editor.open_new(["M1"])
        editor.cancel()
        assert editor.draft is None
        assert not editor.is_open
        assert store.points == []


class TestPickerSearch:
    def test_query_applies_after_debounce(self, editor, sample_tree, scheduler):
        editor.open_new()
        editor.set_picker_query("primer")

        assert editor.picker_nodes(sample_tree) == sample_tree
        scheduler.advance(500)

        nodes = editor.picker_nodes(sample_tree)
        assert [n.code for n in nodes] == ["G2"]
        assert [n.code for n in nodes[0].children] == ["G3"]
        assert [n.code for n in nodes[0].children[0].children] == ["M3"]

    def test_matches_codes(self, editor, sample_tree, scheduler):
        editor.open_new()
        editor.set_picker_query("m5")
        scheduler.advance(500)
        assert [n.code for n in editor.picker_nodes(sample_tree)] == ["G4"]

    def test_empty_groups_dropped(self, editor):
        tree = (
            CatalogGroup(code="G1", name="Empty"),
            CatalogGroup(code="G2", name="Bolts", children=(CatalogMaterial(code="M1", name="M8"),)),
        )
        editor.open_new()
        assert [n.code for n in editor.picker_nodes(tree)] == ["G2"]

    def test_toggle_group_on_filtered_branch_selects_visible_leaves(self, editor, sample_tree, scheduler):
        editor.open_new()
        editor.set_picker_query("primer")
        scheduler.advance(500)

        editor.toggle_group(editor.picker_nodes(sample_tree)[0])

        assert editor.draft.item_codes == ["M3"]

    def test_cancel_clears_query(self, editor, sample_tree, scheduler):
        editor.open_new()
        editor.set_picker_query("primer")
        scheduler.advance(500)

        editor.cancel()

        assert editor.picker_search.effective == ""
        assert editor.picker_nodes(sample_tree) == sample_tree


class TestSubmit:
    @pytest.mark.asyncio
    async def test_valid_submit_saves_and_closes(self, editor, store, saved):
        draft = editor.open_new(["M1"])
        draft.reorder_quantity = "5"
        draft.warehouse_codes = ["000000007"]

        point = await editor.submit()

        assert point.item_name == "Copper wire"
        assert point.unit == "kg"
        assert editor.mode is EditorMode.CLOSED
        assert saved == [[point]]

    @pytest.mark.asyncio
    async def test_invalid_submit_stays_open(self, editor, store):
        editor.open_new(["M1"])
        editor.draft.reorder_quantity = "0"

        assert await editor.submit() is None

        assert editor.is_open
        assert "positive" in editor.error
        assert store.points == []

    @pytest.mark.asyncio
    async def test_warehouse_required_when_registry_loaded(self, editor):
        editor.open_new(["M1"])
        editor.draft.reorder_quantity = 3
        assert await editor.submit() is None
        assert "warehouse" in editor.error

    @pytest.mark.asyncio
    async def test_store_failure_keeps_editor_open(self, editor, store):
        editor.open_new(["M1"])
        editor.draft.reorder_quantity = 3
        editor.draft.warehouse_codes = ["000000007"]
        store.fail = True

        assert await editor.submit() is None

        assert editor.is_open
        assert "store unavailable" in editor.error
        assert not editor.saving

    @pytest.mark.asyncio
    async def test_group_point_uses_entered_name(self, editor):
        editor.open_new(["M1", "M2"])
        editor.draft.item_name = "Metals"
        editor.draft.reorder_quantity = 10
        editor.draft.warehouse_codes = ["000000007"]

        point = await editor.submit()

        assert point.item_name == "Metals"
        assert point.is_group
