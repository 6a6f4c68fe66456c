"""
Reorder-point editor state machine.

    closed --open_new / open_existing / open_for_material--> editing
    editing --submit (valid, stored)--> closed, points refetched
    editing --submit (invalid or store failure)--> editing, error set
    editing --cancel--> closed, draft discarded

Nothing is written unless the whole draft validates.
"""

import logging
from enum import Enum
from typing import Callable, List, Optional, Sequence, Tuple

from stock_catalog.services.catalog_search_service import prune_tree
from stock_catalog.services.catalog_tree_service import CatalogNode, collect_leaf_codes
from stock_catalog.services.exceptions import ServiceError, ValidationError
from stock_catalog.services.reorder_point_service import (
    ReorderPointData,
    ReorderPointDraft,
    find_point_for_material,
    resolve_point_name,
    resolve_point_unit,
    validate_reorder_point,
)
from stock_catalog.views.search_debouncer import AsyncioScheduler, SearchDebouncer

logger = logging.getLogger(__name__)


class EditorMode(str, Enum):
    CLOSED = "closed"
    EDITING_NEW = "editing_new"
    EDITING_EXISTING = "editing_existing"


class SelectionState(str, Enum):
    """Checkbox state of a picker group."""

    NONE = "none"
    SOME = "some"  # indeterminate
    ALL = "all"


class ReorderPointEditor:
    """
    Create/edit dialog model for reorder points.

    Args:
        store: ReorderPointStore (list_points, upsert_point, delete_point)
        user_id: Owner of the points
        catalog: Callable returning (tree, balance rows, warehouse registry)
            of the current load, read at submit time
        on_saved: Called with the refreshed point list after a successful save
        scheduler: after/after_cancel timer source for the picker search
        on_change: Called when the settled picker query changes
    """

    def __init__(
        self,
        store,
        user_id: str,
        catalog: Callable[[], tuple],
        on_saved: Optional[Callable[[List[ReorderPointData]], None]] = None,
        scheduler=None,
        on_change: Optional[Callable[[], None]] = None,
    ):
        self._store = store
        self.user_id = user_id
        self._catalog = catalog
        self._on_saved = on_saved
        self._on_change = on_change
        self.picker_search = SearchDebouncer(
            scheduler or AsyncioScheduler(), on_change=self._picker_query_changed
        )
        self.mode = EditorMode.CLOSED
        self.draft: Optional[ReorderPointDraft] = None
        self.error: Optional[str] = None
        self.saving = False

    @property
    def is_open(self) -> bool:
        return self.mode is not EditorMode.CLOSED

    # ------------------------------------------------------------------
    # Opening
    # ------------------------------------------------------------------

    def open_new(self, item_codes: Sequence[str] = ()) -> ReorderPointDraft:
        self.draft = ReorderPointDraft(item_codes=list(item_codes))
        self.mode = EditorMode.EDITING_NEW
        self.error = None
        return self.draft

    def open_existing(self, point: ReorderPointData) -> ReorderPointDraft:
        self.draft = ReorderPointDraft.from_point(point)
        self.mode = EditorMode.EDITING_EXISTING
        self.error = None
        return self.draft

    def open_for_material(
        self, material_code: str, points: Sequence[ReorderPointData]
    ) -> ReorderPointDraft:
        """Edit the point already watching the material, or start a new one for it."""
        existing = find_point_for_material(points, material_code)
        if existing is not None:
            return self.open_existing(existing)
        return self.open_new([material_code])

    # ------------------------------------------------------------------
    # Editing
    # ------------------------------------------------------------------

    def _require_draft(self) -> ReorderPointDraft:
        if self.draft is None:
            raise ValidationError(["Reorder point editor is not open"])
        return self.draft

    def toggle_item(self, code: str) -> None:
        draft = self._require_draft()
        if code in draft.item_codes:
            draft.item_codes.remove(code)
        else:
            draft.item_codes.append(code)

    def group_state(self, group: CatalogNode) -> SelectionState:
        """How many of the group's materials the draft holds."""
        codes = collect_leaf_codes(group)
        selected = set(self.draft.item_codes) if self.draft is not None else set()
        chosen = sum(1 for code in codes if code in selected)
        if codes and chosen == len(codes):
            return SelectionState.ALL
        if chosen:
            return SelectionState.SOME
        return SelectionState.NONE

    def toggle_group(self, group: CatalogNode) -> None:
        """
        Group checkbox: a fully selected group is deselected, otherwise its
        missing materials are added.
        """
        draft = self._require_draft()
        codes = collect_leaf_codes(group)
        if self.group_state(group) is SelectionState.ALL:
            draft.item_codes[:] = [code for code in draft.item_codes if code not in codes]
            return
        for code in codes:
            if code not in draft.item_codes:
                draft.item_codes.append(code)

    def set_picker_query(self, text: str) -> None:
        self.picker_search.set_query(text)

    def picker_nodes(self, picker_tree: Sequence[CatalogNode]) -> Tuple[CatalogNode, ...]:
        """The picker tree narrowed to the settled picker query."""
        return prune_tree(picker_tree, self.picker_search.effective)

    def _picker_query_changed(self, _query: str) -> None:
        if self._on_change is not None:
            self._on_change()

    def toggle_warehouse(self, code: str) -> None:
        draft = self._require_draft()
        if code in draft.warehouse_codes:
            draft.warehouse_codes.remove(code)
        else:
            draft.warehouse_codes.append(code)

    def cancel(self) -> None:
        self.mode = EditorMode.CLOSED
        self.draft = None
        self.error = None
        self.picker_search.clear()

    # ------------------------------------------------------------------
    # Submitting
    # ------------------------------------------------------------------

    async def submit(self) -> Optional[ReorderPointData]:
        """
        Validate and store the draft.

        Returns:
            The stored point, or None when the editor stays open with ``error``
        """
        draft = self._require_draft()
        tree, rows, warehouses = self._catalog()

        try:
            validate_reorder_point(draft, warehouse_registry_size=len(warehouses))
        except ValidationError as e:
            self.error = "; ".join(e.errors)
            return None

        to_store = ReorderPointDraft(
            id=draft.id,
            item_name=resolve_point_name(draft, rows, tree),
            reorder_quantity=draft.reorder_quantity,
            unit=resolve_point_unit(draft.item_codes, rows) or draft.unit,
            item_codes=list(draft.item_codes),
            warehouse_codes=list(draft.warehouse_codes),
        )

        self.saving = True
        try:
            point = await self._store.upsert_point(self.user_id, to_store)
        except ServiceError as e:
            logger.error("Failed to save reorder point: %s", e)
            self.error = str(e)
            return None
        finally:
            self.saving = False

        self.cancel()
        try:
            points = await self._store.list_points(self.user_id)
        except ServiceError as e:
            logger.warning("Reorder point saved but refetch failed: %s", e)
        else:
            if self._on_saved is not None:
                self._on_saved(points)
        return point
