"""
Catalog browser: the state behind the balance and nomenclature views.

Composes the catalog source, the preference overlay, navigation, debounced
search and the reorder-point monitor into one object a UI can render. All
collaborator calls are coroutines; everything derived from the loaded data
(listings, totals, KPIs) is computed synchronously on demand.

A failed load never wipes what is already shown: the error is recorded in
``error`` and ``notifications`` and the previous tree, registry and
preferences stay in place.
"""

import asyncio
import logging
from typing import Callable, Dict, List, Optional, Sequence, Tuple

from stock_catalog.services.catalog_search_service import (
    is_search_active,
    rank_results,
    search,
)
from stock_catalog.services.catalog_tree_service import (
    CatalogNode,
    FlatBalanceRow,
    Warehouse,
    build_totals,
    count_leaves,
    find_by_code,
    find_warehouse_name,
    flatten,
    picker_subtree,
    restrict_tree_to_warehouse,
)
from stock_catalog.services.exceptions import CatalogNodeNotFound, FetchFailure
from stock_catalog.services.reorder_point_service import (
    ReorderPointData,
    ReorderStatus,
    reorder_alerts,
    triggered_count,
)
from stock_catalog.utils.constants import (
    MATERIALS_GROUP_CODE,
    MIN_SEARCH_LENGTH,
    SEARCH_DEBOUNCE_MS,
    SECTION_BALANCE,
)
from stock_catalog.utils.option_accumulator import OptionAccumulator
from stock_catalog.views.navigation_state import Breadcrumb, NavigationState, order_level
from stock_catalog.views.preference_overlay import PreferenceOverlay
from stock_catalog.views.reorder_point_editor import ReorderPointEditor
from stock_catalog.views.search_debouncer import AsyncioScheduler, SearchDebouncer

logger = logging.getLogger(__name__)


class CatalogBrowser:
    """
    Browsing state for one user in one section.

    Args:
        source: CatalogSource (fetch_catalog / fetch_warehouses coroutines)
        preferences_store: PreferencesStore for the overlay
        reorder_store: ReorderPointStore; None disables the monitor
        user_id: Opaque user identity
        section: "balance" or "nomenclature"
        scheduler: after/after_cancel timer source for the search debounce
        main_warehouse_only: Show the "available balance" projection, where
            only the main warehouse's stock counts
        on_change: Called whenever displayed state changes
    """

    def __init__(
        self,
        source,
        preferences_store,
        reorder_store=None,
        user_id: str = "",
        section: str = SECTION_BALANCE,
        scheduler=None,
        main_warehouse_only: bool = False,
        on_change: Optional[Callable[[], None]] = None,
    ):
        self._source = source
        self._reorder_store = reorder_store
        self.user_id = user_id
        self.section = section
        self.main_warehouse_only = main_warehouse_only
        self._on_change = on_change

        scheduler = scheduler or AsyncioScheduler()
        self.overlay = PreferenceOverlay(preferences_store, user_id, section)
        self.navigation = NavigationState()
        self.debouncer = SearchDebouncer(
            scheduler,
            delay_ms=SEARCH_DEBOUNCE_MS,
            on_change=lambda _query: self._notify(),
        )
        self.editor = ReorderPointEditor(
            reorder_store,
            user_id,
            catalog=lambda: (self._raw_tree, self._rows, self.warehouses),
            on_saved=self._set_reorder_points,
            scheduler=scheduler,
            on_change=self._notify,
        )
        self.warehouse_options = OptionAccumulator(key=lambda row: row.warehouse_name or None)

        self._raw_tree: Tuple[CatalogNode, ...] = ()
        self._tree: Tuple[CatalogNode, ...] = ()
        self._rows: List[FlatBalanceRow] = []
        self._totals: Dict[str, float] = {}
        self.warehouses: Tuple[Warehouse, ...] = ()
        self.reorder_points: List[ReorderPointData] = []

        self.show_hidden_groups = False
        self.show_zero_balances = True
        self.loading = False
        self.error: Optional[str] = None
        self.notifications: List[str] = []
        self._request_seq = 0

    # ------------------------------------------------------------------
    # Loading
    # ------------------------------------------------------------------

    async def activate(self) -> None:
        """Enter the view: load preferences, catalog, registry and points."""
        self.warehouse_options.reset()
        await asyncio.gather(
            self.load_preferences(),
            self.load_catalog(),
            self.load_warehouses(),
            self.load_reorder_points(),
        )

    async def load_preferences(self) -> bool:
        try:
            await self.overlay.load()
        except FetchFailure as e:
            self._report(e)
            return False
        self._notify()
        return True

    async def load_catalog(self) -> bool:
        """
        Fetch the catalog tree.

        Each call takes a new request id; a response that arrives after a
        newer request was issued is dropped.

        Returns:
            True if this response was applied
        """
        self._request_seq += 1
        request_id = self._request_seq
        self.loading = True

        try:
            tree = await self._source.fetch_catalog()
        except FetchFailure as e:
            if request_id == self._request_seq:
                self.loading = False
                self._report(e)
            return False

        if request_id != self._request_seq:
            logger.warning(
                "Dropping stale catalog response %d (latest request is %d)",
                request_id,
                self._request_seq,
            )
            return False

        self.loading = False
        self.error = None
        self._raw_tree = tuple(tree)
        self._rows = flatten(self._raw_tree)
        self.warehouse_options.add(self._rows)
        self._rebuild_display_tree()
        self._notify()
        return True

    async def load_warehouses(self) -> bool:
        try:
            warehouses = await self._source.fetch_warehouses()
        except FetchFailure as e:
            self._report(e)
            return False
        self.warehouses = tuple(warehouses)
        self._rebuild_display_tree()
        self._notify()
        return True

    async def load_reorder_points(self) -> bool:
        if self._reorder_store is None:
            return False
        try:
            points = await self._reorder_store.list_points(self.user_id)
        except FetchFailure as e:
            self._report(e)
            return False
        self._set_reorder_points(points)
        return True

    async def refresh(self) -> None:
        """Poll the ERP again; preferences are not reloaded."""
        await asyncio.gather(self.load_catalog(), self.load_warehouses())

    def _set_reorder_points(self, points: Sequence[ReorderPointData]) -> None:
        self.reorder_points = list(points)
        self._notify()

    def _rebuild_display_tree(self) -> None:
        tree = self._raw_tree
        if self.main_warehouse_only:
            main_name = find_warehouse_name(self.warehouses)
            if main_name:
                tree = restrict_tree_to_warehouse(tree, main_name)
        self._tree = tree
        self._totals = build_totals(flatten(tree))

    def _report(self, error: FetchFailure) -> None:
        logger.error("%s", error)
        self.error = str(error)
        self.notifications.append(str(error))
        self._notify()

    def dismiss_notifications(self) -> None:
        self.notifications.clear()

    def _notify(self) -> None:
        if self._on_change is not None:
            self._on_change()

    # ------------------------------------------------------------------
    # Data access
    # ------------------------------------------------------------------

    @property
    def tree(self) -> Tuple[CatalogNode, ...]:
        """The tree as displayed (main-warehouse projection when enabled)."""
        return self._tree

    @property
    def rows(self) -> List[FlatBalanceRow]:
        """Balance rows over all warehouses; the reorder monitor reads these."""
        return self._rows

    @property
    def totals(self) -> Optional[Dict[str, float]]:
        """Code -> displayed total stock; None in the nomenclature section."""
        if self.section != SECTION_BALANCE:
            return None
        return self._totals

    @property
    def min_search_length(self) -> int:
        return MIN_SEARCH_LENGTH.get(self.section, 1)

    # ------------------------------------------------------------------
    # Search
    # ------------------------------------------------------------------

    def set_query(self, text: str) -> None:
        self.debouncer.set_query(text)

    def clear_search(self) -> None:
        self.debouncer.clear()

    @property
    def search_active(self) -> bool:
        return is_search_active(self.debouncer.effective, self.min_search_length)

    def search_results(self) -> Optional[List[CatalogNode]]:
        """Ranked results for the effective query, or None without a search."""
        results = search(
            self._tree,
            self.debouncer.effective,
            excluded_top_level_codes=self.overlay.excluded_codes,
            min_length=self.min_search_length,
        )
        if results is None:
            return None
        totals = self.totals
        if totals is not None and not self.show_zero_balances:
            results = [material for material in results if totals.get(material.code, 0.0) > 0]
        return rank_results(
            results,
            self.debouncer.effective,
            totals=totals,
            favorite_materials=self.overlay.favorite_material_codes,
        )

    # ------------------------------------------------------------------
    # Navigation
    # ------------------------------------------------------------------

    def listing(self) -> List[CatalogNode]:
        """What the main list shows: search results, or the current level."""
        results = self.search_results()
        if results is not None:
            return results
        return order_level(
            self.navigation.current_level(self._tree),
            self.overlay,
            totals=self.totals,
            show_hidden_groups=self.show_hidden_groups,
            show_zero_balances=self.show_zero_balances,
        )

    def drill_into(self, code: str) -> None:
        """
        Enter the group ``code`` of the current level.

        Raises:
            CatalogNodeNotFound: If the code is not on the current level
            ValidationError: If the code is a material
        """
        level = self.navigation.current_level(self._tree)
        node = next((node for node in level if node.code == code), None)
        if node is None:
            raise CatalogNodeNotFound(code)
        self.navigation.drill_into(node)
        self._notify()

    def drill_to(self, index: int) -> None:
        self.navigation.drill_to(index)
        self._notify()

    def go_home(self) -> None:
        """Back to the roots; also ends any search."""
        self.navigation.go_home()
        self.debouncer.clear()
        self._notify()

    def breadcrumb(self) -> Breadcrumb:
        return self.navigation.breadcrumb(self.search_active)

    def set_show_hidden_groups(self, value: bool) -> None:
        self.show_hidden_groups = value
        self._notify()

    def set_show_zero_balances(self, value: bool) -> None:
        self.show_zero_balances = value
        self._notify()

    def find(self, code: str) -> Optional[CatalogNode]:
        return find_by_code(self._tree, code)

    # ------------------------------------------------------------------
    # Reorder points
    # ------------------------------------------------------------------

    def picker_tree(self, root_code: str = MATERIALS_GROUP_CODE) -> Tuple[CatalogNode, ...]:
        """The reorder-point picker branch, narrowed by the editor's picker search."""
        return self.editor.picker_nodes(picker_subtree(self._raw_tree, root_code))

    def open_reorder_editor(self, material_code: str) -> None:
        self.editor.open_for_material(material_code, self.reorder_points)
        self._notify()

    @property
    def leaf_count(self) -> int:
        return count_leaves(self._raw_tree)

    @property
    def triggered_count(self) -> int:
        return triggered_count(self.reorder_points, self._rows, self.warehouses)

    def reorder_alerts(self) -> List[ReorderStatus]:
        return reorder_alerts(self.reorder_points, self._rows, self.warehouses)
