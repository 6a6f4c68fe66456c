"""
Drill-down navigation over the catalog tree.

The tree has no parent pointers, so ancestry lives here as an explicit
drill path: the groups entered from the root, in order. Search does not
touch the path; while a search is active the breadcrumb shows a search
marker instead, and the path is back as soon as the search is cleared.
"""

from dataclasses import dataclass
from typing import List, Mapping, Optional, Sequence, Tuple

from stock_catalog.services.catalog_tree_service import CatalogGroup, CatalogNode
from stock_catalog.services.exceptions import ValidationError
from stock_catalog.utils.collation import collation_key


@dataclass(frozen=True)
class Breadcrumb:
    """What the breadcrumb bar shows: the search marker or the path names."""

    is_search: bool
    names: Tuple[str, ...] = ()


class NavigationState:
    """Current drill path through the catalog."""

    def __init__(self):
        self._drill_path: Tuple[CatalogGroup, ...] = ()

    @property
    def drill_path(self) -> Tuple[CatalogGroup, ...]:
        return self._drill_path

    @property
    def current_group(self) -> Optional[CatalogGroup]:
        return self._drill_path[-1] if self._drill_path else None

    @property
    def is_home(self) -> bool:
        return not self._drill_path

    def current_level(self, roots: Sequence[CatalogNode]) -> Tuple[CatalogNode, ...]:
        """Children of the innermost drilled group, or the roots."""
        if self._drill_path:
            return tuple(self._drill_path[-1].children)
        return tuple(roots)

    def drill_into(self, node: CatalogNode) -> None:
        """
        Enter a group.

        Raises:
            ValidationError: If ``node`` is a material
        """
        if not node.is_group:
            raise ValidationError([f"Cannot drill into material '{node.code}'"])
        self._drill_path = self._drill_path + (node,)

    def drill_to(self, index: int) -> None:
        """Keep the path up to and including ``index``; -1 goes home."""
        if index < 0:
            self._drill_path = ()
        else:
            self._drill_path = self._drill_path[: index + 1]

    def go_home(self) -> None:
        self._drill_path = ()

    def breadcrumb(self, search_active: bool) -> Breadcrumb:
        if search_active:
            return Breadcrumb(is_search=True)
        return Breadcrumb(is_search=False, names=tuple(group.name for group in self._drill_path))


def order_level(
    nodes: Sequence[CatalogNode],
    overlay,
    totals: Optional[Mapping[str, float]] = None,
    show_hidden_groups: bool = False,
    show_zero_balances: bool = True,
) -> List[CatalogNode]:
    """
    Filter and sort one level of the tree for display.

    Hidden groups are dropped unless ``show_hidden_groups``. With ``totals``
    given, materials without stock are dropped unless ``show_zero_balances``;
    groups are never filtered by stock. Order: groups before materials,
    favorites first, then name in Russian collation.

    Args:
        nodes: The level to show (NavigationState.current_level())
        overlay: Provides is_hidden_group / is_favorite_group / is_favorite_material
        totals: Material code -> total quantity, for views with balances
        show_hidden_groups: Include groups the user has hidden
        show_zero_balances: Include materials with zero total stock
    """
    visible = []
    for node in nodes:
        if node.is_group:
            if overlay.is_hidden_group(node.code) and not show_hidden_groups:
                continue
        elif totals is not None and not show_zero_balances:
            if totals.get(node.code, 0.0) <= 0:
                continue
        visible.append(node)

    def sort_key(node: CatalogNode):
        if node.is_group:
            favorite = overlay.is_favorite_group(node.code)
        else:
            favorite = overlay.is_favorite_material(node.code)
        return (0 if node.is_group else 1, 0 if favorite else 1, collation_key(node.name))

    return sorted(visible, key=sort_key)
