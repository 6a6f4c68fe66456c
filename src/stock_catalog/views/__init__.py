"""View-state package.

UI-independent state behind the catalog screens: navigation, debounced
search, the optimistic preference overlay, the reorder-point editor and the
browser that composes them.
"""

from .catalog_browser import CatalogBrowser
from .navigation_state import Breadcrumb, NavigationState, order_level
from .preference_overlay import FailedWrite, PreferenceOverlay
from .reorder_point_editor import EditorMode, ReorderPointEditor, SelectionState
from .search_debouncer import AsyncioScheduler, SearchDebouncer

__all__ = [
    "CatalogBrowser",
    "Breadcrumb",
    "NavigationState",
    "order_level",
    "FailedWrite",
    "PreferenceOverlay",
    "EditorMode",
    "ReorderPointEditor",
    "SelectionState",
    "AsyncioScheduler",
    "SearchDebouncer",
]
