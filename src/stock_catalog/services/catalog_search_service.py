"""
Catalog search service: substring search across the tree plus result ranking.

Search walks the whole tree regardless of the current drill path and returns
materials only. Ranking is a separate step so views without balance context
(the nomenclature view) can skip the stock key.
"""

import logging
import re
from typing import Collection, Iterable, List, Mapping, Optional, Sequence, Tuple

from stock_catalog.services.catalog_tree_service import (
    CatalogGroup,
    CatalogMaterial,
    CatalogNode,
    iter_materials,
)
from stock_catalog.services.logging_utils import get_service_logger, log_operation
from stock_catalog.utils.collation import collation_key, contains_casefold

logger = get_service_logger(__name__)

_NUMERIC_QUERY = re.compile(r"^\d+$")


def normalize_query(query: Optional[str]) -> str:
    """Strip surrounding whitespace; None becomes an empty query."""
    return (query or "").strip()


def is_search_active(query: Optional[str], min_length: int = 1) -> bool:
    """
    Whether ``query`` starts a search.

    Anything shorter than ``min_length`` (after stripping) means "no active
    search", which is different from a search with zero results.
    """
    normalized = normalize_query(query)
    return bool(normalized) and len(normalized) >= max(min_length, 1)


def matches(material: CatalogMaterial, query: str) -> bool:
    """Case-insensitive substring match of ``query`` against name or code."""
    return contains_casefold(material.name, query) or contains_casefold(material.code, query)


def search(
    nodes: Sequence[CatalogNode],
    query: Optional[str],
    excluded_top_level_codes: Collection[str] = (),
    min_length: int = 1,
) -> Optional[List[CatalogMaterial]]:
    """
    Find materials whose name or code contains ``query``.

    Top-level groups listed in ``excluded_top_level_codes`` are skipped with
    their whole subtree; the same codes deeper in the tree have no effect.
    Hidden groups are not excluded from search.

    Args:
        nodes: Root level of the catalog tree
        query: Raw query text
        excluded_top_level_codes: Top-level group codes to skip
        min_length: Minimum stripped query length for an active search

    Returns:
        None when no search is active, otherwise the matching materials in
        tree order (possibly empty)
    """
    if not is_search_active(query, min_length):
        return None

    needle = normalize_query(query)
    excluded = set(excluded_top_level_codes or ())
    roots = [node for node in nodes if not (node.is_group and node.code in excluded)]
    results = [material for material in iter_materials(roots) if matches(material, needle)]

    log_operation(
        logger,
        operation="search",
        outcome="success",
        level=logging.DEBUG,
        query=needle,
        result_count=len(results),
        excluded_count=len(excluded),
    )
    return results


def rank_results(
    results: Iterable[CatalogMaterial],
    query: Optional[str],
    totals: Optional[Mapping[str, float]] = None,
    favorite_materials: Collection[str] = (),
) -> List[CatalogMaterial]:
    """
    Order search results for display.

    Keys, each only breaking ties of the previous one:
        1. materials with stock (total > 0) first - only when ``totals`` is given
        2. favorite materials first
        3. for purely numeric queries, a match in the name beats a code-only match
        4. name in Russian collation order

    Args:
        results: Materials returned by search()
        query: The query that produced them
        totals: Material code -> total quantity, for views with balance context
        favorite_materials: Codes of the user's favorite materials

    Returns:
        New sorted list; the sort is stable
    """
    needle = normalize_query(query)
    numeric = bool(_NUMERIC_QUERY.match(needle))
    favorites = set(favorite_materials or ())

    def sort_key(material: CatalogMaterial):
        key = []
        if totals is not None:
            key.append(0 if totals.get(material.code, 0.0) > 0 else 1)
        key.append(0 if material.code in favorites else 1)
        if numeric:
            key.append(0 if contains_casefold(material.name, needle) else 1)
        key.append(collation_key(material.name))
        return tuple(key)

    return sorted(results, key=sort_key)


def prune_tree(nodes: Sequence[CatalogNode], query: Optional[str]) -> Tuple[CatalogNode, ...]:
    """
    Keep the materials matching ``query`` and the groups that still hold one.

    Used by the reorder-point picker, which filters its tree in place
    instead of switching to a flat result list. Level order is preserved.
    Groups without any material left are dropped, with or without a query.
    """
    needle = normalize_query(query)
    kept: List[CatalogNode] = []
    for node in nodes:
        if node.is_group:
            children = prune_tree(node.children, needle)
            if children:
                kept.append(CatalogGroup(code=node.code, name=node.name, children=children))
        elif node.code and (not needle or matches(node, needle)):
            kept.append(node)
    return tuple(kept)
