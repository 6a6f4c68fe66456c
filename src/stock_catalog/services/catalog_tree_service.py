"""
Catalog tree service for the in-memory group/material hierarchy.

The catalog is fetched from the ERP as one nested tree per load and is never
mutated afterwards: a refetch replaces it wholesale. This module holds the
tree types and every traversal the views need (flattening into balance rows,
lookups by code, leaf collection) so the view layer stays thin.

Nodes carry no parent pointers. Ancestry is always derived from an explicit
drill path kept by the caller (see views.navigation_state).
"""

from dataclasses import dataclass, field
from typing import (
    Any,
    ClassVar,
    Dict,
    Iterable,
    Iterator,
    List,
    Mapping,
    Optional,
    Sequence,
    Tuple,
    Union,
)

from stock_catalog.services.exceptions import CatalogNodeNotFound, ValidationError
from stock_catalog.utils.collation import collation_key
from stock_catalog.utils.constants import MAIN_WAREHOUSE_CODE


# ============================================================================
# Types
# ============================================================================


@dataclass(frozen=True)
class WarehouseBalance:
    """Stock of one material on one warehouse, identified by warehouse name."""

    warehouse_name: str
    quantity: float


@dataclass(frozen=True)
class CatalogMaterial:
    """Leaf node: a stock-keeping material with its per-warehouse balances."""

    code: str
    name: str
    unit: str = ""
    balances: Tuple[WarehouseBalance, ...] = ()

    is_group: ClassVar[bool] = False


@dataclass(frozen=True)
class CatalogGroup:
    """Inner node: a named group of child groups and materials."""

    code: str
    name: str
    children: Tuple["CatalogNode", ...] = field(default_factory=tuple)

    is_group: ClassVar[bool] = True


CatalogNode = Union[CatalogGroup, CatalogMaterial]


@dataclass(frozen=True)
class Warehouse:
    """Registry entry correlating a warehouse code with its display name."""

    code: str
    name: str


@dataclass(frozen=True)
class FlatBalanceRow:
    """One (material x warehouse) row of the flattened balance table."""

    code: str
    name: str
    unit: str
    quantity: float
    warehouse_name: str


# ============================================================================
# Traversal
# ============================================================================


def iter_materials(nodes: Iterable[CatalogNode]) -> Iterator[CatalogMaterial]:
    """Yield every material depth-first, left-to-right over input order."""
    for node in nodes:
        if node.is_group:
            yield from iter_materials(node.children)
        else:
            yield node


def flatten(nodes: Iterable[CatalogNode]) -> List[FlatBalanceRow]:
    """
    Flatten a catalog tree into balance rows.

    Emits one row per balance entry of every material, or a single
    zero-quantity row with an empty warehouse name for a material without
    balances. Order is depth-first over input order; callers sort.

    Args:
        nodes: Root level of the tree (or any subtree level)

    Returns:
        List of FlatBalanceRow
    """
    rows: List[FlatBalanceRow] = []
    for material in iter_materials(nodes):
        if material.balances:
            for balance in material.balances:
                rows.append(
                    FlatBalanceRow(
                        code=material.code,
                        name=material.name,
                        unit=material.unit,
                        quantity=balance.quantity,
                        warehouse_name=balance.warehouse_name,
                    )
                )
        else:
            rows.append(
                FlatBalanceRow(
                    code=material.code,
                    name=material.name,
                    unit=material.unit,
                    quantity=0.0,
                    warehouse_name="",
                )
            )
    return rows


def total_quantity(rows: Iterable[FlatBalanceRow], material_code: str) -> float:
    """Sum of quantity over every row of ``material_code``, all warehouses."""
    return sum(row.quantity for row in rows if row.code == material_code)


def build_totals(rows: Iterable[FlatBalanceRow]) -> Dict[str, float]:
    """
    Map every material code to its total quantity over all warehouses.

    Equivalent to calling total_quantity() for each code, in one pass.
    """
    totals: Dict[str, float] = {}
    for row in rows:
        totals[row.code] = totals.get(row.code, 0.0) + row.quantity
    return totals


def count_leaves(nodes: Iterable[CatalogNode]) -> int:
    """Number of materials in the tree (catalog-size KPI)."""
    return sum(1 for _ in iter_materials(nodes))


def find_by_code(nodes: Iterable[CatalogNode], code: str) -> Optional[CatalogNode]:
    """
    Depth-first search for the first node whose code equals ``code``.

    Codes are unique across the tree; if they are not, the first match in
    depth-first order is authoritative.

    Returns:
        The matching group or material, or None
    """
    for node in nodes:
        if node.code == code:
            return node
        if node.is_group:
            found = find_by_code(node.children, code)
            if found is not None:
                return found
    return None


def require_by_code(nodes: Iterable[CatalogNode], code: str) -> CatalogNode:
    """
    Like find_by_code() but raises when nothing matches.

    Raises:
        CatalogNodeNotFound: If no node has this code
    """
    node = find_by_code(nodes, code)
    if node is None:
        raise CatalogNodeNotFound(code)
    return node


def collect_leaf_codes(subtree: Union[CatalogNode, Iterable[CatalogNode]]) -> List[str]:
    """
    Return all material codes under a node (or a level of nodes).

    A material passed directly yields its own code. Used to resolve
    "select entire group" in the reorder-point picker.
    """
    if isinstance(subtree, (CatalogGroup, CatalogMaterial)):
        subtree = [subtree]
    return [material.code for material in iter_materials(subtree) if material.code]


def sort_tree(nodes: Iterable[CatalogNode]) -> Tuple[CatalogNode, ...]:
    """Return a copy of the tree with every level sorted by name (Russian collation)."""
    ordered = sorted(nodes, key=lambda node: collation_key(node.name))
    return tuple(
        CatalogGroup(code=node.code, name=node.name, children=sort_tree(node.children))
        if node.is_group
        else node
        for node in ordered
    )


def picker_subtree(nodes: Sequence[CatalogNode], root_code: str) -> Tuple[CatalogNode, ...]:
    """
    Children of the group ``root_code``, sorted for display.

    The reorder-point picker shows only the branch holding stock materials,
    starting directly at its subgroups. Unknown codes (or a material code)
    give an empty picker.
    """
    root = find_by_code(nodes, root_code)
    if root is None or not root.is_group:
        return ()
    return sort_tree(root.children)


# ============================================================================
# Warehouses
# ============================================================================


def build_warehouse_code_to_name(warehouses: Iterable[Warehouse]) -> Dict[str, str]:
    """
    Map warehouse codes to names.

    Balances reference warehouses by name while reorder points store codes,
    so this map is the only bridge between them. Entries without a code or a
    name are skipped; names are stripped.
    """
    mapping: Dict[str, str] = {}
    for warehouse in warehouses:
        code = str(warehouse.code or "")
        name = str(warehouse.name or "").strip()
        if code and name:
            mapping[code] = name
    return mapping


def _strip_leading_zeros(code: str) -> str:
    return code.lstrip("0") or code


def find_warehouse_name(
    warehouses: Iterable[Warehouse], code: str = MAIN_WAREHOUSE_CODE
) -> Optional[str]:
    """
    Name of the warehouse with ``code``, comparing codes without leading zeros.

    Returns:
        Stripped warehouse name, or None if absent or unnamed
    """
    wanted = _strip_leading_zeros(code)
    for warehouse in warehouses:
        if _strip_leading_zeros(str(warehouse.code or "")) == wanted:
            name = str(warehouse.name or "").strip()
            return name or None
    return None


def restrict_tree_to_warehouse(
    nodes: Iterable[CatalogNode], warehouse_name: str
) -> Tuple[CatalogNode, ...]:
    """
    Project the tree onto a single warehouse.

    Every material keeps exactly one balance entry holding its summed stock
    on ``warehouse_name`` (zero when it has none there). This is the
    "available balance" view, where only the main warehouse counts.
    """
    restricted: List[CatalogNode] = []
    for node in nodes:
        if node.is_group:
            restricted.append(
                CatalogGroup(
                    code=node.code,
                    name=node.name,
                    children=restrict_tree_to_warehouse(node.children, warehouse_name),
                )
            )
            continue
        quantity = sum(
            balance.quantity
            for balance in node.balances
            if balance.warehouse_name.strip() == warehouse_name
        )
        balances = (WarehouseBalance(warehouse_name, quantity),) if warehouse_name else ()
        restricted.append(
            CatalogMaterial(code=node.code, name=node.name, unit=node.unit, balances=balances)
        )
    return tuple(restricted)


# ============================================================================
# Decoding
# ============================================================================

# ERP field names (1C-style) and their neutral equivalents
_ERP_CODE = "Код"
_ERP_NAME = "Наименование"
_ERP_IS_GROUP = "ЭтоГруппа"
_ERP_UNIT = "ЕдиницаИзмерения"
_ERP_CHILDREN = "Дети"
_ERP_BALANCES = "Остатки"
_ERP_WAREHOUSE = "Склад"
_ERP_QUANTITY = "Количество"


def _pick(raw: Mapping[str, Any], *keys: str, default: Any = None) -> Any:
    for key in keys:
        if key in raw and raw[key] is not None:
            return raw[key]
    return default


def _to_quantity(value: Any) -> float:
    try:
        return float(value or 0)
    except (TypeError, ValueError):
        raise ValidationError([f"Invalid balance quantity: {value!r}"])


def _unwrap(payload: Any) -> Any:
    if isinstance(payload, Mapping) and "data" in payload:
        return payload["data"]
    return payload


def _parse_node(raw: Mapping[str, Any]) -> CatalogNode:
    if not isinstance(raw, Mapping):
        raise ValidationError([f"Catalog node must be an object, got {type(raw).__name__}"])

    code = str(_pick(raw, _ERP_CODE, "code", default=""))
    name = str(_pick(raw, _ERP_NAME, "name", default="") or code)
    is_group = _pick(raw, _ERP_IS_GROUP, "is_group")
    if is_group is None:
        is_group = raw.get("type") == "group"

    if is_group:
        children = _pick(raw, _ERP_CHILDREN, "children", default=[])
        return CatalogGroup(
            code=code, name=name, children=tuple(_parse_node(child) for child in children)
        )

    balances = tuple(
        WarehouseBalance(
            warehouse_name=str(_pick(entry, _ERP_WAREHOUSE, "warehouse", "warehouse_name", default="")),
            quantity=_to_quantity(_pick(entry, _ERP_QUANTITY, "quantity", default=0)),
        )
        for entry in _pick(raw, _ERP_BALANCES, "balances", default=[])
    )
    return CatalogMaterial(
        code=code,
        name=name,
        unit=str(_pick(raw, _ERP_UNIT, "unit", default="")),
        balances=balances,
    )


def parse_catalog(payload: Any) -> Tuple[CatalogNode, ...]:
    """
    Decode the ERP catalog JSON into an immutable tree.

    Accepts the ERP encoding (``ЭтоГруппа`` / ``Дети`` / ``Остатки``) and the
    neutral one (``is_group`` or ``type: "group"`` / ``children`` /
    ``balances``), optionally wrapped as ``{"data": [...]}``. A material's
    name falls back to its code.

    Raises:
        ValidationError: If the payload is not a list of node objects
    """
    payload = _unwrap(payload)
    if payload is None:
        return ()
    if not isinstance(payload, list):
        raise ValidationError(["Catalog payload must be a list of nodes"])
    return tuple(_parse_node(raw) for raw in payload)


def parse_warehouses(payload: Any) -> Tuple[Warehouse, ...]:
    """Decode the warehouse registry (``[{Код, Наименование}]`` or ``[{code, name}]``)."""
    payload = _unwrap(payload)
    if not isinstance(payload, list):
        return ()
    return tuple(
        Warehouse(
            code=str(_pick(raw, _ERP_CODE, "code", default="")),
            name=str(_pick(raw, _ERP_NAME, "name", default="")),
        )
        for raw in payload
        if isinstance(raw, Mapping)
    )
