"""
Reorder Point Service - stock thresholds over materials and material groups.

A reorder point watches the stock of one material, or the summed stock of
several materials, optionally counted on selected warehouses only. It is
triggered when that stock is at or below its reorder quantity.

Quantities are computed from the flattened balance rows of the current
catalog load and the warehouse registry, independent of any navigation or
search state of the views.

Session Management Pattern:
- All public store functions accept session=None parameter
- If session provided, use it directly
- If session is None, create a new session via session_scope()
"""

import asyncio
import logging
import math
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Iterable, List, Optional, Sequence, Set, Tuple

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from stock_catalog import models
from stock_catalog.services.catalog_tree_service import (
    CatalogNode,
    FlatBalanceRow,
    Warehouse,
    build_warehouse_code_to_name,
    require_by_code,
)
from stock_catalog.services.database import session_scope
from stock_catalog.services.exceptions import (
    CatalogNodeNotFound,
    DatabaseError,
    FetchFailure,
    ReorderPointNotFound,
    ValidationError,
)
from stock_catalog.services.logging_utils import get_service_logger, log_operation
from stock_catalog.utils.collation import collation_key

logger = get_service_logger(__name__)


# ============================================================================
# Types
# ============================================================================


class ReorderState(str, Enum):
    """Classification of a point by the sign of current - threshold."""

    HEALTHY = "healthy"
    AT_THRESHOLD = "at_threshold"
    TRIGGERED = "triggered"

    @property
    def is_triggered(self) -> bool:
        """At-threshold counts as triggered."""
        return self is not ReorderState.HEALTHY


@dataclass(frozen=True)
class ReorderPointData:
    """
    A stored reorder point.

    Attributes:
        id: Store identifier
        item_name: Display name
        reorder_quantity: Threshold (> 0)
        unit: Unit of measure, optional
        is_group: True when several materials are summed
        item_codes: Watched material codes (exactly one unless is_group)
        warehouse_codes: Warehouse codes to count; empty means all warehouses
    """

    id: Optional[int]
    item_name: str
    reorder_quantity: float
    unit: Optional[str] = None
    is_group: bool = False
    item_codes: Tuple[str, ...] = ()
    warehouse_codes: Tuple[str, ...] = ()

    @classmethod
    def from_model(cls, row: models.ReorderPoint) -> "ReorderPointData":
        return cls(
            id=row.id,
            item_name=row.item_name,
            reorder_quantity=float(row.reorder_quantity),
            unit=row.unit,
            is_group=bool(row.is_group),
            item_codes=tuple(row.codes),
            warehouse_codes=tuple(str(code) for code in (row.warehouse_codes or [])),
        )


@dataclass
class ReorderPointDraft:
    """
    Editable, not yet validated reorder point as entered by the user.

    reorder_quantity is kept as entered (string or number) until validation.
    """

    id: Optional[int] = None
    item_name: str = ""
    reorder_quantity: Any = None
    unit: Optional[str] = None
    item_codes: List[str] = field(default_factory=list)
    warehouse_codes: List[str] = field(default_factory=list)

    @classmethod
    def from_point(cls, point: ReorderPointData) -> "ReorderPointDraft":
        return cls(
            id=point.id,
            item_name=point.item_name,
            reorder_quantity=point.reorder_quantity,
            unit=point.unit,
            item_codes=list(point.item_codes),
            warehouse_codes=list(point.warehouse_codes),
        )


@dataclass(frozen=True)
class ReorderStatus:
    """Evaluation of one point against the current balances."""

    point: ReorderPointData
    current_quantity: float
    diff: float
    state: ReorderState

    @property
    def is_triggered(self) -> bool:
        return self.state.is_triggered


# ============================================================================
# Monitoring
# ============================================================================


def allowed_warehouse_names(
    warehouse_codes: Iterable[str], warehouses: Iterable[Warehouse]
) -> Optional[Set[str]]:
    """
    Resolve a point's warehouse codes to the warehouse names used by balances.

    Returns:
        Set of allowed names, or None when every warehouse counts: either no
        codes were selected, or none of them resolved (fail-open, so registry
        drift never reports a false shortage)
    """
    codes = [str(code) for code in warehouse_codes or ()]
    if not codes:
        return None
    code_to_name = build_warehouse_code_to_name(warehouses)
    names = {code_to_name[code] for code in codes if code in code_to_name}
    if not names:
        log_operation(
            logger,
            operation="resolve_warehouses",
            outcome="unresolved_fail_open",
            level=logging.WARNING,
            warehouse_codes=codes,
        )
        return None
    return names


def current_quantity(
    point: ReorderPointData,
    rows: Iterable[FlatBalanceRow],
    warehouses: Iterable[Warehouse],
) -> float:
    """
    Stock currently counted by ``point``.

    Sums quantity over the balance rows of every watched item code, limited
    to the point's warehouses (see allowed_warehouse_names()).
    """
    allowed = allowed_warehouse_names(point.warehouse_codes, warehouses)
    codes = set(point.item_codes)
    return sum(
        row.quantity
        for row in rows
        if row.code in codes and (allowed is None or row.warehouse_name.strip() in allowed)
    )


def classify(diff: float) -> ReorderState:
    """healthy if diff > 0, at threshold if diff == 0, triggered if diff < 0."""
    if diff > 0:
        return ReorderState.HEALTHY
    if diff == 0:
        return ReorderState.AT_THRESHOLD
    return ReorderState.TRIGGERED


def evaluate_point(
    point: ReorderPointData,
    rows: Sequence[FlatBalanceRow],
    warehouses: Sequence[Warehouse],
) -> ReorderStatus:
    """Compute current quantity, diff and state of one point."""
    quantity = current_quantity(point, rows, warehouses)
    diff = quantity - point.reorder_quantity
    return ReorderStatus(point=point, current_quantity=quantity, diff=diff, state=classify(diff))


def evaluate_points(
    points: Iterable[ReorderPointData],
    rows: Sequence[FlatBalanceRow],
    warehouses: Sequence[Warehouse],
) -> List[ReorderStatus]:
    """evaluate_point() for every point, input order kept."""
    return [evaluate_point(point, rows, warehouses) for point in points]


def triggered_count(
    points: Iterable[ReorderPointData],
    rows: Sequence[FlatBalanceRow],
    warehouses: Sequence[Warehouse],
) -> int:
    """KPI: number of points with diff <= 0."""
    return sum(1 for status in evaluate_points(points, rows, warehouses) if status.is_triggered)


def reorder_alerts(
    points: Iterable[ReorderPointData],
    rows: Sequence[FlatBalanceRow],
    warehouses: Sequence[Warehouse],
) -> List[ReorderStatus]:
    """
    Triggered points only, ordered by item name.

    Feeds the notification badge: stock at or below the threshold.
    """
    alerts = [status for status in evaluate_points(points, rows, warehouses) if status.is_triggered]
    alerts.sort(key=lambda status: collation_key(status.point.item_name))
    log_operation(
        logger,
        operation="reorder_alerts",
        outcome="success",
        level=logging.DEBUG,
        alert_count=len(alerts),
    )
    return alerts


# ============================================================================
# Validation and Naming
# ============================================================================


def parse_quantity(value: Any) -> Optional[float]:
    """Parse an entered quantity; None when it is not a finite number."""
    if value is None or isinstance(value, bool):
        return None
    try:
        quantity = float(str(value).strip().replace(",", ".")) if isinstance(value, str) else float(value)
    except (TypeError, ValueError):
        return None
    if math.isnan(quantity) or math.isinf(quantity):
        return None
    return quantity


def validate_reorder_point(draft: ReorderPointDraft, warehouse_registry_size: int = 0) -> float:
    """
    Check a draft before submission.

    Rules:
        - quantity must be a positive number
        - at least one item code must be selected
        - once warehouses exist, at least one must be selected
        - a point over several items needs a name

    Args:
        draft: The entered point
        warehouse_registry_size: Number of known warehouses

    Returns:
        The parsed reorder quantity

    Raises:
        ValidationError: Listing every failed rule
    """
    errors = []

    quantity = parse_quantity(draft.reorder_quantity)
    if quantity is None or quantity <= 0:
        errors.append("Reorder quantity must be a positive number")

    codes = [code for code in draft.item_codes or [] if code]
    if not codes:
        errors.append("Select at least one material")

    if warehouse_registry_size > 0 and not [c for c in draft.warehouse_codes or [] if c]:
        errors.append("Select at least one warehouse to monitor")

    if len(codes) > 1 and not (draft.item_name or "").strip():
        errors.append("A reorder point over several materials needs a name")

    if errors:
        raise ValidationError(errors)
    return quantity


def display_name_for_code(nodes: Sequence[CatalogNode], code: str) -> str:
    """Name of the catalog node ``code``, or the raw code when it is gone."""
    try:
        return require_by_code(nodes, code).name
    except CatalogNodeNotFound:
        return code


def resolve_point_name(
    draft: ReorderPointDraft,
    rows: Sequence[FlatBalanceRow],
    nodes: Sequence[CatalogNode],
) -> str:
    """
    Display name stored with a point.

    Several codes: the entered name. A single code: the material name from
    the balance rows, else from the tree, else the raw code.
    """
    item_codes = [code for code in draft.item_codes if code]
    if len(item_codes) != 1:
        return (draft.item_name or "").strip()
    code = item_codes[0]
    for row in rows:
        if row.code == code and row.name:
            return row.name
    return display_name_for_code(nodes, code)


def resolve_point_unit(item_codes: Sequence[str], rows: Sequence[FlatBalanceRow]) -> Optional[str]:
    """Unit of the first selected material, if any row carries one."""
    if not item_codes:
        return None
    for row in rows:
        if row.code == item_codes[0]:
            return row.unit or None
    return None


def find_point_for_material(
    points: Iterable[ReorderPointData], material_code: str
) -> Optional[ReorderPointData]:
    """The first point already watching ``material_code``, if any."""
    for point in points:
        if material_code in point.item_codes:
            return point
    return None


# ============================================================================
# Store
# ============================================================================


def _run(session: Optional[Session], impl, operation: str):
    try:
        if session is not None:
            return impl(session)
        with session_scope() as session:
            return impl(session)
    except SQLAlchemyError as e:
        log_operation(logger, operation=operation, outcome="error", level=logging.ERROR, error=str(e))
        raise DatabaseError(f"{operation} failed", original_error=e) from e


def list_reorder_points(user_id: str, session: Optional[Session] = None) -> List[ReorderPointData]:
    """All reorder points of ``user_id``, ordered by item name."""

    def _impl(session):
        rows = (
            session.query(models.ReorderPoint)
            .filter(models.ReorderPoint.user_id == user_id)
            .all()
        )
        points = [ReorderPointData.from_model(row) for row in rows]
        points.sort(key=lambda point: collation_key(point.item_name))
        return points

    return _run(session, _impl, "list_reorder_points")


def get_reorder_point(
    user_id: str, point_id: int, session: Optional[Session] = None
) -> ReorderPointData:
    """
    Get one point of ``user_id`` by ID.

    Raises:
        ReorderPointNotFound: If the point doesn't exist for this user
    """

    def _impl(session):
        row = (
            session.query(models.ReorderPoint)
            .filter(models.ReorderPoint.id == point_id, models.ReorderPoint.user_id == user_id)
            .first()
        )
        if row is None:
            raise ReorderPointNotFound(point_id)
        return ReorderPointData.from_model(row)

    return _run(session, _impl, "get_reorder_point")


def upsert_reorder_point(
    user_id: str, draft: ReorderPointDraft, session: Optional[Session] = None
) -> ReorderPointData:
    """
    Create or update a reorder point.

    With draft.id the point is updated. Without an id, a single-material
    point replaces the user's existing single point for the same material;
    anything else is inserted.

    Args:
        user_id: Opaque user identity
        draft: Point to store; item_name must already be resolved
        session: Optional SQLAlchemy session

    Returns:
        The stored point

    Raises:
        ValidationError: If the draft breaks a rule or has no name
        ReorderPointNotFound: If draft.id doesn't exist for this user
    """
    quantity = validate_reorder_point(draft)
    item_name = (draft.item_name or "").strip()
    if not item_name:
        raise ValidationError(["Reorder point name is required"])

    codes = list(dict.fromkeys(str(code) for code in draft.item_codes if code))
    warehouse_codes = list(dict.fromkeys(str(code) for code in draft.warehouse_codes or [] if code))
    is_group = len(codes) > 1
    values = {
        "item_name": item_name,
        "reorder_quantity": quantity,
        "unit": draft.unit or None,
        "is_group": is_group,
        "item_code": "" if is_group else codes[0],
        "item_codes": codes if is_group else None,
        "warehouse_codes": warehouse_codes or None,
    }

    def _impl(session):
        row = None
        if draft.id is not None:
            row = (
                session.query(models.ReorderPoint)
                .filter(
                    models.ReorderPoint.id == draft.id,
                    models.ReorderPoint.user_id == user_id,
                )
                .first()
            )
            if row is None:
                raise ReorderPointNotFound(draft.id)
        elif not is_group:
            row = (
                session.query(models.ReorderPoint)
                .filter(
                    models.ReorderPoint.user_id == user_id,
                    models.ReorderPoint.item_code == codes[0],
                    models.ReorderPoint.is_group.is_(False),
                )
                .first()
            )

        created = row is None
        if created:
            row = models.ReorderPoint(user_id=user_id, **values)
            session.add(row)
        else:
            row.update_from_dict(values)
        session.flush()
        return created, ReorderPointData.from_model(row)

    created, point = _run(session, _impl, "upsert_reorder_point")
    log_operation(
        logger,
        operation="upsert_reorder_point",
        outcome="created" if created else "updated",
        point_id=point.id,
        is_group=point.is_group,
        item_count=len(point.item_codes),
    )
    return point


def delete_reorder_point(
    user_id: str,
    point_id: Optional[int] = None,
    item_code: Optional[str] = None,
    session: Optional[Session] = None,
) -> int:
    """
    Delete a point by ID, or the single-material point(s) for ``item_code``.

    Deleting something that doesn't exist is not an error.

    Returns:
        Number of deleted points

    Raises:
        ValidationError: If neither point_id nor item_code is given
    """
    if point_id is None and not item_code:
        raise ValidationError(["Point ID or material code is required"])

    def _impl(session):
        query = session.query(models.ReorderPoint).filter(models.ReorderPoint.user_id == user_id)
        if point_id is not None:
            query = query.filter(models.ReorderPoint.id == point_id)
        else:
            query = query.filter(models.ReorderPoint.item_code == item_code)
        return query.delete(synchronize_session=False)

    deleted = _run(session, _impl, "delete_reorder_point")
    log_operation(
        logger,
        operation="delete_reorder_point",
        outcome="success",
        point_id=point_id,
        item_code=item_code,
        deleted=deleted,
    )
    return deleted


class SqlReorderPointStore:
    """
    Reorder-point store for the async view layer, backed by the SQL database.

    Store failures surface as FetchFailure; ValidationError and
    ReorderPointNotFound pass through unchanged.
    """

    source = "reorder points"

    async def _call(self, func, *args, **kwargs):
        try:
            return await asyncio.to_thread(func, *args, **kwargs)
        except DatabaseError as e:
            raise FetchFailure(self.source, str(e)) from e

    async def list_points(self, user_id: str) -> List[ReorderPointData]:
        return await self._call(list_reorder_points, user_id)

    async def upsert_point(self, user_id: str, draft: ReorderPointDraft) -> ReorderPointData:
        return await self._call(upsert_reorder_point, user_id, draft)

    async def delete_point(self, user_id: str, point_id: int) -> int:
        return await self._call(delete_reorder_point, user_id, point_id=point_id)
