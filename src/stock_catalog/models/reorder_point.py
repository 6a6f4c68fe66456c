"""
ReorderPoint model for stock threshold monitoring.

A reorder point watches one material (single point) or the summed stock of
several materials (group point), optionally restricted to a list of
warehouse codes. It is triggered once the watched stock falls to or below
reorder_quantity.
"""

from sqlalchemy import (
    JSON,
    Boolean,
    CheckConstraint,
    Column,
    Float,
    Index,
    String,
)

from .base import BaseModel


class ReorderPoint(BaseModel):
    """
    ReorderPoint model.

    Attributes:
        user_id: Opaque identity of the owning user
        item_code: Material code for single points, "" for group points
        item_name: Display name of the point
        reorder_quantity: Threshold quantity (> 0)
        unit: Unit of measure copied from the first material, optional
        is_group: True when the point aggregates several materials
        item_codes: Material codes of a group point (None for single points)
        warehouse_codes: Warehouse codes to count (None = all warehouses)
    """

    __tablename__ = "reorder_points"

    user_id = Column(String(100), nullable=False)
    item_code = Column(String(100), nullable=False, default="")
    item_name = Column(String(500), nullable=False)
    reorder_quantity = Column(Float, nullable=False)
    unit = Column(String(50), nullable=True)
    is_group = Column(Boolean, nullable=False, default=False)
    item_codes = Column(JSON, nullable=True)
    warehouse_codes = Column(JSON, nullable=True)

    __table_args__ = (
        CheckConstraint("reorder_quantity > 0", name="ck_reorder_point_quantity_positive"),
        Index("idx_reorder_point_user", "user_id"),
        Index("idx_reorder_point_user_item", "user_id", "item_code"),
    )

    @property
    def codes(self) -> list:
        """Material codes watched by this point, for single and group points alike."""
        if self.is_group and self.item_codes:
            return [str(code) for code in self.item_codes]
        return [self.item_code] if self.item_code else []

    def __repr__(self) -> str:
        return f"ReorderPoint(id={self.id}, item_name='{self.item_name}')"
