"""
Database models package.

SQLAlchemy ORM models backing the preference and reorder-point store.
The catalog tree itself is never persisted: it is fetched from the ERP on
every load.
"""

from .base import Base, BaseModel
from .material_group_preference import MaterialGroupPreference
from .material_preference import MaterialPreference
from .search_exclusion import SearchExclusion
from .reorder_point import ReorderPoint

__all__ = [
    "Base",
    "BaseModel",
    "MaterialGroupPreference",
    "MaterialPreference",
    "SearchExclusion",
    "ReorderPoint",
]
