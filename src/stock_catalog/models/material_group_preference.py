"""
MaterialGroupPreference model for per-user catalog group flags.

A group can be marked as favorite (sorted first in its level) or hidden
(left out of drill-down listings). A hidden group is never a favorite.
"""

from sqlalchemy import Boolean, Column, Index, String, UniqueConstraint

from .base import BaseModel


class MaterialGroupPreference(BaseModel):
    """
    Favorite/hidden flags for one catalog group of one user in one section.

    Attributes:
        user_id: Opaque identity of the owning user
        section: View section the flags belong to ("balance" or "nomenclature")
        group_code: Catalog group code (join key into the ERP tree)
        favorite: Group is pinned to the top of its level
        hidden: Group is left out of drill-down listings
    """

    __tablename__ = "material_group_preferences"

    user_id = Column(String(100), nullable=False)
    section = Column(String(50), nullable=False)
    group_code = Column(String(100), nullable=False)
    favorite = Column(Boolean, nullable=False, default=False)
    hidden = Column(Boolean, nullable=False, default=False)

    __table_args__ = (
        UniqueConstraint("user_id", "group_code", "section", name="uq_group_pref_user_code_section"),
        Index("idx_group_pref_user_section", "user_id", "section"),
    )

    def __repr__(self) -> str:
        return (
            f"MaterialGroupPreference(group_code='{self.group_code}', "
            f"favorite={self.favorite}, hidden={self.hidden})"
        )
