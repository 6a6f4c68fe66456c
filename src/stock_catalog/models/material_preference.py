"""
MaterialPreference model for per-user favorite materials.
"""

from sqlalchemy import Boolean, Column, Index, String, UniqueConstraint

from .base import BaseModel


class MaterialPreference(BaseModel):
    """
    Favorite flag for one material of one user in one section.

    Materials are never hidden, so favorite is the only flag.
    """

    __tablename__ = "material_preferences"

    user_id = Column(String(100), nullable=False)
    section = Column(String(50), nullable=False)
    material_code = Column(String(100), nullable=False)
    favorite = Column(Boolean, nullable=False, default=False)

    __table_args__ = (
        UniqueConstraint(
            "user_id", "material_code", "section", name="uq_material_pref_user_code_section"
        ),
        Index("idx_material_pref_user_section", "user_id", "section"),
    )

    def __repr__(self) -> str:
        return f"MaterialPreference(material_code='{self.material_code}', favorite={self.favorite})"
