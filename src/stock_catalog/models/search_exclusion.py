"""
SearchExclusion model: top-level groups a user keeps out of search results.
"""

from sqlalchemy import Column, Index, String

from .base import BaseModel


class SearchExclusion(BaseModel):
    """
    One excluded top-level group code.

    The full set for (user_id, section) is always replaced at once, so rows
    are never updated in place.
    """

    __tablename__ = "search_exclusions"

    user_id = Column(String(100), nullable=False)
    section = Column(String(50), nullable=False)
    group_code = Column(String(100), nullable=False)

    __table_args__ = (Index("idx_search_exclusion_user_section", "user_id", "section"),)

    def __repr__(self) -> str:
        return f"SearchExclusion(section='{self.section}', group_code='{self.group_code}')"
