"""
Preferences Service - per-user display preferences for catalog views.

Stores three kinds of preferences per (user, section):
- group preferences: favorite / hidden flags of catalog groups
- material preferences: favorite flag of materials
- search exclusions: top-level groups skipped by search

Preferences only affect ordering and drill-down visibility; they never
filter balances. A hidden group is never a favorite: hiding a group clears
its favorite flag in the same write, and favoriting a hidden group is
rejected.

Session Management Pattern:
- All public functions accept session=None parameter
- If session provided, use it directly
- If session is None, create a new session via session_scope()

Usage:
    from stock_catalog.services.preferences_service import (
        get_all_preferences,
        set_group_preference,
    )

    snapshot = get_all_preferences("user-1", "balance")
    set_group_preference("user-1", "00000001", "balance", hidden=True)
"""

import asyncio
import logging
from dataclasses import dataclass, field
from typing import Dict, FrozenSet, Iterable, List, Optional

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from stock_catalog import models
from stock_catalog.services.database import session_scope
from stock_catalog.services.exceptions import DatabaseError, FetchFailure, ValidationError
from stock_catalog.services.logging_utils import get_service_logger, log_operation
from stock_catalog.utils.constants import VALID_SECTIONS

logger = get_service_logger(__name__)


# ============================================================================
# Types
# ============================================================================


@dataclass(frozen=True)
class GroupPreference:
    """Favorite/hidden flags of one group. hidden implies not favorite."""

    favorite: bool = False
    hidden: bool = False


@dataclass(frozen=True)
class MaterialPreference:
    """Favorite flag of one material."""

    favorite: bool = False


@dataclass(frozen=True)
class PreferenceSnapshot:
    """Everything a view needs about the user's preferences, read in one go."""

    group_prefs: Dict[str, GroupPreference] = field(default_factory=dict)
    material_prefs: Dict[str, MaterialPreference] = field(default_factory=dict)
    search_exclusions: FrozenSet[str] = frozenset()


# ============================================================================
# Internal Helpers
# ============================================================================


def validate_section(section: str) -> str:
    """
    Check that ``section`` names a known view section.

    Raises:
        ValidationError: If section is not one of VALID_SECTIONS
    """
    if section not in VALID_SECTIONS:
        raise ValidationError([f"Invalid section '{section}'"])
    return section


def _require_code(code: Optional[str], label: str) -> str:
    if not code or not isinstance(code, str):
        raise ValidationError([f"{label} code is required"])
    return code


def _run(session: Optional[Session], impl, operation: str):
    """Run ``impl`` in the given or a fresh session, wrapping driver errors."""
    try:
        if session is not None:
            return impl(session)
        with session_scope() as session:
            return impl(session)
    except SQLAlchemyError as e:
        log_operation(logger, operation=operation, outcome="error", level=logging.ERROR, error=str(e))
        raise DatabaseError(f"{operation} failed", original_error=e) from e


# ============================================================================
# Reads
# ============================================================================


def _group_prefs_impl(user_id: str, section: str, session: Session) -> Dict[str, GroupPreference]:
    rows = (
        session.query(models.MaterialGroupPreference)
        .filter(
            models.MaterialGroupPreference.user_id == user_id,
            models.MaterialGroupPreference.section == section,
        )
        .all()
    )
    return {
        row.group_code: GroupPreference(favorite=bool(row.favorite), hidden=bool(row.hidden))
        for row in rows
    }


def _material_prefs_impl(
    user_id: str, section: str, session: Session
) -> Dict[str, MaterialPreference]:
    rows = (
        session.query(models.MaterialPreference)
        .filter(
            models.MaterialPreference.user_id == user_id,
            models.MaterialPreference.section == section,
            models.MaterialPreference.favorite.is_(True),
        )
        .all()
    )
    return {row.material_code: MaterialPreference(favorite=True) for row in rows}


def _search_exclusions_impl(user_id: str, section: str, session: Session) -> List[str]:
    rows = (
        session.query(models.SearchExclusion)
        .filter(
            models.SearchExclusion.user_id == user_id,
            models.SearchExclusion.section == section,
        )
        .order_by(models.SearchExclusion.id)
        .all()
    )
    return [row.group_code for row in rows]


def get_group_preferences(
    user_id: str, section: str, session: Optional[Session] = None
) -> Dict[str, GroupPreference]:
    """Group code -> GroupPreference for every group the user has flagged."""
    validate_section(section)
    return _run(
        session,
        lambda s: _group_prefs_impl(user_id, section, s),
        "get_group_preferences",
    )


def get_material_preferences(
    user_id: str, section: str, session: Optional[Session] = None
) -> Dict[str, MaterialPreference]:
    """Material code -> MaterialPreference for the user's favorite materials."""
    validate_section(section)
    return _run(
        session,
        lambda s: _material_prefs_impl(user_id, section, s),
        "get_material_preferences",
    )


def get_search_exclusions(
    user_id: str, section: str, session: Optional[Session] = None
) -> List[str]:
    """Top-level group codes the user has excluded from search."""
    validate_section(section)
    return _run(
        session,
        lambda s: _search_exclusions_impl(user_id, section, s),
        "get_search_exclusions",
    )


def get_all_preferences(
    user_id: str, section: str, session: Optional[Session] = None
) -> PreferenceSnapshot:
    """
    Read group prefs, material prefs and search exclusions in one session.

    Views call this once when they are activated instead of once per node,
    so the number of store round trips does not grow with the catalog.

    Args:
        user_id: Opaque user identity
        section: View section ("balance" or "nomenclature")
        session: Optional SQLAlchemy session

    Returns:
        PreferenceSnapshot
    """
    validate_section(section)

    def _impl(session):
        return PreferenceSnapshot(
            group_prefs=_group_prefs_impl(user_id, section, session),
            material_prefs=_material_prefs_impl(user_id, section, session),
            search_exclusions=frozenset(_search_exclusions_impl(user_id, section, session)),
        )

    snapshot = _run(session, _impl, "get_all_preferences")
    log_operation(
        logger,
        operation="get_all_preferences",
        outcome="success",
        section=section,
        group_count=len(snapshot.group_prefs),
        material_count=len(snapshot.material_prefs),
        exclusion_count=len(snapshot.search_exclusions),
    )
    return snapshot


# ============================================================================
# Writes
# ============================================================================


def resolve_group_patch(
    current: GroupPreference,
    favorite: Optional[bool] = None,
    hidden: Optional[bool] = None,
) -> GroupPreference:
    """
    Apply a favorite/hidden patch to a group preference.

    Hiding a group clears its favorite flag. Favoriting a group that is (or
    becomes) hidden is rejected.

    Raises:
        ValidationError: If favorite=True is requested for a hidden group
    """
    next_favorite = current.favorite
    next_hidden = current.hidden

    if hidden is not None:
        next_hidden = hidden
        if hidden:
            next_favorite = False
    if favorite is not None:
        if favorite and next_hidden:
            raise ValidationError(["A hidden group cannot be a favorite"])
        next_favorite = favorite

    return GroupPreference(favorite=next_favorite, hidden=next_hidden)


def set_group_preference(
    user_id: str,
    group_code: str,
    section: str,
    favorite: Optional[bool] = None,
    hidden: Optional[bool] = None,
    session: Optional[Session] = None,
) -> GroupPreference:
    """
    Patch the favorite and/or hidden flag of a group (upsert).

    Args:
        user_id: Opaque user identity
        group_code: Catalog group code
        section: View section
        favorite: New favorite flag, or None to leave unchanged
        hidden: New hidden flag, or None to leave unchanged
        session: Optional SQLAlchemy session

    Returns:
        The stored GroupPreference

    Raises:
        ValidationError: On a missing code, bad section or favorite-while-hidden
    """
    _require_code(group_code, "Group")
    validate_section(section)

    def _impl(session):
        row = (
            session.query(models.MaterialGroupPreference)
            .filter(
                models.MaterialGroupPreference.user_id == user_id,
                models.MaterialGroupPreference.group_code == group_code,
                models.MaterialGroupPreference.section == section,
            )
            .first()
        )
        current = (
            GroupPreference(favorite=bool(row.favorite), hidden=bool(row.hidden))
            if row
            else GroupPreference()
        )
        updated = resolve_group_patch(current, favorite=favorite, hidden=hidden)

        if row is None:
            row = models.MaterialGroupPreference(
                user_id=user_id, group_code=group_code, section=section
            )
            session.add(row)
        row.favorite = updated.favorite
        row.hidden = updated.hidden
        session.flush()
        return updated

    result = _run(session, _impl, "set_group_preference")
    log_operation(
        logger,
        operation="set_group_preference",
        outcome="success",
        group_code=group_code,
        section=section,
        favorite=result.favorite,
        hidden=result.hidden,
    )
    return result


def set_material_preference(
    user_id: str,
    material_code: str,
    section: str,
    favorite: bool,
    session: Optional[Session] = None,
) -> MaterialPreference:
    """
    Set or clear the favorite flag of a material (upsert).

    Raises:
        ValidationError: On a missing code, bad section or non-boolean favorite
    """
    _require_code(material_code, "Material")
    validate_section(section)
    if not isinstance(favorite, bool):
        raise ValidationError(["favorite must be true or false"])

    def _impl(session):
        row = (
            session.query(models.MaterialPreference)
            .filter(
                models.MaterialPreference.user_id == user_id,
                models.MaterialPreference.material_code == material_code,
                models.MaterialPreference.section == section,
            )
            .first()
        )
        if row is None:
            row = models.MaterialPreference(
                user_id=user_id, material_code=material_code, section=section
            )
            session.add(row)
        row.favorite = favorite
        session.flush()
        return MaterialPreference(favorite=favorite)

    result = _run(session, _impl, "set_material_preference")
    log_operation(
        logger,
        operation="set_material_preference",
        outcome="success",
        material_code=material_code,
        section=section,
        favorite=favorite,
    )
    return result


def replace_search_exclusions(
    user_id: str,
    section: str,
    group_codes: Iterable[str],
    session: Optional[Session] = None,
) -> List[str]:
    """
    Replace the user's whole search-exclusion set for a section.

    Duplicates are dropped, first occurrence order kept.

    Returns:
        The stored list of group codes
    """
    validate_section(section)
    if group_codes is None or isinstance(group_codes, str):
        raise ValidationError(["group_codes must be a list of codes"])
    codes = list(dict.fromkeys(str(code) for code in group_codes if code))

    def _impl(session):
        (
            session.query(models.SearchExclusion)
            .filter(
                models.SearchExclusion.user_id == user_id,
                models.SearchExclusion.section == section,
            )
            .delete(synchronize_session=False)
        )
        for code in codes:
            session.add(models.SearchExclusion(user_id=user_id, section=section, group_code=code))
        session.flush()
        return codes

    result = _run(session, _impl, "replace_search_exclusions")
    log_operation(
        logger,
        operation="replace_search_exclusions",
        outcome="success",
        section=section,
        exclusion_count=len(result),
    )
    return result


# ============================================================================
# Async Store
# ============================================================================


class SqlPreferencesStore:
    """
    Preference store for the async view layer, backed by the SQL database.

    Each call runs the synchronous service function in a worker thread and
    reports store failures as FetchFailure, like any other collaborator.
    ValidationError passes through unchanged.
    """

    source = "preferences"

    async def _call(self, func, *args, **kwargs):
        try:
            return await asyncio.to_thread(func, *args, **kwargs)
        except DatabaseError as e:
            raise FetchFailure(self.source, str(e)) from e

    async def fetch_all(self, user_id: str, section: str) -> PreferenceSnapshot:
        return await self._call(get_all_preferences, user_id, section)

    async def set_group_preference(
        self,
        user_id: str,
        section: str,
        group_code: str,
        favorite: Optional[bool] = None,
        hidden: Optional[bool] = None,
    ) -> GroupPreference:
        return await self._call(
            set_group_preference, user_id, group_code, section, favorite=favorite, hidden=hidden
        )

    async def set_material_preference(
        self, user_id: str, section: str, material_code: str, favorite: bool
    ) -> MaterialPreference:
        return await self._call(set_material_preference, user_id, material_code, section, favorite)

    async def replace_search_exclusions(
        self, user_id: str, section: str, group_codes: Iterable[str]
    ) -> List[str]:
        return await self._call(replace_search_exclusions, user_id, section, list(group_codes))
