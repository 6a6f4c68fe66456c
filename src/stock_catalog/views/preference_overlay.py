"""
Optimistic preference overlay for one catalog view.

Holds the user's preferences for one section in memory, answers the
per-node questions the listing asks (hidden? favorite? excluded from
search?) and applies changes locally before the store confirms them.

Every preference key (one group, one material, or the exclusion set) has a
monotonic write version. When a write fails, the local change is rolled
back only if no later write to the same key has been issued since; either
way the failure is kept in ``failed_writes`` until it is retried or a later
write to the key succeeds.
"""

import functools
import logging
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Dict, FrozenSet, Iterable, Tuple

from stock_catalog.services.exceptions import ServiceError, ValidationError
from stock_catalog.services.preferences_service import (
    GroupPreference,
    MaterialPreference,
    PreferenceSnapshot,
    resolve_group_patch,
)

logger = logging.getLogger(__name__)

PreferenceKey = Tuple[str, str]

GROUP = "group"
MATERIAL = "material"
EXCLUSIONS = "search_exclusions"
EXCLUSIONS_KEY: PreferenceKey = (EXCLUSIONS, "")


@dataclass(frozen=True)
class FailedWrite:
    """A preference write the store rejected, kept so it can be retried."""

    key: PreferenceKey
    error: ServiceError
    retry_action: Callable[[], Awaitable[bool]]

    @property
    def message(self) -> str:
        return str(self.error)


class PreferenceOverlay:
    """
    In-memory preferences of ``user_id`` in ``section`` backed by ``store``.

    ``store`` is a PreferencesStore: fetch_all, set_group_preference,
    set_material_preference and replace_search_exclusions coroutines.
    """

    def __init__(self, store, user_id: str, section: str):
        self._store = store
        self.user_id = user_id
        self.section = section
        self._group_prefs: Dict[str, GroupPreference] = {}
        self._material_prefs: Dict[str, MaterialPreference] = {}
        self._exclusions: FrozenSet[str] = frozenset()
        self._versions: Dict[PreferenceKey, int] = {}
        self._failed: Dict[PreferenceKey, FailedWrite] = {}

    # ------------------------------------------------------------------
    # Loading
    # ------------------------------------------------------------------

    async def load(self) -> PreferenceSnapshot:
        """One batched read of every preference of the section."""
        snapshot = await self._store.fetch_all(self.user_id, self.section)
        self.apply_snapshot(snapshot)
        return snapshot

    def apply_snapshot(self, snapshot: PreferenceSnapshot) -> None:
        self._group_prefs = dict(snapshot.group_prefs)
        self._material_prefs = dict(snapshot.material_prefs)
        self._exclusions = frozenset(snapshot.search_exclusions)

    @property
    def snapshot(self) -> PreferenceSnapshot:
        return PreferenceSnapshot(
            group_prefs=dict(self._group_prefs),
            material_prefs=dict(self._material_prefs),
            search_exclusions=self._exclusions,
        )

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    def group_preference(self, code: str) -> GroupPreference:
        return self._group_prefs.get(code, GroupPreference())

    def is_hidden_group(self, code: str) -> bool:
        return self.group_preference(code).hidden

    def is_favorite_group(self, code: str) -> bool:
        return self.group_preference(code).favorite

    def is_favorite_material(self, code: str) -> bool:
        pref = self._material_prefs.get(code)
        return bool(pref and pref.favorite)

    def is_search_excluded(self, code: str) -> bool:
        return code in self._exclusions

    @property
    def excluded_codes(self) -> FrozenSet[str]:
        return self._exclusions

    @property
    def favorite_material_codes(self) -> FrozenSet[str]:
        return frozenset(code for code, pref in self._material_prefs.items() if pref.favorite)

    # ------------------------------------------------------------------
    # Writes
    # ------------------------------------------------------------------

    async def set_group_hidden(self, code: str, hidden: bool) -> bool:
        """Hide or unhide a group; hiding also clears its favorite flag."""
        current = self.group_preference(code)
        updated = resolve_group_patch(current, hidden=hidden)
        store_kwargs = {"hidden": hidden}
        if hidden:
            store_kwargs["favorite"] = False
        return await self._write(
            key=(GROUP, code),
            apply=lambda: self._group_prefs.__setitem__(code, updated),
            restore=self._restorer(self._group_prefs, code),
            call=functools.partial(
                self._store.set_group_preference,
                self.user_id,
                self.section,
                code,
                **store_kwargs,
            ),
            retry=functools.partial(self.set_group_hidden, code, hidden),
        )

    async def set_group_favorite(self, code: str, favorite: bool) -> bool:
        """
        Mark or unmark a group as favorite.

        Raises:
            ValidationError: If favorite=True for a hidden group (nothing is written)
        """
        current = self.group_preference(code)
        updated = resolve_group_patch(current, favorite=favorite)
        return await self._write(
            key=(GROUP, code),
            apply=lambda: self._group_prefs.__setitem__(code, updated),
            restore=self._restorer(self._group_prefs, code),
            call=functools.partial(
                self._store.set_group_preference,
                self.user_id,
                self.section,
                code,
                favorite=favorite,
            ),
            retry=functools.partial(self.set_group_favorite, code, favorite),
        )

    async def toggle_group_favorite(self, code: str) -> bool:
        return await self.set_group_favorite(code, not self.is_favorite_group(code))

    async def set_material_favorite(self, code: str, favorite: bool) -> bool:
        if not code:
            raise ValidationError(["Material code is required"])
        return await self._write(
            key=(MATERIAL, code),
            apply=lambda: self._material_prefs.__setitem__(code, MaterialPreference(favorite=favorite)),
            restore=self._restorer(self._material_prefs, code),
            call=functools.partial(
                self._store.set_material_preference, self.user_id, self.section, code, favorite
            ),
            retry=functools.partial(self.set_material_favorite, code, favorite),
        )

    async def toggle_material_favorite(self, code: str) -> bool:
        return await self.set_material_favorite(code, not self.is_favorite_material(code))

    async def replace_search_exclusions(self, codes: Iterable[str]) -> bool:
        """Replace the whole exclusion set (one full-replace write)."""
        new_codes = frozenset(code for code in codes if code)
        previous = self._exclusions

        def apply():
            self._exclusions = new_codes

        def restore():
            self._exclusions = previous

        return await self._write(
            key=EXCLUSIONS_KEY,
            apply=apply,
            restore=restore,
            call=functools.partial(
                self._store.replace_search_exclusions,
                self.user_id,
                self.section,
                sorted(new_codes),
            ),
            retry=functools.partial(self.replace_search_exclusions, new_codes),
        )

    async def toggle_search_exclusion(self, code: str) -> bool:
        if code in self._exclusions:
            return await self.replace_search_exclusions(self._exclusions - {code})
        return await self.replace_search_exclusions(self._exclusions | {code})

    # ------------------------------------------------------------------
    # Failures
    # ------------------------------------------------------------------

    @property
    def failed_writes(self) -> Dict[PreferenceKey, FailedWrite]:
        return dict(self._failed)

    async def retry(self, key: PreferenceKey) -> bool:
        """Re-issue the failed write for ``key``; False if there is none or it fails again."""
        failed = self._failed.pop(key, None)
        if failed is None:
            return False
        return await failed.retry_action()

    def dismiss_failure(self, key: PreferenceKey) -> None:
        self._failed.pop(key, None)

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    @staticmethod
    def _restorer(prefs: Dict[str, Any], code: str) -> Callable[[], None]:
        had_value = code in prefs
        previous = prefs.get(code)

        def restore():
            if had_value:
                prefs[code] = previous
            else:
                prefs.pop(code, None)

        return restore

    async def _write(
        self,
        key: PreferenceKey,
        apply: Callable[[], None],
        restore: Callable[[], None],
        call: Callable[[], Awaitable[Any]],
        retry: Callable[[], Awaitable[bool]],
    ) -> bool:
        version = self._versions.get(key, 0) + 1
        self._versions[key] = version
        apply()

        try:
            await call()
        except ServiceError as e:
            superseded = self._versions.get(key) != version
            if not superseded:
                restore()
            self._failed[key] = FailedWrite(key=key, error=e, retry_action=retry)
            logger.warning(
                "Preference write %s failed (%s): %s",
                key,
                "superseded, kept" if superseded else "rolled back",
                e,
            )
            return False

        if self._versions.get(key) == version:
            self._failed.pop(key, None)
        return True
