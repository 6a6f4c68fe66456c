"""
Debounced search query.

Keeps two values: the raw query, updated on every keystroke, and the
effective query, which follows the raw one only after typing has paused for
``delay_ms``. Searches run against the effective query, so a burst of
keystrokes costs one search. Clearing the field applies at once.

Timers run on a scheduler with the Tk-style ``after(ms, callback)`` /
``after_cancel(handle)`` API, so the same class works under a Tk root, under
asyncio (AsyncioScheduler) and with a manual clock in tests.
"""

import asyncio
import logging
from typing import Any, Callable, Optional

from stock_catalog.utils.constants import SEARCH_DEBOUNCE_MS

logger = logging.getLogger(__name__)


class AsyncioScheduler:
    """after/after_cancel on top of an asyncio event loop."""

    def __init__(self, loop: Optional[asyncio.AbstractEventLoop] = None):
        self._loop = loop

    @property
    def loop(self) -> asyncio.AbstractEventLoop:
        if self._loop is None:
            self._loop = asyncio.get_running_loop()
        return self._loop

    def after(self, ms: int, callback: Callable[[], Any]) -> asyncio.TimerHandle:
        return self.loop.call_later(ms / 1000.0, callback)

    def after_cancel(self, handle: asyncio.TimerHandle) -> None:
        handle.cancel()


class SearchDebouncer:
    """
    Raw/effective query pair with a trailing-edge debounce.

    Args:
        scheduler: Object providing after() and after_cancel()
        delay_ms: Quiet period before the effective query catches up
        on_change: Called with the new effective query each time it changes
    """

    def __init__(
        self,
        scheduler,
        delay_ms: int = SEARCH_DEBOUNCE_MS,
        on_change: Optional[Callable[[str], None]] = None,
    ):
        self._scheduler = scheduler
        self.delay_ms = delay_ms
        self._on_change = on_change
        self._raw = ""
        self._effective = ""
        self._debounce_id = None

    @property
    def raw(self) -> str:
        """The query as typed."""
        return self._raw

    @property
    def effective(self) -> str:
        """The query searches should use."""
        return self._effective

    @property
    def is_pending(self) -> bool:
        """True while the effective query lags behind the raw one."""
        return self._raw != self._effective

    def set_query(self, text: Optional[str]) -> None:
        """Record a keystroke; restart the quiet period."""
        self._raw = text or ""
        self._cancel_pending()

        if not self._raw.strip():
            self._apply(self._raw)
            return

        self._debounce_id = self._scheduler.after(self.delay_ms, self._settle)

    def clear(self) -> None:
        """Empty both queries immediately."""
        self.set_query("")

    def flush(self) -> None:
        """Apply the pending raw query now (e.g. on Enter)."""
        if self._debounce_id is not None:
            self._cancel_pending()
            self._apply(self._raw)

    def cancel(self) -> None:
        """Drop the pending timer without applying it."""
        self._cancel_pending()

    def _cancel_pending(self) -> None:
        if self._debounce_id is not None:
            self._scheduler.after_cancel(self._debounce_id)
            self._debounce_id = None

    def _settle(self) -> None:
        self._debounce_id = None
        logger.debug("Search query settled: %r", self._raw)
        self._apply(self._raw)

    def _apply(self, query: str) -> None:
        if query == self._effective:
            return
        self._effective = query
        if self._on_change is not None:
            self._on_change(query)
