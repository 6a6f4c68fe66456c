"""Accumulated option sets for filter dropdowns.

Listings fed by repeated ERP fetches offer filter options (years,
organizations, warehouses, ...) built from every row seen so far, not only
the rows of the last response. The fold is explicit: each fetch completion
calls ``accumulate`` once, and the owning view resets the accumulator when
its section is re-entered.

Usage:
    from stock_catalog.utils.option_accumulator import OptionAccumulator

    warehouses = OptionAccumulator(key=lambda row: row.warehouse_name)
    warehouses.add(rows)          # after each fetch
    options = warehouses.options  # sorted for display
    warehouses.reset()            # section re-entered
"""

from typing import Callable, FrozenSet, Hashable, Iterable, List, Optional, TypeVar

from .collation import collation_key

T = TypeVar("T")


def accumulate(
    prior: FrozenSet[Hashable],
    rows: Iterable[T],
    key: Callable[[T], Optional[Hashable]],
) -> FrozenSet[Hashable]:
    """
    Fold newly fetched rows into a prior option set.

    Empty values (None or "") are not options.

    Args:
        prior: Options accumulated so far
        rows: Rows of the latest fetch
        key: Extracts the option value from a row

    Returns:
        New frozenset; ``prior`` is left untouched
    """
    new_values = {value for value in (key(row) for row in rows) if value not in (None, "")}
    if new_values <= prior:
        return prior
    return prior | new_values


class OptionAccumulator:
    """Stateful holder around ``accumulate`` with an explicit reset."""

    def __init__(self, key: Callable[[T], Optional[Hashable]]):
        self._key = key
        self._values: FrozenSet[Hashable] = frozenset()

    @property
    def values(self) -> FrozenSet[Hashable]:
        return self._values

    @property
    def options(self) -> List[Hashable]:
        """Accumulated values sorted for display."""
        return sorted(self._values, key=lambda value: collation_key(str(value)))

    def add(self, rows: Iterable[T]) -> FrozenSet[Hashable]:
        self._values = accumulate(self._values, rows, self._key)
        return self._values

    def reset(self) -> None:
        self._values = frozenset()
