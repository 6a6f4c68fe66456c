"""Utilities package for the stock catalog."""

from .collation import collation_key
from .option_accumulator import OptionAccumulator, accumulate

__all__ = [
    "collation_key",
    "OptionAccumulator",
    "accumulate",
]
