"""Locale-aware ordering of catalog names.

Catalog names come from a Russian-language ERP, so alphabetical order has to
follow Russian collation rather than raw code points:

- characters group by script: spaces, punctuation and symbols, digits,
  Cyrillic, Latin, then everything else ("1 шайба" < "Болт" < "Anchor")
- comparison is case-insensitive first, lowercase before uppercase on ties
- "ё" sorts together with "е" (it only wins a tie against it)
- "й" stays a letter of its own, right after "и"
- accents on Latin letters are secondary differences

Usage:
    from stock_catalog.utils.collation import collation_key

    sorted(names, key=collation_key)
"""

import unicodedata
from functools import lru_cache
from typing import Tuple

# Combining marks that form distinct letters of the Russian alphabet and
# therefore keep a primary weight.
_BREVE = "̆"
_PRIMARY_LETTERS = {"и" + _BREVE: "й"}  # и + breve -> й

# Script groups in Russian collation order
_SPACE = 0
_PUNCTUATION = 1
_DIGIT = 2
_CYRILLIC = 3
_LATIN = 4
_OTHER = 5

PrimaryWeight = Tuple[int, str]


@lru_cache(maxsize=1024)
def _script_group(ch: str) -> int:
    category = unicodedata.category(ch)
    if category.startswith("Z") or ch.isspace():
        return _SPACE
    if category[0] in ("P", "S", "C"):
        return _PUNCTUATION
    if category[0] == "N":
        return _DIGIT
    name = unicodedata.name(ch, "")
    if name.startswith("CYRILLIC"):
        return _CYRILLIC
    if name.startswith("LATIN"):
        return _LATIN
    return _OTHER


def _decompose(text: str) -> Tuple[Tuple[PrimaryWeight, ...], Tuple[str, ...]]:
    """Split casefolded text into weighted base letters and the marks of each letter."""
    letters = []
    marks = []
    for ch in unicodedata.normalize("NFD", text.casefold()):
        if unicodedata.combining(ch):
            if ch == _BREVE and letters and letters[-1] + ch in _PRIMARY_LETTERS:
                letters[-1] = _PRIMARY_LETTERS[letters[-1] + ch]
            elif marks:
                marks[-1] += ch
            continue
        letters.append(ch)
        marks.append("")
    primary = tuple((_script_group(letter), letter) for letter in letters)
    return primary, tuple(marks)


@lru_cache(maxsize=4096)
def collation_key(text: str) -> Tuple[Tuple[PrimaryWeight, ...], Tuple[str, ...], str]:
    """Return a sort key ordering ``text`` the way Russian collation does.

    The key is (primary, secondary, tertiary): script-weighted base letters,
    then the accents of each letter (unaccented first), then case.
    """
    text = text or ""
    primary, secondary = _decompose(text)
    return (primary, secondary, text.swapcase())


def contains_casefold(haystack: str, needle: str) -> bool:
    """Case-insensitive substring test using full Unicode case folding."""
    return needle.casefold() in (haystack or "").casefold()
