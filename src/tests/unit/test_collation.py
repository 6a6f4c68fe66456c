"""Unit tests for Russian collation ordering."""

from stock_catalog.utils.collation import collation_key, contains_casefold

def test_cyrillic_alphabet_order():
    names = ["Ящик", "Арматура", "Ёрш", "Ель", "Жгут", "Йод", "Игла"]
    assert sorted(names, key=collation_key) == ["Арматура", "Ель", "Ёрш", "Жгут", "Игла", "Йод", "Ящик"]

def test_yo_ties_after_ye():
    assert sorted(["ёж", "еж"], key=collation_key) == ["еж", "ёж"]

def test_case_insensitive_first():
    assert sorted(["b", "A", "a"], key=collation_key) == ["a", "A", "b"]

def test_latin_accents_are_secondary():
    assert sorted(["resume", "résumé", "resumes"], key=collation_key) == ["resume", "résumé", "resumes"]

def test_cyrillic_before_latin():
    names = ["Zinc", "Болт", "Anchor", "Ёрш", "Ель", "1 шайба"]
    assert sorted(names, key=collation_key) == ["1 шайба", "Болт", "Ель", "Ёрш", "Anchor", "Zinc"]

def test_space_and_punctuation_before_letters():
    assert sorted(["Болтик", "Болт-М8", "Болт 2"], key=collation_key) == ["Болт 2", "Болт-М8", "Болтик"]

def test_empty_and_none_names():
    assert collation_key("") == ((), (), "")
    assert collation_key(None) == collation_key("")

def test_contains_casefold():
    assert contains_casefold("Краска БЕЛАЯ", "белая")
    assert contains_casefold("STRASSE", "straße")
    assert not contains_casefold(None, "x")
