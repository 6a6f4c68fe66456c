"""Unit tests for accumulated filter options."""

from stock_catalog.utils.option_accumulator import OptionAccumulator, accumulate


def test_accumulate_adds_new_values():
    result = accumulate(frozenset({"Main"}), [{"w": "Second"}, {"w": "Main"}], key=lambda r: r["w"])
    assert result == frozenset({"Main", "Second"})


def test_accumulate_skips_empty_values():
    result = accumulate(frozenset(), [{"w": None}, {"w": ""}, {"w": "Main"}], key=lambda r: r["w"])
    assert result == frozenset({"Main"})


def test_accumulate_returns_prior_when_nothing_new():
    prior = frozenset({"Main"})
    assert accumulate(prior, [{"w": "Main"}], key=lambda r: r["w"]) is prior


def test_accumulator_keeps_values_across_fetches():
    years = OptionAccumulator(key=lambda row: row["year"])
    years.add([{"year": 2024}])
    years.add([{"year": 2023}])
    assert years.values == frozenset({2023, 2024})
    assert years.options == [2023, 2024]


def test_accumulator_options_use_collation():
    names = OptionAccumulator(key=lambda row: row)
    names.add(["Ёмкость", "Бак", "Ящик"])
    assert names.options == ["Бак", "Ёмкость", "Ящик"]


def test_reset_empties_options():
    names = OptionAccumulator(key=lambda row: row)
    names.add(["A"])
    names.reset()
    assert names.options == []
