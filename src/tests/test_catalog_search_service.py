"""Tests for catalog search and result ranking."""

import logging

from stock_catalog.services.catalog_search_service import (
    is_search_active,
    normalize_query,
    rank_results,
    search,
)
from stock_catalog.services.catalog_tree_service import (
    CatalogGroup,
    CatalogMaterial,
    build_totals,
    flatten,
)


class TestSearchActivation:
    def test_empty_and_blank_queries_are_inactive(self):
        assert not is_search_active("")
        assert not is_search_active("   ")
        assert not is_search_active(None)

    def test_min_length_counts_stripped_characters(self):
        assert not is_search_active(" ab ", min_length=3)
        assert is_search_active(" abc ", min_length=3)

    def test_normalize_query(self):
        assert normalize_query("  wire ") == "wire"
        assert normalize_query(None) == ""


class TestSearch:
    """Tests for search()."""

    def test_inactive_search_returns_none(self, sample_tree):
        assert search(sample_tree, "  ") is None

    def test_below_min_length_returns_none(self, sample_tree):
        assert search(sample_tree, "00", min_length=3) is None

    def test_no_match_returns_empty_list(self, sample_tree):
        assert search(sample_tree, "zzz") == []

    def test_case_insensitive_name_match(self, sample_tree):
        results = search(sample_tree, "COPPER")
        assert [m.code for m in results] == ["M1"]

    def test_code_match(self, sample_tree):
        assert [m.code for m in search(sample_tree, "m3")] == ["M3"]

    def test_cyrillic_case_folding(self):
        tree = (CatalogMaterial(code="1", name="Краска БЕЛАЯ"),)
        assert len(search(tree, "белая")) == 1

    def test_never_returns_groups(self, sample_tree):
        # "Primers" is a group name and "Primer 001" a material
        results = search(sample_tree, "primer")
        assert results
        assert all(not node.is_group for node in results)

    def test_searches_whole_tree(self, sample_tree):
        assert {m.code for m in search(sample_tree, "001")} == {"M3", "M5"}

    def test_top_level_exclusion_skips_subtree(self, sample_tree):
        results = search(sample_tree, "001", excluded_top_level_codes={"G4"})
        assert [m.code for m in results] == ["M3"]

    def test_nested_exclusion_has_no_effect(self, sample_tree):
        results = search(sample_tree, "001", excluded_top_level_codes={"G3"})
        assert {m.code for m in results} == {"M3", "M5"}

    def test_exclusions_return_subset(self, sample_tree):
        for query in ("0", "e", "wire", "001"):
            full = search(sample_tree, query)
            for excluded in ({"G1"}, {"G2", "G4"}, {"G1", "G2", "G4"}):
                partial = search(sample_tree, query, excluded_top_level_codes=excluded)
                assert set(m.code for m in partial) <= set(m.code for m in full)

    def test_logs_result_count_at_debug(self, sample_tree, caplog):
        with caplog.at_level(logging.DEBUG):
            search(sample_tree, "wire")
        assert "search: success" in caplog.text


class TestRankResults:
    """Tests for rank_results()."""

    def test_numeric_query_prefers_name_match(self):
        code_only = CatalogMaterial(code="001", name="Болт")
        name_match = CatalogMaterial(code="555", name="Краска 001")
        results = search((code_only, name_match), "001")

        ranked = rank_results(results, "001", totals={"001": 0, "555": 0})
        assert [m.code for m in ranked] == ["555", "001"]

    def test_stock_first_when_totals_given(self, sample_tree):
        results = search(sample_tree, "e")
        totals = build_totals(flatten(sample_tree))
        ranked = rank_results(results, "e", totals=totals)

        with_stock = [m for m in ranked if totals.get(m.code, 0) > 0]
        assert ranked[: len(with_stock)] == with_stock

    def test_no_stock_key_without_totals(self):
        a = CatalogMaterial(code="1", name="Alpha")
        b = CatalogMaterial(code="2", name="Beta")
        assert rank_results([b, a], "a") == [a, b]

    def test_favorites_before_alphabetical(self):
        a = CatalogMaterial(code="1", name="Alpha")
        b = CatalogMaterial(code="2", name="Beta")
        ranked = rank_results([a, b], "a", favorite_materials={"2"})
        assert ranked == [b, a]

    def test_stock_outranks_favorite(self):
        a = CatalogMaterial(code="1", name="Alpha")
        b = CatalogMaterial(code="2", name="Beta")
        ranked = rank_results([a, b], "a", totals={"1": 5, "2": 0}, favorite_materials={"2"})
        assert ranked == [a, b]

    def test_russian_collation_order(self):
        names = ["Ёмкость", "Болт", "Арматура", "Ящик", "Йод", "Игла"]
        materials = [CatalogMaterial(code=str(i), name=n) for i, n in enumerate(names)]
        ranked = rank_results(materials, "x")
        assert [m.name for m in ranked] == ["Арматура", "Болт", "Ёмкость", "Игла", "Йод", "Ящик"]

    def test_ranking_does_not_touch_groups_search(self):
        tree = (CatalogGroup(code="G", name="Group 1", children=()),)
        assert search(tree, "1") == []
