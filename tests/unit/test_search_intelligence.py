"""검색 의도 분석 / 플랫폼별 검색어 / 결과 정렬·묶기 유닛 테스트"""
import pytest

from src.engine.search_intelligence import (
    are_similar_products,
    group_similar_products,
    rank_and_group_by_quantity,
    rank_results,
    relevance,
)
from src.utils.search_intent import analyze_query, optimized_query


class TestAnalyzeQuery:
    def test_quantity_split_from_keyword(self):
        intent = analyze_query("Milk 500ml")

        assert intent.primary_keyword == "milk"
        assert intent.is_single_word is True
        assert intent.wants_primary_item is True
        assert intent.category == "dairy"
        assert intent.requested_quantity.value == 500

    def test_explicit_derivative(self):
        intent = analyze_query("mango juice")

        assert intent.is_explicit_derivative is True
        assert intent.wants_primary_item is False
        assert intent.category == "fruit"

    def test_fresh_and_unknown_category(self):
        intent = analyze_query("organic quinoa")

        assert intent.wants_fresh is True
        assert intent.category is None


class TestOptimizedQuery:
    """플랫폼별 검색어 보정"""

    @pytest.mark.parametrize(
        "query,source,expected",
        [
            ("apple", "BigBasket", "fresh apple"),
            ("apple", "JioMart Quick", "fresh apple"),
            ("apple", "Amazon", "apple fresh fruit vegetable"),
            ("apple", "Amazon Fresh", "apple"),
            ("milk", "BigBasket", "milk dairy"),
            ("milk", "Amazon", "milk dairy fresh"),
            ("milk", "Zepto", "milk"),
            ("sugar", "Amazon", "sugar white"),
            ("sugar", "Blinkit", "sugar"),
            ("apple juice", "BigBasket", "apple juice"),
            ("  apple ", "Zepto", "apple"),
        ],
    )
    def test_rewrites(self, query, source, expected):
        assert optimized_query(query, source) == expected


class TestRelevance:
    def test_compound_word_is_different_product(self):
        assert relevance("Fresh Grapefruit 1kg", analyze_query("grape")) == -100

    def test_flavour_use_scores_low(self):
        assert relevance("Grape Juice 1L", analyze_query("grape")) == 10

    def test_primary_item_capped(self):
        assert relevance("Fresh Green Grapes 500g", analyze_query("grape")) == 100

    def test_milk_derivatives_filtered(self):
        intent = analyze_query("milk")
        assert relevance("Amul Kool Milkshake 200ml", intent) == -100
        assert relevance("Amul Taaza Toned Milk 500ml", intent) == 100

    def test_no_keyword_match(self):
        assert relevance("Tata Salt 1kg", analyze_query("grape")) == 5


class TestRankResults:
    def test_filters_and_orders(self, make_product):
        juice = make_product(name="Grape Juice 1L")
        grapefruit = make_product(name="Fresh Grapefruit 1kg")
        grapes = make_product(name="Fresh Green Grapes 500g")

        ranked = rank_results([juice, grapefruit, grapes], analyze_query("grape"))

        assert ranked == [grapes]

    def test_empty(self):
        assert rank_results([], analyze_query("grape")) == []


class TestQuantityGrouping:
    def test_requested_quantity_first(self, make_product):
        amul = make_product(name="Amul Taaza Toned Milk 500ml", price=27.0)
        mother = make_product(name="Mother Dairy Toned Milk 1L", price=54.0)
        nandini = make_product(name="Nandini Milk 500ml", price=22.0)
        powder = make_product(name="Everyday Dairy Milk Powder 1kg", price=400.0)

        grouped = rank_and_group_by_quantity([amul, mother, nandini, powder], analyze_query("milk 500ml"))

        assert grouped.products == [nandini, amul, mother]
        assert grouped.matching_quantity.value == 500

    def test_unit_price_breaks_ties(self, make_product):
        small = make_product(name="Amul Taaza Toned Milk 500ml", price=27.0)
        large = make_product(name="Mother Dairy Toned Milk 1L", price=50.0)

        grouped = rank_and_group_by_quantity([small, large], analyze_query("milk"))

        assert grouped.products == [large, small]
        assert grouped.matching_quantity is None


class TestSimilarProducts:
    def test_same_product_across_sources(self, make_product):
        zepto = make_product(name="Amul Taaza Toned Milk 500ml")
        blinkit = make_product(name="Amul Taaza Toned Milk 500 ml", source="Blinkit")
        assert are_similar_products(zepto, blinkit) is True

    def test_different_quantity(self, make_product):
        assert are_similar_products(
            make_product(name="Amul Taaza Toned Milk 500ml"),
            make_product(name="Amul Taaza Toned Milk 1L", source="Blinkit"),
        ) is False

    def test_different_product(self, make_product):
        assert are_similar_products(
            make_product(name="Amul Taaza Toned Milk 500ml"),
            make_product(name="Amul Gold Full Cream Milk 500ml", source="Blinkit"),
        ) is False

    def test_grouping(self, make_product):
        zepto = make_product(name="Amul Taaza Toned Milk 500ml", price=27.0)
        blinkit = make_product(name="Amul Taaza Toned Milk 500 ml", price=26.0, source="Blinkit")
        zepto_dup = make_product(name="Amul Taaza Toned Milk (500ml)", price=28.0)
        gold = make_product(name="Amul Gold Full Cream Milk 500ml", price=33.0, source="Blinkit")

        groups = group_similar_products([zepto, blinkit, zepto_dup, gold])

        assert list(groups) == ["Amul Taaza Toned Milk 500ml", "Amul Gold Full Cream Milk 500ml"]
        # 소스당 1개, 가격 오름차순
        assert groups["Amul Taaza Toned Milk 500ml"] == [blinkit, zepto]
        assert groups["Amul Gold Full Cream Milk 500ml"] == [gold]
