"""Best Deal 선택 유닛 테스트 (관련도 점수, 등급, 단위가격 비교)"""
import pytest

from src.engine.best_deal import RelevanceTier, relevance_score, select_best_deal, tier_of
from tests.fixtures import PRODUCTS


@pytest.fixture
def fixture_product(make_product):
    def _make(key: str, source: str = "Zepto", **kwargs):
        data = dict(PRODUCTS[key])
        data.update(kwargs)
        return make_product(source=source, **data)

    return _make


class TestRelevanceScore:
    """검색어 관련도 점수"""

    def test_keyword_positions(self):
        assert relevance_score("Milk Bikis Classic", "milk") >= 50
        assert relevance_score("Amul Milk 1L", "milk") == 60
        assert relevance_score("Toned Milk 500ml", "milk") == 60

    def test_derivative_penalty(self):
        """파생 상품 표시어 하나당 감점"""
        assert relevance_score("Milk Chocolate Bar", "milk") == -30
        assert relevance_score("Milk Chocolate Bars", "milk") == -30

    def test_word_boundary(self):
        """단어 일부(barley)는 파생 표시어가 아님"""
        assert relevance_score("Organic Barley 500g", "barley") == 70

    def test_compound_derivatives(self):
        """합성어 끝에 붙은 표시어(milkshake, icecream)도 감점, 짧은 표시어는 단독 단어만"""
        assert relevance_score("Amul Kool Milkshake Kesar 200ml", "milk") == 10
        assert tier_of(relevance_score("Amul Kool Milkshake Kesar 200ml", "milk")) is RelevanceTier.MEDIUM
        assert relevance_score("Vanilla Icecream 500ml", "vanilla") == 30
        assert relevance_score("MTR Sambar 200g", "sambar") == 60

    def test_no_meaningful_token(self):
        assert relevance_score("Tata Salt 1kg", "milk") == -100

    def test_short_query_uses_keyword(self):
        """3자 이상 토큰이 없으면 첫 키워드로 판정"""
        assert relevance_score("X 100ml", "x") == 70

    def test_bonus_words(self):
        assert relevance_score("Fresh Paneer 200g", "paneer") == relevance_score("Gowardhan Paneer 200g", "paneer") + 10

    def test_whole_item_beats_derivative(self):
        assert relevance_score("Alphonso Mango 1kg", "mango") > relevance_score("Mango Juice 1L", "mango")

    def test_tiers(self):
        assert tier_of(60) is RelevanceTier.HIGH
        assert tier_of(20) is RelevanceTier.HIGH
        assert tier_of(0) is RelevanceTier.MEDIUM
        assert tier_of(-30) is RelevanceTier.LOW


class TestSelectBestDeal:
    """최적 상품 선택"""

    def test_milk_example(self, fixture_product):
        """관련도 높은 등급 안에서 1.5배 가드로 최저가 선택"""
        aggregated = {
            "Zepto": [fixture_product("amul_milk_1l"), fixture_product("milk_chocolate_bar")],
            "Blinkit": [fixture_product("toned_milk_500ml", source="Blinkit")],
        }

        best = select_best_deal(aggregated, "milk")

        assert best.name == "Toned Milk 500ml"
        assert best.price == 35.0

    def test_cheap_derivative_not_chosen(self, fixture_product):
        aggregated = {
            "Zepto": [fixture_product("milk_chocolate_bar", price=10.0), fixture_product("amul_milk_1l")],
        }
        assert select_best_deal(aggregated, "milk").name == "Amul Milk 1L"

    def test_per_unit_guard(self, fixture_product):
        """단위가격이 싸도 최저가의 1.5배를 넘으면 최저가 선택"""
        aggregated = {"Zepto": [fixture_product("x_100ml"), fixture_product("x_1000ml")]}

        best = select_best_deal(aggregated, "x")

        assert best.name == "X 100ml"

    def test_per_unit_winner_within_guard(self, make_product):
        aggregated = {
            "Zepto": [make_product(name="Amul Milk 1L", price=60.0)],
            "Blinkit": [make_product(name="Amul Milk 500ml", price=45.0, source="Blinkit")],
        }

        best = select_best_deal(aggregated, "milk")

        assert best.name == "Amul Milk 1L"

    def test_count_family(self, fixture_product):
        aggregated = {"Zepto": [fixture_product("eggs_6pcs"), fixture_product("eggs_30pcs")]}
        assert select_best_deal(aggregated, "eggs").name == "Farm Fresh Eggs 6 pcs"

    def test_without_quantities_picks_cheapest(self, make_product):
        aggregated = {
            "Zepto": [make_product(name="Coriander Bunch", price=12.0)],
            "Blinkit": [make_product(name="Coriander Leaves Bunch", price=9.0, source="Blinkit")],
        }
        assert select_best_deal(aggregated, "coriander").price == 9.0

    def test_low_tier_used_when_nothing_else(self, fixture_product):
        aggregated = {"Zepto": [fixture_product("milk_chocolate_bar")]}
        assert select_best_deal(aggregated, "milk").name == "Milk Chocolate Bar"

    def test_unavailable_skipped(self, fixture_product):
        aggregated = {
            "Zepto": [fixture_product("toned_milk_500ml", available=False), fixture_product("amul_milk_1l")],
        }
        assert select_best_deal(aggregated, "milk").name == "Amul Milk 1L"

    def test_empty(self):
        assert select_best_deal({}, "milk") is None
        assert select_best_deal({"Zepto": []}, "milk") is None
