"""셀렉터 학습 유닛 테스트 (셀렉터 생성, SelectorMemory, 추출기 연동)"""
import pytest
from selectolax.parser import HTMLParser

from src.crawlers.extraction.candidate import ProductCandidate
from src.crawlers.extraction.dom_heuristics import build_selector
from src.crawlers.extraction.engine import ResilientExtractor
from src.crawlers.extraction.learned import SelectorMemory, candidate_confidence
from tests.fixtures import HTML_PAGES
from tests.fixtures.html_pages import many_cards_page

BASE_URL = "https://shop.example.com"
CARD_SELECTOR = "div[data-testid='product-card']"


def _first(markup: str, selector: str):
    return HTMLParser(markup).css_first(selector)


def _candidate(selector, url="/p/1", image="/img/1.jpg") -> ProductCandidate:
    return ProductCandidate(name="Tata Salt Iodised 1kg", price=28.0, image_url=image, url=url, selector=selector)


class TestBuildSelector:
    """카드 요소 → 재사용 가능한 셀렉터"""

    def test_prefers_test_id(self):
        node = _first('<div data-testid="product-card" class="card">x</div>', "div")
        assert build_selector(node) == CARD_SELECTOR

    def test_itemprop(self):
        node = _first('<li itemprop="itemListElement">x</li>', "li")
        assert build_selector(node) == "li[itemprop='itemListElement']"

    def test_skips_hashed_classes(self):
        node = _first('<div class="css_1a2b3c product-tile">x</div>', "div")
        assert build_selector(node) == "div.product-tile"

    def test_no_stable_hook(self):
        node = _first('<div class="x">x</div>', "div")
        assert build_selector(node) is None


class TestConfidence:
    def test_full_card(self):
        assert candidate_confidence(_candidate("div.card"), BASE_URL) == 1.0

    def test_search_page_url_not_counted(self):
        cand = _candidate("div.card", url=BASE_URL + "/")
        assert candidate_confidence(cand, BASE_URL) == 0.8

    def test_name_and_price_only(self):
        cand = ProductCandidate(name="Tata Salt Iodised 1kg", price=28.0)
        assert candidate_confidence(cand) == 0.6


class TestSelectorMemory:
    """학습/실패 누적/폐기"""

    def test_learns_most_common_confident_selector(self, fake_clock):
        memory = SelectorMemory(clock=fake_clock)
        candidates = [
            _candidate("div.card"),
            _candidate("div.card"),
            _candidate("div.banner"),
            # 신뢰도 미달 후보는 집계에서 제외
            _candidate("div.noise", url=None, image=None),
            _candidate("div.noise", url=None, image=None),
            _candidate("div.noise", url=None, image=None),
        ]

        assert memory.learn_from("TestMart", candidates, BASE_URL) is True

        learned = memory.get("TestMart")
        assert learned.selector == "div.card"
        assert learned.learned_at == fake_clock.now

    def test_nothing_learned_without_selectors(self):
        memory = SelectorMemory()
        assert memory.learn_from("TestMart", [_candidate(None)], BASE_URL) is False
        assert memory.get("TestMart") is None

    def test_relearning_same_selector_is_noop(self):
        memory = SelectorMemory()
        assert memory.learn("TestMart", "div.card") is True
        assert memory.learn("TestMart", "div.card") is False

    def test_dropped_after_repeated_failures(self):
        memory = SelectorMemory(max_failures=3)
        memory.learn("TestMart", "div.card")

        for _ in range(3):
            memory.record("TestMart", success=False)
        assert memory.get("TestMart") is not None

        memory.record("TestMart", success=False)
        assert memory.get("TestMart") is None

    def test_success_resets_failures(self):
        memory = SelectorMemory(max_failures=1)
        memory.learn("TestMart", "div.card")

        memory.record("TestMart", success=False)
        memory.record("TestMart", success=True)
        memory.record("TestMart", success=False)

        learned = memory.get("TestMart")
        assert learned.failure_count == 1
        assert learned.success_count == 2

    def test_snapshot_and_forget(self):
        memory = SelectorMemory()
        memory.learn("TestMart", "div.card")

        assert memory.snapshot()["TestMart"]["selector"] == "div.card"
        memory.forget("TestMart")
        assert memory.snapshot() == {}


class TestExtractorWithMemory:
    """추출기가 학습 셀렉터를 캐스케이드보다 먼저 사용"""

    @pytest.fixture
    def memory(self):
        return SelectorMemory()

    @pytest.fixture
    def extractor(self, memory):
        return ResilientExtractor(selector_memory=memory)

    def test_card_heuristic_success_is_learned(self, extractor, memory):
        products = extractor.extract(many_cards_page(14), "TestMart", BASE_URL)

        assert len(products) == 10
        assert memory.get("TestMart").selector == CARD_SELECTOR

    def test_learned_selector_reused(self, extractor, memory):
        first = extractor.extract(many_cards_page(14), "TestMart", BASE_URL)
        second = extractor.extract(many_cards_page(14), "TestMart", BASE_URL)

        assert [p.name for p in second] == [p.name for p in first]
        assert memory.get("TestMart").success_count == 2

    def test_stale_selector_falls_back_and_relearns(self, extractor, memory):
        memory.learn("TestMart", "div.retired-card")

        products = extractor.extract(HTML_PAGES["data_attribute_cards"], "TestMart", BASE_URL)

        assert len(products) == 3
        assert memory.get("TestMart").selector == CARD_SELECTOR

    def test_structured_data_not_learned(self, extractor, memory):
        products = extractor.extract(HTML_PAGES["json_ld"], "Zepto", "https://www.zeptonow.com")

        assert products
        assert memory.get("Zepto") is None

    def test_default_extractor_has_no_memory(self):
        assert ResilientExtractor().selector_memory is None
