"""URL 유틸리티 유닛 테스트"""
from src.utils.url_utils import (
    ensure_absolute_url,
    is_valid_product_url,
    matches_any_pattern,
    normalize_href,
    strip_tracking_params,
)


class TestNormalizeHref:
    def test_relative_path(self):
        assert normalize_href("/pn/amul/pvid/1", "https://www.zeptonow.com") == "https://www.zeptonow.com/pn/amul/pvid/1"

    def test_protocol_relative(self):
        assert normalize_href("//cdn.example.com/a.jpg", "https://x.com") == "https://cdn.example.com/a.jpg"

    def test_absolute_untouched(self):
        assert normalize_href("https://blinkit.com/prn/x", "https://other.com") == "https://blinkit.com/prn/x"

    def test_empty(self):
        assert normalize_href("", "https://x.com") == ""
        assert normalize_href("   ", "https://x.com") == ""


class TestTrackingParams:
    def test_strip_query_params(self):
        """ref/tag 제거, 상품 식별 파라미터는 유지"""
        url = "https://www.amazon.in/dp/B0ABC?ref=sr_1&tag=aff-21&th=1"
        assert strip_tracking_params(url) == "https://www.amazon.in/dp/B0ABC?th=1"

    def test_strip_ref_path_suffix(self):
        url = "https://www.amazon.in/Amul-Butter/dp/B0ABC/ref=sr_1_1"
        assert strip_tracking_params(url) == "https://www.amazon.in/Amul-Butter/dp/B0ABC"

    def test_ensure_absolute_url(self):
        assert ensure_absolute_url("/dp/B0ABC?ref=x", "https://www.amazon.in") == "https://www.amazon.in/dp/B0ABC"


class TestProductUrl:
    def test_valid_product_url(self):
        assert is_valid_product_url("https://www.zeptonow.com/pn/amul/pvid/1") is True

    def test_non_product_urls(self):
        """검색/카테고리/로그인/카트/스킴 링크 제외"""
        assert is_valid_product_url("https://www.amazon.in/s?k=milk") is False
        assert is_valid_product_url("https://www.jiomart.com/search/milk") is False
        assert is_valid_product_url("https://blinkit.com/cn/dairy/c/14") is False
        assert is_valid_product_url("https://www.flipkart.com/viewcart") is False
        assert is_valid_product_url("javascript:void(0)") is False
        assert is_valid_product_url("#") is False
        assert is_valid_product_url("") is False
        assert is_valid_product_url("https://www.amazon.in/ap/signin.html?x=1") is False
        assert is_valid_product_url("https://www.bigbasket.com/search?q=milk") is False

    def test_words_inside_segments_allowed(self):
        """검색/로그인/카트 단어가 상품 slug 일부일 뿐이면 허용"""
        assert is_valid_product_url("https://www.flipkart.com/ink-cartridge-x/p/123") is True
        assert is_valid_product_url("https://shop.example.com/bloginfo") is True
        assert is_valid_product_url("https://www.jiomart.com/p/groceries/research-grade-oats/591") is True

    def test_matches_any_pattern(self):
        assert matches_any_pattern("https://www.flipkart.com/x?pid=ABC", ("/p/", "pid=")) is True
        assert matches_any_pattern("https://www.flipkart.com/x", ("/p/", "pid=")) is False
        assert matches_any_pattern("", ("/p/",)) is False
