"""페이지 검증 유닛 테스트 (차단 판별, 구조 지문)"""
from src.crawlers.boundary import (
    get_blocked_keyword,
    is_blocked_html,
    is_no_results_html,
    is_probably_invalid_html,
    structure_fingerprint,
)
from tests.fixtures import HTML_PAGES


class TestBlockedDetection:
    def test_access_denied(self):
        assert is_blocked_html(HTML_PAGES["blocked"]) is True
        assert get_blocked_keyword(HTML_PAGES["blocked"]) == "access denied"

    def test_captcha(self):
        assert is_blocked_html(HTML_PAGES["captcha"]) is True
        assert get_blocked_keyword(HTML_PAGES["captcha"]) == "captcha"

    def test_empty_is_blocked(self):
        assert is_blocked_html("") is True
        assert is_blocked_html("   ") is True

    def test_large_page_trusted(self):
        """큰 정상 페이지는 스크립트에 captcha 문자열이 있어도 차단 아님"""
        html = "<html><body>" + ("<div>Amul Milk ₹27</div>" * 3000) + "<script>loadCaptcha()</script></body></html>"
        assert is_blocked_html(html) is False

    def test_normal_page(self):
        assert is_blocked_html(HTML_PAGES["zepto_cards"]) is False


class TestInvalidHtml:
    def test_short_page_without_state(self):
        assert is_probably_invalid_html("<html><body>hi</body></html>") is True

    def test_short_page_with_json_ld(self):
        """짧아도 JSON-LD가 있으면 추출 시도"""
        assert is_probably_invalid_html(HTML_PAGES["json_ld"]) is False
        assert is_probably_invalid_html(HTML_PAGES["next_data"]) is False

    def test_no_results(self):
        assert is_no_results_html(HTML_PAGES["empty_results"]) is True
        assert is_no_results_html(HTML_PAGES["zepto_cards"]) is False


class TestStructureFingerprint:
    def test_stable_for_same_structure(self):
        assert structure_fingerprint(HTML_PAGES["zepto_cards"]) == structure_fingerprint(HTML_PAGES["zepto_cards"])

    def test_changes_with_structure(self):
        assert structure_fingerprint(HTML_PAGES["zepto_cards"]) != structure_fingerprint(HTML_PAGES["json_ld"])

    def test_empty(self):
        assert structure_fingerprint("") == ""
