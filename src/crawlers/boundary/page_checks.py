"""페이지 검증 유틸 - 차단/챌린지 페이지 판별, 페이지 구조 지문.

네트워크(fetch)와 분리된 순수 검증 로직을 담습니다.
"""

from __future__ import annotations

from typing import Optional

from selectolax.parser import HTMLParser

from src.utils.hash_utils import hash_string


_BLOCK_KEYWORDS = (
    # 최소한의, 문맥적으로 명확한 차단/챌린지 문구만 보관합니다.
    "captcha",
    "access denied",
    "just a moment",
    "verify you are human",
    "are you a robot",
    "robot check",
    "unusual traffic",
    "request blocked",
    "attention required",
    "enable javascript and cookies to continue",
)

_NO_RESULTS_KEYWORDS = (
    "no results found",
    "no products found",
    "did not match any products",
    "sorry, no results",
    "we couldn't find",
    "no matching products",
)

# 짧은 응답 + 차단 문구 조합만 차단으로 판단 (큰 정상 페이지에도 "captcha" 스크립트가 있을 수 있음)
MIN_VALID_HTML_LENGTH = 2000
TRUST_LARGE_HTML_LENGTH = 50000

# 구조 지문에 사용하는 신호 (마크업 골격이 바뀌면 조합이 달라짐)
_STRUCTURE_SIGNALS = (
    ("jsonld", 'script[type="application/ld+json"]'),
    ("next", "script#__NEXT_DATA__"),
    ("microdata", '[itemtype*="schema.org/Product"]'),
    ("testid", "[data-testid]"),
    ("aria", "[role='listitem'], [role='gridcell'], article"),
    ("product-link", "a[href*='/p/'], a[href*='/pn/'], a[href*='/prn/'], a[href*='/pd/'], a[href*='/dp/'], a[href*='pid=']"),
    ("img-alt", "img[alt]"),
)


def get_blocked_keyword(html: str) -> Optional[str]:
    if not html:
        return None
    lowered = html.lower()
    for k in _BLOCK_KEYWORDS:
        if k in lowered:
            return k
    return None


def is_blocked_html(html: str) -> bool:
    """차단/챌린지 페이지 여부

    - 빈 응답은 차단으로 간주
    - 큰 페이지는 정상으로 신뢰 (광고/스크립트에 키워드가 섞여 있을 수 있음)
    - 그 외에는 명확한 차단 문구가 있을 때만 차단
    """
    if not html or not html.strip():
        return True
    if len(html) > TRUST_LARGE_HTML_LENGTH:
        return False
    return get_blocked_keyword(html) is not None


def is_probably_invalid_html(html: str) -> bool:
    """200 OK라도 실질적으로 빈 페이지/챌린지일 수 있어 1차 방어"""
    if not html:
        return True
    if len(html) < MIN_VALID_HTML_LENGTH:
        # 짧아도 JSON 상태나 JSON-LD가 있으면 추출 시도 가치가 있음
        lowered = html.lower()
        return "application/ld+json" not in lowered and "__next_data__" not in lowered
    return is_blocked_html(html)


def is_no_results_html(html: str) -> bool:
    if not html:
        return False
    lowered = html.lower()
    return any(k in lowered for k in _NO_RESULTS_KEYWORDS)


def structure_fingerprint(html: str) -> str:
    """페이지 골격 지문 (어떤 구조 신호가 존재하는지의 조합 해시)"""
    if not html:
        return ""
    parser = HTMLParser(html)
    present = [name for name, selector in _STRUCTURE_SIGNALS if parser.css_first(selector) is not None]
    return hash_string("|".join(present))[:12]
