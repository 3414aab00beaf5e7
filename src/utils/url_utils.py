"""URL 정규화/검증 유틸리티"""
import re
from typing import Iterable
from urllib.parse import parse_qsl, urlencode, urljoin, urlparse, urlunparse


# 추천/제휴 추적용 파라미터 (상품 식별과 무관)
_TRACKING_PARAMS = frozenset({"ref", "ref_", "tag", "linkcode", "camp", "creative", "sr", "qid", "crid", "sprefix"})

# 상품 상세가 아닌 링크의 경로 세그먼트 (검색/카테고리/로그인 등). 확장자는 떼고 비교
_NON_PRODUCT_SEGMENTS = frozenset({
    "search",
    "s",
    "category",
    "categories",
    "c",
    "cl",
    "login",
    "signin",
    "cart",
    "viewcart",
    "checkout",
    "wishlist",
})

_NON_PRODUCT_SCHEMES = ("javascript:", "mailto:", "tel:", "#", "data:")

_REF_PATH_RE = re.compile(r"/ref=[^/?#]*$")


def normalize_href(href: str, base_url: str) -> str:
    """상대/프로토콜-상대 href를 절대 URL로 정규화합니다.

    - "//host/path" -> "https://host/path"
    - "/path", "path" -> base_url 기준 절대 URL
    - "http(s)://..." -> 그대로
    """
    if not href:
        return ""

    h = href.strip()
    if not h:
        return ""

    if h.startswith("//"):
        return f"https:{h}"

    if h.startswith(("http://", "https://")):
        return h

    if not base_url:
        return h

    return urljoin(base_url if base_url.endswith("/") else base_url + "/", h)


def strip_tracking_params(url: str) -> str:
    """ref/tag 등 추적 파라미터와 '/ref=...' 경로 접미사 제거"""
    if not url:
        return ""

    try:
        parsed = urlparse(url)
    except ValueError:
        return url

    path = _REF_PATH_RE.sub("", parsed.path)
    kept = [
        (k, v)
        for k, v in parse_qsl(parsed.query, keep_blank_values=True)
        if k.lower() not in _TRACKING_PARAMS
    ]
    return urlunparse(parsed._replace(path=path, query=urlencode(kept, doseq=True)))


def ensure_absolute_url(href: str, base_url: str) -> str:
    """절대 URL + 추적 파라미터 제거"""
    absolute = normalize_href(href, base_url)
    if not absolute:
        return ""
    return strip_tracking_params(absolute)


def is_valid_product_url(url: str) -> bool:
    """상품 상세로 보이는 링크인지 (검색/카테고리/로그인/카트 등 제외)"""
    if not url:
        return False

    lowered = url.strip().lower()
    if lowered.startswith(_NON_PRODUCT_SCHEMES):
        return False

    try:
        path = urlparse(lowered).path
    except ValueError:
        return False

    segments = (segment.split(".", 1)[0] for segment in path.split("/") if segment)
    return not any(segment in _NON_PRODUCT_SEGMENTS for segment in segments)


def matches_any_pattern(url: str, patterns: Iterable[str]) -> bool:
    """URL에 상품 경로 패턴(/pn/, /dp/, pid= ...)이 포함되어 있는지"""
    if not url:
        return False
    lowered = url.lower()
    return any(p.lower() in lowered for p in patterns)
