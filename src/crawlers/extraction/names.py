"""상품명 검증/정리.

UI 문구("Add to cart", "Search results", "Delivery in 10 mins" ...)가 상품명으로
잡히는 것을 막는 필터입니다. 모든 추출 전략의 후보가 이 필터를 통과해야 합니다.
"""

from __future__ import annotations

import re

from src.utils.text_utils import clean_display_text


MIN_NAME_LENGTH = 4
MAX_NAME_LENGTH = 150

INVALID_NAMES = frozenset({
    "search results",
    "results",
    "products",
    "items",
    "loading",
    "add to cart",
    "add",
    "buy now",
    "view",
    "see more",
    "show more",
    "search",
    "filter",
    "sort",
    "home",
    "menu",
    "cart",
    "login",
    "sign in",
    "register",
    "wishlist",
    "compare",
    "share",
    "notify",
    "notify me",
    "out of stock",
    "sold out",
    "unavailable",
    "currently unavailable",
    "coming soon",
    "view all",
    "load more",
    "next",
    "previous",
    "back",
    # 배송 시간 문구
    "delivery in",
    "delivery by",
    "free delivery",
    "get it by",
    "mins",
    "minutes",
    "hours",
    "10 mins",
    "express delivery",
})

# 단독으로 쓰이면 배지/프로모션 라벨
_PROMO_WORDS = frozenset({"new", "sale", "hot", "best", "top", "popular", "bestseller", "trending", "offer"})

_NUMERIC_ONLY_RE = re.compile(r"^[₹\d,.\s%]+(?:off)?$", re.IGNORECASE)
_DELIVERY_PHRASE_RE = re.compile(r"^(?:delivery|delivered|arrives?)\s+(?:in|by|within)\b|^\d+\s*(?:mins?|minutes|hrs?|hours)\b", re.IGNORECASE)
_LETTER_RE = re.compile(r"[^\W\d_]")


def clean_name(raw: str) -> str:
    """공백 정리 + 앞뒤 구두점 제거"""
    name = clean_display_text(raw)
    return name.strip(" -|,:;•·")


def is_valid_name(raw: str) -> bool:
    """상품명 유효성 검사

    - 길이 4~150
    - 문자(letter) 포함
    - 숫자/통화만으로 구성되지 않음
    - UI/내비게이션 블랙리스트와 정확히 일치하거나 그 문구로 시작/끝나지 않음
    """
    if not raw:
        return False

    name = clean_name(raw)
    if not (MIN_NAME_LENGTH <= len(name) <= MAX_NAME_LENGTH):
        return False

    if not _LETTER_RE.search(name):
        return False

    if _NUMERIC_ONLY_RE.match(name):
        return False

    lowered = name.lower()
    if lowered in _PROMO_WORDS:
        return False

    if _DELIVERY_PHRASE_RE.search(lowered):
        return False

    for phrase in INVALID_NAMES:
        if lowered == phrase or lowered.startswith(phrase + " ") or lowered.endswith(" " + phrase):
            return False

    return True
