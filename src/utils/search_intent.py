"""Search Intent - 검색어 의도 분석 + 플랫폼별 검색어 최적화

"apple" 같은 한 단어 검색은 플랫폼에 따라 주스/잼이 먼저 나옵니다.
검색어의 카테고리(fruit, dairy ...)와 파생 상품 여부를 분석하고,
플랫폼별로 원물이 먼저 나오도록 수식어를 붙입니다.

    analyze_query("milk 500ml").primary_keyword  # "milk"
    optimized_query("apple", "BigBasket")         # "fresh apple"
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Optional

from src.utils.text_utils import QUANTITY_PATTERN, ParsedQuantity, normalize_query, parse_quantity


CATEGORY_KEYWORDS: dict[str, tuple[str, ...]] = {
    "fruit": (
        "apple", "banana", "orange", "mango", "grape", "strawberry", "kiwi", "papaya", "watermelon",
        "pomegranate", "pineapple", "guava", "pear", "peach", "cherry", "lemon", "lime", "coconut",
        "fig", "dates", "litchi", "lychee", "chikoo", "plum",
    ),
    "vegetable": (
        "potato", "tomato", "onion", "carrot", "cabbage", "spinach", "broccoli", "cauliflower",
        "capsicum", "cucumber", "beans", "peas", "corn", "ladyfinger", "okra", "bhindi", "brinjal",
        "beetroot", "radish", "ginger", "garlic", "coriander", "mushroom", "lettuce",
    ),
    "dairy": (
        "milk", "curd", "yogurt", "paneer", "cheese", "butter", "ghee", "cream", "buttermilk",
        "lassi", "khoya",
    ),
    "bread": ("bread", "pav", "bun", "roti", "naan", "paratha", "toast", "bagel", "croissant"),
    "rice": ("rice", "basmati", "sona masoori", "kolam"),
    "egg": ("egg", "anda"),
    "meat": ("chicken", "mutton", "fish", "prawns", "shrimp", "lamb", "pork"),
    "snack": ("chips", "namkeen", "biscuit", "cookies", "wafer", "popcorn", "mixture"),
}

# 원물이 아닌 가공/파생 상품을 뜻하는 단어
DERIVATIVE_WORDS: tuple[str, ...] = (
    "juice", "squash", "drink", "beverage", "shake", "smoothie", "nectar", "vinegar",
    "jam", "jelly", "marmalade", "sauce", "ketchup", "puree", "paste", "chutney", "pickle",
    "syrup", "concentrate", "extract", "essence", "powder", "dried", "flakes", "flour",
    "chips", "crisps", "wafers", "bhujia", "candy", "toffee", "chocolate", "cake", "pastry",
    "muffin", "cookie", "biscuit", "rusk", "bar", "ice cream", "icecream", "kulfi", "frozen",
    "milkshake", "flavour", "flavor", "flavoured", "flavored", "spread", "oil", "seeds",
    "soap", "shampoo", "lotion", "supplement",
)

# 검색어 자체가 상품 종류인 단어 (oil, juice ...). 이 경우 파생 감점 없음
PRODUCT_TYPE_WORDS: tuple[str, ...] = (
    "juice", "drink", "shake", "smoothie", "tea", "coffee", "water", "soda",
    "cake", "pie", "pudding", "ice cream", "icecream", "kulfi",
    "jam", "jelly", "sauce", "chutney", "pickle", "spread",
    "chips", "crisps", "snack", "candy", "chocolate", "toffee", "cookie", "biscuit", "wafer",
    "yogurt", "lassi", "milkshake", "bread", "bun", "muffin",
    "soap", "shampoo", "lotion", "cream", "oil",
)

FRESH_WORDS: tuple[str, ...] = ("fresh", "organic", "natural", "raw", "whole", "bunch", "piece", "pcs", "nos")

# Amazon 본 스토어에서 한 단어로는 엉뚱한 결과가 나오는 검색어
AMBIGUOUS_TERMS: dict[str, str] = {
    "oil": "cooking oil",
    "salt": "cooking salt",
    "sugar": "sugar white",
}


def word_pattern(word: str) -> re.Pattern:
    """단어 경계 기준 매칭 (복수형 s 허용)"""
    return re.compile(rf"\b{re.escape(word)}s?\b", re.IGNORECASE)


def contains_word(text: str, word: str) -> bool:
    return bool(text) and word_pattern(word).search(text) is not None


@dataclass(frozen=True)
class SearchIntent:
    original: str
    normalized: str
    primary_keyword: str
    category: Optional[str]
    is_single_word: bool
    wants_primary_item: bool
    wants_fresh: bool
    is_explicit_derivative: bool
    requested_quantity: Optional[ParsedQuantity] = None


def detect_category(normalized: str) -> Optional[str]:
    for category, keywords in CATEGORY_KEYWORDS.items():
        if any(contains_word(normalized, keyword) for keyword in keywords):
            return category
    return None


def analyze_query(query: str) -> SearchIntent:
    """검색어 의도 분석

    - 용량("500ml")은 요청 용량으로 분리하고 첫 단어를 주 키워드로 사용
    - 한 단어 검색이면서 파생 상품 단어가 없으면 원물(primary item)을 원한다고 봄
    """
    normalized = normalize_query(query)
    requested = parse_quantity(normalized)
    without_quantity = [w for w in QUANTITY_PATTERN.sub("", normalized).split() if any(c.isalpha() for c in w)]
    words = without_quantity or normalized.split()

    explicit_derivative = any(contains_word(normalized, word) for word in DERIVATIVE_WORDS)
    is_single_word = len(without_quantity) == 1
    return SearchIntent(
        original=query,
        normalized=normalized,
        primary_keyword=words[0] if words else "",
        category=detect_category(normalized),
        is_single_word=is_single_word,
        wants_primary_item=is_single_word and not explicit_derivative,
        wants_fresh=any(contains_word(normalized, word) for word in FRESH_WORDS),
        is_explicit_derivative=explicit_derivative,
        requested_quantity=requested,
    )


def is_product_type(keyword: str) -> bool:
    lowered = keyword.lower()
    return lowered in DERIVATIVE_WORDS or lowered in PRODUCT_TYPE_WORDS


def optimized_query(query: str, source_id: str) -> str:
    """플랫폼별 검색어 보정

    - 과일/채소 한 단어: BigBasket, JioMart → "fresh {q}", Amazon 본 스토어 → "{q} fresh fruit vegetable"
    - 유제품 한 단어: BigBasket → "{q} dairy", Amazon 본 스토어 → "{q} dairy fresh"
    - Amazon 본 스토어의 모호한 한 단어(oil, salt, sugar)는 구체화
    그 외에는 원래 검색어 그대로
    """
    stripped = query.strip()
    intent = analyze_query(stripped)
    if not intent.is_single_word:
        return stripped

    platform = source_id.lower()
    amazon_main = "amazon" in platform and "fresh" not in platform

    if intent.category in ("fruit", "vegetable"):
        if "bigbasket" in platform or "jiomart" in platform:
            return f"fresh {stripped}"
        if amazon_main:
            return f"{stripped} fresh fruit vegetable"
        return stripped

    if intent.category == "dairy":
        if "bigbasket" in platform:
            return f"{stripped} dairy"
        if amazon_main:
            return f"{stripped} dairy fresh"
        return stripped

    if amazon_main and intent.normalized in AMBIGUOUS_TERMS:
        return AMBIGUOUS_TERMS[intent.normalized]
    return stripped
