"""Search Intelligence - 검색 의도 기반 결과 정렬/필터 + 소스 간 동일 상품 묶기

점수 규칙 (상품 1개, -100~100으로 제한):
- 주 키워드가 합성어 일부(grape → grapefruit)면 -100, 맛/수식어로만 쓰이면(mango juice) -60,
  파생 상품이면 -40, 단독 단어로 일치하면 +30 (검색어가 상품 종류(oil, juice)면 파생 감점 없음)
- 단독 단어 일치 +40 / 부분 일치 +10 / 불일치면 점수 5로 종료
- 위치: 첫 단어 +30, 앞 세 단어 +20, 그 외 +10
- fresh/organic 등 +15 (원물/신선 검색일 때), 카테고리 단어 +10
- 원물 검색인데 파생 상품이면 추가 -20
- 요청 용량과 비슷하면(±20%) +20, 용량 표기 +10
- 긴 이름 감점 (60/80/100자 초과 -5/-10/-15), combo/pack of -10 (검색어에 없을 때)
"""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from typing import Dict, Iterable, List, Optional, Sequence

from src.core.logging import logger, sanitize_for_log
from src.schemas.product_schema import Product
from src.utils.search_intent import (
    CATEGORY_KEYWORDS,
    DERIVATIVE_WORDS,
    FRESH_WORDS,
    PRODUCT_TYPE_WORDS,
    SearchIntent,
    contains_word,
    is_product_type,
)
from src.utils.text_utils import QUANTITY_PATTERN, ParsedQuantity, parse_quantity


MILK_DERIVATIVE_WORDS = (
    "milkshake", "shake", "powder", "condensed", "evaporated", "ice cream", "icecream",
    "flavoured", "flavored", "chocolate", "drink", "beverage", "coffee", "tea", "syrup",
    "whitener", "formula",
)
# 키워드 뒤에 붙으면 다른 상품이 되는 접미어 (grape + fruit)
COMPOUND_SUFFIXES = (
    "fruit", "berry", "apple", "melon", "nut", "seed", "leaf", "root", "grass", "flower", "peel", "skin", "stem",
)
FLAVOR_CONTEXT_WORDS = (
    "flavour", "flavor", "flavored", "flavoured", "taste", "scented", "fragrance", "aroma", "infused", "based",
)

_DERIVATIVE_RES = [re.compile(rf"\b{re.escape(word)}\b") for word in DERIVATIVE_WORDS]
_MILK_DERIVATIVE_RES = [re.compile(rf"\b{re.escape(word)}\b") for word in MILK_DERIVATIVE_WORDS]
_FRESH_RES = [re.compile(rf"\b{re.escape(word)}\b") for word in FRESH_WORDS]
_NAME_SPLIT_RE = re.compile(r"[\s,\-()]+")
_PACK_OF_RE = re.compile(r"\bpack\s+of\b")
_NON_WORD_RE = re.compile(r"[^\w\s]")

MIN_SCORE = -100
MAX_SCORE = 100
# 용량 묶음 정렬에서 제외할 점수
GROUPING_MIN_SCORE = 10
SIMILAR_NAME_RATIO = 0.6


def quantities_similar(a: Optional[ParsedQuantity], b: Optional[ParsedQuantity]) -> bool:
    """같은 단위이고 비율이 0.8~1.2 이내"""
    if a is None or b is None or a.base_unit != b.base_unit:
        return False
    if a.value == 0 or b.value == 0:
        return False
    return 0.8 <= a.value / b.value <= 1.2


def _is_compound(name: str, keyword: str) -> bool:
    if keyword not in name or contains_word(name, keyword):
        return False
    if any(keyword + suffix in name for suffix in COMPOUND_SUFFIXES):
        return True

    start = name.index(keyword)
    if start > 0 and name[start - 1].isalpha():
        return True
    end = start + len(keyword)
    if end < len(name):
        after = name[end]
        if after.isalpha() and after != "s":
            return True
        if after == "s" and end + 1 < len(name) and name[end + 1].isalpha():
            return True
    return False


def _is_modifier(name: str, keyword: str) -> bool:
    if keyword in PRODUCT_TYPE_WORDS:
        return False
    match = re.search(rf"\b{re.escape(keyword)}s?\b", name)
    if match is None:
        return False
    after = name[match.end():]
    if any(product_type in after for product_type in PRODUCT_TYPE_WORDS):
        return True
    return any(word in name for word in FLAVOR_CONTEXT_WORDS)


def _is_derivative(name: str) -> bool:
    return any(pattern.search(name) for pattern in _DERIVATIVE_RES)


def _generic_relevance(name: str, keyword: str) -> int:
    keyword_is_type = is_product_type(keyword)
    if not keyword_is_type:
        if _is_compound(name, keyword):
            return -100
        if _is_modifier(name, keyword):
            return -60
        if _is_derivative(name):
            return -40
    if contains_word(name, keyword):
        return 30
    if keyword in name:
        return 20 if keyword_is_type else -20
    return 0


def relevance(name: str, intent: SearchIntent) -> int:
    """검색 의도 대비 상품명 관련도 점수 (-100~100)"""
    lowered = (name or "").lower()
    keyword = intent.primary_keyword
    if not keyword:
        return 0

    if keyword == "milk" and intent.wants_primary_item and not intent.is_explicit_derivative:
        if any(pattern.search(lowered) for pattern in _MILK_DERIVATIVE_RES):
            return MIN_SCORE

    generic = _generic_relevance(lowered, keyword)
    if generic <= MIN_SCORE:
        return MIN_SCORE
    score = generic

    exact = contains_word(lowered, keyword)
    if exact:
        score += 40
    elif keyword in lowered:
        score += 10
    else:
        return 5

    words = [w for w in _NAME_SPLIT_RE.split(lowered) if w]
    if words and words[0] == keyword:
        score += 30
    elif any(w in (keyword, keyword + "s") for w in words[:3]):
        score += 20
    elif exact:
        score += 10

    if intent.wants_primary_item or intent.wants_fresh:
        if any(pattern.search(lowered) for pattern in _FRESH_RES):
            score += 15

    if intent.category is not None:
        if any(word in lowered for word in CATEGORY_KEYWORDS.get(intent.category, ())):
            score += 10

    if intent.wants_primary_item and not intent.is_explicit_derivative and not is_product_type(keyword):
        if _is_derivative(lowered):
            score -= 20

    if intent.requested_quantity is not None:
        if quantities_similar(parse_quantity(lowered), intent.requested_quantity):
            score += 20

    if len(lowered) > 100:
        score -= 15
    elif len(lowered) > 80:
        score -= 10
    elif len(lowered) > 60:
        score -= 5

    if QUANTITY_PATTERN.search(lowered):
        score += 10

    query = intent.original.lower()
    if "combo" not in query and "pack of" not in query:
        if "combo" in lowered or _PACK_OF_RE.search(lowered):
            score -= 10

    return max(MIN_SCORE, min(MAX_SCORE, score))


def min_score_for(intent: SearchIntent) -> int:
    if intent.wants_primary_item and intent.category in ("fruit", "vegetable"):
        return 35
    if intent.wants_primary_item and intent.category == "dairy":
        return 25
    if intent.wants_primary_item:
        return 20
    if intent.is_explicit_derivative:
        return 10
    return 15


def rank_results(products: Sequence[Product], intent: SearchIntent) -> List[Product]:
    """관련도 기준 필터 + 내림차순 정렬 (동점은 입력 순서 유지)"""
    if not products:
        return []

    threshold = min_score_for(intent)
    scored = [(relevance(p.name, intent), p) for p in products]
    kept = [pair for pair in scored if pair[0] >= threshold]
    kept.sort(key=lambda pair: pair[0], reverse=True)

    dropped = len(products) - len(kept)
    if dropped:
        logger.debug(
            f"[RANKING] '{sanitize_for_log(intent.original)}': filtered {dropped}/{len(products)} "
            f"products (min score {threshold})"
        )
    return [p for _, p in kept]


@dataclass
class AnalyzedProduct:
    product: Product
    relevance: int
    quantity: Optional[ParsedQuantity]
    per_unit_price: Optional[float]


@dataclass
class QuantityGroupedResults:
    products: List[Product] = field(default_factory=list)
    matching_quantity: Optional[ParsedQuantity] = None
    analyzed: List[AnalyzedProduct] = field(default_factory=list)


def _analyze(product: Product, intent: SearchIntent) -> AnalyzedProduct:
    quantity = parse_quantity(product.name)
    per_unit = product.price / quantity.value if quantity is not None and quantity.value > 0 else None
    return AnalyzedProduct(product, relevance(product.name, intent), quantity, per_unit)


def _by_relevance_then_unit_price(item: AnalyzedProduct) -> tuple[int, float]:
    return (-item.relevance, item.per_unit_price if item.per_unit_price is not None else float("inf"))


def rank_and_group_by_quantity(products: Sequence[Product], intent: SearchIntent) -> QuantityGroupedResults:
    """관련도 10 미만 제외 후 정렬

    요청 용량이 있으면 같은 단위/비슷한 용량 상품을 앞에 두고(관련도 → 단위가격),
    나머지는 관련도 순으로 뒤에 붙입니다. 요청 용량이 없으면 관련도 → 단위가격 순.
    """
    analyzed = [a for a in (_analyze(p, intent) for p in products) if a.relevance >= GROUPING_MIN_SCORE]

    requested = intent.requested_quantity
    if requested is None:
        ordered = sorted(analyzed, key=_by_relevance_then_unit_price)
        return QuantityGroupedResults([a.product for a in ordered], None, ordered)

    matching = [a for a in analyzed if quantities_similar(a.quantity, requested)]
    others = [a for a in analyzed if not quantities_similar(a.quantity, requested)]
    ordered = sorted(matching, key=_by_relevance_then_unit_price) + sorted(
        others, key=lambda a: a.relevance, reverse=True
    )
    return QuantityGroupedResults([a.product for a in ordered], requested, ordered)


def _key_words(name: str) -> set[str]:
    cleaned = _NON_WORD_RE.sub("", name.lower())
    return set([w for w in cleaned.split() if len(w) > 2][:5])


def are_similar_products(a: Product, b: Product) -> bool:
    """앞 5개 핵심 단어 자카드 유사도 > 0.6 이고 (둘 다 파싱되면) 용량이 비슷"""
    words_a, words_b = _key_words(a.name), _key_words(b.name)
    union = words_a | words_b
    if not union:
        return False
    similarity = len(words_a & words_b) / len(union)

    qa, qb = parse_quantity(a.name), parse_quantity(b.name)
    quantity_match = quantities_similar(qa, qb) if qa is not None and qb is not None else True
    return similarity > SIMILAR_NAME_RATIO and quantity_match


def group_similar_products(products: Iterable[Product]) -> Dict[str, List[Product]]:
    """소스 간 같은 상품 묶기

    - 그룹당 소스별 최대 1개 (먼저 온 상품 유지)
    - 대표 이름은 가장 짧은 이름, 그룹 안은 가격 오름차순
    """
    groups: List[List[Product]] = []
    for product in products:
        for group in groups:
            if any(are_similar_products(member, product) for member in group):
                if all(member.source != product.source for member in group):
                    group.append(product)
                break
        else:
            groups.append([product])

    return {
        min(group, key=lambda p: len(p.name)).name: sorted(group, key=lambda p: p.price)
        for group in groups
    }
