"""Best Deal Selector - 검색어 관련도 점수 + 단위가격 비교로 최적 상품 선택

점수 규칙:
- 의미 있는 검색어 토큰(3자 이상)이 이름에 하나도 없으면 -100
- 키워드 위치: 첫 토큰 +50 / 마지막 두 토큰 +40 / 앞 세 토큰 +30 / 그 외 +20
- 파생 상품 표시어(juice, chocolate, bar ...) 하나당 -40
- 용량 표기(500ml, 1kg ...) +20, fresh/organic +10

등급: HIGH(>=20) > MEDIUM(0~19) > LOW(<0). 비어 있지 않은 가장 높은 등급에서 고릅니다.
"""

from __future__ import annotations

import re
from collections import defaultdict
from enum import Enum
from typing import Dict, List, Mapping, Optional, Sequence

from src.core.logging import logger, sanitize_for_log
from src.schemas.product_schema import Product
from src.utils.text_utils import has_quantity_pattern, normalize_query, parse_quantity, price_per_100_units, tokenize_name


DERIVATIVE_INDICATORS = (
    "juice", "jam", "jelly", "sauce", "syrup", "flavour", "flavor", "essence", "extract",
    "candy", "chocolate", "ice cream", "shake", "smoothie", "squash", "drink", "beverage",
    "powder", "mix", "bar", "cake", "pastry", "muffin", "cookie", "biscuit", "wafer",
    "toffee", "chips", "snack", "icecream",
)
# 4자 이상 표시어는 합성어 끝에 붙어도 인정 (milkshake, cupcake). 3자 이하(bar, jam, mix)는 단독 단어만
_DERIVATIVE_RES = [
    re.compile(rf"\b{re.escape(word)}s?\b" if len(word) <= 3 else rf"{re.escape(word)}s?\b")
    for word in DERIVATIVE_INDICATORS
]
_BONUS_WORDS = ("fresh", "organic")

# 단위가격 최저 상품이 최저가의 1.5배를 넘으면 대용량 팩으로 보고 채택하지 않음
PER_UNIT_PRICE_GUARD = 1.5


class RelevanceTier(int, Enum):
    LOW = 0
    MEDIUM = 1
    HIGH = 2


def relevance_score(name: str, query: str) -> int:
    """상품명과 검색어의 관련도 점수"""
    normalized = normalize_query(query)
    keyword = normalized.split(" ")[0] if normalized else ""
    meaningful = [t for t in normalized.split(" ") if len(t) >= 3] or ([keyword] if keyword else [])

    lowered = (name or "").lower()
    if not any(token in lowered for token in meaningful):
        return -100

    tokens = tokenize_name(name)
    score = 0
    if tokens and keyword in tokens[0]:
        score += 50
    elif any(keyword in t for t in tokens[-2:]):
        score += 40
    elif any(keyword in t for t in tokens[:3]):
        score += 30
    elif keyword in lowered:
        score += 20

    for pattern in _DERIVATIVE_RES:
        if pattern.search(lowered):
            score -= 40

    if has_quantity_pattern(name):
        score += 20
    if any(re.search(rf"\b{word}\b", lowered) for word in _BONUS_WORDS):
        score += 10
    return score


def tier_of(score: int) -> RelevanceTier:
    if score >= 20:
        return RelevanceTier.HIGH
    if score >= 0:
        return RelevanceTier.MEDIUM
    return RelevanceTier.LOW


def _pick_in_tier(products: Sequence[Product]) -> Product:
    cheapest = min(products, key=lambda p: p.price)

    # 무게/부피는 서로 비교 가능, 개수(pc)는 별도 그룹. 후보가 많은 그룹으로 비교
    families: Dict[str, List[tuple[float, Product]]] = defaultdict(list)
    for product in products:
        quantity = parse_quantity(product.name)
        if quantity is None:
            continue
        families[quantity.family].append((price_per_100_units(product.price, quantity), product))

    if not families:
        return cheapest

    group = max(families.values(), key=len)
    _, best_per_unit = min(group, key=lambda pair: pair[0])
    if best_per_unit.price <= PER_UNIT_PRICE_GUARD * cheapest.price:
        return best_per_unit
    return cheapest


def select_best_deal(aggregated: Mapping[str, Sequence[Product]], query: str) -> Optional[Product]:
    """소스별 결과에서 최적 상품 1개 선택

    Args:
        aggregated: {source: [Product]}
        query: 검색어

    Returns:
        최적 상품 또는 후보가 없으면 None
    """
    candidates = [p for products in aggregated.values() for p in products if p.available and p.price > 0]
    if not candidates:
        return None

    tiers: Dict[RelevanceTier, List[Product]] = defaultdict(list)
    for product in candidates:
        tiers[tier_of(relevance_score(product.name, query))].append(product)

    for tier in (RelevanceTier.HIGH, RelevanceTier.MEDIUM, RelevanceTier.LOW):
        if tiers[tier]:
            best = _pick_in_tier(tiers[tier])
            logger.debug(
                f"[ORCHESTRATOR] best deal for '{sanitize_for_log(query)}': "
                f"{sanitize_for_log(best.name)} @{best.price} ({best.source}, tier={tier.name})"
            )
            return best
    return None
