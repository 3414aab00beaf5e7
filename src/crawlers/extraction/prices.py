"""가격 추출 - 판매가/정가(MRP)/할인액/단위가격이 섞인 텍스트에서 판매가 고르기.

카드 하나에 "₹82 ₹121 ₹39 OFF" 처럼 여러 금액이 있을 때:
- 할인액("Save ₹39", "₹39 OFF")은 SAVINGS
- "₹12/100g" 같은 단위가격은 PER_UNIT
- 나머지는 VALID → 1~2개면 최저가, 3개 이상이면 최저가가 최고가의 30% 미만일 때
  걸러지지 않은 할인액으로 보고 두 번째 최저가를 판매가로 선택
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from enum import Enum
from typing import Iterable, Optional

from selectolax.parser import Node


PRICE_PATTERN = re.compile(
    r"(?:₹|\bRs\.?|\bINR|\bMRP:?\s*₹?)\s*(\d+(?:,\d{2,3})*(?:\.\d{1,2})?)",
    re.IGNORECASE,
)

_BARE_NUMBER_RE = re.compile(r"^\s*(\d+(?:,\d{2,3})*(?:\.\d{1,2})?)\s*$")
_PER_UNIT_AFTER_RE = re.compile(
    r"^[\s/]*(?:\d+(?:\.\d+)?\s*)?(g|gm|kg|ml|l|pc|piece)\b", re.IGNORECASE
)

_SAVINGS_AFTER_RE = re.compile(r"^\s*(?:%\s*)?(?:off|discount)\b", re.IGNORECASE)

_WINDOW_BEFORE = 30
_WINDOW_AFTER = 20

# 3개 이상일 때 최저가가 최고가의 이 비율 미만이면 할인액으로 간주
STRAY_SAVINGS_RATIO = 0.3

MAX_REASONABLE_PRICE = 10_000_000.0

SELLING_PRICE_SELECTORS = (
    "[data-testid='selling-price']",
    "[data-testid*='product-price']",
    "[class*='sellingPrice']",
    "[class*='selling-price']",
    "[class*='DiscountedPrice']",
    "[class*='currentPrice']",
    "[class*='offer-price']",
    "[class*='final-price']",
    ".a-price .a-offscreen",
    ".a-price-whole",
)

ORIGINAL_PRICE_SELECTORS = (
    "[data-testid*='mrp']",
    "[class*='original-price']",
    "[class*='originalPrice']",
    "[class*='mrp']",
    "[class*='MRP']",
    "[class*='strikethrough']",
    "[class*='was-price']",
    "[class*='list-price']",
    ".a-text-price .a-offscreen",
    "del",
    "s",
    "strike",
)

# 판매가 셀렉터 중 정가/할인을 가리키는 노드는 제외
_HINT_EXCLUDE_MARKERS = ("mrp", "original", "strike", "save", "saving", "discount-amount", "was-price", "list-price")
_HINT_SAVINGS_RE = re.compile(r"\b(save|saving|off|discount)\b", re.IGNORECASE)


class AmountKind(str, Enum):
    VALID = "valid"
    SAVINGS = "savings"
    PER_UNIT = "per_unit"


@dataclass(frozen=True)
class PriceAmount:
    value: float
    kind: AmountKind


@dataclass(frozen=True)
class PriceSelection:
    price: Optional[float]
    original_price: Optional[float] = None


def parse_amount(raw: str) -> Optional[float]:
    """'1,299.50' -> 1299.5"""
    if not raw:
        return None
    try:
        value = float(raw.replace(",", ""))
    except ValueError:
        return None
    if value <= 0 or value > MAX_REASONABLE_PRICE:
        return None
    return value


def first_price_in_text(text: str) -> Optional[float]:
    """텍스트의 첫 번째 통화 금액 (통화기호 없는 순수 숫자도 허용)"""
    if not text:
        return None
    m = PRICE_PATTERN.search(text)
    if m:
        return parse_amount(m.group(1))
    bare = _BARE_NUMBER_RE.match(text)
    if bare:
        return parse_amount(bare.group(1))
    return None


def contains_price(text: str) -> bool:
    return bool(text) and PRICE_PATTERN.search(text) is not None


def _is_savings_context(before: str, after: str) -> bool:
    if "save" in before or "discount" in before:
        return True
    stripped_before = before.rstrip()
    if stripped_before.endswith(("-", "−")):
        return True
    return _SAVINGS_AFTER_RE.match(after) is not None


def _is_per_unit_context(after: str) -> bool:
    stripped = after.lstrip()
    if stripped.startswith("/") or stripped.startswith("per "):
        return True
    return _PER_UNIT_AFTER_RE.match(after) is not None


def classify_amounts(text: str) -> list[PriceAmount]:
    """텍스트의 모든 금액을 주변 문맥으로 분류"""
    amounts: list[PriceAmount] = []
    if not text:
        return amounts

    for m in PRICE_PATTERN.finditer(text):
        value = parse_amount(m.group(1))
        if value is None:
            continue
        before = text[max(0, m.start() - _WINDOW_BEFORE):m.start()].lower()
        after = text[m.end():m.end() + _WINDOW_AFTER].lower()

        if _is_savings_context(before, after):
            kind = AmountKind.SAVINGS
        elif _is_per_unit_context(after):
            kind = AmountKind.PER_UNIT
        else:
            kind = AmountKind.VALID
        amounts.append(PriceAmount(value, kind))
    return amounts


def pick_selling_price(valid_amounts: Iterable[float]) -> Optional[float]:
    """VALID 금액 목록에서 판매가 선택"""
    distinct = sorted(set(v for v in valid_amounts if v and v > 0))
    if not distinct:
        return None
    if len(distinct) <= 2:
        return distinct[0]

    lowest, second_lowest, highest = distinct[0], distinct[1], distinct[-1]
    # 둘째 값도 너무 작으면 stray 판단 근거가 없으므로 최저가 유지
    if lowest < STRAY_SAVINGS_RATIO * highest and second_lowest >= STRAY_SAVINGS_RATIO * highest:
        return second_lowest
    return lowest


def pick_original_price(valid_amounts: Iterable[float], selling: Optional[float]) -> Optional[float]:
    """판매가보다 큰 VALID 금액 중 최댓값"""
    if selling is None:
        return None
    higher = [v for v in valid_amounts if v > selling]
    return max(higher) if higher else None


def select_prices_from_text(text: str) -> PriceSelection:
    """문맥 분류 기반 판매가/정가 선택 (셀렉터 힌트가 없을 때)"""
    valid = [a.value for a in classify_amounts(text) if a.kind is AmountKind.VALID]
    selling = pick_selling_price(valid)
    return PriceSelection(price=selling, original_price=pick_original_price(valid, selling))


def _node_marker(node: Node) -> str:
    attrs = node.attributes or {}
    return " ".join(
        str(attrs.get(k) or "") for k in ("class", "data-testid", "data-qa", "id")
    ).lower()


def _price_from_hint_node(node: Node) -> Optional[float]:
    marker = _node_marker(node)
    if any(m in marker for m in _HINT_EXCLUDE_MARKERS):
        return None
    if node.tag in ("del", "s", "strike"):
        return None

    text = node.text(separator=" ", strip=True)
    if _HINT_SAVINGS_RE.search(text):
        return None

    attrs = node.attributes or {}
    content = attrs.get("content")
    if content:
        value = first_price_in_text(content)
        if value:
            return value
    return first_price_in_text(text)


def price_from_selectors(container: Node, selectors: Iterable[str]) -> Optional[float]:
    """셀렉터 힌트(판매가)에서 가격 찾기 - 정가/할인 표기 노드는 건너뜀"""
    for sel in selectors:
        try:
            nodes = container.css(sel)
        except Exception:
            continue
        for node in nodes:
            value = _price_from_hint_node(node)
            if value:
                return value
    return None


def original_from_selectors(container: Node, selling: float) -> Optional[float]:
    """정가 전용 셀렉터에서 판매가보다 큰 금액 찾기"""
    for sel in ORIGINAL_PRICE_SELECTORS:
        try:
            nodes = container.css(sel)
        except Exception:
            continue
        for node in nodes:
            value = first_price_in_text(node.text(separator=" ", strip=True))
            if value and value > selling:
                return value
    return None


def extract_smart_price(container: Node, extra_selectors: Iterable[str] = ()) -> PriceSelection:
    """상품 컨테이너에서 판매가/정가 추출

    1. 소스 힌트 + 공통 판매가 셀렉터
    2. 컨테이너 텍스트의 금액 문맥 분류
    정가는 전용 셀렉터 우선, 없으면 판매가보다 큰 VALID 금액 중 최댓값
    """
    text = container.text(separator=" ", strip=True)

    selling = price_from_selectors(container, tuple(extra_selectors) + SELLING_PRICE_SELECTORS)
    if selling is None:
        from_text = select_prices_from_text(text)
        selling = from_text.price
        if selling is None:
            return PriceSelection(price=None)

    original = original_from_selectors(container, selling)
    if original is None:
        valid = [a.value for a in classify_amounts(text) if a.kind is AmountKind.VALID]
        original = pick_original_price(valid, selling)

    return PriceSelection(price=selling, original_price=original)
