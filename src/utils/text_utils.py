"""텍스트 유틸 - 검색어 정규화, 상품명 토큰화, 용량(수량) 파싱"""

from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Optional


_WS_RE = re.compile(r"\s+")
_NAME_SPLIT_RE = re.compile(r"[\s,\-()]+")

# 점수 계산용 용량 패턴 (숫자 + 단위)
QUANTITY_PATTERN = re.compile(r"\d+\s*(g|gm|kg|ml|l|pc|pcs)\b", re.IGNORECASE)

# 단위가격 계산용 상세 패턴
_QUANTITY_DETAIL_RE = re.compile(
    r"(\d+(?:\.\d+)?)\s*"
    r"(kgs?|kilograms?|grams?|gms?|g|ltrs?|litres?|liters?|l|ml|millilitres?|pcs|pc|pieces?|units?)\b",
    re.IGNORECASE,
)
_MULTIPACK_RE = re.compile(r"(\d+)\s*[x×]\s*(\d+(?:\.\d+)?)\s*(kg|g|gm|ml|l)\b", re.IGNORECASE)

_UNIT_FACTORS: dict[str, tuple[str, float]] = {
    "kg": ("g", 1000.0),
    "kgs": ("g", 1000.0),
    "kilogram": ("g", 1000.0),
    "kilograms": ("g", 1000.0),
    "g": ("g", 1.0),
    "gm": ("g", 1.0),
    "gms": ("g", 1.0),
    "gram": ("g", 1.0),
    "grams": ("g", 1.0),
    "l": ("ml", 1000.0),
    "ltr": ("ml", 1000.0),
    "ltrs": ("ml", 1000.0),
    "litre": ("ml", 1000.0),
    "litres": ("ml", 1000.0),
    "liter": ("ml", 1000.0),
    "liters": ("ml", 1000.0),
    "ml": ("ml", 1.0),
    "millilitre": ("ml", 1.0),
    "millilitres": ("ml", 1.0),
    "pc": ("pc", 1.0),
    "pcs": ("pc", 1.0),
    "piece": ("pc", 1.0),
    "pieces": ("pc", 1.0),
    "unit": ("pc", 1.0),
    "units": ("pc", 1.0),
}


@dataclass(frozen=True)
class ParsedQuantity:
    """기준 단위(g/ml/pc)로 환산된 용량"""

    value: float
    base_unit: str

    @property
    def family(self) -> str:
        # 무게/부피는 비교 가능한 것으로 취급, 개수는 별도
        return "count" if self.base_unit == "pc" else "measure"

    def display(self) -> str:
        """표시용 문자열 (1000 이상이면 kg/L로 올림)"""
        if self.base_unit == "pc":
            return f"{int(self.value)} pcs"
        if self.value >= 1000:
            unit = "kg" if self.base_unit == "g" else "L"
            return f"{_format_number(self.value / 1000)} {unit}"
        return f"{_format_number(self.value)} {self.base_unit}"


def _format_number(value: float) -> str:
    if value == int(value):
        return str(int(value))
    return f"{value:.1f}"


def normalize_query(query: str) -> str:
    """검색어 정규화 (소문자, 앞뒤 공백 제거, 연속 공백 1칸)"""
    if not query:
        return ""
    return _WS_RE.sub(" ", query).strip().lower()


def clean_display_text(text: str) -> str:
    """화면 텍스트 공백 정리"""
    if not text:
        return ""
    return _WS_RE.sub(" ", text.replace("\xa0", " ")).strip()


def tokenize_name(name: str) -> list[str]:
    """상품명을 공백/쉼표/하이픈/괄호 기준으로 토큰화 (소문자)"""
    if not name:
        return []
    return [t for t in _NAME_SPLIT_RE.split(name.lower()) if t]


def has_quantity_pattern(name: str) -> bool:
    return bool(name) and QUANTITY_PATTERN.search(name) is not None


def parse_quantity(text: str) -> Optional[ParsedQuantity]:
    """상품명에서 용량 파싱 후 기준 단위로 환산

    Examples:
        "Amul Milk 1L" -> 1000 ml
        "Toned Milk 500ml" -> 500 ml
        "Eggs 6 pcs" -> 6 pc
        "Juice 4 x 200ml" -> 800 ml
    """
    if not text:
        return None

    multi = _MULTIPACK_RE.search(text)
    if multi:
        count = float(multi.group(1))
        amount = float(multi.group(2))
        unit = multi.group(3).lower()
        base_unit, factor = _UNIT_FACTORS[unit]
        total = count * amount * factor
        if total > 0:
            return ParsedQuantity(total, base_unit)

    match = _QUANTITY_DETAIL_RE.search(text)
    if not match:
        return None

    amount = float(match.group(1))
    unit = match.group(2).lower()
    mapped = _UNIT_FACTORS.get(unit)
    if mapped is None or amount <= 0:
        return None

    base_unit, factor = mapped
    return ParsedQuantity(amount * factor, base_unit)


def price_per_100_units(price: float, quantity: ParsedQuantity) -> float:
    """기준 단위 100당 가격 (100g/100ml/100pc)"""
    return price / quantity.value * 100.0
