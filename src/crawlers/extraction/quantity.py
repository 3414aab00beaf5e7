"""상품명 용량 보강 - 이름에 용량이 없으면 같은 카드의 텍스트에서 찾아 덧붙입니다.

카드에 따라 이름("Amul Butter")과 용량("500 g")이 다른 요소에 따로 표시되는데,
단위가격 비교는 이름의 용량에 의존하므로 "Amul Butter, 500 g" 형태로 합칩니다.
"""

from __future__ import annotations

from typing import Iterable, Optional

from selectolax.parser import HTMLParser, Node

from src.schemas.product_schema import Product
from src.utils.text_utils import parse_quantity


MAX_MATCHED_ELEMENTS = 10
CONTEXT_MIN_CHARS = 20
CONTEXT_MAX_CHARS = 600


def _search_keys(name: str) -> list[str]:
    tokens = [t for t in name.lower().split() if len(t) > 2]
    if not tokens:
        return []
    keys: list[str] = []
    for key in (" ".join(tokens[:4]), " ".join(tokens[:2]), tokens[0]):
        if key and key not in keys:
            keys.append(key)
    return keys


def _mentions(node: Node, key: str) -> bool:
    own = (node.text(deep=False) or "").lower()
    if key in own:
        return True
    alt = ((node.attributes or {}).get("alt") or "").lower()
    return key in alt


def _context_of(node: Node) -> str:
    current = node.parent
    while current is not None:
        text = current.text(separator=" ", strip=True)
        if CONTEXT_MIN_CHARS <= len(text) <= CONTEXT_MAX_CHARS:
            return text
        if len(text) > CONTEXT_MAX_CHARS:
            break
        current = current.parent
    return node.text(separator=" ", strip=True)


def find_quantity_context(tree: HTMLParser, name: str) -> Optional[str]:
    """상품명을 언급하는 요소 주변(카드 크기) 텍스트 중 용량이 들어 있는 첫 텍스트"""
    root = tree.body or tree.root
    if root is None:
        return None

    nodes = list(root.traverse(include_text=False))
    for key in _search_keys(name):
        matched = 0
        for node in nodes:
            if not _mentions(node, key):
                continue
            context = _context_of(node)
            if parse_quantity(context) is not None:
                return context
            matched += 1
            if matched >= MAX_MATCHED_ELEMENTS:
                break
    return None


def append_quantity(name: str, context: Optional[str]) -> str:
    """이름에 용량이 없고 문맥에 있으면 "이름, 용량" """
    trimmed = name.strip()
    if parse_quantity(trimmed) is not None or not context:
        return trimmed
    quantity = parse_quantity(context)
    if quantity is None:
        return trimmed
    label = quantity.display()
    if label.lower() in trimmed.lower():
        return trimmed
    return f"{trimmed}, {label}"


def enrich_with_quantity(products: Iterable[Product], tree: HTMLParser) -> list[Product]:
    out: list[Product] = []
    for product in products:
        if parse_quantity(product.name) is not None:
            out.append(product)
            continue
        enriched = append_quantity(product.name, find_quantity_context(tree, product.name))
        out.append(product.model_copy(update={"name": enriched}) if enriched != product.name else product)
    return out
