"""구조화 메타데이터 전략 (JSON-LD, microdata, Open Graph)."""

from __future__ import annotations

import json
from typing import Any, Optional

from selectolax.parser import Node

from src.core.logging import logger
from src.crawlers.extraction.candidate import ExtractionContext, ProductCandidate
from src.crawlers.extraction.prices import first_price_in_text, parse_amount


_MAX_LD_DEPTH = 8
_MIN_PAIRED_ITEMS = 3


def to_price(value: Any) -> Optional[float]:
    """JSON/속성 값(숫자, "82.00", "₹82")을 가격으로 변환"""
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        return float(value) if value > 0 else None
    if isinstance(value, str):
        stripped = value.strip()
        return parse_amount(stripped) if stripped.replace(",", "").replace(".", "", 1).isdigit() else first_price_in_text(stripped)
    if isinstance(value, dict):
        for key in ("value", "amount", "price"):
            if key in value:
                return to_price(value[key])
    return None


def image_from_value(value: Any) -> Optional[str]:
    """image 필드: 문자열 / 리스트 / {"url": ...}"""
    if not value:
        return None
    if isinstance(value, str):
        return value
    if isinstance(value, list):
        for item in value:
            found = image_from_value(item)
            if found:
                return found
        return None
    if isinstance(value, dict):
        return value.get("url") or value.get("contentUrl") or value.get("src")
    return None


# ============================================================================
# JSON-LD
# ============================================================================

def _ld_types(node: dict) -> set[str]:
    raw = node.get("@type")
    if isinstance(raw, str):
        return {raw.lower()}
    if isinstance(raw, list):
        return {str(t).lower() for t in raw}
    return set()


def _ld_offer_prices(offers: Any) -> tuple[Optional[float], Optional[float]]:
    if isinstance(offers, list):
        prices = [p for p in (_ld_offer_prices(o)[0] for o in offers) if p]
        if not prices:
            return None, None
        return min(prices), (max(prices) if len(prices) > 1 else None)
    if not isinstance(offers, dict):
        return None, None

    price = to_price(offers.get("price")) or to_price(offers.get("lowPrice"))
    high = to_price(offers.get("highPrice"))
    spec = offers.get("priceSpecification")
    if price is None and isinstance(spec, (dict, list)):
        price, _ = _ld_offer_prices(spec)
    return price, high


def _ld_product(node: dict) -> Optional[ProductCandidate]:
    name = node.get("name")
    if not isinstance(name, str):
        return None

    price, high = _ld_offer_prices(node.get("offers"))
    if price is None:
        price = to_price(node.get("price"))
    if price is None:
        return None

    original = high if high and high > price else None
    url = node.get("url") if isinstance(node.get("url"), str) else None
    if url is None and isinstance(node.get("offers"), dict):
        offer_url = node["offers"].get("url")
        url = offer_url if isinstance(offer_url, str) else None

    return ProductCandidate(
        name=name,
        price=price,
        original_price=original,
        image_url=image_from_value(node.get("image")),
        url=url,
    )


def _collect_ld(node: Any, out: list[ProductCandidate], depth: int) -> None:
    if depth > _MAX_LD_DEPTH:
        return

    if isinstance(node, list):
        for item in node:
            _collect_ld(item, out, depth + 1)
        return

    if not isinstance(node, dict):
        return

    types = _ld_types(node)
    if "product" in types or "individualproduct" in types:
        cand = _ld_product(node)
        if cand:
            out.append(cand)

    if "itemlist" in types:
        for element in node.get("itemListElement") or []:
            if isinstance(element, dict) and isinstance(element.get("item"), dict):
                _collect_ld(element["item"], out, depth + 1)
            else:
                _collect_ld(element, out, depth + 1)

    for key in ("@graph", "mainEntity", "hasPart"):
        if key in node:
            _collect_ld(node[key], out, depth + 1)


def extract_json_ld(ctx: ExtractionContext) -> list[ProductCandidate]:
    out: list[ProductCandidate] = []
    for script in ctx.tree.css('script[type="application/ld+json"]'):
        raw = script.text(deep=True) or ""
        if not raw.strip():
            continue
        try:
            data = json.loads(raw)
        except ValueError:
            logger.debug(f"[EXTRACTOR] {ctx.source_id}: skipping malformed JSON-LD block")
            continue
        _collect_ld(data, out, 0)
    return out


# ============================================================================
# Microdata
# ============================================================================

def _itemprop_value(container: Node, prop: str) -> Optional[str]:
    node = container.css_first(f'[itemprop="{prop}"]')
    if node is None:
        return None
    attrs = node.attributes or {}
    for attr in ("content", "src", "href", "data-src"):
        if attrs.get(attr):
            return attrs[attr]
    text = node.text(separator=" ", strip=True)
    return text or None


def extract_microdata(ctx: ExtractionContext) -> list[ProductCandidate]:
    out: list[ProductCandidate] = []
    for container in ctx.tree.css('[itemtype*="schema.org/Product"]'):
        name = _itemprop_value(container, "name")
        price = to_price(_itemprop_value(container, "price")) or to_price(_itemprop_value(container, "lowPrice"))
        if not name or price is None:
            continue
        high = to_price(_itemprop_value(container, "highPrice"))
        url = _itemprop_value(container, "url")
        if not url:
            link = container.css_first("a[href]")
            url = (link.attributes or {}).get("href") if link is not None else None
        out.append(ProductCandidate(
            name=name,
            price=price,
            original_price=high if high and high > price else None,
            image_url=_itemprop_value(container, "image"),
            url=url,
        ))

    if out:
        return out

    # 컨테이너 없이 itemprop만 흩어져 있는 경우: name/price 목록을 순서대로 짝지음
    names = ctx.tree.css('[itemprop="name"]')
    prices = ctx.tree.css('[itemprop="price"]')
    if len(names) < _MIN_PAIRED_ITEMS or len(prices) < _MIN_PAIRED_ITEMS:
        return out

    for name_node, price_node in zip(names, prices):
        attrs = price_node.attributes or {}
        price = to_price(attrs.get("content") or price_node.text(strip=True))
        name_attrs = name_node.attributes or {}
        name = name_attrs.get("content") or name_node.text(separator=" ", strip=True)
        if name and price:
            out.append(ProductCandidate(name=name, price=price))
    return out


# ============================================================================
# Open Graph
# ============================================================================

def _meta(ctx: ExtractionContext, *keys: str) -> Optional[str]:
    for key in keys:
        node = ctx.tree.css_first(f'meta[property="{key}"]') or ctx.tree.css_first(f'meta[name="{key}"]')
        if node is not None:
            content = (node.attributes or {}).get("content")
            if content:
                return content
    return None


def extract_open_graph(ctx: ExtractionContext) -> list[ProductCandidate]:
    name = _meta(ctx, "product:title", "og:title")
    price = to_price(_meta(ctx, "product:price:amount", "og:price:amount", "product:sale_price:amount"))
    if not name or price is None:
        return []

    original = to_price(_meta(ctx, "product:original_price:amount"))
    return [ProductCandidate(
        name=name,
        price=price,
        original_price=original if original and original > price else None,
        image_url=_meta(ctx, "og:image", "og:image:url"),
        url=_meta(ctx, "og:url"),
    )]
