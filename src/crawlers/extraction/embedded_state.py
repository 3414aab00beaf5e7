"""페이지에 내장된 상태 JSON(__NEXT_DATA__ 등)에서 상품 찾기.

SPA 검색 페이지는 초기 상태를 script 태그에 JSON으로 넣어두는 경우가 많습니다.
상품 목록으로 보이는 키를 따라 제한된 깊이까지 재귀 탐색합니다.
"""

from __future__ import annotations

import json
from typing import Any, Optional

from src.core.logging import logger
from src.crawlers.extraction.candidate import ExtractionContext, ProductCandidate
from src.crawlers.extraction.structured import image_from_value, to_price


MAX_DEPTH = 8
MAX_RESULTS = 15

PRODUCT_LIST_KEYS = (
    "products",
    "items",
    "results",
    "searchResults",
    "data",
    "listings",
    "productList",
    "widgets",
    "entities",
    "objects",
    "hits",
    "nodes",
    "edges",
    "list",
    "content",
    "inventory",
    "catalog",
)

NAME_KEYS = ("name", "title", "productName", "product_name", "display_name", "displayName")
PRICE_KEYS = (
    "price",
    "sellingPrice",
    "selling_price",
    "offerPrice",
    "offer_price",
    "finalPrice",
    "final_price",
    "discountedPrice",
    "discounted_price",
    "salePrice",
    "sale_price",
    "sp",
    # 판매가 필드가 없으면 MRP라도 사용
    "mrp",
)
ORIGINAL_KEYS = ("mrp", "MRP", "originalPrice", "original_price", "listPrice", "list_price", "strikePrice", "marked_price")
IMAGE_KEYS = ("image", "imageUrl", "image_url", "img", "thumbnail", "images", "imageUrls")
URL_KEYS = ("url", "link", "href", "productUrl", "product_url", "slug")

_STATE_SCRIPTS = 'script#__NEXT_DATA__, script[type="application/json"]'


def _first(node: dict, keys: tuple[str, ...]) -> Any:
    for key in keys:
        value = node.get(key)
        if value not in (None, "", [], {}):
            return value
    return None


def _candidate_from_object(node: dict) -> Optional[ProductCandidate]:
    name = _first(node, NAME_KEYS)
    if not isinstance(name, str):
        return None

    price = to_price(_first(node, PRICE_KEYS))
    if price is None:
        return None

    original = to_price(_first(node, ORIGINAL_KEYS))
    url = _first(node, URL_KEYS)
    return ProductCandidate(
        name=name,
        price=price,
        original_price=original if original and original > price else None,
        image_url=image_from_value(_first(node, IMAGE_KEYS)),
        url=url if isinstance(url, str) else None,
    )


def _walk(node: Any, out: list[ProductCandidate], depth: int) -> None:
    if depth > MAX_DEPTH or len(out) >= MAX_RESULTS:
        return

    if isinstance(node, list):
        for item in node:
            if len(out) >= MAX_RESULTS:
                return
            if isinstance(item, dict):
                cand = _candidate_from_object(item)
                if cand:
                    out.append(cand)
                    continue
                # GraphQL edges: {"node": {...}}
                inner = item.get("node")
                if isinstance(inner, dict):
                    cand = _candidate_from_object(inner)
                    if cand:
                        out.append(cand)
                        continue
            _walk(item, out, depth + 1)
        return

    if not isinstance(node, dict):
        return

    for key in PRODUCT_LIST_KEYS:
        if key in node:
            _walk(node[key], out, depth + 1)

    # 목록 키가 없는 중첩(props.pageProps.initialState ...)도 따라감
    for key, value in node.items():
        if key in PRODUCT_LIST_KEYS:
            continue
        if isinstance(value, (dict, list)):
            _walk(value, out, depth + 1)


def find_products_in_state(data: Any) -> list[ProductCandidate]:
    out: list[ProductCandidate] = []
    _walk(data, out, 0)
    return out[:MAX_RESULTS]


def extract_embedded_state(ctx: ExtractionContext) -> list[ProductCandidate]:
    out: list[ProductCandidate] = []
    for script in ctx.tree.css(_STATE_SCRIPTS):
        raw = script.text(deep=True) or ""
        if not raw.strip():
            continue
        try:
            data = json.loads(raw)
        except ValueError:
            logger.debug(f"[EXTRACTOR] {ctx.source_id}: embedded state is not valid JSON")
            continue
        out.extend(find_products_in_state(data))
        if len(out) >= MAX_RESULTS:
            return out[:MAX_RESULTS]
    return out
