"""최후 폴백: 보이는 텍스트를 줄 단위로 훑어 "상품명 줄 → 가격 줄" 쌍을 찾습니다."""

from __future__ import annotations

from selectolax.parser import HTMLParser

from src.crawlers.extraction.candidate import ExtractionContext, ProductCandidate
from src.crawlers.extraction.names import clean_name, is_valid_name
from src.crawlers.extraction.prices import contains_price, select_prices_from_text


# 이름 줄 다음 몇 줄 안에 가격이 나와야 같은 상품으로 봄
LOOKAHEAD_LINES = 3
MAX_RESULTS = 10

_INVISIBLE_TAGS = ["script", "style", "noscript", "template", "svg"]


def visible_text_lines(markup: str) -> list[str]:
    tree = HTMLParser(markup)
    tree.strip_tags(_INVISIBLE_TAGS)
    root = tree.body or tree.root
    if root is None:
        return []
    text = root.text(separator="\n")
    return [line.strip() for line in text.splitlines() if line.strip()]


def _is_name_line(line: str) -> bool:
    return 5 <= len(line) <= 100 and not contains_price(line) and is_valid_name(line)


def extract_from_text_patterns(ctx: ExtractionContext) -> list[ProductCandidate]:
    lines = visible_text_lines(ctx.markup)
    out: list[ProductCandidate] = []

    i = 0
    while i < len(lines) and len(out) < MAX_RESULTS:
        line = lines[i]
        if not _is_name_line(line):
            i += 1
            continue

        window = lines[i + 1:i + 1 + LOOKAHEAD_LINES]
        start = next((k for k, candidate in enumerate(window) if contains_price(candidate)), None)
        if start is None:
            i += 1
            continue

        # 가격 줄이 연속되면 (판매가, MRP, 할인액) 함께 분류
        price_lines = []
        for candidate in window[start:]:
            if not contains_price(candidate):
                break
            price_lines.append(candidate)

        # 가격 줄 바로 뒤의 짧은 꼬리 줄 ("OFF", "/kg")은 마지막 금액의 문맥으로만 사용
        context_lines = list(price_lines)
        tail = i + 1 + start + len(price_lines)
        if tail < len(lines) and not contains_price(lines[tail]) and not _is_name_line(lines[tail]):
            context_lines.append(lines[tail])

        selection = select_prices_from_text(" ".join(context_lines))
        if selection.price is not None:
            out.append(ProductCandidate(
                name=clean_name(line),
                price=selection.price,
                original_price=selection.original_price,
            ))
        i += 1 + start + len(price_lines)

    return out
