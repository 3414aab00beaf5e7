"""추출 전략 공통 타입 (후보/컨텍스트/전략)."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Callable, Optional

from selectolax.parser import HTMLParser

from src.crawlers.sources import SourceConfig, get_source


@dataclass
class ProductCandidate:
    """검증 전 중간 결과 - 전략이 만들어내는 작업 단위"""

    name: str
    price: float
    original_price: Optional[float] = None
    image_url: Optional[str] = None
    url: Optional[str] = None
    # 카드 요소에서 나온 후보면 그 요소를 다시 찾을 CSS 셀렉터 (셀렉터 학습용)
    selector: Optional[str] = None


@dataclass
class ExtractionContext:
    """전략에 전달되는 입력. 트리는 한 번만 파싱해서 공유합니다 (읽기 전용)."""

    markup: str
    source_id: str
    base_url: str
    _tree: Optional[HTMLParser] = field(default=None, repr=False)

    @property
    def tree(self) -> HTMLParser:
        if self._tree is None:
            self._tree = HTMLParser(self.markup)
        return self._tree

    @property
    def source(self) -> Optional[SourceConfig]:
        return get_source(self.source_id)


@dataclass(frozen=True)
class ExtractionStrategy:
    """이름 + 신뢰도 티어 + 순수 함수 (context → 후보 목록)"""

    name: str
    tier: int
    run: Callable[[ExtractionContext], list[ProductCandidate]]
