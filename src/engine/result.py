"""Source Outcome - 소스 1개의 최종 결과 표준 포맷"""

from dataclasses import dataclass, field
from enum import Enum
from typing import List, Optional

from src.schemas.product_schema import PlatformResultEvent, Product

from .strategy import ExecutionPath


class ScrapeStatus(str, Enum):
    """소스 결과 상태"""

    SUCCESS = "success"  # 라이브 스크래핑 성공
    CACHE_HIT = "cache_hit"  # 신선한 캐시
    STALE = "stale"  # 라이브 실패, 오래된 캐시로 대체
    CIRCUIT_OPEN = "circuit_open"  # 회로 개방으로 시도 안 함
    EMPTY = "empty"  # 시도했으나 상품 없음
    ERROR = "error"  # 예기치 못한 오류


@dataclass
class SourceOutcome:
    """소스 하나의 스크래핑 결과

    PlatformResult 이벤트 1개로 변환됩니다.
    """

    source: str
    status: ScrapeStatus
    products: List[Product] = field(default_factory=list)
    path: Optional[ExecutionPath] = None
    error: Optional[str] = None

    @property
    def cached(self) -> bool:
        return self.status in (ScrapeStatus.CACHE_HIT, ScrapeStatus.STALE)

    def to_event(self) -> PlatformResultEvent:
        return PlatformResultEvent(source=self.source, products=list(self.products), cached=self.cached)

    @classmethod
    def from_cache(cls, source: str, products: List[Product]) -> "SourceOutcome":
        return cls(source=source, status=ScrapeStatus.CACHE_HIT, products=list(products), path=ExecutionPath.CACHE)

    @classmethod
    def from_live(cls, source: str, products: List[Product], path: ExecutionPath) -> "SourceOutcome":
        return cls(source=source, status=ScrapeStatus.SUCCESS, products=list(products), path=path)

    @classmethod
    def stale(cls, source: str, products: List[Product]) -> "SourceOutcome":
        return cls(source=source, status=ScrapeStatus.STALE, products=list(products), path=ExecutionPath.STALE_CACHE)

    @classmethod
    def circuit_open(cls, source: str) -> "SourceOutcome":
        return cls(source=source, status=ScrapeStatus.CIRCUIT_OPEN)

    @classmethod
    def empty(cls, source: str, reason: Optional[str] = None) -> "SourceOutcome":
        return cls(source=source, status=ScrapeStatus.EMPTY, error=reason)

    @classmethod
    def failed(cls, source: str, error: str) -> "SourceOutcome":
        return cls(source=source, status=ScrapeStatus.ERROR, error=error)
