"""Execution Strategy - Direct API → 렌더 폴백 결정 로직"""

import asyncio
from enum import Enum

from src.core.exceptions import (
    BlockedException,
    NetworkTimeoutException,
    ParsingException,
    PriceAggregatorException,
    ScraperException,
    TimeoutException,
)
from src.crawlers.direct_api import ApiScrapeResult


class ExecutionPath(str, Enum):
    """소스 결과가 만들어진 경로"""

    CACHE = "cache"
    DIRECT_API = "direct_api"
    RENDER = "render"
    STALE_CACHE = "stale_cache"


class ExecutionStrategy:
    """실행 전략 결정

    Usage:
        strategy = ExecutionStrategy()

        result = await direct_api.scrape(source, query, location)
        if strategy.should_fallback(result):
            products = await fallback.scrape(...)
    """

    @staticmethod
    def should_fallback_to_render(error: BaseException) -> bool:
        """Direct API 예외 중 렌더 경로로 넘어갈 것

        - 타임아웃 (asyncio / 네트워크)
        - 파싱 오류 (응답 구조 변경)
        - 차단 감지
        - 그 외 스크래퍼 오류
        - 분류되지 않은 외부 오류 (네트워크 라이브러리, 응답 JSON 키 누락 등)

        검증/캐시/오케스트레이션 예외는 렌더로 해결되지 않으므로 False.
        """
        if isinstance(
            error,
            (
                asyncio.TimeoutError,
                TimeoutException,
                NetworkTimeoutException,
                ParsingException,
                BlockedException,
                ScraperException,
            ),
        ):
            return True
        return not isinstance(error, PriceAggregatorException)

    @staticmethod
    def should_fallback(result: ApiScrapeResult) -> bool:
        """Direct API 결과가 비었거나 실패면 폴백"""
        return not result.is_success
