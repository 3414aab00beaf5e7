"""Scrape Orchestrator - 검색 엔진 진입점

소스마다 동시에:
1. 캐시 조회 (신선하면 즉시 결과)
2. 회로 개방이면 시도 없이 빈 결과
3. Direct API → 실패/빈 결과면 Fallback Manager(렌더 + 추출)
4. 그래도 없으면 stale 캐시로 대체
5. 헬스 모니터에 결과 기록, 성공 시 캐시 갱신

결과는 공유 큐로 모아 도착 순서대로 스트리밍하고,
전체 데드라인이 지나면 남은 소스에 빈 결과를 채운 뒤 Completed로 끝냅니다.
"""

from __future__ import annotations

import asyncio
from typing import AsyncIterator, Dict, List, Optional, Sequence, Union

from src.core.config import settings
from src.core.exceptions import InvalidQueryException, NetworkTimeoutException, OrchestrationException
from src.core.logging import logger, sanitize_for_log
from src.crawlers.direct_api import DirectApiClient, get_direct_api_client
from src.crawlers.fallback_manager import FallbackManager
from src.crawlers.renderer import get_renderer
from src.crawlers.sources import SourceConfig, enabled_sources
from src.schemas.product_schema import (
    CompletedEvent,
    ErrorEvent,
    MessageEvent,
    PlatformResultEvent,
    Product,
    StartedEvent,
)
from src.services.impl.cache_service import CacheService

from .best_deal import select_best_deal
from .budget import BudgetConfig, BudgetManager
from .cache_adapter import CacheAdapter, CacheLookup
from .health_monitor import HealthMonitor
from .result import SourceOutcome
from .strategy import ExecutionPath, ExecutionStrategy


QueueItem = Union[SourceOutcome, MessageEvent]
StreamEvent = Union[StartedEvent, PlatformResultEvent, MessageEvent, CompletedEvent, ErrorEvent]


class ScrapeOrchestrator:
    """멀티 소스 스크래핑 오케스트레이터

    헬스/캐시 상태는 주입받은 객체가 소유합니다 (테스트에서는 가짜로 교체).

    Args:
        cache: 캐시 어댑터
        health: 헬스 모니터 (회로차단기)
        direct_api: Direct API 클라이언트
        fallback: 소스별 어댑터 체인 실행기
        budget_config: 시간 예산 (기본: 설정값)
        sources: 검색 대상 소스 (기본: 활성 소스 전체)
        render_concurrency: 렌더 동시 실행 수 (기본: 설정값)
    """

    def __init__(
        self,
        cache: Optional[CacheAdapter] = None,
        health: Optional[HealthMonitor] = None,
        direct_api: Optional[DirectApiClient] = None,
        fallback: Optional[FallbackManager] = None,
        budget_config: Optional[BudgetConfig] = None,
        sources: Optional[Sequence[SourceConfig]] = None,
        render_concurrency: Optional[int] = None,
    ):
        self.cache = cache or CacheAdapter(CacheService())
        self.health = health or HealthMonitor()
        self.direct_api = direct_api or get_direct_api_client()
        self.fallback = fallback or FallbackManager(get_renderer(), structure_observer=self.health.note_structure)
        self.budget_config = budget_config or BudgetConfig.from_settings()
        self.sources: List[SourceConfig] = list(sources) if sources is not None else enabled_sources()
        self.render_concurrency = render_concurrency or settings.crawler_render_concurrency
        self.strategy = ExecutionStrategy()

    @property
    def source_ids(self) -> List[str]:
        return [cfg.id for cfg in self.sources]

    # ------------------------------------------------------------------
    # 공개 API
    # ------------------------------------------------------------------

    async def search_stream(self, query: str, location: Optional[str] = None) -> AsyncIterator[StreamEvent]:
        """검색 이벤트 스트림

        Started → (PlatformResult | Message)* → Completed
        오케스트레이션 수준 오류는 Completed 대신 Error로 끝납니다.

        Raises:
            InvalidQueryException: 빈 검색어
        """
        if not query or not query.strip():
            raise InvalidQueryException("query must not be blank")
        query = " ".join(query.split())
        location = (location or settings.default_location).strip()

        budget = BudgetManager(self.budget_config)
        budget.start()
        source_ids = self.source_ids
        logger.info(
            f"[ORCHESTRATOR] Search started: query='{sanitize_for_log(query)}', "
            f"location={location}, sources={len(source_ids)}"
        )

        yield StartedEvent(sources=source_ids)

        queue: asyncio.Queue[QueueItem] = asyncio.Queue()
        tasks: Dict[str, asyncio.Task] = {}
        reported: set[str] = set()

        try:
            await self.cache.ensure_available()

            render_gate = asyncio.Semaphore(self.render_concurrency)
            for cfg in self.sources:
                tasks[cfg.id] = asyncio.create_task(
                    self._run_source(cfg, query, location, budget, render_gate, queue),
                    name=f"scrape:{cfg.id}",
                )

            while len(reported) < len(source_ids):
                remaining = budget.remaining()
                if remaining <= 0:
                    missing = [s for s in source_ids if s not in reported]
                    logger.warning(f"[ORCHESTRATOR] Deadline reached, missing sources: {missing}")
                    break
                try:
                    item = await asyncio.wait_for(
                        queue.get(), timeout=min(self.budget_config.poll_interval, remaining)
                    )
                except asyncio.TimeoutError:
                    continue

                if isinstance(item, MessageEvent):
                    yield item
                    continue
                if item.source in reported:
                    continue
                reported.add(item.source)
                yield item.to_event()

            for source in source_ids:
                if source not in reported:
                    reported.add(source)
                    yield PlatformResultEvent(source=source, products=[], cached=False)

            budget.checkpoint("completed")
            logger.info(
                f"[ORCHESTRATOR] Search completed: query='{sanitize_for_log(query)}', "
                f"elapsed={budget.elapsed():.2f}s"
            )
            yield CompletedEvent()

        except Exception as e:
            logger.error(f"[ORCHESTRATOR] Search failed: {type(e).__name__}: {e}", exc_info=True)
            yield ErrorEvent(message=str(e) or type(e).__name__)

        finally:
            await self._cancel_pending(tasks)

    async def search(self, query: str, location: Optional[str] = None) -> Dict[str, List[Product]]:
        """스트림을 끝까지 모아 {source: [Product]} 반환

        Raises:
            OrchestrationException: 스트림이 Error로 끝난 경우
        """
        results: Dict[str, List[Product]] = {}
        async for event in self.search_stream(query, location):
            if isinstance(event, PlatformResultEvent):
                results[event.source] = list(event.products)
            elif isinstance(event, ErrorEvent):
                raise OrchestrationException(event.message, {"partial_sources": list(results)})
        return results

    async def find_best_deal(self, query: str, location: Optional[str] = None) -> Optional[Product]:
        results = await self.search(query, location)
        return select_best_deal(results, query)

    # ------------------------------------------------------------------
    # 소스 작업
    # ------------------------------------------------------------------

    async def _run_source(
        self,
        cfg: SourceConfig,
        query: str,
        location: str,
        budget: BudgetManager,
        render_gate: asyncio.Semaphore,
        queue: "asyncio.Queue[QueueItem]",
    ) -> None:
        """소스 하나를 실행하고 최종 결과를 큐에 정확히 1번 넣음"""
        try:
            outcome = await self._scrape_source(cfg, query, location, budget, render_gate, queue)
        except asyncio.CancelledError:
            raise
        except Exception as e:
            logger.error(f"[ORCHESTRATOR] {cfg.id}: unexpected error {type(e).__name__}: {e}", exc_info=True)
            self.health.record_failure(cfg.id)
            outcome = SourceOutcome.failed(cfg.id, str(e) or type(e).__name__)
        await queue.put(outcome)

    async def _scrape_source(
        self,
        cfg: SourceConfig,
        query: str,
        location: str,
        budget: BudgetManager,
        render_gate: asyncio.Semaphore,
        queue: "asyncio.Queue[QueueItem]",
    ) -> SourceOutcome:
        lookup: CacheLookup = await self.cache.lookup(query, cfg.id, location)
        if lookup.is_fresh_hit:
            logger.debug(f"[ORCHESTRATOR] {cfg.id}: served from cache")
            return SourceOutcome.from_cache(cfg.id, lookup.products)

        if not self.health.should_attempt(cfg.id):
            remaining = self.health.cooldown_remaining(cfg.id)
            logger.info(f"[ORCHESTRATOR] {cfg.id}: circuit open, skipped")
            await queue.put(MessageEvent(text=f"{cfg.id} is temporarily unavailable (retry in {remaining:.0f}s)"))
            return SourceOutcome.circuit_open(cfg.id)

        try:
            products, path = await self._scrape_live(cfg, query, location, budget, render_gate)
        except asyncio.CancelledError:
            # 결과 없이 취소된 시험 요청은 권한만 반납 (실패로 세지 않음)
            self.health.release_trial(cfg.id)
            raise
        except Exception as e:
            logger.error(f"[ORCHESTRATOR] {cfg.id}: live scrape error {type(e).__name__}: {e}", exc_info=True)
            products, path = [], ExecutionPath.RENDER

        if products:
            self.health.record_success(cfg.id, len(products))
            await self.cache.store(query, cfg.id, location, products)
            return SourceOutcome.from_live(cfg.id, products, path)

        self.health.record_failure(cfg.id)

        if lookup.has_stale:
            logger.info(f"[ORCHESTRATOR] {cfg.id}: live scrape empty, serving stale cache")
            await queue.put(MessageEvent(text=f"Showing recently cached {cfg.id} results; live prices unavailable"))
            return SourceOutcome.stale(cfg.id, lookup.products)

        return SourceOutcome.empty(cfg.id, "no products found")

    async def _scrape_live(
        self,
        cfg: SourceConfig,
        query: str,
        location: str,
        budget: BudgetManager,
        render_gate: asyncio.Semaphore,
    ) -> tuple[List[Product], ExecutionPath]:
        """Direct API → Fallback Manager 순서로 라이브 스크래핑"""
        if self.direct_api.supports(cfg.id):
            timeout = budget.get_timeout_for("direct_api")
            try:
                result = await asyncio.wait_for(
                    self.direct_api.scrape(cfg.id, query, location, timeout_s=timeout), timeout=timeout
                )
            except asyncio.TimeoutError:
                error = NetworkTimeoutException("direct_api", timeout, {"source": cfg.id})
                logger.info(f"[ORCHESTRATOR] {cfg.id}: direct API timeout after {timeout:.1f}s")
                if not self.strategy.should_fallback_to_render(error):
                    raise error
            except Exception as e:
                logger.warning(f"[ORCHESTRATOR] {cfg.id}: direct API error {type(e).__name__}: {e}")
                if not self.strategy.should_fallback_to_render(e):
                    raise
            else:
                if not self.strategy.should_fallback(result):
                    return result.products, ExecutionPath.DIRECT_API
                logger.debug(f"[ORCHESTRATOR] {cfg.id}: direct API {result.status.value}, falling back")

        if not budget.can_execute_render():
            logger.warning(
                f"[ORCHESTRATOR] {cfg.id}: fallback skipped, budget exhausted "
                f"(remaining: {budget.remaining():.2f}s)"
            )
            return [], ExecutionPath.RENDER

        timeout = budget.get_timeout_for("render")
        try:
            products = await asyncio.wait_for(
                self.fallback.scrape(cfg.id, query, location, render_gate), timeout=timeout
            )
        except asyncio.TimeoutError:
            logger.warning(f"[ORCHESTRATOR] {cfg.id}: fallback chain timeout after {timeout:.1f}s")
            products = []
        return products, ExecutionPath.RENDER

    @staticmethod
    async def _cancel_pending(tasks: Dict[str, asyncio.Task]) -> None:
        pending = [t for t in tasks.values() if not t.done()]
        for task in pending:
            task.cancel()
        if tasks:
            await asyncio.gather(*tasks.values(), return_exceptions=True)
        if pending:
            logger.info(f"[ORCHESTRATOR] Cancelled {len(pending)} unfinished source tasks")
