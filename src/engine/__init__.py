"""Engine Layer - 검색 오케스트레이션

- ScrapeOrchestrator: 멀티 소스 스트리밍 검색 진입점
- BudgetManager: 검색 1회의 시간 예산 (전체 데드라인)
- HealthMonitor: 소스별 회로차단기
- CacheAdapter: (검색어, 소스, 위치) 캐시 어댑터
- SourceOutcome: 소스 결과 표준 포맷
- ExecutionStrategy: Direct API → 렌더 폴백 결정
- select_best_deal: 관련도/단위가격 기준 최적 상품 선택
- search_intelligence: 검색 의도 기반 정렬/필터, 소스 간 동일 상품 묶기
"""

from .best_deal import RelevanceTier, relevance_score, select_best_deal, tier_of
from .budget import BudgetConfig, BudgetManager
from .cache_adapter import CacheAdapter, CacheLookup
from .health_monitor import CircuitState, HealthMonitor, SourceHealth
from .orchestrator import ScrapeOrchestrator
from .result import ScrapeStatus, SourceOutcome
from .search_intelligence import (
    QuantityGroupedResults,
    are_similar_products,
    group_similar_products,
    rank_and_group_by_quantity,
    rank_results,
    relevance,
)
from .strategy import ExecutionPath, ExecutionStrategy

__all__ = [
    "ScrapeOrchestrator",
    "BudgetManager",
    "BudgetConfig",
    "CacheAdapter",
    "CacheLookup",
    "HealthMonitor",
    "CircuitState",
    "SourceHealth",
    "SourceOutcome",
    "ScrapeStatus",
    "ExecutionStrategy",
    "ExecutionPath",
    "RelevanceTier",
    "relevance_score",
    "select_best_deal",
    "tier_of",
    "QuantityGroupedResults",
    "are_similar_products",
    "group_similar_products",
    "rank_and_group_by_quantity",
    "rank_results",
    "relevance",
]
