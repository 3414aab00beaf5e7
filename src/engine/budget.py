"""Budget Manager - 검색 1회의 시간 예산 관리

예산 구조 (기본값):
- 전체 데드라인: 60초
- Direct API: 5초 (소스별 단일 시도)
- 렌더/폴백 체인: 30초 (소스별)
- 드레인 폴링: 0.5초
"""

from dataclasses import dataclass
from time import monotonic
from typing import Callable, Optional

from src.core.config import settings


@dataclass
class BudgetConfig:
    """예산 설정"""

    total_budget: float = 60.0  # 전체 데드라인 (초)
    direct_api_timeout: float = 5.0  # Direct API 1회
    source_timeout: float = 30.0  # 렌더/폴백 체인 전체
    poll_interval: float = 0.5  # 결과 큐 폴링 간격
    min_remaining: float = 1.0  # 폴백을 시작할 최소 여유 시간

    def __post_init__(self):
        """설정 검증"""
        for name in ("total_budget", "direct_api_timeout", "source_timeout", "poll_interval"):
            if getattr(self, name) <= 0:
                raise ValueError(f"{name} must be positive")
        if self.direct_api_timeout > self.total_budget:
            raise ValueError(
                f"direct_api_timeout ({self.direct_api_timeout}s) exceeds total budget ({self.total_budget}s)"
            )
        if self.poll_interval > self.total_budget:
            raise ValueError("poll_interval must not exceed total budget")

    @classmethod
    def from_settings(cls) -> "BudgetConfig":
        return cls(
            total_budget=settings.search_deadline_s,
            direct_api_timeout=settings.crawler_direct_api_timeout_s,
            source_timeout=settings.crawler_source_timeout_s,
            poll_interval=settings.search_poll_interval_s,
        )


class BudgetManager:
    """시간 예산 관리자

    검색 호출마다 새로 만들어 씁니다 (동시 검색끼리 예산을 공유하지 않음).

    Usage:
        manager = BudgetManager(BudgetConfig.from_settings())
        manager.start()

        timeout = manager.get_timeout_for("direct_api")
        if manager.can_execute_render():
            ...
        report = manager.get_report()
    """

    def __init__(self, config: Optional[BudgetConfig] = None, clock: Optional[Callable[[], float]] = None):
        self.config = config or BudgetConfig.from_settings()
        self._clock = clock or monotonic
        self.start_time: Optional[float] = None
        self._checkpoints: dict[str, float] = {}

    def start(self) -> None:
        """예산 측정 시작"""
        self.start_time = self._clock()
        self._checkpoints.clear()

    def checkpoint(self, name: str) -> None:
        """체크포인트 기록

        Raises:
            RuntimeError: start()가 호출되지 않은 경우
        """
        if self.start_time is None:
            raise RuntimeError("Budget not started. Call start() first.")
        self._checkpoints[name] = self._clock() - self.start_time

    def elapsed(self) -> float:
        """경과 시간 (초). start() 전에는 0.0"""
        if self.start_time is None:
            return 0.0
        return self._clock() - self.start_time

    def remaining(self) -> float:
        """남은 예산 (초, 음수 없음)"""
        return max(0.0, self.config.total_budget - self.elapsed())

    def can_execute_render(self) -> bool:
        return self.remaining() >= self.config.min_remaining

    def is_exhausted(self) -> bool:
        return self.remaining() <= 0.0

    def get_timeout_for(self, stage: str) -> float:
        """단계별 타임아웃 (설정값과 남은 예산 중 작은 값)

        Args:
            stage: "direct_api" | "render" | 기타(남은 예산 전체)
        """
        remaining = self.remaining()
        if stage == "direct_api":
            return min(self.config.direct_api_timeout, remaining)
        if stage == "render":
            return min(self.config.source_timeout, remaining)
        return remaining

    def get_report(self) -> dict:
        return {
            "total_budget": self.config.total_budget,
            "elapsed": self.elapsed(),
            "remaining": self.remaining(),
            "checkpoints": self._checkpoints.copy(),
            "is_exhausted": self.is_exhausted(),
        }
