"""Health Monitor - 소스별 회로차단기

상태 전이:
- CLOSED → OPEN: 연속 실패 N회(기본 3) 또는 최근 시도 성공률이 임계값 미만
- OPEN → HALF_OPEN: 쿨다운 경과 후 (시험 요청 1회 허용)
- HALF_OPEN → CLOSED: 시험 요청 성공 (실패 카운트 0으로)
- HALF_OPEN → OPEN: 시험 요청 실패 (쿨다운 연장)

쿨다운 = initial × multiplier^(trips−1), 최대 max_backoff
"""

from __future__ import annotations

import time
from collections import deque
from dataclasses import dataclass, field
from enum import Enum
from typing import Callable, Deque, Dict, Iterable, List, Optional

from src.core.config import settings
from src.core.logging import logger


class CircuitState(str, Enum):
    CLOSED = "CLOSED"
    OPEN = "OPEN"
    HALF_OPEN = "HALF_OPEN"


@dataclass
class SourceHealth:
    """소스 하나의 회로 상태"""

    source: str
    state: CircuitState = CircuitState.CLOSED
    failure_count: int = 0  # 연속 실패
    last_failure_at: Optional[float] = None
    last_success_at: Optional[float] = None
    opened_at: Optional[float] = None
    cooldown_s: float = 0.0
    trip_count: int = 0
    trial_in_flight: bool = False
    trial_started_at: Optional[float] = None
    window: Deque[bool] = field(default_factory=deque)
    fingerprint: Optional[str] = None

    @property
    def success_rate(self) -> Optional[float]:
        if not self.window:
            return None
        return sum(1 for ok in self.window if ok) / len(self.window)


class HealthMonitor:
    """소스별 회로차단기 모음

    상태는 인스턴스가 소유합니다 (오케스트레이터에 주입).
    모든 메서드는 동기이며 await 지점이 없어 같은 이벤트 루프 안에서는 원자적으로 동작합니다.

    Args:
        failure_threshold: 연속 실패 임계값
        min_samples: 성공률 판정에 필요한 최소 시도 수
        success_rate_threshold: 이 값 미만이면 개방
        window_size: 성공률 계산 구간 (최근 시도 수)
        initial_backoff_s / max_backoff_s / backoff_multiplier: 쿨다운 계산
        trial_timeout_s: 시험 요청이 이 시간 안에 결과를 남기지 않으면 권한 회수 (기본: 검색 데드라인)
        clock: 현재 시각 (테스트에서 주입)
    """

    def __init__(
        self,
        failure_threshold: Optional[int] = None,
        min_samples: Optional[int] = None,
        success_rate_threshold: Optional[float] = None,
        window_size: Optional[int] = None,
        initial_backoff_s: Optional[float] = None,
        max_backoff_s: Optional[float] = None,
        backoff_multiplier: Optional[float] = None,
        trial_timeout_s: Optional[float] = None,
        clock: Optional[Callable[[], float]] = None,
    ) -> None:
        self.failure_threshold = failure_threshold or settings.health_failure_threshold
        self.min_samples = min_samples or settings.health_min_samples
        self.success_rate_threshold = (
            settings.health_success_rate_threshold if success_rate_threshold is None else success_rate_threshold
        )
        self.window_size = window_size or settings.health_window_size
        self.initial_backoff_s = initial_backoff_s or settings.health_initial_backoff_s
        self.max_backoff_s = max_backoff_s or settings.health_max_backoff_s
        self.backoff_multiplier = backoff_multiplier or settings.health_backoff_multiplier
        self.trial_timeout_s = trial_timeout_s or settings.search_deadline_s
        self._clock = clock or time.time
        self._sources: Dict[str, SourceHealth] = {}

    # ------------------------------------------------------------------
    # 내부
    # ------------------------------------------------------------------

    def _get(self, source: str) -> SourceHealth:
        health = self._sources.get(source)
        if health is None:
            health = SourceHealth(source=source, window=deque(maxlen=self.window_size))
            self._sources[source] = health
        return health

    def _refresh(self, health: SourceHealth) -> None:
        """쿨다운이 지났으면 OPEN → HALF_OPEN, 결과 없이 오래된 시험 요청은 권한 회수"""
        if health.state == CircuitState.HALF_OPEN:
            if (
                health.trial_in_flight
                and health.trial_started_at is not None
                and self._clock() - health.trial_started_at >= self.trial_timeout_s
            ):
                health.trial_in_flight = False
                logger.warning(f"[CIRCUIT_BREAKER] {health.source}: trial request expired without result")
            return
        if health.state != CircuitState.OPEN or health.opened_at is None:
            return
        if self._clock() >= health.opened_at + health.cooldown_s:
            health.state = CircuitState.HALF_OPEN
            health.trial_in_flight = False
            logger.info(f"[CIRCUIT_BREAKER] {health.source}: HALF_OPEN (cooldown {health.cooldown_s:.0f}s elapsed)")

    def _cooldown_for(self, trips: int) -> float:
        cooldown = self.initial_backoff_s * (self.backoff_multiplier ** max(0, trips - 1))
        return min(cooldown, self.max_backoff_s)

    def _trip(self, health: SourceHealth, reason: str) -> None:
        health.trip_count += 1
        health.cooldown_s = self._cooldown_for(health.trip_count)
        health.state = CircuitState.OPEN
        health.opened_at = self._clock()
        health.trial_in_flight = False
        logger.warning(
            f"[CIRCUIT_BREAKER] {health.source}: OPEN ({reason}, trips={health.trip_count}). "
            f"Blocked for {health.cooldown_s:.0f}s"
        )

    def _cooldown_remaining(self, health: SourceHealth) -> float:
        if health.state != CircuitState.OPEN or health.opened_at is None:
            return 0.0
        return max(0.0, health.opened_at + health.cooldown_s - self._clock())

    # ------------------------------------------------------------------
    # 결과 기록
    # ------------------------------------------------------------------

    def record_success(self, source: str, product_count: int = 1) -> None:
        """성공 기록 (상품이 1개 이상일 때만 성공으로 인정)"""
        if product_count <= 0:
            self.record_failure(source)
            return

        health = self._get(source)
        self._refresh(health)
        health.window.append(True)
        health.failure_count = 0
        health.last_success_at = self._clock()
        health.trial_in_flight = False

        if health.state != CircuitState.CLOSED:
            logger.info(f"[CIRCUIT_BREAKER] {source}: CLOSED (recovered from {health.state.value})")
            health.state = CircuitState.CLOSED
            health.opened_at = None
            health.cooldown_s = 0.0
            health.trip_count = 0

    def record_failure(self, source: str) -> None:
        """실패 기록 → 임계값 도달 시 회로 개방"""
        health = self._get(source)
        self._refresh(health)
        health.window.append(False)
        health.failure_count += 1
        health.last_failure_at = self._clock()

        if health.state == CircuitState.HALF_OPEN:
            self._trip(health, "trial request failed")
            return
        if health.state == CircuitState.OPEN:
            return

        if health.failure_count >= self.failure_threshold:
            self._trip(health, f"fail_count={health.failure_count} >= {self.failure_threshold}")
            return

        rate = health.success_rate
        if len(health.window) >= self.min_samples and rate is not None and rate < self.success_rate_threshold:
            self._trip(health, f"success_rate={rate:.0%} < {self.success_rate_threshold:.0%}")
        else:
            logger.debug(f"[CIRCUIT_BREAKER] {source}: failure {health.failure_count}/{self.failure_threshold}")

    # ------------------------------------------------------------------
    # 조회
    # ------------------------------------------------------------------

    def is_healthy(self, source: str) -> bool:
        """OPEN이 아니면 True (HALF_OPEN은 시험 요청 대상)"""
        health = self._get(source)
        self._refresh(health)
        return health.state != CircuitState.OPEN

    def should_attempt(self, source: str) -> bool:
        """이번 요청에서 라이브 시도를 할지

        HALF_OPEN에서는 처음 요청한 쪽만 시험 요청 권한을 가집니다.
        """
        health = self._get(source)
        self._refresh(health)
        if health.state == CircuitState.CLOSED:
            return True
        if health.state == CircuitState.OPEN:
            return False
        if health.trial_in_flight:
            return False
        health.trial_in_flight = True
        health.trial_started_at = self._clock()
        logger.info(f"[CIRCUIT_BREAKER] {source}: trial request")
        return True

    def release_trial(self, source: str) -> None:
        """결과 없이 끝난 시험 요청(취소 등)의 권한 반납. 다음 요청이 다시 시도할 수 있음"""
        health = self._sources.get(source)
        if health is None or not health.trial_in_flight:
            return
        health.trial_in_flight = False
        health.trial_started_at = None
        logger.info(f"[CIRCUIT_BREAKER] {source}: trial request released")

    def cooldown_remaining(self, source: str) -> float:
        health = self._get(source)
        self._refresh(health)
        return self._cooldown_remaining(health)

    def disabled_sources(self) -> List[str]:
        out = []
        for source, health in self._sources.items():
            self._refresh(health)
            if health.state == CircuitState.OPEN:
                out.append(source)
        return out

    def healthy_sources(self, sources: Iterable[str]) -> List[str]:
        return [s for s in sources if self.is_healthy(s)]

    def health_detail(self, source: str) -> dict:
        health = self._get(source)
        self._refresh(health)
        return {
            "source": source,
            "state": health.state.value,
            "failure_count": health.failure_count,
            "last_failure_at": health.last_failure_at,
            "cooldown_remaining": round(self._cooldown_remaining(health), 1),
            "success_rate": health.success_rate,
            "last_success_at": health.last_success_at,
        }

    # ------------------------------------------------------------------
    # 관리
    # ------------------------------------------------------------------

    def reset_source(self, source: str) -> None:
        self._sources.pop(source, None)
        logger.info(f"[CIRCUIT_BREAKER] {source}: reset")

    def reset_all(self) -> None:
        self._sources.clear()
        logger.info("[CIRCUIT_BREAKER] all sources reset")

    def note_structure(self, source: str, fingerprint: str) -> bool:
        """페이지 골격 지문 기록. 이전과 달라졌으면 True"""
        if not fingerprint:
            return False
        health = self._get(source)
        previous = health.fingerprint
        health.fingerprint = fingerprint
        if previous is not None and previous != fingerprint:
            logger.warning(f"[CIRCUIT_BREAKER] {source}: page structure changed ({previous} → {fingerprint})")
            return True
        return False
