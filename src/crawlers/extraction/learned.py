"""Selector Memory - 소스별로 학습한 카드 셀렉터와 추출 신뢰도

신뢰도 (후보 1개 기준):
- 상품명 +0.3, 가격 +0.3 (둘 다 있어야 후보가 됨)
- 이미지 +0.2
- 상세 URL(검색 페이지 자체가 아닌) +0.2

신뢰도 0.8 이상인 카드가 가장 많이 공유하는 셀렉터를 기억하고,
다음 추출에서 캐스케이드보다 먼저 시도합니다. 연속으로 결과를 못 내면 잊습니다.
"""

from __future__ import annotations

import time
from collections import Counter
from dataclasses import dataclass
from typing import Callable, Dict, Iterable, Optional

from src.core.logging import logger
from src.crawlers.extraction.candidate import ProductCandidate


LEARN_CONFIDENCE = 0.8
MIN_CONFIDENCE = 0.5
# 이 횟수를 넘겨 실패하면 셀렉터 폐기
MAX_SELECTOR_FAILURES = 3


def candidate_confidence(cand: ProductCandidate, base_url: str = "") -> float:
    score = 0.0
    if cand.name:
        score += 0.3
    if cand.price is not None and cand.price > 0:
        score += 0.3
    if cand.image_url:
        score += 0.2
    if cand.url and cand.url.rstrip("/") != base_url.rstrip("/"):
        score += 0.2
    return round(min(score, 1.0), 2)


@dataclass
class LearnedSelector:
    selector: str
    source: str
    learned_at: float
    success_count: int = 1
    failure_count: int = 0


class SelectorMemory:
    """소스별 학습 셀렉터 (프로세스 메모리)

    Args:
        max_failures: 연속 실패가 이 값을 넘으면 폐기
        clock: 현재 시각 (테스트에서 주입)
    """

    def __init__(self, max_failures: int = MAX_SELECTOR_FAILURES, clock: Optional[Callable[[], float]] = None):
        self.max_failures = max_failures
        self._clock = clock or time.time
        self._selectors: Dict[str, LearnedSelector] = {}

    def get(self, source: str) -> Optional[LearnedSelector]:
        return self._selectors.get(source)

    def learn(self, source: str, selector: str) -> bool:
        """셀렉터 기록. 새로 배웠거나 바뀌었으면 True"""
        if not selector:
            return False
        existing = self._selectors.get(source)
        if existing is not None and existing.selector == selector:
            return False
        self._selectors[source] = LearnedSelector(selector=selector, source=source, learned_at=self._clock())
        logger.info(f"[SELECTOR] {source}: learned '{selector}'")
        return True

    def learn_from(self, source: str, candidates: Iterable[ProductCandidate], base_url: str = "") -> bool:
        """신뢰도 높은 후보들이 가장 많이 공유하는 셀렉터를 학습"""
        counts = Counter(
            cand.selector
            for cand in candidates
            if cand.selector and candidate_confidence(cand, base_url) >= LEARN_CONFIDENCE
        )
        if not counts:
            return False
        selector, _ = counts.most_common(1)[0]
        return self.learn(source, selector)

    def record(self, source: str, success: bool) -> None:
        learned = self._selectors.get(source)
        if learned is None:
            return
        if success:
            learned.success_count += 1
            learned.failure_count = 0
            return
        learned.failure_count += 1
        if learned.failure_count > self.max_failures:
            logger.info(f"[SELECTOR] {source}: dropping stale selector '{learned.selector}'")
            self._selectors.pop(source, None)

    def forget(self, source: str) -> None:
        self._selectors.pop(source, None)

    def snapshot(self) -> Dict[str, dict]:
        return {
            source: {
                "selector": learned.selector,
                "success_count": learned.success_count,
                "failure_count": learned.failure_count,
                "learned_at": learned.learned_at,
            }
            for source, learned in self._selectors.items()
        }
