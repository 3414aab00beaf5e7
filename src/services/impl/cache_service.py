"""캐시 서비스 - (검색어, 소스, 위치)별 상품 목록 캐싱

엔트리 수명 구간:
- fresh: 저장 후 ttl_s 이내 → 그대로 사용
- stale: ttl_s ~ ttl_s + stale_window_s → 라이브 실패 시 대체용
- expired: 그 이후 → 없는 것으로 취급, purge 대상
"""

from __future__ import annotations

import asyncio
import json
import time
import weakref
from dataclasses import dataclass
from typing import Callable, Dict, List, Optional, Protocol, Tuple

from redis.asyncio import Redis

from src.core.config import settings
from src.core.exceptions import CacheConnectionException, CacheException, CacheSerializationException
from src.core.logging import logger
from src.schemas.product_schema import Product


@dataclass
class CacheEntry:
    products: List[Product]
    stored_at: float
    ttl_s: int

    def age(self, now: float) -> float:
        return now - self.stored_at

    def is_fresh(self, now: float) -> bool:
        return self.age(now) <= self.ttl_s

    def is_expired(self, now: float, stale_window_s: int) -> bool:
        return self.age(now) > self.ttl_s + stale_window_s

    def to_json(self) -> str:
        try:
            return json.dumps(
                {
                    "stored_at": self.stored_at,
                    "ttl_s": self.ttl_s,
                    "products": [p.model_dump(mode="json") for p in self.products],
                },
                ensure_ascii=False,
            )
        except (TypeError, ValueError) as e:
            raise CacheSerializationException("serialize", str(e))

    @classmethod
    def from_json(cls, raw: str) -> "CacheEntry":
        try:
            data = json.loads(raw)
            return cls(
                products=[Product(**p) for p in data["products"]],
                stored_at=float(data["stored_at"]),
                ttl_s=int(data["ttl_s"]),
            )
        except (json.JSONDecodeError, KeyError, TypeError, ValueError) as e:
            raise CacheSerializationException("deserialize", str(e))


class CacheBackend(Protocol):
    """키/값 저장소 인터페이스"""

    async def get(self, key: str) -> Optional[CacheEntry]: ...

    async def set(self, key: str, entry: CacheEntry, expire_s: int) -> None: ...

    async def delete(self, key: str) -> None: ...

    async def items(self) -> List[Tuple[str, CacheEntry]]: ...

    async def clear(self) -> int: ...

    async def ping(self) -> bool: ...

    async def close(self) -> None: ...


class MemoryCacheBackend:
    """프로세스 메모리 저장소 (기본값)"""

    def __init__(self):
        self._data: Dict[str, CacheEntry] = {}

    async def get(self, key: str) -> Optional[CacheEntry]:
        return self._data.get(key)

    async def set(self, key: str, entry: CacheEntry, expire_s: int) -> None:
        self._data[key] = entry

    async def delete(self, key: str) -> None:
        self._data.pop(key, None)

    async def items(self) -> List[Tuple[str, CacheEntry]]:
        return list(self._data.items())

    async def clear(self) -> int:
        count = len(self._data)
        self._data.clear()
        return count

    async def ping(self) -> bool:
        return True

    async def close(self) -> None:
        return None


class RedisCacheBackend:
    """Redis 저장소 (redis.asyncio)

    만료 시각까지의 TTL을 Redis 키에 걸어 두므로 purge는 보조 수단입니다.
    """

    def __init__(self, redis_url: str, prefix: str = "prices", client: Optional[Redis] = None):
        if client is None and not redis_url:
            raise CacheConnectionException("redis_url is not configured")
        self.prefix = prefix
        self.redis_client = client or Redis.from_url(
            redis_url,
            decode_responses=True,
            socket_connect_timeout=5,
            socket_timeout=5,
        )

    async def get(self, key: str) -> Optional[CacheEntry]:
        raw = await self.redis_client.get(key)
        if not raw:
            return None
        return CacheEntry.from_json(raw)

    async def set(self, key: str, entry: CacheEntry, expire_s: int) -> None:
        await self.redis_client.set(key, entry.to_json(), ex=max(1, int(expire_s)))

    async def delete(self, key: str) -> None:
        await self.redis_client.delete(key)

    async def _keys(self) -> List[str]:
        return [key async for key in self.redis_client.scan_iter(match=f"{self.prefix}:*")]

    async def items(self) -> List[Tuple[str, CacheEntry]]:
        keys = await self._keys()
        if not keys:
            return []
        values = await self.redis_client.mget(keys)
        out: List[Tuple[str, CacheEntry]] = []
        for key, raw in zip(keys, values):
            if not raw:
                continue
            try:
                out.append((key, CacheEntry.from_json(raw)))
            except CacheSerializationException as e:
                logger.warning(f"[CACHE] Skipping unreadable entry {key}: {e}")
        return out

    async def clear(self) -> int:
        keys = await self._keys()
        if not keys:
            return 0
        return int(await self.redis_client.delete(*keys))

    async def ping(self) -> bool:
        return bool(await self.redis_client.ping())

    async def close(self) -> None:
        await self.redis_client.aclose()


class CacheService:
    """상품 목록 캐시 관리 서비스

    동시에 여러 소스 작업이 접근하므로 키 단위로만 잠급니다 (전역 잠금 없음).

    Args:
        backend: 저장소 (기본: 메모리)
        stale_window_s: fresh 이후 stale로 유지하는 시간
        clock: 현재 시각 (테스트에서 주입)
    """

    def __init__(
        self,
        backend: Optional[CacheBackend] = None,
        stale_window_s: Optional[int] = None,
        clock: Optional[Callable[[], float]] = None,
    ):
        self.backend = backend or MemoryCacheBackend()
        self.stale_window_s = stale_window_s if stale_window_s is not None else settings.cache_stale_window_s
        self._clock = clock or time.time
        # 키별 락은 사용 중인 동안만 유지 (대기/보유 코루틴이 없으면 자동 제거)
        self._locks: "weakref.WeakValueDictionary[str, asyncio.Lock]" = weakref.WeakValueDictionary()
        self.hit_count = 0
        self.stale_hit_count = 0
        self.miss_count = 0

    def _lock_for(self, key: str) -> asyncio.Lock:
        lock = self._locks.get(key)
        if lock is None:
            lock = asyncio.Lock()
            self._locks[key] = lock
        return lock

    async def get(self, key: str) -> Tuple[Optional[List[Product]], bool]:
        """캐시 조회

        Returns:
            (products, is_stale). 없거나 만료면 (None, False)

        Raises:
            CacheConnectionException: 저장소 접근 실패
        """
        async with self._lock_for(key):
            try:
                entry = await self.backend.get(key)
            except CacheSerializationException as e:
                logger.error(f"[CACHE] Failed to deserialize {key}: {e}")
                await self._delete_quietly(key)
                entry = None
            except Exception as e:
                logger.error(f"[CACHE] Cache read error: {e}")
                raise CacheConnectionException(f"Cache read failed: {e}")

            now = self._clock()
            if entry is None or not entry.products:
                self.miss_count += 1
                logger.debug(f"[CACHE] Miss: {key}")
                return None, False

            if entry.is_expired(now, self.stale_window_s):
                self.miss_count += 1
                await self._delete_quietly(key)
                logger.debug(f"[CACHE] Expired: {key} (age={entry.age(now):.0f}s)")
                return None, False

            if entry.is_fresh(now):
                self.hit_count += 1
                logger.info(f"[CACHE] Hit: {key} ({len(entry.products)} products)")
                return list(entry.products), False

            self.stale_hit_count += 1
            logger.info(f"[CACHE] Stale: {key} (age={entry.age(now):.0f}s)")
            return list(entry.products), True

    async def set(self, key: str, products: List[Product], ttl_s: int) -> bool:
        """상품 목록 저장 (같은 키는 덮어씀). 빈 목록은 저장하지 않음

        Raises:
            CacheConnectionException: 저장소 쓰기 실패
        """
        if not products:
            return False

        entry = CacheEntry(products=list(products), stored_at=self._clock(), ttl_s=int(ttl_s))
        async with self._lock_for(key):
            try:
                await self.backend.set(key, entry, expire_s=entry.ttl_s + self.stale_window_s)
            except CacheException:
                raise
            except Exception as e:
                logger.error(f"[CACHE] Cache write error: {e}")
                raise CacheConnectionException(f"Cache write failed: {e}")

        logger.info(f"[CACHE] Set: {key}, TTL: {entry.ttl_s}s (+{self.stale_window_s}s stale)")
        return True

    async def delete(self, key: str) -> None:
        async with self._lock_for(key):
            await self.backend.delete(key)

    async def _delete_quietly(self, key: str) -> None:
        try:
            await self.backend.delete(key)
        except Exception as e:
            logger.warning(f"[CACHE] Failed to delete {key}: {e}")

    async def clear_all(self) -> int:
        """전체 삭제. 삭제된 엔트리 수 반환"""
        try:
            removed = await self.backend.clear()
        except Exception as e:
            raise CacheConnectionException(f"Cache clear failed: {e}")
        self._locks.clear()
        logger.info(f"[CACHE] Cleared {removed} entries")
        return removed

    async def stats(self, window_s: int = 3600) -> dict:
        """캐시 통계

        Returns:
            entry_count: 만료되지 않은 엔트리 수
            hits_since: window_s 안에 갱신된 엔트리 수
            hit_count / stale_hit_count / miss_count: 누적 조회 결과
        """
        try:
            items = await self.backend.items()
        except Exception as e:
            raise CacheConnectionException(f"Cache stats failed: {e}")

        now = self._clock()
        live = [entry for _, entry in items if not entry.is_expired(now, self.stale_window_s)]
        return {
            "entry_count": len(live),
            "hits_since": sum(1 for entry in live if entry.age(now) <= window_s),
            "window_s": window_s,
            "hit_count": self.hit_count,
            "stale_hit_count": self.stale_hit_count,
            "miss_count": self.miss_count,
        }

    async def purge_expired(self) -> int:
        """만료 엔트리 삭제. 삭제 수 반환"""
        now = self._clock()
        removed = 0
        for key, entry in await self.backend.items():
            if not entry.is_expired(now, self.stale_window_s):
                continue
            async with self._lock_for(key):
                # 목록 조회 이후 다시 저장됐을 수 있음
                current = await self.backend.get(key)
                if current is not None and not current.is_expired(now, self.stale_window_s):
                    continue
                await self.backend.delete(key)
            removed += 1
        if removed:
            logger.info(f"[CACHE] Purged {removed} expired entries")
        return removed

    async def health_check(self) -> bool:
        try:
            return await self.backend.ping()
        except Exception as e:
            logger.warning(f"[CACHE] Health check failed: {e}")
            return False

    async def ensure_available(self) -> None:
        """저장소 접근 가능 여부 확인

        Raises:
            CacheConnectionException: 접근 불가
        """
        if not await self.health_check():
            raise CacheConnectionException("Cache backend is unavailable")

    async def close(self) -> None:
        await self.backend.close()


def build_cache_service() -> CacheService:
    """설정(cache_backend)에 맞는 CacheService 생성"""
    if settings.cache_backend == "redis":
        logger.info("[CACHE] Using Redis backend")
        return CacheService(RedisCacheBackend(settings.redis_url, prefix=settings.cache_key_prefix))
    return CacheService(MemoryCacheBackend())
