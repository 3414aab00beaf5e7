"""Pydantic 스키마 정의 (상품/검색 이벤트/API 응답)"""
from typing import Annotated, Any, Dict, List, Literal, Optional, Union
from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator
from datetime import datetime


class Product(BaseModel):
    """정규화된 상품 레코드 (생성 후 불변)

    - original_price는 price보다 클 때만 유지
    - discount는 original_price가 있을 때 자동 계산 ("{pct}% off")
    """

    model_config = ConfigDict(frozen=True)

    name: str = Field(..., min_length=1, max_length=300, description="상품명")
    price: float = Field(..., ge=0, description="판매가")
    original_price: Optional[float] = Field(None, description="정가(MRP)")
    discount: Optional[str] = Field(None, description="할인 라벨 (예: 32% off)")
    source: str = Field(..., description="소스 ID")
    url: str = Field("", description="상품 링크")
    image_url: Optional[str] = Field(None, description="이미지 URL")
    rating: Optional[float] = Field(None, ge=0, le=5, description="평점")
    delivery_time: str = Field("", description="배송 시간 라벨")
    available: bool = Field(True, description="구매 가능 여부")

    @model_validator(mode="before")
    @classmethod
    def _derive_discount(cls, data: Any):
        if not isinstance(data, dict):
            return data

        price = data.get("price")
        original = data.get("original_price")
        try:
            price_f = float(price) if price is not None else None
            original_f = float(original) if original is not None else None
        except (TypeError, ValueError):
            return data

        if original_f is None or price_f is None or original_f <= price_f:
            data["original_price"] = None
            data["discount"] = None
            return data

        if not data.get("discount"):
            pct = int((original_f - price_f) / original_f * 100)
            data["discount"] = f"{pct}% off" if pct > 0 else None
        return data

    @property
    def discount_percentage(self) -> int:
        if self.original_price is None or self.original_price <= 0:
            return 0
        return int((self.original_price - self.price) / self.original_price * 100)


class SearchRequest(BaseModel):
    """가격 검색 요청 (입력 검증)"""
    query: str = Field(..., min_length=1, max_length=200, description="검색어")
    location: Optional[str] = Field(None, description="배송지 pincode (6자리)")

    @field_validator("query")
    @classmethod
    def validate_query(cls, v: str) -> str:
        if not v or not v.strip():
            raise ValueError("query must not be blank")
        dangerous_chars = ['<', '>', '"', '\\', '\0', '\n', '\r']
        for char in dangerous_chars:
            if char in v:
                raise ValueError(f"query contains a forbidden character: {char!r}")
        return " ".join(v.split())

    @field_validator("location")
    @classmethod
    def validate_location(cls, v: Optional[str]) -> Optional[str]:
        if v is None:
            return None
        v = v.strip()
        if not (len(v) == 6 and v.isdigit()):
            raise ValueError("location must be a 6-digit pincode")
        return v


# ============================================================================
# 검색 이벤트 (스트리밍 프로토콜)
# ============================================================================

class StartedEvent(BaseModel):
    type: Literal["started"] = "started"
    sources: List[str]


class PlatformResultEvent(BaseModel):
    """소스 하나의 최종 결과 (소스당 정확히 1회)"""
    type: Literal["platform_result"] = "platform_result"
    source: str
    products: List[Product] = Field(default_factory=list)
    cached: bool = False


class MessageEvent(BaseModel):
    type: Literal["message"] = "message"
    text: str


class CompletedEvent(BaseModel):
    type: Literal["completed"] = "completed"


class ErrorEvent(BaseModel):
    type: Literal["error"] = "error"
    message: str


SearchEvent = Annotated[
    Union[StartedEvent, PlatformResultEvent, MessageEvent, CompletedEvent, ErrorEvent],
    Field(discriminator="type"),
]


# ============================================================================
# API 응답
# ============================================================================

class ProductGroup(BaseModel):
    """소스 간 같은 상품 묶음 (가격 오름차순, 소스당 1개)"""
    canonical_name: str
    products: List[Product] = Field(default_factory=list)


class SearchResponse(BaseModel):
    """검색 응답 (스트림을 모두 모은 결과)"""
    query: str
    location: str
    results: Dict[str, List[Product]] = Field(default_factory=dict, description="소스별 상품")
    best_deal: Optional[Product] = Field(None, description="관련도/단위가격 기준 최적 상품")
    ranked: List[Product] = Field(default_factory=list, description="검색 의도 기준 정렬/필터된 전체 상품")
    groups: List[ProductGroup] = Field(default_factory=list, description="소스 간 같은 상품 묶음")
    elapsed_ms: float = Field(..., ge=0, description="검색 소요 시간 (밀리초)")


class SourceHealthResponse(BaseModel):
    """소스 회로차단기 상태"""
    source: str
    state: str
    failure_count: int
    last_failure_at: Optional[float] = None
    cooldown_remaining: float = 0.0
    success_rate: Optional[float] = None
    last_success_at: Optional[float] = None


class CacheStatsResponse(BaseModel):
    """캐시 통계"""
    entry_count: int
    hits_since: int = Field(..., description="window 내에 갱신된 엔트리 수")
    window_s: int
    hit_count: int = 0
    stale_hit_count: int = 0
    miss_count: int = 0


class HealthResponse(BaseModel):
    """헬스 체크 응답"""
    status: str
    timestamp: datetime
    version: str
    cache_ok: bool
    disabled_sources: List[str] = Field(default_factory=list)
