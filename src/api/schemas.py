"""API request/response schemas."""

from typing import Any, Optional, Union

from pydantic import BaseModel, Field


# === Request Schemas ===


class WeightIn(BaseModel):
    """단위 무게 입력. units 미지정 시 시스템 기본 단위

    갱신 요청에서 빠진 value / units 는 저장된 값을 유지한다.
    """

    value: Optional[float] = None
    units: Optional[str] = None


class ActorCreateRequest(BaseModel):
    """액터 생성 요청"""

    actor_id: Optional[str] = Field(None, max_length=64, description="미지정 시 UUID")
    name: str = Field("", max_length=100)
    currency: dict[str, int] = Field(default_factory=dict, description="화폐 단위 → 개수")
    encumbrance_max: float = Field(0.0, ge=0)
    encumbered_at: float = Field(0.0, ge=0)
    heavily_encumbered_at: float = Field(0.0, ge=0)


class CurrencyRequest(BaseModel):
    """화폐 원장 교체 요청"""

    currency: dict[str, int]


class ItemCreateRequest(BaseModel):
    """아이템 생성 요청"""

    item_id: Optional[str] = Field(None, max_length=64)
    name: str = Field("", max_length=100)
    kind: str = Field("plain", description="plain | container")
    weight: WeightIn = Field(default_factory=WeightIn)
    quantity: int = Field(1, ge=0)
    container_id: Optional[str] = None
    capacity: Optional[WeightIn] = None
    reduces_currency: bool = False


class ItemUpdateRequest(BaseModel):
    """아이템 갱신 요청. 보낸 필드만 변경된다."""

    name: Optional[str] = Field(None, max_length=100)
    quantity: Optional[int] = Field(None, ge=0)
    container_id: Optional[str] = Field(None, description="빈 문자열 = 최상위로 꺼냄")
    weight: Optional[WeightIn] = None
    capacity: Optional[WeightIn] = None
    reduces_currency: Optional[bool] = None


class ReductionRequest(BaseModel):
    """컨테이너 감소율 설정 요청"""

    reduction_pct: float = Field(..., description="0~100, 범위 밖은 보정")


# === Response Schemas ===


class WeightOut(BaseModel):
    value: float
    units: Optional[str] = None


class ItemInfo(BaseModel):
    """아이템 정보 (저장값 그대로, 감소 미적용)"""

    item_id: str
    name: str
    kind: str
    weight: WeightOut
    quantity: int
    container_id: Optional[str] = None
    capacity: Optional[WeightOut] = None
    reduction_pct: int = 0
    reduces_currency: bool = False


class EncumbranceInfo(BaseModel):
    """소지 무게 (표시 단위)"""

    value: float
    max: float
    pct: int
    unit: str
    encumbered: bool = False
    heavily_encumbered: bool = False
    exceeded: bool = False


class ActorInfo(BaseModel):
    """액터 정보"""

    actor_id: str
    name: str
    currency: dict[str, int] = {}
    items: list[ItemInfo] = []
    encumbrance: EncumbranceInfo


class TraceInfo(BaseModel):
    kind: str
    item_id: str
    name: str = ""
    weight: float = 0.0
    reduction: float = 0.0
    added: float = 0.0


class ContainerReportInfo(BaseModel):
    """컨테이너 load/용량/감소율 보고"""

    container_id: str
    name: str
    reduction_pct: int
    tier: str
    reduces_currency: bool
    unit: str
    load: float
    capacity: Optional[float] = None
    pct: int
    load_lbs: float
    currency_lbs: float
    capacity_lbs: Optional[float] = None
    trace: list[TraceInfo] = []


class ReductionResponse(BaseModel):
    success: bool
    reduction_pct: int
    container: ContainerReportInfo


class DiagnosticsResponse(BaseModel):
    """진단 덤프: 컨테이너 보고 + 최근 로그"""

    actor_id: str
    containers: list[ContainerReportInfo] = []
    logs: list[dict[str, Any]] = []


class NoticeInfo(BaseModel):
    kind: str
    message: str
    data: dict[str, Any] = {}


class ErrorResponse(BaseModel):
    """에러 응답 (HTTPException 본문). 용량 초과 409 는 detail 이 dict"""

    detail: Union[str, dict[str, Any]]
