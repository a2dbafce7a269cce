"""컨테이너/무게 도메인 모델 (DB 무관)"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Optional


class ItemKind(str, Enum):
    PLAIN = "plain"
    CONTAINER = "container"


class EnforceMode(str, Enum):
    BLOCK = "block"
    WARN = "warn"

    @classmethod
    def from_setting(cls, value: str | None) -> "EnforceMode":
        """설정 문자열 → EnforceMode. 알 수 없는 값은 BLOCK."""
        try:
            return cls(str(value).strip().lower())
        except ValueError:
            return cls.BLOCK


class MutationKind(str, Enum):
    CREATE = "create"
    QUANTITY = "quantity"
    MOVE = "move"
    WEIGHT = "weight"


class AdmissionOutcome(str, Enum):
    ACCEPT = "accept"
    EXCEED = "exceed"


@dataclass(frozen=True)
class Weight:
    """단위 무게. unit=None이면 시스템 기본 단위."""

    value: float = 0.0
    unit: Optional[str] = None


@dataclass(frozen=True)
class MutationContext:
    """쓰기 출처 태그.

    internal=True: 시스템이 이미 검증한 내부 쓰기. 훅/알림 핸들러는 건너뛴다.
    """

    internal: bool = False
    is_gm: bool = False
    user_id: Optional[str] = None


USER_CONTEXT = MutationContext()
INTERNAL_CONTEXT = MutationContext(internal=True, is_gm=True, user_id="system")


@dataclass
class Item:
    """액터 소유 아이템. 컨테이너 전용 필드는 kind=CONTAINER일 때만 의미가 있다."""

    item_id: str
    name: str = ""
    kind: ItemKind = ItemKind.PLAIN
    weight: Weight = field(default_factory=Weight)
    quantity: int = 1
    container_id: Optional[str] = None  # None = 최상위

    # 컨테이너
    capacity: Optional[Weight] = None  # None / <=0 = 무제한
    reduction_pct: int = 0  # 0~100
    reduces_currency: bool = False

    @property
    def is_container(self) -> bool:
        return self.kind == ItemKind.CONTAINER


@dataclass
class Encumbrance:
    """액터 소지 무게 파생값 (표시 단위).

    value/pct/플래그는 Projector가 덮어쓴다. max/임계값은 호스트가 제공.
    """

    value: float = 0.0
    max: float = 0.0
    encumbered_at: float = 0.0  # 0 = 임계값 없음
    heavily_encumbered_at: float = 0.0
    pct: int = 0
    encumbered: bool = False
    heavily_encumbered: bool = False
    exceeded: bool = False


@dataclass
class Actor:
    actor_id: str
    name: str = ""
    items: list[Item] = field(default_factory=list)
    currency: dict[str, int] = field(default_factory=dict)  # 화폐 단위 → 개수
    encumbrance: Encumbrance = field(default_factory=Encumbrance)

    def get_item(self, item_id: str | None) -> Optional[Item]:
        if not item_id:
            return None
        for item in self.items:
            if item.item_id == item_id:
                return item
        return None

    def containers(self) -> list[Item]:
        return [i for i in self.items if i.is_container]


@dataclass(frozen=True)
class TraceEntry:
    """Load 계산 진단 기록. 정합성 판단에는 쓰지 않는다."""

    kind: str  # "item" | "container-self" | "container-contents" | "cycle-break"
    item_id: str
    name: str = ""
    weight: float = 0.0  # 정규화 무게 × 수량
    reduction: float = 0.0
    added: float = 0.0


@dataclass
class LoadResult:
    load: float = 0.0
    trace: list[TraceEntry] = field(default_factory=list)


@dataclass(frozen=True)
class AdmissionResult:
    """용량 검사 결과. 초과는 예외가 아니라 값으로 반환된다."""

    outcome: AdmissionOutcome
    kind: MutationKind
    container_id: str
    container_name: str = ""
    current: float = 0.0
    delta: float = 0.0
    capacity: Optional[float] = None  # None = 무제한

    @property
    def projected(self) -> float:
        return self.current + self.delta

    @property
    def exceeded(self) -> bool:
        return self.outcome == AdmissionOutcome.EXCEED


@dataclass
class AdmissionDecision:
    """하나의 변경 요청에 대한 검사 결과 묶음."""

    results: list[AdmissionResult] = field(default_factory=list)

    @property
    def exceeded(self) -> bool:
        return any(r.exceeded for r in self.results)

    @property
    def first_exceeded(self) -> Optional[AdmissionResult]:
        for r in self.results:
            if r.exceeded:
                return r
        return None
