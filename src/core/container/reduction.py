"""감소율 / 용량 / 자체 무게 원시 함수

Load Aggregator, Currency Pool, Admission Controller가 공유한다.
"""

import logging
from typing import Any, Optional

from .models import Item, Weight
from .units import to_canonical, to_number

logger = logging.getLogger(__name__)

# (최소 감소율, 등급), 높은 순
_REDUCTION_TIERS: tuple[tuple[int, str], ...] = (
    (95, "artifact"),
    (85, "legendary"),
    (70, "very_rare"),
    (50, "rare"),
    (1, "uncommon"),
)


def sanitize_reduction_pct(value: Any) -> int:
    """임의 입력 → 0~100 정수. 숫자가 아니면 0."""
    n = to_number(value)
    return max(0, min(100, int(round(n))))


def get_reduction_pct(container: Optional[Item]) -> int:
    """컨테이너 감소율. 컨테이너가 아니거나 없으면 0."""
    if container is None or not container.is_container:
        return 0
    return sanitize_reduction_pct(container.reduction_pct)


def reduction_factor(container: Optional[Item]) -> float:
    """감소율 → 0.0~1.0 비율 (r). 기여 무게는 weight × (1 - r)."""
    return get_reduction_pct(container) / 100.0


def reduction_tier(pct: int) -> str:
    for threshold, tier in _REDUCTION_TIERS:
        if pct >= threshold:
            return tier
    return "common"


def get_quantity(item: Item) -> int:
    """수량. 숫자가 아니면 1, 음수는 0."""
    q = to_number(item.quantity, fallback=1.0)
    return max(0, int(q))


def unit_weight_lbs(item: Item, system_unit: Optional[str] = None) -> float:
    """아이템 1개의 정규화 무게 (lb)."""
    weight = item.weight or Weight()
    return max(0.0, to_canonical(weight.value, weight.unit, system_unit))


def own_weight_lbs(item: Item, system_unit: Optional[str] = None) -> float:
    """아이템 자체 무게 × 수량 (lb). 내용물 미포함."""
    return unit_weight_lbs(item, system_unit) * get_quantity(item)


def capacity_lbs(container: Optional[Item], system_unit: Optional[str] = None) -> Optional[float]:
    """컨테이너 용량 (lb). None = 무제한 (용량 없음 / 0 이하 / 컨테이너 아님)."""
    if container is None or not container.is_container or container.capacity is None:
        return None
    cap = to_canonical(container.capacity.value, container.capacity.unit, system_unit)
    if cap <= 0:
        return None
    return cap


def parse_weight(raw: Any) -> Weight:
    """외부 무게 데이터 → Weight.

    지원 형태: {"value": 5, "units": "kg"} / {"value": 5, "unit": "kg"} / 5 / "5".
    """
    if isinstance(raw, Weight):
        return raw
    if isinstance(raw, dict):
        unit = raw.get("units", raw.get("unit"))
        return Weight(value=to_number(raw.get("value")), unit=unit or None)
    return Weight(value=to_number(raw))


def merge_weight(current: Weight, raw: Any) -> Weight:
    """부분 무게 변경을 현재 무게에 병합한다.

    dict 에서 빠졌거나 None 인 value / units 는 현재 값을 유지한다.
    dict 가 아니면 parse_weight 와 같다.
    """
    if not isinstance(raw, dict):
        return parse_weight(raw)
    value = raw.get("value")
    unit = raw.get("units", raw.get("unit"))
    return Weight(
        value=current.value if value is None else to_number(value, fallback=current.value),
        unit=current.unit if unit is None else (unit or None),
    )


def parse_capacity(raw: Any) -> Optional[Weight]:
    """외부 용량 데이터 → Weight | None.

    순서대로 시도:
    1. {"weight": {"value": .., "units": ..}}  (구조화된 무게 용량)
    2. {"value": .., "units": ..}              (구형 형식)
    3. 양수 숫자
    어느 것도 양수 용량이 아니면 None (무제한).
    """
    if raw is None:
        return None
    if isinstance(raw, Weight):
        return raw if to_number(raw.value) > 0 else None

    if isinstance(raw, dict):
        weight_cap = raw.get("weight")
        if isinstance(weight_cap, dict) and weight_cap.get("value") is not None:
            parsed = parse_weight(weight_cap)
            if parsed.value > 0:
                return parsed
        if raw.get("value") is not None:
            parsed = parse_weight(raw)
            if parsed.value > 0:
                return parsed
        logger.debug("capacity not resolved: %s", raw)
        return None

    n = to_number(raw)
    if n > 0:
        return Weight(value=n)
    return None
