"""무게 단위 정규화. 기준 단위는 파운드(lb)."""

import math
from typing import Any, Optional

CANONICAL_UNIT = "lb"
LBS_PER_KG = 2.20462

_UNIT_FACTORS: dict[str, float] = {
    "lb": 1.0,
    "lbs": 1.0,
    "pound": 1.0,
    "pounds": 1.0,
    "kg": LBS_PER_KG,
    "kgs": LBS_PER_KG,
    "kilogram": LBS_PER_KG,
    "kilograms": LBS_PER_KG,
    "oz": 1.0 / 16.0,
    "ounce": 1.0 / 16.0,
    "ounces": 1.0 / 16.0,
    "g": LBS_PER_KG / 1000.0,
    "gram": LBS_PER_KG / 1000.0,
    "grams": LBS_PER_KG / 1000.0,
}


def to_number(value: Any, fallback: float = 0.0) -> float:
    """숫자 변환. 변환 불가 / NaN / inf → fallback."""
    if isinstance(value, bool):
        return float(value)
    try:
        n = float(value)
    except (TypeError, ValueError):
        return fallback
    if not math.isfinite(n):
        return fallback
    return n


def unit_factor(unit: Optional[str]) -> Optional[float]:
    """알려진 단위면 lb 환산 계수, 아니면 None."""
    if unit is None:
        return None
    return _UNIT_FACTORS.get(str(unit).strip().lower())


def to_canonical(
    value: Any, unit: Optional[str] = None, system_unit: Optional[str] = None
) -> float:
    """(value, unit) → lb.

    unit 미지정 시 system_unit 사용. 모르는 단위는 이미 lb로 간주(통과).
    외부 데이터가 파이프라인을 깨뜨리면 안 되므로 예외를 던지지 않는다.
    """
    n = to_number(value)
    if n == 0.0:
        return 0.0
    effective = unit if unit not in (None, "") else system_unit
    factor = unit_factor(effective)
    if factor is None:
        return n
    return n * factor


def from_canonical(lbs: float, unit: Optional[str]) -> float:
    """lb → 표시 단위. 모르는 단위는 그대로 반환."""
    factor = unit_factor(unit)
    if not factor:
        return lbs
    return lbs / factor


def display_unit(metric: bool) -> str:
    return "kg" if metric else CANONICAL_UNIT
