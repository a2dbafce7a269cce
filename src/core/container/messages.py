"""용량 초과 메시지"""

from typing import Optional

from .models import AdmissionResult
from .units import from_canonical

DEFAULT_EXCEED_TEMPLATE = (
    "{container_name}: capacity exceeded "
    "({current} + {delta} > {capacity} {unit})"
)


def format_exceed_message(
    result: AdmissionResult,
    display_unit: str = "lb",
    custom_text: Optional[str] = None,
) -> str:
    """컨테이너 이름, 현재 load, 시도한 delta, 용량을 표시 단위(소수 2자리)로 포맷.

    custom_text가 비어 있지 않으면 그대로 반환한다.
    """
    custom = (custom_text or "").strip()
    if custom:
        return custom

    capacity = result.capacity if result.capacity is not None else 0.0
    return DEFAULT_EXCEED_TEMPLATE.format(
        container_name=result.container_name or "Container",
        current=f"{from_canonical(result.current, display_unit):.2f}",
        delta=f"{from_canonical(result.delta, display_unit):.2f}",
        capacity=f"{from_canonical(capacity, display_unit):.2f}",
        unit=display_unit,
    )
