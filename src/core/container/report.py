"""컨테이너 상태 보고 (표시용 값 + 진단 trace)"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Optional

from .currency import DEFAULT_COINS_PER_WEIGHT_UNIT, container_currency_load
from .index import ContainerIndex, build_container_index
from .load import compute_container_load
from .models import Actor, TraceEntry
from .reduction import capacity_lbs, get_reduction_pct, reduction_tier
from .units import from_canonical


@dataclass
class ContainerReport:
    container_id: str
    name: str
    reduction_pct: int
    tier: str
    reduces_currency: bool
    load_lbs: float
    currency_lbs: float
    capacity_lbs: Optional[float]
    # 표시 단위
    unit: str
    load: float
    capacity: Optional[float]
    pct: int
    trace: list[TraceEntry] = field(default_factory=list)


def build_container_report(
    actor: Actor,
    container_id: str,
    include_nested: bool = True,
    coins_per_weight_unit: float = DEFAULT_COINS_PER_WEIGHT_UNIT,
    display_unit: str = "lb",
    index: Optional[ContainerIndex] = None,
) -> Optional[ContainerReport]:
    """컨테이너가 아니거나 없으면 None."""
    if index is None:
        index = build_container_index(actor.items)
    container = index.item(container_id)
    if container is None or not container.is_container:
        return None

    result = compute_container_load(
        actor, container_id, include_nested, index=index, system_unit=display_unit
    )
    currency = container_currency_load(actor, container_id, coins_per_weight_unit)
    capacity = capacity_lbs(container, display_unit)
    total = result.load + currency

    pct = 0
    if capacity:
        pct = max(0, min(100, int(round(total / capacity * 100))))

    reduction = get_reduction_pct(container)
    return ContainerReport(
        container_id=container_id,
        name=container.name,
        reduction_pct=reduction,
        tier=reduction_tier(reduction),
        reduces_currency=container.reduces_currency,
        load_lbs=result.load,
        currency_lbs=round(currency, 5),
        capacity_lbs=capacity,
        unit=display_unit,
        load=round(from_canonical(total, display_unit), 2),
        capacity=round(from_canonical(capacity, display_unit), 2) if capacity else None,
        pct=pct,
        trace=result.trace,
    )


def build_actor_reports(
    actor: Actor,
    include_nested: bool = True,
    coins_per_weight_unit: float = DEFAULT_COINS_PER_WEIGHT_UNIT,
    display_unit: str = "lb",
) -> list[ContainerReport]:
    """액터의 모든 컨테이너 보고 (진단 덤프용)."""
    index = build_container_index(actor.items)
    reports = []
    for item in actor.containers():
        report = build_container_report(
            actor,
            item.item_id,
            include_nested,
            coins_per_weight_unit,
            display_unit,
            index=index,
        )
        if report is not None:
            reports.append(report)
    return reports
