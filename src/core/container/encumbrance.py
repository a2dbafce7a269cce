"""Actor Encumbrance Projector: 액터 총 소지 무게

호스트가 계산한 소지 무게를 덮어쓰고, 임계값 플래그를 덮어쓴 값 기준으로 다시 계산한다.
"""

from __future__ import annotations

import logging
from dataclasses import replace
from typing import Optional

from .currency import DEFAULT_COINS_PER_WEIGHT_UNIT, effective_currency_weight
from .index import build_container_index
from .load import LOAD_PRECISION, MemoKey, compute_container_load
from .models import Actor, Encumbrance
from .reduction import own_weight_lbs
from .units import from_canonical

logger = logging.getLogger(__name__)

DISPLAY_PRECISION = 2


def total_carried(
    actor: Actor,
    include_nested: bool = True,
    coins_per_weight_unit: float = DEFAULT_COINS_PER_WEIGHT_UNIT,
    system_unit: Optional[str] = None,
) -> float:
    """최상위 아이템 자체 무게 + 컨테이너 내용물 load + 화폐 무게 (lb).

    끊어진 컨테이너 참조를 가진 아이템은 최상위로 계산된다.
    """
    index = build_container_index(actor.items)
    memo: dict[MemoKey, float] = {}
    total = 0.0

    for item in actor.items:
        if not index.is_top_level(item):
            continue
        total += own_weight_lbs(item, system_unit)
        if item.is_container:
            total += compute_container_load(
                actor,
                item.item_id,
                include_nested,
                index=index,
                memo=memo,
                system_unit=system_unit,
            ).load

    total += effective_currency_weight(actor, coins_per_weight_unit)
    return round(max(0.0, total), LOAD_PRECISION)


def apply_thresholds(encumbrance: Encumbrance, value: float) -> Encumbrance:
    """value(표시 단위)로 pct와 임계값 플래그를 다시 계산한 사본."""
    pct = 0
    if encumbrance.max > 0:
        pct = max(0, min(100, int(round(value / encumbrance.max * 100))))

    encumbered_at = encumbrance.encumbered_at
    heavily_at = encumbrance.heavily_encumbered_at
    return replace(
        encumbrance,
        value=value,
        pct=pct,
        encumbered=encumbered_at > 0 and value > encumbered_at,
        heavily_encumbered=heavily_at > 0 and value > heavily_at,
        exceeded=encumbrance.max > 0 and value > encumbrance.max,
    )


def project_encumbrance(
    actor: Actor,
    include_nested: bool = True,
    coins_per_weight_unit: float = DEFAULT_COINS_PER_WEIGHT_UNIT,
    display_unit: str = "lb",
) -> Encumbrance:
    """호스트 Encumbrance를 조정 무게로 덮어쓴 결과.

    display_unit은 무게 표시 단위이자 단위 미지정 아이템의 기본 단위다.
    """
    lbs = total_carried(
        actor,
        include_nested,
        coins_per_weight_unit,
        system_unit=display_unit,
    )
    value = round(from_canonical(lbs, display_unit), DISPLAY_PRECISION)
    projected = apply_thresholds(actor.encumbrance, value)
    logger.debug(
        "Encumbrance projected for %s: %.2f %s (pct=%d)",
        actor.actor_id,
        value,
        display_unit,
        projected.pct,
    )
    return projected
