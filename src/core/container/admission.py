"""Capacity Admission Controller: 변경 전 용량 검사

모든 변경 종류에 대해 호출자는 대상 컨테이너에 '추가될' 무게(delta, 대상 컨테이너의
감소율 적용 후)를 계산하고 check_capacity()에 넘긴다.

    projected = load(container) + delta
    projected > capacity + CAPACITY_EPSILON  → EXCEED

초과는 흔한 결과이므로 예외가 아니라 값(AdmissionResult)으로 반환한다.
차단/경고 여부는 호출자가 EnforceMode로 결정한다.
"""

from __future__ import annotations

import logging
from dataclasses import replace
from typing import Any, Optional

from .currency import container_currency_load
from .index import ContainerIndex, build_container_index
from .load import MemoKey, compute_container_load
from .models import (
    Actor,
    AdmissionDecision,
    AdmissionOutcome,
    AdmissionResult,
    EnforceMode,
    Item,
    MutationKind,
    Weight,
)
from .reduction import (
    capacity_lbs,
    get_quantity,
    own_weight_lbs,
    merge_weight,
    reduction_factor,
    unit_weight_lbs,
)
from .units import to_canonical, to_number

logger = logging.getLogger(__name__)

CAPACITY_EPSILON = 0.001


def check_capacity(
    actor: Actor,
    container_id: str,
    delta: float,
    include_nested: bool = True,
    kind: MutationKind = MutationKind.CREATE,
    index: Optional[ContainerIndex] = None,
    memo: Optional[dict[MemoKey, float]] = None,
    pending: float = 0.0,
    system_unit: Optional[str] = None,
    coins_per_weight_unit: Optional[float] = None,
) -> AdmissionResult:
    """용량 검사.

    pending: 같은 요청에서 이미 통과한 delta (같은 컨테이너). current에 더해진다.
    coins_per_weight_unit가 주어지면 화폐 보관 컨테이너의 current에 화폐 무게를 포함한다.
    용량이 없거나 0 이하인 컨테이너는 무제한이므로 항상 ACCEPT.
    """
    if index is None:
        index = build_container_index(actor.items)
    container = index.item(container_id)
    name = container.name if container else ""
    capacity = capacity_lbs(container, system_unit)

    if capacity is None:
        return AdmissionResult(
            outcome=AdmissionOutcome.ACCEPT,
            kind=kind,
            container_id=container_id,
            container_name=name,
            delta=delta,
        )

    current = compute_container_load(
        actor,
        container_id,
        include_nested,
        index=index,
        memo=memo,
        system_unit=system_unit,
    ).load
    if coins_per_weight_unit is not None:
        current += container_currency_load(actor, container_id, coins_per_weight_unit)
    current += pending

    outcome = AdmissionOutcome.ACCEPT
    if current + delta > capacity + CAPACITY_EPSILON:
        outcome = AdmissionOutcome.EXCEED
        logger.info(
            "Capacity exceeded: %s (%s) current=%.3f delta=%.3f capacity=%.3f",
            name,
            container_id,
            current,
            delta,
            capacity,
        )

    return AdmissionResult(
        outcome=outcome,
        kind=kind,
        container_id=container_id,
        container_name=name,
        current=current,
        delta=delta,
        capacity=capacity,
    )


# ── delta 계산 ─────────────────────────────────────────────────


def create_delta(item: Item, target: Optional[Item], system_unit: Optional[str] = None) -> float:
    """생성: 정규화 무게 × 수량 × (1 - r_target)"""
    return own_weight_lbs(item, system_unit) * (1.0 - reduction_factor(target))


def quantity_delta(
    item: Item,
    old_quantity: int,
    new_quantity: int,
    container: Optional[Item],
    system_unit: Optional[str] = None,
) -> float:
    """수량 증가: (new - old) × 단위 무게 × (1 - r). 감소는 0."""
    added = max(0, new_quantity - old_quantity)
    return added * unit_weight_lbs(item, system_unit) * (1.0 - reduction_factor(container))


def move_delta(
    actor: Actor,
    item: Item,
    destination: Optional[Item],
    include_nested: bool = True,
    index: Optional[ContainerIndex] = None,
    memo: Optional[dict[MemoKey, float]] = None,
    system_unit: Optional[str] = None,
) -> float:
    """이동: 자체 무게 × (1 - r_dest) + (컨테이너이고 include_nested면) 내부 load 그대로."""
    delta = own_weight_lbs(item, system_unit) * (1.0 - reduction_factor(destination))
    if item.is_container and include_nested:
        delta += compute_container_load(
            actor,
            item.item_id,
            include_nested,
            index=index,
            memo=memo,
            system_unit=system_unit,
        ).load
    return delta


def weight_delta(
    item: Item,
    new_weight: Weight,
    container: Optional[Item],
    quantity: Optional[int] = None,
    system_unit: Optional[str] = None,
    old_quantity: Optional[int] = None,
) -> float:
    """단위 무게 변경: max(0, 새 감소 후 합계 - 기존 감소 후 합계)

    old_quantity 를 주면 기존 합계는 그 수량으로 계산한다 (같은 요청의 수량 감소분 상계).
    """
    qty = get_quantity(item) if quantity is None else quantity
    prev_qty = qty if old_quantity is None else old_quantity
    factor = 1.0 - reduction_factor(container)
    old_total = unit_weight_lbs(item, system_unit) * prev_qty * factor
    new_total = max(0.0, to_canonical(new_weight.value, new_weight.unit, system_unit)) * qty * factor
    return max(0.0, new_total - old_total)


# ── 변경 요청 평가 ─────────────────────────────────────────────


def evaluate_create(
    actor: Actor,
    item: Item,
    include_nested: bool = True,
    system_unit: Optional[str] = None,
    coins_per_weight_unit: Optional[float] = None,
) -> AdmissionDecision:
    """생성 전 검사. 최상위 생성이나 유효하지 않은 컨테이너 참조는 검사하지 않는다."""
    decision = AdmissionDecision()
    if not item.container_id:
        return decision

    index = build_container_index(actor.items)
    target = index.item(item.container_id)
    if target is None or not target.is_container:
        return decision

    delta = create_delta(item, target, system_unit)
    decision.results.append(
        check_capacity(
            actor,
            target.item_id,
            delta,
            include_nested,
            kind=MutationKind.CREATE,
            index=index,
            system_unit=system_unit,
            coins_per_weight_unit=coins_per_weight_unit,
        )
    )
    return decision


def evaluate_update(
    actor: Actor,
    item: Item,
    changes: dict[str, Any],
    include_nested: bool = True,
    system_unit: Optional[str] = None,
    coins_per_weight_unit: Optional[float] = None,
) -> AdmissionDecision:
    """갱신 전 검사.

    changes 키: "quantity", "container_id", "weight" (없는 키 = 변경 없음,
    container_id=None = 최상위로 꺼냄).
    다른 컨테이너로 이동하면 이동 검사 하나만 한다 (새 수량/무게 기준).
    제자리 변경이면 수량 → 무게 순서로 검사하고, 무게 검사는 수량 증가분을 누적한다.
    """
    decision = AdmissionDecision()
    index = build_container_index(actor.items)

    old_qty = get_quantity(item)
    new_qty = old_qty
    if "quantity" in changes:
        new_qty = max(0, int(to_number(changes["quantity"], fallback=old_qty)))
    new_weight = merge_weight(item.weight, changes["weight"]) if "weight" in changes else item.weight

    moving = "container_id" in changes and changes["container_id"] != item.container_id

    if moving:
        destination = index.item(changes["container_id"])
        if destination is None or not destination.is_container:
            return decision
        moved = replace(
            item,
            weight=new_weight,
            quantity=new_qty,
            container_id=destination.item_id,
        )
        memo: dict[MemoKey, float] = {}
        delta = move_delta(
            actor,
            moved,
            destination,
            include_nested,
            index=index,
            memo=memo,
            system_unit=system_unit,
        )
        decision.results.append(
            check_capacity(
                actor,
                destination.item_id,
                delta,
                include_nested,
                kind=MutationKind.MOVE,
                index=index,
                memo=memo,
                system_unit=system_unit,
                coins_per_weight_unit=coins_per_weight_unit,
            )
        )
        return decision

    current_container = index.parent_of(item)
    if current_container is None:
        return decision

    pending = 0.0
    if new_qty > old_qty:
        delta = quantity_delta(item, old_qty, new_qty, current_container, system_unit)
        decision.results.append(
            check_capacity(
                actor,
                current_container.item_id,
                delta,
                include_nested,
                kind=MutationKind.QUANTITY,
                index=index,
                system_unit=system_unit,
                coins_per_weight_unit=coins_per_weight_unit,
            )
        )
        pending = delta

    if "weight" in changes:
        # 수량 검사에서 이미 누적된 증가분은 빼고, 감소는 검사하지 않는다
        delta = max(
            0.0,
            weight_delta(
                item,
                new_weight,
                current_container,
                new_qty,
                system_unit,
                old_quantity=old_qty,
            )
            - pending,
        )
        if delta > 0:
            decision.results.append(
                check_capacity(
                    actor,
                    current_container.item_id,
                    delta,
                    include_nested,
                    kind=MutationKind.WEIGHT,
                    index=index,
                    pending=pending,
                    system_unit=system_unit,
                    coins_per_weight_unit=coins_per_weight_unit,
                )
            )

    return decision


def is_allowed(decision: AdmissionDecision, mode: EnforceMode) -> bool:
    """정책 적용. BLOCK 모드에서만 초과가 변경을 막는다."""
    if not decision.exceeded:
        return True
    return mode == EnforceMode.WARN
