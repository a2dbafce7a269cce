"""Load Aggregator: 컨테이너 내용물의 감소 적용 무게 (재귀)

감소율은 아이템이 '직접' 들어 있는 컨테이너의 것만 적용한다.
중첩 경로를 따라 곱해지지 않는다:
    load(A) = weight(B) × (1 - rA) + load(B)      (include_nested)
    load(B) = Σ weight(child) × (1 - rB)
"""

from __future__ import annotations

import logging
from typing import Optional

from .index import ContainerIndex, build_container_index
from .models import Actor, LoadResult, TraceEntry
from .reduction import own_weight_lbs, reduction_factor

logger = logging.getLogger(__name__)

LOAD_PRECISION = 5

MemoKey = tuple[str, bool, float]


def compute_container_load(
    actor: Optional[Actor],
    container_id: Optional[str],
    include_nested: bool = True,
    index: Optional[ContainerIndex] = None,
    memo: Optional[dict[MemoKey, float]] = None,
    visiting: Optional[set[str]] = None,
    system_unit: Optional[str] = None,
) -> LoadResult:
    """컨테이너 내용물의 조정 무게 (lb).

    index / memo / visiting은 하나의 최상위 호출 안에서만 공유한다.
    감소율과 소속은 호출 사이에 바뀔 수 있으므로 memo를 호출 밖으로 들고 나가지 않는다.

    순환 참조(X ⊃ Y ⊃ X)는 데이터 무결성 위반이지만 치명적 오류는 아니다:
    해당 가지는 0으로 계산하고 trace에 "cycle-break"를 남긴다.
    """
    if actor is None or not container_id:
        return LoadResult()

    if index is None:
        index = build_container_index(actor.items)
    if memo is None:
        memo = {}
    if visiting is None:
        visiting = set()

    container = index.item(container_id)
    r = reduction_factor(container)
    memo_key: MemoKey = (container_id, include_nested, r)

    if memo_key in memo:
        return LoadResult(load=memo[memo_key])

    if container_id in visiting:
        logger.warning(
            "Cycle detected: container %s (actor=%s)", container_id, actor.actor_id
        )
        name = container.name if container else ""
        return LoadResult(
            load=0.0, trace=[TraceEntry(kind="cycle-break", item_id=container_id, name=name)]
        )

    visiting.add(container_id)
    load = 0.0
    trace: list[TraceEntry] = []
    try:
        for child in index.get(container_id):
            weight = own_weight_lbs(child, system_unit)
            added = weight * (1.0 - r)
            load += added
            trace.append(
                TraceEntry(
                    kind="container-self" if child.is_container else "item",
                    item_id=child.item_id,
                    name=child.name,
                    weight=weight,
                    reduction=r,
                    added=added,
                )
            )

            if child.is_container and include_nested:
                sub = compute_container_load(
                    actor,
                    child.item_id,
                    include_nested,
                    index=index,
                    memo=memo,
                    visiting=visiting,
                    system_unit=system_unit,
                )
                load += sub.load
                trace.append(
                    TraceEntry(
                        kind="container-contents",
                        item_id=child.item_id,
                        name=child.name,
                        added=sub.load,
                    )
                )
                trace.extend(t for t in sub.trace if t.kind == "cycle-break")
    finally:
        visiting.discard(container_id)

    load = round(max(0.0, load), LOAD_PRECISION)
    memo[memo_key] = load
    return LoadResult(load=load, trace=trace)
