"""Currency Pool: 액터 전체 화폐 무게

화폐는 컨테이너별로 분리되지 않으므로 액터 단위 하나의 풀로 계산하고,
화폐 감소 컨테이너 중 가장 높은 감소율 하나만 적용한다.
"""

import logging

from .models import Actor, Item
from .reduction import get_reduction_pct
from .units import to_number

logger = logging.getLogger(__name__)

DEFAULT_COINS_PER_WEIGHT_UNIT = 50.0


def total_coins(currency: dict[str, int] | None) -> float:
    """모든 화폐 단위 합계. 음수/숫자 아님 → 0."""
    if not currency:
        return 0.0
    return sum(max(0.0, to_number(count)) for count in currency.values())


def base_currency_weight(
    currency: dict[str, int] | None,
    coins_per_weight_unit: float = DEFAULT_COINS_PER_WEIGHT_UNIT,
) -> float:
    divisor = to_number(coins_per_weight_unit)
    coins = total_coins(currency)
    if divisor <= 0 or coins <= 0:
        return 0.0
    return coins / divisor


def currency_holder(actor: Actor) -> Item | None:
    """화폐를 담는 컨테이너 = 감소율이 가장 높은 화폐 감소 컨테이너. 동률이면 먼저 나온 것."""
    holder: Item | None = None
    for item in actor.items:
        if not item.is_container or not item.reduces_currency:
            continue
        if holder is None or get_reduction_pct(item) > get_reduction_pct(holder):
            holder = item
    return holder


def best_currency_reduction(actor: Actor) -> int | None:
    """화폐 감소 컨테이너 중 최대 감소율. 해당 컨테이너가 없으면 None."""
    holder = currency_holder(actor)
    if holder is None:
        return None
    return get_reduction_pct(holder)


def effective_currency_weight(
    actor: Actor,
    coins_per_weight_unit: float = DEFAULT_COINS_PER_WEIGHT_UNIT,
) -> float:
    """감소율 적용 화폐 무게 (lb)."""
    base = base_currency_weight(actor.currency, coins_per_weight_unit)
    if base <= 0:
        return 0.0
    best = best_currency_reduction(actor)
    if best is None:
        return base
    effective = base * (1.0 - best / 100.0)
    logger.debug(
        "Currency weight for %s: base=%.3f best=%d%% effective=%.3f",
        actor.actor_id,
        base,
        best,
        effective,
    )
    return effective


def container_currency_load(
    actor: Actor,
    container_id: str,
    coins_per_weight_unit: float = DEFAULT_COINS_PER_WEIGHT_UNIT,
) -> float:
    """컨테이너가 화폐 보관 컨테이너면 유효 화폐 무게, 아니면 0.

    풀은 하나뿐이므로 보관 컨테이너 한 곳에만 계산된다 (중복 계산 방지).
    """
    holder = currency_holder(actor)
    if holder is None or holder.item_id != container_id:
        return 0.0
    return effective_currency_weight(actor, coins_per_weight_unit)
