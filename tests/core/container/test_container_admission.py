"""Capacity Admission Controller + Currency Pool 테스트"""

from __future__ import annotations

import pytest

from src.core.container.admission import (
    check_capacity,
    create_delta,
    evaluate_create,
    evaluate_update,
    is_allowed,
    move_delta,
    quantity_delta,
    weight_delta,
)
from src.core.container.currency import (
    base_currency_weight,
    best_currency_reduction,
    container_currency_load,
    currency_holder,
    effective_currency_weight,
    total_coins,
)
from src.core.container.models import (
    Actor,
    AdmissionDecision,
    AdmissionOutcome,
    EnforceMode,
    Item,
    ItemKind,
    MutationKind,
    Weight,
)


def _item(item_id: str, weight: float, container_id: str | None = None, quantity: int = 1) -> Item:
    return Item(
        item_id=item_id,
        name=item_id,
        weight=Weight(weight),
        quantity=quantity,
        container_id=container_id,
    )


def _bag(
    item_id: str,
    reduction: int = 0,
    capacity: float | None = None,
    weight: float = 0.0,
    container_id: str | None = None,
    reduces_currency: bool = False,
) -> Item:
    return Item(
        item_id=item_id,
        name=item_id.title(),
        kind=ItemKind.CONTAINER,
        weight=Weight(weight),
        container_id=container_id,
        capacity=Weight(capacity) if capacity is not None else None,
        reduction_pct=reduction,
        reduces_currency=reduces_currency,
    )


def _actor(*items: Item, currency: dict[str, int] | None = None) -> Actor:
    return Actor(actor_id="a1", name="Tester", items=list(items), currency=currency or {})


# ── scenarios ────────────────────────────────────────────────


class TestCreate:
    def test_empty_half_reduction_bag_accepts(self):
        actor = _actor(_bag("bag", 50, capacity=50))
        decision = evaluate_create(actor, _item("statue", 60, "bag"))
        result = decision.results[0]
        assert result.delta == pytest.approx(30.0)
        assert result.outcome == AdmissionOutcome.ACCEPT
        assert not decision.exceeded

    def test_partially_full_bag_exceeds(self):
        actor = _actor(_bag("bag", 50, capacity=50), _item("ore", 80, "bag"))
        decision = evaluate_create(actor, _item("statue", 30, "bag"))
        result = decision.first_exceeded
        assert result is not None
        assert result.current == pytest.approx(40.0)
        assert result.delta == pytest.approx(15.0)
        assert result.projected == pytest.approx(55.0)
        assert result.kind == MutationKind.CREATE
        assert result.container_name == "Bag"

    def test_exactly_full_is_accepted(self):
        actor = _actor(_bag("bag", capacity=10), _item("ore", 4, "bag"))
        assert not evaluate_create(actor, _item("x", 6, "bag")).exceeded

    def test_epsilon_absorbs_rounding(self):
        actor = _actor(_bag("bag", capacity=10))
        assert not evaluate_create(actor, _item("x", 10.0005, "bag")).exceeded
        assert evaluate_create(actor, _item("x", 10.01, "bag")).exceeded

    def test_quantity_counts(self):
        actor = _actor(_bag("bag", capacity=10))
        assert evaluate_create(actor, _item("arrow", 1, "bag", quantity=11)).exceeded

    def test_top_level_create_not_checked(self):
        actor = _actor(_bag("bag", capacity=1))
        assert evaluate_create(actor, _item("anvil", 300)).results == []

    def test_dangling_target_not_checked(self):
        actor = _actor()
        assert evaluate_create(actor, _item("anvil", 300, "ghost")).results == []

    def test_unlimited_capacity(self):
        actor = _actor(_bag("bag"))
        result = evaluate_create(actor, _item("anvil", 300, "bag")).results[0]
        assert result.outcome == AdmissionOutcome.ACCEPT
        assert result.capacity is None

    def test_create_delta(self):
        assert create_delta(_item("x", 4, quantity=3), _bag("bag", 25)) == pytest.approx(9.0)


class TestQuantity:
    def _setup(self):
        return _actor(_bag("bag", capacity=50), _item("ingot", 10, "bag"))

    def test_increase_within_capacity(self):
        actor = self._setup()
        decision = evaluate_update(actor, actor.get_item("ingot"), {"quantity": 5})
        assert decision.results[0].kind == MutationKind.QUANTITY
        assert decision.results[0].delta == pytest.approx(40.0)
        assert not decision.exceeded

    def test_increase_over_capacity(self):
        actor = self._setup()
        assert evaluate_update(actor, actor.get_item("ingot"), {"quantity": 6}).exceeded

    def test_decrease_never_checked(self):
        actor = _actor(_bag("bag", capacity=5), _item("ingot", 10, "bag", quantity=3))
        decision = evaluate_update(actor, actor.get_item("ingot"), {"quantity": 1})
        assert decision.results == []

    def test_quantity_delta_uses_container_reduction(self):
        bag = _bag("bag", 50)
        assert quantity_delta(_item("x", 2), 1, 4, bag) == pytest.approx(3.0)
        assert quantity_delta(_item("x", 2), 4, 1, bag) == 0.0


class TestWeightEdit:
    def test_weight_increase_exceeds(self):
        actor = _actor(_bag("bag", capacity=50), _item("ingot", 10, "bag"))
        decision = evaluate_update(actor, actor.get_item("ingot"), {"weight": {"value": 60}})
        assert decision.results[0].kind == MutationKind.WEIGHT
        assert decision.exceeded

    def test_weight_decrease_not_checked(self):
        actor = _actor(_bag("bag", capacity=5), _item("ingot", 10, "bag"))
        decision = evaluate_update(actor, actor.get_item("ingot"), {"weight": {"value": 1}})
        assert decision.results == []

    def test_combined_quantity_and_weight_are_cumulative(self):
        actor = _actor(_bag("bag", capacity=50), _item("ingot", 10, "bag"))
        ok = evaluate_update(actor, actor.get_item("ingot"), {"quantity": 2, "weight": 20})
        assert [r.kind for r in ok.results] == [MutationKind.QUANTITY, MutationKind.WEIGHT]
        assert not ok.exceeded

        too_much = evaluate_update(actor, actor.get_item("ingot"), {"quantity": 2, "weight": 30})
        weight_check = too_much.results[1]
        assert weight_check.current == pytest.approx(20.0)
        assert weight_check.delta == pytest.approx(40.0)
        assert too_much.exceeded

    def test_weight_delta_with_reduction(self):
        bag = _bag("bag", 50)
        assert weight_delta(_item("x", 2, quantity=2), Weight(5), bag) == pytest.approx(3.0)

    def test_weight_delta_credits_quantity_decrease(self):
        # 1 x 10 -> 5 x 1
        rocks = _item("rock", 1, quantity=10)
        assert weight_delta(rocks, Weight(5), None, 1, old_quantity=10) == 0.0
        assert weight_delta(rocks, Weight(5), None, 3, old_quantity=10) == pytest.approx(5.0)

    def test_shrinking_quantity_offsets_heavier_unit(self):
        actor = _actor(_bag("box", capacity=10), _item("rock", 1, "box", quantity=10))
        decision = evaluate_update(
            actor, actor.get_item("rock"), {"quantity": 1, "weight": {"value": 5}}
        )
        assert decision.results == []
        assert not decision.exceeded

    def test_partial_weight_keeps_value(self):
        # 10 lb -> 10 kg (22.05 lb)
        actor = _actor(_bag("bag", capacity=15), _item("ingot", 10, "bag"))
        decision = evaluate_update(actor, actor.get_item("ingot"), {"weight": {"units": "kg"}})
        assert decision.results[0].delta == pytest.approx(12.0462, rel=1e-3)
        assert decision.exceeded


class TestMove:
    def _setup(self):
        return _actor(
            _bag("chest", 20, capacity=20),
            _item("ore", 10, "chest"),  # 8 after reduction, 12 left
            _bag("pack", 0, weight=5),
            _item("tools", 10, "pack"),
        )

    def test_moving_loaded_container_exceeds(self):
        actor = self._setup()
        decision = evaluate_update(actor, actor.get_item("pack"), {"container_id": "chest"})
        assert len(decision.results) == 1
        result = decision.results[0]
        assert result.kind == MutationKind.MOVE
        assert result.delta == pytest.approx(5 * 0.8 + 10)
        assert result.current == pytest.approx(8.0)
        assert result.exceeded

    def test_move_without_nested_contents(self):
        actor = self._setup()
        decision = evaluate_update(
            actor, actor.get_item("pack"), {"container_id": "chest"}, include_nested=False
        )
        assert decision.results[0].delta == pytest.approx(4.0)
        assert not decision.exceeded

    def test_move_uses_new_quantity(self):
        actor = _actor(_bag("chest", capacity=20), _item("ingot", 5))
        decision = evaluate_update(
            actor, actor.get_item("ingot"), {"container_id": "chest", "quantity": 5}
        )
        assert decision.results[0].delta == pytest.approx(25.0)
        assert decision.exceeded

    def test_move_to_top_level_not_checked(self):
        actor = self._setup()
        decision = evaluate_update(actor, actor.get_item("ore"), {"container_id": None})
        assert decision.results == []

    def test_move_to_non_container_not_checked(self):
        actor = self._setup()
        decision = evaluate_update(actor, actor.get_item("tools"), {"container_id": "ore"})
        assert decision.results == []

    def test_move_delta_plain_item(self):
        actor = self._setup()
        delta = move_delta(actor, _item("x", 10), actor.get_item("chest"))
        assert delta == pytest.approx(8.0)


class TestCheckCapacity:
    def test_idempotent(self):
        actor = _actor(_bag("bag", 50, capacity=50), _item("ore", 80, "bag"))
        first = check_capacity(actor, "bag", 15.0)
        second = check_capacity(actor, "bag", 15.0)
        assert first == second
        assert first.exceeded

    def test_pending_added_to_current(self):
        actor = _actor(_bag("bag", capacity=10))
        result = check_capacity(actor, "bag", 5.0, pending=6.0)
        assert result.current == pytest.approx(6.0)
        assert result.exceeded

    def test_currency_holder_counts_toward_capacity(self):
        wallet = _bag("wallet", 50, capacity=10, reduces_currency=True)
        actor = _actor(wallet, currency={"gp": 1000})
        assert check_capacity(actor, "wallet", 0.5).outcome == AdmissionOutcome.ACCEPT
        with_coins = check_capacity(actor, "wallet", 0.5, coins_per_weight_unit=50)
        assert with_coins.current == pytest.approx(10.0)
        assert with_coins.exceeded


class TestPolicy:
    def test_block_refuses(self):
        actor = _actor(_bag("bag", capacity=1))
        decision = evaluate_create(actor, _item("anvil", 300, "bag"))
        assert not is_allowed(decision, EnforceMode.BLOCK)

    def test_warn_allows(self):
        actor = _actor(_bag("bag", capacity=1))
        decision = evaluate_create(actor, _item("anvil", 300, "bag"))
        assert is_allowed(decision, EnforceMode.WARN)

    def test_empty_decision_allowed(self):
        assert is_allowed(AdmissionDecision(), EnforceMode.BLOCK)

    @pytest.mark.parametrize(
        "raw,mode",
        [("block", EnforceMode.BLOCK), ("WARN", EnforceMode.WARN), ("???", EnforceMode.BLOCK), (None, EnforceMode.BLOCK)],
    )
    def test_mode_from_setting(self, raw, mode):
        assert EnforceMode.from_setting(raw) == mode


# ── currency ─────────────────────────────────────────────────


class TestCurrencyPool:
    def test_best_reduction_applies(self):
        actor = _actor(_bag("purse", 75, reduces_currency=True), currency={"gp": 600, "sp": 400})
        assert base_currency_weight(actor.currency, 50) == pytest.approx(20.0)
        assert effective_currency_weight(actor, 50) == pytest.approx(5.0)

    def test_no_reducing_container(self):
        actor = _actor(_bag("sack", 90), currency={"gp": 1000})
        assert best_currency_reduction(actor) is None
        assert effective_currency_weight(actor, 50) == pytest.approx(20.0)

    def test_max_of_several_containers(self):
        actor = _actor(
            _bag("purse", 25, reduces_currency=True),
            _bag("vault", 60, reduces_currency=True),
            currency={"gp": 1000},
        )
        assert best_currency_reduction(actor) == 60
        assert currency_holder(actor).item_id == "vault"
        assert effective_currency_weight(actor, 50) == pytest.approx(8.0)

    def test_tie_keeps_first(self):
        actor = _actor(
            _bag("first", 50, reduces_currency=True),
            _bag("second", 50, reduces_currency=True),
        )
        assert currency_holder(actor).item_id == "first"

    def test_non_positive_divisor(self):
        assert base_currency_weight({"gp": 100}, 0) == 0.0
        assert base_currency_weight({"gp": 100}, -5) == 0.0

    def test_no_coins(self):
        assert base_currency_weight({}, 50) == 0.0
        assert total_coins({"gp": -3, "sp": "x"}) == 0.0

    def test_only_holder_carries_pool(self):
        actor = _actor(
            _bag("purse", 25, reduces_currency=True),
            _bag("vault", 60, reduces_currency=True),
            currency={"gp": 1000},
        )
        assert container_currency_load(actor, "vault", 50) == pytest.approx(8.0)
        assert container_currency_load(actor, "purse", 50) == 0.0
