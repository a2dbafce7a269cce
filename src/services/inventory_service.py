"""인벤토리 Service: Core↔DB 연결, 변경 전 용량 검사, EventBus 통신

Service → Core, Service → DB 허용.
무게 감소는 순수 파생값이다. 저장된 아이템 무게는 절대 고치지 않는다.
시스템이 직접 하는 쓰기는 액터 encumbrance_value 동기화와 감소율 적용뿐이며,
둘 다 INTERNAL_CONTEXT로 표시되어 알림 핸들러가 다시 처리하지 않는다.
"""

import threading
import uuid
from collections import defaultdict
from typing import Any, Optional

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from src.config import settings
from src.core.container.admission import evaluate_create, evaluate_update, is_allowed
from src.core.container.index import build_container_index
from src.core.container.encumbrance import project_encumbrance
from src.core.container.messages import format_exceed_message
from src.core.container.models import (
    INTERNAL_CONTEXT,
    USER_CONTEXT,
    Actor,
    AdmissionDecision,
    AdmissionResult,
    EnforceMode,
    Encumbrance,
    Item,
    ItemKind,
    MutationContext,
    Weight,
)
from src.core.container.reduction import (
    merge_weight,
    parse_capacity,
    parse_weight,
    sanitize_reduction_pct,
)
from src.core.container.report import (
    ContainerReport,
    build_actor_reports,
    build_container_report,
)
from src.core.container.units import display_unit, to_number
from src.core.event_bus import EventBus, InventoryEvent
from src.core.event_types import EventTypes
from src.core.logging import get_logger
from src.db.models import ActorModel, ItemModel
from src.services.relay.base import Notice, NoticeRelay

logger = get_logger(__name__)

ENCUMBRANCE_TOLERANCE = 0.001

USER_UPDATE_FIELDS = frozenset(
    {"name", "quantity", "container_id", "weight", "capacity", "reduces_currency"}
)
INTERNAL_UPDATE_FIELDS = USER_UPDATE_FIELDS | {"reduction_pct"}


class ActorNotFoundError(ValueError):
    pass


class ItemNotFoundError(ValueError):
    pass


class PermissionDeniedError(Exception):
    pass


class CapacityExceededError(Exception):
    """BLOCK 모드에서 용량 초과로 변경이 거부됨."""

    def __init__(self, result: AdmissionResult, message: str) -> None:
        super().__init__(message)
        self.result = result
        self.message = message


class InventoryService:
    """아이템 CRUD + 용량 검사 + 소지 무게 동기화"""

    def __init__(
        self,
        db: Session,
        event_bus: EventBus,
        relay: NoticeRelay,
        enforce_mode: Optional[str] = None,
        include_nested: Optional[bool] = None,
        coins_per_weight_unit: Optional[float] = None,
        metric: Optional[bool] = None,
        exceed_message_text: Optional[str] = None,
        gm_only_config: Optional[bool] = None,
    ):
        self._db = db
        self._bus = event_bus
        self._relay = relay

        self.enforce_mode = EnforceMode.from_setting(
            enforce_mode if enforce_mode is not None else settings.ENFORCE_MODE
        )
        self.include_nested = (
            include_nested if include_nested is not None else settings.INCLUDE_NESTED
        )
        self.coins_per_weight_unit = (
            coins_per_weight_unit
            if coins_per_weight_unit is not None
            else settings.COINS_PER_WEIGHT_UNIT
        )
        self.unit = display_unit(
            metric if metric is not None else settings.METRIC_WEIGHT_UNITS
        )
        self.exceed_message_text = (
            exceed_message_text
            if exceed_message_text is not None
            else settings.EXCEED_MESSAGE_TEXT
        )
        self.gm_only_config = (
            gm_only_config if gm_only_config is not None else settings.GM_ONLY_CONFIG
        )

        # 액터별 직렬화: 검사와 커밋 사이에 다른 쓰기가 끼어들지 않도록
        self._locks: dict[str, threading.RLock] = defaultdict(threading.RLock)
        self._locks_guard = threading.Lock()

        self._relay.register_applier(self._apply_reduction)
        self._register_event_handlers()

    def _register_event_handlers(self) -> None:
        """EventBus 구독 (after-persist)"""
        self._bus.subscribe(EventTypes.ITEM_CREATED, self._on_inventory_changed)
        self._bus.subscribe(EventTypes.ITEM_UPDATED, self._on_inventory_changed)
        self._bus.subscribe(EventTypes.ITEM_DELETED, self._on_inventory_changed)
        self._bus.subscribe(EventTypes.ACTOR_UPDATED, self._on_inventory_changed)

    def _actor_lock(self, actor_id: str) -> threading.RLock:
        with self._locks_guard:
            return self._locks[actor_id]

    # === Actor ===

    def create_actor(
        self,
        actor_id: Optional[str] = None,
        name: str = "",
        currency: Optional[dict[str, int]] = None,
        encumbrance_max: float = 0.0,
        encumbered_at: float = 0.0,
        heavily_encumbered_at: float = 0.0,
    ) -> Actor:
        """액터 생성. actor_id 미지정 시 UUID."""
        actor_id = actor_id or str(uuid.uuid4())
        orm = ActorModel(
            actor_id=actor_id,
            name=name,
            currency=self._clean_currency(currency),
            encumbrance_value=0.0,
            encumbrance_max=encumbrance_max,
            encumbered_at=encumbered_at,
            heavily_encumbered_at=heavily_encumbered_at,
        )
        self._db.add(orm)
        self._commit("create actor %s" % actor_id)
        logger.info("Created actor %s (%s)", actor_id, name)
        return self._actor_to_core(orm)

    def get_actor(self, actor_id: str) -> Optional[Actor]:
        """액터 스냅샷 (아이템 포함). 없으면 None."""
        orm = self._get_actor_orm(actor_id)
        if orm is None:
            return None
        return self._actor_to_core(orm)

    def set_currency(
        self,
        actor_id: str,
        currency: dict[str, int],
        context: MutationContext = USER_CONTEXT,
    ) -> Actor:
        """화폐 원장 교체. actor_updated 이벤트 발행."""
        with self._actor_lock(actor_id):
            orm = self._require_actor_orm(actor_id)
            orm.currency = self._clean_currency(currency)
            self._commit("set currency for %s" % actor_id)
            self._emit(EventTypes.ACTOR_UPDATED, actor_id, None, context)
            return self._actor_to_core(orm)

    # === Item CRUD ===

    def create_item(
        self,
        actor_id: str,
        name: str = "",
        kind: ItemKind | str = ItemKind.PLAIN,
        weight: Any = None,
        quantity: int = 1,
        container_id: Optional[str] = None,
        capacity: Any = None,
        reduction_pct: int = 0,
        reduces_currency: bool = False,
        item_id: Optional[str] = None,
        context: MutationContext = USER_CONTEXT,
    ) -> Item:
        """아이템 생성 + DB 저장.

        생성 전 검사: 대상 컨테이너 용량 (internal 쓰기는 건너뜀).
        BLOCK 모드 초과 시 CapacityExceededError. item_created 이벤트 발행.
        """
        kind = ItemKind(kind)
        item = Item(
            item_id=item_id or str(uuid.uuid4()),
            name=name,
            kind=kind,
            weight=parse_weight(weight),
            quantity=max(0, int(to_number(quantity, fallback=1))),
            container_id=container_id or None,
            capacity=parse_capacity(capacity) if kind == ItemKind.CONTAINER else None,
            reduction_pct=sanitize_reduction_pct(reduction_pct),
            reduces_currency=bool(reduces_currency) and kind == ItemKind.CONTAINER,
        )

        with self._actor_lock(actor_id):
            actor = self._require_actor(actor_id)
            if not context.internal:
                decision = evaluate_create(
                    actor,
                    item,
                    self.include_nested,
                    system_unit=self.unit,
                    coins_per_weight_unit=self.coins_per_weight_unit,
                )
                self._enforce(actor, decision)

            self._db.add(self._item_to_orm(actor_id, item))
            self._commit("create item %s" % item.item_id)

            logger.debug(
                "Created item %s (%s) in %s/%s",
                item.item_id,
                item.name,
                actor_id,
                item.container_id,
            )
            self._emit(EventTypes.ITEM_CREATED, actor_id, item.item_id, context)
        return item

    def get_item(self, actor_id: str, item_id: str) -> Optional[Item]:
        orm = self._get_item_orm(actor_id, item_id)
        if orm is None:
            return None
        return self._item_to_core(orm)

    def update_item(
        self,
        actor_id: str,
        item_id: str,
        changes: dict[str, Any],
        context: MutationContext = USER_CONTEXT,
    ) -> Item:
        """아이템 갱신.

        changes 키: name, quantity, container_id, weight, capacity, reduces_currency.
        reduction_pct는 internal 쓰기에서만 허용 (set_reduction_percent 경유).
        갱신 전 검사: 수량 증가 / 이동 / 무게 증가 (internal 쓰기는 건너뜀).
        """
        allowed = INTERNAL_UPDATE_FIELDS if context.internal else USER_UPDATE_FIELDS
        unknown = set(changes) - allowed
        if unknown:
            raise ValueError(f"Unsupported item fields: {', '.join(sorted(unknown))}")

        with self._actor_lock(actor_id):
            actor = self._require_actor(actor_id)
            item = actor.get_item(item_id)
            if item is None:
                raise ItemNotFoundError(f"Item not found: {actor_id}/{item_id}")
            destination_id = changes.get("container_id")
            if destination_id == item_id:
                raise ValueError(f"Item cannot contain itself: {item_id}")
            index = build_container_index(actor.items)
            if destination_id and index.is_within(destination_id, item_id):
                raise ValueError(
                    f"Item cannot be moved inside its own contents: {item_id} -> {destination_id}"
                )

            if not context.internal:
                decision = evaluate_update(
                    actor,
                    item,
                    changes,
                    self.include_nested,
                    system_unit=self.unit,
                    coins_per_weight_unit=self.coins_per_weight_unit,
                )
                self._enforce(actor, decision)

            orm = self._get_item_orm(actor_id, item_id)
            self._apply_changes(orm, changes)
            self._commit("update item %s" % item_id)

            logger.debug("Updated item %s: %s", item_id, sorted(changes))
            self._emit(EventTypes.ITEM_UPDATED, actor_id, item_id, context)
            return self._item_to_core(orm)

    def delete_item(
        self,
        actor_id: str,
        item_id: str,
        context: MutationContext = USER_CONTEXT,
    ) -> bool:
        """아이템 삭제. 내용물은 삭제하지 않는다 (참조가 끊겨 최상위로 계산됨)."""
        with self._actor_lock(actor_id):
            orm = self._get_item_orm(actor_id, item_id)
            if orm is None:
                logger.warning("Delete failed: item %s/%s not found", actor_id, item_id)
                return False
            self._db.delete(orm)
            self._commit("delete item %s" % item_id)
            self._emit(EventTypes.ITEM_DELETED, actor_id, item_id, context)
        return True

    # === 감소율 설정 ===

    def set_reduction_percent(
        self,
        actor_id: str,
        container_id: str,
        reduction_pct: Any,
        context: MutationContext = USER_CONTEXT,
    ) -> int:
        """컨테이너 감소율 설정. 적용은 relay 경유 (권한 있는 쪽에서 실행).

        GM_ONLY_CONFIG이면 GM만 설정할 수 있다. 반환: 적용된 감소율 (0~100).
        """
        if self.gm_only_config and not context.is_gm:
            raise PermissionDeniedError("Only a GM may configure weight reduction")

        pct = sanitize_reduction_pct(reduction_pct)
        container = self.get_item(actor_id, container_id)
        if container is None:
            self._require_actor(actor_id)
            raise ItemNotFoundError(f"Item not found: {actor_id}/{container_id}")
        if not container.is_container:
            raise ValueError(f"Item is not a container: {container_id}")

        self._relay.apply_container_setting(actor_id, container_id, pct)
        self._relay.broadcast(
            Notice(
                kind="reduction_set",
                message=f"Set {container.name or 'container'} weight reduction to {pct}%",
                data={"actor_id": actor_id, "item_id": container_id, "reduction_pct": pct},
            )
        )
        return pct

    def _apply_reduction(self, actor_id: str, container_id: str, reduction_pct: int) -> None:
        """relay applier. 내부 쓰기 후 파생 총량을 직접 동기화한다."""
        self.update_item(
            actor_id,
            container_id,
            {"reduction_pct": reduction_pct},
            context=INTERNAL_CONTEXT,
        )
        self._emit(EventTypes.REDUCTION_CHANGED, actor_id, container_id, INTERNAL_CONTEXT)
        self.reconcile_encumbrance(actor_id)
        logger.info(
            "Reduction set: %s/%s → %d%%", actor_id, container_id, reduction_pct
        )

    # === 조회 (순수 파생) ===

    def get_container_report(self, actor_id: str, container_id: str) -> ContainerReport:
        actor = self._require_actor(actor_id)
        report = build_container_report(
            actor,
            container_id,
            self.include_nested,
            self.coins_per_weight_unit,
            self.unit,
        )
        if report is None:
            raise ItemNotFoundError(f"Container not found: {actor_id}/{container_id}")
        return report

    def get_encumbrance(self, actor_id: str) -> Encumbrance:
        """저장 상태에서 새로 계산한 소지 무게. 쓰기 없음."""
        actor = self._require_actor(actor_id)
        return project_encumbrance(
            actor, self.include_nested, self.coins_per_weight_unit, self.unit
        )

    def dump_actor(self, actor_id: str) -> list[ContainerReport]:
        """모든 컨테이너의 용량/load/감소율/trace (진단용)."""
        actor = self._require_actor(actor_id)
        return build_actor_reports(
            actor, self.include_nested, self.coins_per_weight_unit, self.unit
        )

    # === 소지 무게 동기화 ===

    def reconcile_encumbrance(self, actor_id: str) -> Encumbrance:
        """저장된 encumbrance_value를 조정 무게와 맞춘다 (멱등).

        실제 저장 상태에서 다시 계산하고, 다를 때만 INTERNAL_CONTEXT로 쓴다.
        """
        with self._actor_lock(actor_id):
            orm = self._require_actor_orm(actor_id)
            self._db.refresh(orm)
            projected = project_encumbrance(
                self._actor_to_core(orm),
                self.include_nested,
                self.coins_per_weight_unit,
                self.unit,
            )
            if abs((orm.encumbrance_value or 0.0) - projected.value) <= ENCUMBRANCE_TOLERANCE:
                return projected

            previous = orm.encumbrance_value
            orm.encumbrance_value = projected.value
            self._commit("reconcile encumbrance for %s" % actor_id)
            logger.debug(
                "Encumbrance reconciled for %s: %s → %s %s",
                actor_id,
                previous,
                projected.value,
                self.unit,
            )
            self._emit(EventTypes.ACTOR_UPDATED, actor_id, None, INTERNAL_CONTEXT)
            self._emit(
                EventTypes.ENCUMBRANCE_CHANGED,
                actor_id,
                None,
                INTERNAL_CONTEXT,
                value=projected.value,
                pct=projected.pct,
            )
            return projected

    # === EventBus 핸들러 ===

    def _on_inventory_changed(self, event: InventoryEvent) -> None:
        """after-persist: 파생 총량 재계산. 내부 쓰기에서 온 이벤트는 무시 (루프 방지)."""
        if event.internal:
            return
        actor_id = event.data.get("actor_id")
        if not actor_id:
            return
        self.reconcile_encumbrance(actor_id)

    # === 정책 ===

    def _enforce(self, actor: Actor, decision: AdmissionDecision) -> None:
        """초과 시 메시지 전파. BLOCK이면 CapacityExceededError."""
        result = decision.first_exceeded
        if result is None:
            return

        message = format_exceed_message(result, self.unit, self.exceed_message_text)
        self._relay.broadcast(
            Notice(
                kind="capacity_exceeded",
                message=message,
                data={
                    "actor_id": actor.actor_id,
                    "actor_name": actor.name,
                    "item_id": result.container_id,
                    "container_name": result.container_name,
                    "current": result.current,
                    "delta": result.delta,
                    "capacity": result.capacity,
                    "mode": self.enforce_mode.value,
                },
            )
        )
        self._emit(
            EventTypes.CAPACITY_EXCEEDED,
            actor.actor_id,
            result.container_id,
            USER_CONTEXT,
            kind=result.kind.value,
            mode=self.enforce_mode.value,
        )

        if not is_allowed(decision, self.enforce_mode):
            logger.info("Blocked %s on %s: %s", result.kind.value, result.container_id, message)
            raise CapacityExceededError(result, message)
        logger.info("Allowed %s over capacity (warn): %s", result.kind.value, message)

    # === 내부 헬퍼 ===

    def _emit(
        self,
        event_type: str,
        actor_id: str,
        item_id: Optional[str],
        context: MutationContext,
        **extra: Any,
    ) -> None:
        data: dict[str, Any] = {"actor_id": actor_id, "item_id": item_id, **extra}
        self._bus.emit(
            InventoryEvent(
                event_type=event_type,
                data=data,
                source="inventory_service",
                internal=context.internal,
            )
        )

    def _commit(self, what: str) -> None:
        """커밋. 실패 시 롤백 후 예외 전파 (메모리 상태를 가정하지 않는다)."""
        try:
            self._db.commit()
        except SQLAlchemyError:
            self._db.rollback()
            logger.exception("Persist failed: %s", what)
            raise

    def _get_actor_orm(self, actor_id: str) -> Optional[ActorModel]:
        return (
            self._db.query(ActorModel)
            .filter(ActorModel.actor_id == actor_id)
            .first()
        )

    def _require_actor_orm(self, actor_id: str) -> ActorModel:
        orm = self._get_actor_orm(actor_id)
        if orm is None:
            raise ActorNotFoundError(f"Actor not found: {actor_id}")
        return orm

    def _require_actor(self, actor_id: str) -> Actor:
        return self._actor_to_core(self._require_actor_orm(actor_id))

    def _get_item_orm(self, actor_id: str, item_id: str) -> Optional[ItemModel]:
        return (
            self._db.query(ItemModel)
            .filter(ItemModel.actor_id == actor_id, ItemModel.item_id == item_id)
            .first()
        )

    @staticmethod
    def _clean_currency(currency: Optional[dict[str, Any]]) -> dict[str, int]:
        if not currency:
            return {}
        return {
            str(denom): max(0, int(to_number(count)))
            for denom, count in currency.items()
        }

    def _apply_changes(self, orm: ItemModel, changes: dict[str, Any]) -> None:
        if "name" in changes:
            orm.name = str(changes["name"] or "")
        if "quantity" in changes:
            orm.quantity = max(0, int(to_number(changes["quantity"], fallback=orm.quantity)))
        if "container_id" in changes:
            orm.container_id = changes["container_id"] or None
        if "weight" in changes:
            current = Weight(value=orm.weight_value or 0.0, unit=orm.weight_unit)
            weight = merge_weight(current, changes["weight"])
            orm.weight_value = weight.value
            orm.weight_unit = weight.unit
        if "capacity" in changes:
            capacity = parse_capacity(changes["capacity"])
            orm.capacity_value = capacity.value if capacity else None
            orm.capacity_unit = capacity.unit if capacity else None
        if "reduces_currency" in changes:
            orm.reduces_currency = bool(changes["reduces_currency"])
        if "reduction_pct" in changes:
            orm.reduction_pct = sanitize_reduction_pct(changes["reduction_pct"])

    # === ORM ↔ Core 변환 ===

    def _actor_to_core(self, orm: ActorModel) -> Actor:
        """ORM → Core"""
        return Actor(
            actor_id=orm.actor_id,
            name=orm.name or "",
            items=[self._item_to_core(i) for i in orm.items],
            currency=dict(orm.currency or {}),
            encumbrance=Encumbrance(
                value=orm.encumbrance_value or 0.0,
                max=orm.encumbrance_max or 0.0,
                encumbered_at=orm.encumbered_at or 0.0,
                heavily_encumbered_at=orm.heavily_encumbered_at or 0.0,
            ),
        )

    def _item_to_core(self, orm: ItemModel) -> Item:
        """ORM → Core"""
        capacity = None
        if orm.capacity_value is not None:
            capacity = Weight(value=orm.capacity_value, unit=orm.capacity_unit)
        return Item(
            item_id=orm.item_id,
            name=orm.name or "",
            kind=self._kind(orm.kind),
            weight=Weight(value=orm.weight_value or 0.0, unit=orm.weight_unit),
            quantity=orm.quantity if orm.quantity is not None else 1,
            container_id=orm.container_id,
            capacity=capacity,
            reduction_pct=orm.reduction_pct or 0,
            reduces_currency=bool(orm.reduces_currency),
        )

    @staticmethod
    def _kind(value: Optional[str]) -> ItemKind:
        try:
            return ItemKind(value)
        except ValueError:
            return ItemKind.PLAIN

    def _item_to_orm(self, actor_id: str, core: Item) -> ItemModel:
        """Core → ORM"""
        return ItemModel(
            item_id=core.item_id,
            actor_id=actor_id,
            name=core.name,
            kind=core.kind.value,
            weight_value=core.weight.value,
            weight_unit=core.weight.unit,
            quantity=core.quantity,
            container_id=core.container_id,
            capacity_value=core.capacity.value if core.capacity else None,
            capacity_unit=core.capacity.unit if core.capacity else None,
            reduction_pct=core.reduction_pct,
            reduces_currency=core.reduces_currency,
        )
