"""EventBus - 인벤토리 변경 알림 인프라

규칙:
- 이벤트는 식별자(ID)와 스칼라 값만 전달한다
- 시스템이 직접 수행한 쓰기(internal=True)는 핸들러가 다시 처리하지 않는다
- 전파 깊이 최대 MAX_DEPTH 단계
- 하나의 최상위 발행 체인 안에서 동일 대상에 대한 동일 이벤트 중복 발행 금지
"""

from collections import defaultdict
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List, Set

from src.core.logging import get_logger

logger = get_logger(__name__)

MAX_DEPTH = 5  # 하나의 변경에서 파생되는 이벤트 전파 최대 깊이


@dataclass
class InventoryEvent:
    """이벤트 데이터 컨테이너

    Args:
        event_type: 이벤트 유형 (예: "item_updated", "capacity_exceeded")
        data: 이벤트 데이터 (actor_id / item_id 위주, 무거운 객체 금지)
        source: 발행한 서비스 이름
        internal: 시스템 내부 쓰기에서 발생한 이벤트 여부
    """

    event_type: str
    data: Dict[str, Any]
    source: str
    internal: bool = False

    # 내부 추적용 (외부에서 설정하지 않음)
    _depth: int = field(default=0, repr=False)

    @property
    def subject(self) -> str:
        """중복 판정용 대상 식별자"""
        actor_id = self.data.get("actor_id", "")
        item_id = self.data.get("item_id", "")
        return f"{actor_id}/{item_id}"


EventHandler = Callable[[InventoryEvent], None]


class EventBus:
    """동기식 이벤트 버스

    사용 패턴:
        bus = EventBus()
        bus.subscribe("item_updated", service.handle_item_updated)
        bus.emit(InventoryEvent(event_type="item_updated",
                                data={"actor_id": "a1", "item_id": "i1"},
                                source="inventory_service"))
    """

    def __init__(self) -> None:
        self._handlers: Dict[str, List[EventHandler]] = defaultdict(list)
        self._current_depth: int = 0
        self._emitted_in_chain: Set[str] = set()

    def subscribe(self, event_type: str, handler: EventHandler) -> None:
        """이벤트 구독 등록"""
        self._handlers[event_type].append(handler)
        logger.debug("EventBus 구독: %s → %s", event_type, handler.__qualname__)

    def unsubscribe(self, event_type: str, handler: EventHandler) -> None:
        """이벤트 구독 해제"""
        if event_type in self._handlers:
            try:
                self._handlers[event_type].remove(handler)
                logger.debug(
                    "EventBus 구독 해제: %s → %s", event_type, handler.__qualname__
                )
            except ValueError:
                logger.warning(
                    "핸들러 미등록: %s → %s", event_type, handler.__qualname__
                )

    def emit(self, event: InventoryEvent) -> None:
        """이벤트 발행. 등록된 핸들러를 동기 호출.

        안전장치:
        1. 전파 깊이 MAX_DEPTH 초과 시 무시
        2. 같은 체인에서 동일 source/event_type/대상 중복 발행 시 무시

        최상위 발행이 끝나면 체인 추적을 초기화한다.
        """
        if self._current_depth >= MAX_DEPTH:
            logger.warning(
                "EventBus 전파 깊이 초과 (%d): %s:%s 무시됨",
                MAX_DEPTH,
                event.source,
                event.event_type,
            )
            return

        chain_key = f"{event.source}:{event.event_type}:{event.subject}"
        if chain_key in self._emitted_in_chain:
            logger.warning("EventBus 중복 이벤트 차단: %s", chain_key)
            return

        handlers = list(self._handlers.get(event.event_type, []))
        if not handlers:
            logger.debug("EventBus: %s 구독자 없음", event.event_type)
            return

        self._emitted_in_chain.add(chain_key)
        event._depth = self._current_depth

        logger.debug(
            "EventBus 전파: %s (source=%s, internal=%s, depth=%d, handlers=%d)",
            event.event_type,
            event.source,
            event.internal,
            self._current_depth,
            len(handlers),
        )

        self._current_depth += 1
        try:
            for handler in handlers:
                try:
                    handler(event)
                except Exception:
                    logger.exception(
                        "EventBus 핸들러 에러: %s (event=%s)",
                        handler.__qualname__,
                        event.event_type,
                    )
        finally:
            self._current_depth -= 1
            if self._current_depth == 0:
                self._emitted_in_chain.clear()

    def clear(self) -> None:
        """모든 구독 해제 (테스트용)"""
        self._handlers.clear()
        self._emitted_in_chain.clear()
        self._current_depth = 0

    @property
    def handler_count(self) -> int:
        """등록된 총 핸들러 수"""
        return sum(len(h) for h in self._handlers.values())
