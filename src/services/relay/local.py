"""In-process relays: LocalRelay (EventBus fan-out) and NullRelay."""

from collections import deque

from src.core.event_bus import EventBus, InventoryEvent
from src.core.event_types import EventTypes
from src.core.logging import get_logger
from src.services.relay.base import Notice, NoticeRelay

logger = get_logger(__name__)

RECENT_NOTICE_LIMIT = 100


class LocalRelay(NoticeRelay):
    """Relay that fans notices out on the in-process EventBus.

    Recent notices are kept so API clients can poll them.
    """

    def __init__(self, event_bus: EventBus) -> None:
        super().__init__()
        self._bus = event_bus
        self._recent: deque[Notice] = deque(maxlen=RECENT_NOTICE_LIMIT)

    @property
    def name(self) -> str:
        return "local"

    def broadcast(self, notice: Notice) -> None:
        self._recent.append(notice)
        self._bus.emit(
            InventoryEvent(
                event_type=EventTypes.NOTICE,
                data={"kind": notice.kind, "message": notice.message, **notice.data},
                source="relay",
                internal=True,
            )
        )
        logger.debug("Notice broadcast: %s", notice.kind)

    def recent(self) -> list[Notice]:
        return list(self._recent)


class NullRelay(NoticeRelay):
    """Relay used when no fan-out is configured. Notices are only logged."""

    @property
    def name(self) -> str:
        return "null"

    def broadcast(self, notice: Notice) -> None:
        logger.info("Notice (not relayed): %s: %s", notice.kind, notice.message)
