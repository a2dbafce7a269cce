"""Factory for creating notice relay instances."""

from typing import Optional

from src.config import settings
from src.core.event_bus import EventBus
from src.core.logging import get_logger
from src.services.relay.base import NoticeRelay
from src.services.relay.local import LocalRelay, NullRelay

logger = get_logger(__name__)


def get_relay(event_bus: EventBus, backend: Optional[str] = None) -> NoticeRelay:
    """Get a relay instance.

    Args:
        event_bus: Bus used by the local relay to fan out notices.
        backend: Optional backend name. If not specified,
                 uses RELAY_BACKEND from config.

    Returns:
        A NoticeRelay instance.
    """
    name = backend or settings.RELAY_BACKEND

    if name == "local":
        logger.debug("Using LocalRelay")
        return LocalRelay(event_bus)

    if name == "null":
        logger.debug("Using NullRelay")
        return NullRelay()

    logger.warning("Unknown relay backend '%s', falling back to LocalRelay", name)
    return LocalRelay(event_bus)
