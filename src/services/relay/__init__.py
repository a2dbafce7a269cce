"""Notice relay module."""

from src.services.relay.base import Notice, NoticeRelay
from src.services.relay.factory import get_relay
from src.services.relay.local import LocalRelay, NullRelay

__all__ = [
    "LocalRelay",
    "Notice",
    "NoticeRelay",
    "NullRelay",
    "get_relay",
]
