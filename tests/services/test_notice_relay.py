"""NoticeRelay 테스트 (LocalRelay / NullRelay / factory)"""

from unittest.mock import MagicMock

import pytest

from src.core.event_bus import EventBus
from src.core.event_types import EventTypes
from src.services.relay import LocalRelay, Notice, NullRelay, get_relay
from src.services.relay.local import RECENT_NOTICE_LIMIT


class TestApplier:
    def test_unregistered_applier_raises(self):
        relay = LocalRelay(EventBus())
        with pytest.raises(RuntimeError):
            relay.apply_container_setting("a1", "bag", 50)

    def test_registered_applier_called(self):
        relay = NullRelay()
        applier = MagicMock()
        relay.register_applier(applier)
        relay.apply_container_setting("a1", "bag", 50)
        applier.assert_called_once_with("a1", "bag", 50)


class TestLocalRelay:
    def test_broadcast_emits_internal_notice(self):
        bus = EventBus()
        received = []
        bus.subscribe(EventTypes.NOTICE, received.append)
        relay = LocalRelay(bus)

        relay.broadcast(Notice(kind="reduction_set", message="Bag set to 50%", data={"actor_id": "a1"}))

        assert len(received) == 1
        assert received[0].internal
        assert received[0].data["kind"] == "reduction_set"
        assert received[0].data["actor_id"] == "a1"

    def test_recent_is_bounded(self):
        relay = LocalRelay(EventBus())
        for i in range(RECENT_NOTICE_LIMIT + 5):
            relay.broadcast(Notice(kind="capacity_exceeded", message=str(i)))
        recent = relay.recent()
        assert len(recent) == RECENT_NOTICE_LIMIT
        assert recent[-1].message == str(RECENT_NOTICE_LIMIT + 4)

    def test_broadcast_uses_bus(self):
        bus = MagicMock()
        LocalRelay(bus).broadcast(Notice(kind="k", message="m"))
        bus.emit.assert_called_once()


class TestNullRelay:
    def test_nothing_kept(self):
        relay = NullRelay()
        relay.broadcast(Notice(kind="k", message="m"))
        assert relay.recent() == []


class TestFactory:
    def test_local(self):
        assert get_relay(EventBus(), "local").name == "local"

    def test_null(self):
        assert get_relay(EventBus(), "null").name == "null"

    def test_unknown_falls_back(self):
        assert isinstance(get_relay(EventBus(), "carrier-pigeon"), LocalRelay)
