"""Tests for room-based real-time publishing."""

import pytest

from lifeline.services.event_publisher import InMemoryEventPublisher, WebSocketHub, representative_room, user_room


class FakeSocket:
    def __init__(self, fail: bool = False):
        self.accepted = False
        self.fail = fail
        self.messages: list[dict] = []

    async def accept(self) -> None:
        self.accepted = True

    async def send_json(self, message: dict) -> None:
        if self.fail:
            raise RuntimeError("socket closed")
        self.messages.append(message)


def test_room_names() -> None:
    assert user_room("p1") == "user-p1"
    assert representative_room("p1") == "representative-p1"


class TestWebSocketHub:
    @pytest.mark.asyncio
    async def test_publish_reaches_room_members_only(self) -> None:
        hub = WebSocketHub()
        inside, outside = FakeSocket(), FakeSocket()
        await hub.join("representative-p1", inside)
        await hub.join("representative-p2", outside)

        delivered = await hub.publish("representative-p1", "panic-alert", {"alert_id": "a1"})

        assert delivered == 1
        assert inside.accepted
        assert inside.messages == [{"event": "panic-alert", "data": {"alert_id": "a1"}}]
        assert outside.messages == []

    @pytest.mark.asyncio
    async def test_failed_socket_is_dropped(self) -> None:
        hub = WebSocketHub()
        good, bad = FakeSocket(), FakeSocket(fail=True)
        await hub.join("user-p1", good)
        await hub.join("user-p1", bad)

        assert await hub.publish("user-p1", "panic-alert-sent", {}) == 1
        bad.fail = False
        assert await hub.publish("user-p1", "panic-alert-sent", {}) == 1
        assert bad.messages == []

    @pytest.mark.asyncio
    async def test_empty_room(self) -> None:
        assert await WebSocketHub().publish("user-nobody", "x", {}) == 0


@pytest.mark.asyncio
async def test_in_memory_publisher_records_events() -> None:
    publisher = InMemoryEventPublisher()
    await publisher.publish("user-p1", "qr-access-notification", {"a": 1})
    [event] = publisher.for_room("user-p1")
    assert event.event == "qr-access-notification"
    assert event.payload == {"a": 1}
