"""Tests for session membership and pixel fan-out."""

import asyncio
import json

import pytest

from live_broadcast import Broadcaster, LiveSession, SessionRegistry, pixel_update


class MockWebSocket:
    """Simple mock WebSocket for testing."""

    def __init__(self, fail=False):
        self.sent_messages = []
        self.fail = fail

    async def send_text(self, data: str):
        if self.fail:
            raise ConnectionError("WebSocket not connected")
        self.sent_messages.append(json.loads(data))


@pytest.fixture
def registry():
    return SessionRegistry()


def test_connect_and_disconnect(registry):
    a, b = LiveSession(MockWebSocket()), LiveSession(MockWebSocket())
    registry.on_connect(a)
    registry.on_connect(b)
    assert len(registry) == 2
    assert a in registry

    registry.on_disconnect(a)
    assert a not in registry
    assert registry.members() == [b]

    # second disconnect is a no-op
    registry.on_disconnect(a)
    assert len(registry) == 1


def test_sessions_get_distinct_ids():
    assert LiveSession(MockWebSocket()).id != LiveSession(MockWebSocket()).id


def test_pixel_update_shape():
    assert pixel_update(2, 3, "#112233") == {"type": "pixelUpdate", "x": 2, "y": 3, "color": "#112233"}


class TestBroadcaster:

    @pytest.mark.asyncio
    async def test_publish_reaches_every_session_once(self, registry):
        sockets = [MockWebSocket() for _ in range(3)]
        for ws in sockets:
            registry.on_connect(LiveSession(ws))

        delivered = await Broadcaster(registry).publish(pixel_update(1, 1, "#000000"))

        assert delivered == 3
        for ws in sockets:
            assert ws.sent_messages == [pixel_update(1, 1, "#000000")]

    @pytest.mark.asyncio
    async def test_publish_with_no_sessions(self, registry):
        assert await Broadcaster(registry).publish(pixel_update(0, 0, "#FFFFFF")) == 0

    @pytest.mark.asyncio
    async def test_failed_session_does_not_block_others(self, registry):
        good, bad = MockWebSocket(), MockWebSocket(fail=True)
        good_session, bad_session = LiveSession(good), LiveSession(bad)
        registry.on_connect(bad_session)
        registry.on_connect(good_session)

        delivered = await Broadcaster(registry).publish(pixel_update(4, 5, "#ABCDEF"))

        assert delivered == 1
        assert good.sent_messages == [pixel_update(4, 5, "#ABCDEF")]
        assert bad_session not in registry
        assert good_session in registry

    @pytest.mark.asyncio
    async def test_late_session_gets_no_replay(self, registry):
        broadcaster = Broadcaster(registry)
        early = MockWebSocket()
        registry.on_connect(LiveSession(early))
        await broadcaster.publish(pixel_update(0, 0, "#111111"))

        late = MockWebSocket()
        registry.on_connect(LiveSession(late))
        await broadcaster.publish(pixel_update(0, 1, "#222222"))

        assert len(early.sent_messages) == 2
        assert late.sent_messages == [pixel_update(0, 1, "#222222")]


class StalledWebSocket:
    """A peer that never drains its socket: send_text never completes."""

    async def send_text(self, data: str):
        await asyncio.Event().wait()


class TestStalledSubscriber:

    @pytest.mark.asyncio
    async def test_stalled_session_is_dropped_and_others_delivered(self, registry):
        good = MockWebSocket()
        stalled_session = LiveSession(StalledWebSocket())
        registry.on_connect(stalled_session)
        registry.on_connect(LiveSession(good))

        broadcaster = Broadcaster(registry, send_timeout=0.05)
        delivered = await asyncio.wait_for(broadcaster.publish(pixel_update(0, 0, "#000000")), 2)

        assert delivered == 1
        assert good.sent_messages == [pixel_update(0, 0, "#000000")]
        assert stalled_session not in registry
