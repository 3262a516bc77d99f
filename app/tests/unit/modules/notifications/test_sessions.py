import asyncio
import threading

import pytest

from modules.notifications.sessions import RealtimeSessionRegistry, WebSocketSession


class RecordingSession:
    def __init__(self, fail=False):
        self.fail = fail
        self.messages = []

    def send(self, message):
        if self.fail:
            raise ConnectionError("socket closed")
        self.messages.append(message)


class FakeWebSocket:
    def __init__(self):
        self.sent = []

    async def send_json(self, message):
        self.sent.append(message)


@pytest.fixture
def running_loop():
    loop = asyncio.new_event_loop()
    thread = threading.Thread(target=loop.run_forever, daemon=True)
    thread.start()
    yield loop
    loop.call_soon_threadsafe(loop.stop)
    thread.join(timeout=5)
    loop.close()


@pytest.mark.unit
def test_publish_reaches_every_session_of_recipient():
    registry = RealtimeSessionRegistry()
    first, second, other = RecordingSession(), RecordingSession(), RecordingSession()
    registry.connect("user-1", first)
    registry.connect("user-1", second)
    registry.connect("user-2", other)

    delivered = registry.publish("user-1", "notification", {"id": "n-1"})

    assert delivered == 2
    assert first.messages == [{"event": "notification", "data": {"id": "n-1"}}]
    assert second.messages == first.messages
    assert other.messages == []


@pytest.mark.unit
def test_publish_to_offline_recipient_delivers_nothing():
    assert RealtimeSessionRegistry().publish("nobody", "notification", {}) == 0


@pytest.mark.unit
def test_failing_session_is_dropped():
    registry = RealtimeSessionRegistry()
    broken = RecordingSession(fail=True)
    registry.connect("user-1", broken)

    assert registry.publish("user-1", "notification", {}) == 0
    assert not registry.has_sessions("user-1")


@pytest.mark.unit
def test_disconnect_removes_only_that_session():
    registry = RealtimeSessionRegistry()
    first, second = RecordingSession(), RecordingSession()
    registry.connect("user-1", first)
    registry.connect("user-1", second)

    registry.disconnect("user-1", first)
    registry.disconnect("user-1", first)

    assert registry.has_sessions("user-1")
    assert registry.publish("user-1", "ping", {}) == 1


@pytest.mark.unit
def test_websocket_session_sends_on_owning_loop(running_loop):
    websocket = FakeWebSocket()
    session = WebSocketSession(websocket, running_loop, timeout_seconds=2)

    session.send({"event": "notification", "data": {}})

    assert websocket.sent == [{"event": "notification", "data": {}}]
