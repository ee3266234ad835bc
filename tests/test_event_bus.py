"""Tests for EventBus."""

import threading

import pytest

from claude_tracker.services.event_bus import (
    CLIENT_QUEUE_SIZE,
    SESSIONS_UPDATED,
    Event,
    EventBus,
    get_event_bus,
    reset_event_bus,
)


@pytest.fixture
def event_bus():
    """Create an EventBus instance."""
    return EventBus(buffer_size=10)


class TestEvent:
    """Tests for Event dataclass."""

    def test_to_sse(self):
        """Events format as SSE messages."""
        event = Event(event_type=SESSIONS_UPDATED, data={"count": 0}, id=7)
        sse = event.to_sse()

        assert sse == 'event: sessions_updated\ndata: {"count": 0}\nid: 7\n\n'


class TestEmit:
    """Tests for EventBus.emit."""

    def test_ids_increase(self, event_bus):
        """Every event gets the next sequence id."""
        first = event_bus.emit("a", {})
        second = event_bus.emit("b", {})
        assert second.id == first.id + 1

    def test_emit_returns_buffered_event(self, event_bus):
        """The emitted event becomes the latest of its type."""
        event = event_bus.emit(SESSIONS_UPDATED, {"count": 1})

        assert event.data == {"count": 1}
        assert event_bus.latest(SESSIONS_UPDATED) is event


class TestBuffer:
    """Tests for the replay buffer."""

    def test_bounded(self):
        """Only the last buffer_size events are kept."""
        bus = EventBus(buffer_size=2)
        for i in range(5):
            bus.emit("a", {"i": i})

        stream = bus.get_sse_stream()
        replayed = [next(stream), next(stream)]
        stream.close()

        assert '"i": 3' in replayed[0]
        assert '"i": 4' in replayed[1]

    def test_latest(self, event_bus):
        """latest returns the newest event of a type."""
        event_bus.emit(SESSIONS_UPDATED, {"count": 1})
        event_bus.emit("config_updated", {})
        event_bus.emit(SESSIONS_UPDATED, {"count": 2})

        assert event_bus.latest(SESSIONS_UPDATED).data == {"count": 2}
        assert event_bus.latest("missing") is None


class TestSseStream:
    """Tests for get_sse_stream."""

    def test_replay_then_live(self, event_bus):
        """A new client gets the backlog, then live events."""
        event_bus.emit("a", {"n": 1})
        stream = event_bus.get_sse_stream(timeout=5)

        assert "event: a" in next(stream)
        assert event_bus.subscriber_count == 1

        threading.Timer(0.05, event_bus.emit, args=("b", {"n": 2})).start()
        assert "event: b" in next(stream)

        stream.close()
        assert event_bus.subscriber_count == 0

    def test_without_buffer(self, event_bus):
        """include_buffer=False skips the backlog."""
        event_bus.emit("a", {})
        stream = event_bus.get_sse_stream(include_buffer=False, timeout=0.01)

        assert next(stream) == ": keep-alive\n\n"
        stream.close()

    def test_stalled_client_dropped(self, event_bus):
        """A client whose queue fills up is disconnected."""
        stream = event_bus.get_sse_stream(include_buffer=False, timeout=0.01)
        next(stream)
        assert event_bus.subscriber_count == 1

        for i in range(CLIENT_QUEUE_SIZE + 1):
            event_bus.emit("a", {"i": i})

        assert event_bus.subscriber_count == 0
        stream.close()


class TestSingleton:
    """Tests for the module singleton."""

    def test_get_event_bus(self):
        """get_event_bus returns one instance until reset."""
        bus = get_event_bus()
        assert get_event_bus() is bus
        reset_event_bus()
        assert get_event_bus() is not bus
