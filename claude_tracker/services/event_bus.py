"""EventBus pushing session snapshots to dashboard clients over SSE.

Events: sessions_updated, config_updated
"""

import json
import logging
import queue
import threading
from collections import deque
from collections.abc import Generator
from dataclasses import dataclass, field
from datetime import datetime

logger = logging.getLogger(__name__)

SESSIONS_UPDATED = "sessions_updated"
CONFIG_UPDATED = "config_updated"

# Per-client queue bound; a client this far behind is dropped
CLIENT_QUEUE_SIZE = 100


@dataclass
class Event:
    """An event to be broadcast via SSE."""

    event_type: str
    data: dict
    id: int
    timestamp: datetime = field(default_factory=datetime.now)

    def to_sse(self) -> str:
        """Format the event as an SSE message."""
        return f"event: {self.event_type}\ndata: {json.dumps(self.data)}\nid: {self.id}\n\n"


class EventBus:
    """Thread-safe fan-out from the poll thread to SSE clients.

    The last ``buffer_size`` events are kept so a newly connected client
    immediately receives the current snapshot.
    """

    def __init__(self, buffer_size: int = 20):
        """Initialize the EventBus.

        Args:
            buffer_size: Number of recent events replayed to new clients.
        """
        self._buffer: deque[Event] = deque(maxlen=buffer_size)
        self._client_queues: list[queue.Queue] = []
        self._lock = threading.Lock()
        self._next_id = 0

    def emit(self, event_type: str, data: dict) -> Event:
        """Emit an event to SSE clients.

        Args:
            event_type: The type of event (e.g., "sessions_updated").
            data: JSON-serializable payload.

        Returns:
            The created Event.
        """
        with self._lock:
            self._next_id += 1
            event = Event(event_type=event_type, data=data, id=self._next_id)
            self._buffer.append(event)

            stalled = []
            for client_queue in self._client_queues:
                try:
                    client_queue.put_nowait(event)
                except queue.Full:
                    stalled.append(client_queue)
            for client_queue in stalled:
                logger.info("Dropping SSE client that stopped reading")
                self._client_queues.remove(client_queue)

        return event

    def get_sse_stream(
        self,
        include_buffer: bool = True,
        timeout: float = 30.0,
    ) -> Generator[str, None, None]:
        """Get an SSE event stream generator for a Flask streaming response.

        Args:
            include_buffer: Whether to replay buffered events first.
            timeout: Seconds to wait for events before sending a keep-alive.

        Yields:
            SSE-formatted event strings.
        """
        client_queue: queue.Queue = queue.Queue(maxsize=CLIENT_QUEUE_SIZE)

        with self._lock:
            self._client_queues.append(client_queue)
            backlog = list(self._buffer) if include_buffer else []

        try:
            for event in backlog:
                yield event.to_sse()

            while True:
                try:
                    event = client_queue.get(timeout=timeout)
                except queue.Empty:
                    yield ": keep-alive\n\n"
                    continue
                yield event.to_sse()
        finally:
            with self._lock:
                if client_queue in self._client_queues:
                    self._client_queues.remove(client_queue)

    def latest(self, event_type: str) -> Event | None:
        """Get the most recent buffered event of a type."""
        with self._lock:
            for event in reversed(self._buffer):
                if event.event_type == event_type:
                    return event
        return None

    @property
    def subscriber_count(self) -> int:
        """Get the number of connected SSE clients."""
        with self._lock:
            return len(self._client_queues)


# Singleton instance for the application
_event_bus: EventBus | None = None


def get_event_bus() -> EventBus:
    """Get the global EventBus instance."""
    global _event_bus
    if _event_bus is None:
        _event_bus = EventBus()
    return _event_bus


def reset_event_bus() -> None:
    """Reset the global EventBus (for testing)."""
    global _event_bus
    _event_bus = None
