"""EventBus for fanning published tab state out to displays.

Subscribers are in-process callbacks (display drivers) and Server-Sent Events
clients of the Flask app.
Events: tab_states, notification_observed, slots_changed
"""

import contextlib
import json
import queue
import threading
from collections.abc import Callable, Generator
from dataclasses import dataclass, field
from datetime import datetime

TAB_STATES = "tab_states"
NOTIFICATION_OBSERVED = "notification_observed"
SLOTS_CHANGED = "slots_changed"


@dataclass
class Event:
    """An event delivered to subscribers and SSE clients."""

    event_type: str
    data: dict
    timestamp: datetime = field(default_factory=datetime.now)
    id: str | None = None

    def to_sse(self) -> str:
        """Format the event as an SSE message, terminated by a blank line."""
        lines = [f"event: {self.event_type}"] if self.event_type else []
        lines.append(f"data: {json.dumps(self.data)}")
        if self.id:
            lines.append(f"id: {self.id}")
        return "\n".join(lines) + "\n\n"


class EventBus:
    """Thread-safe publish/subscribe hub.

    Emits happen on the poll thread and the log reader thread; SSE
    generators drain their own bounded queues on Flask worker threads.
    Only the latest event of each type is replayed to new SSE clients,
    since a tab_states event supersedes every earlier one.
    """

    def __init__(self, queue_size: int = 100):
        """Initialize the EventBus.

        Args:
            queue_size: Per-client SSE queue bound; full clients are dropped.
        """
        self._queue_size = queue_size
        self._latest: dict[str, Event] = {}
        self._subscribers: dict[str, list[Callable[[Event], None]]] = {}
        self._sse_queues: list[queue.Queue] = []
        self._lock = threading.Lock()
        self._event_counter = 0

    def subscribe(self, event_type: str, callback: Callable[[Event], None]) -> None:
        """Subscribe to an event type, or "*" for all events."""
        with self._lock:
            self._subscribers.setdefault(event_type, []).append(callback)

    def unsubscribe(self, event_type: str, callback: Callable[[Event], None]) -> None:
        with self._lock:
            if event_type in self._subscribers:
                self._subscribers[event_type] = [
                    cb for cb in self._subscribers[event_type] if cb != callback
                ]

    def emit(self, event_type: str, data: dict) -> Event:
        """Deliver an event to subscribers and SSE clients.

        Subscriber exceptions are suppressed so one broken display cannot
        stop the others.

        Args:
            event_type: The type of event (e.g., "tab_states").
            data: JSON-serialisable payload.

        Returns:
            The created Event.
        """
        with self._lock:
            self._event_counter += 1
            event = Event(event_type=event_type, data=data, id=str(self._event_counter))
            self._latest[event_type] = event
            callbacks = self._subscribers.get(event_type, []) + self._subscribers.get("*", [])
            sse_queues = list(self._sse_queues)

        for callback in callbacks:
            with contextlib.suppress(Exception):
                callback(event)

        dead_queues = []
        for q in sse_queues:
            try:
                q.put_nowait(event)
            except queue.Full:
                dead_queues.append(q)
        if dead_queues:
            with self._lock:
                for q in dead_queues:
                    if q in self._sse_queues:
                        self._sse_queues.remove(q)

        return event

    def latest(self, event_type: str) -> Event | None:
        """Get the most recent event of a type."""
        with self._lock:
            return self._latest.get(event_type)

    def get_sse_stream(
        self,
        include_latest: bool = True,
        timeout: float = 30.0,
    ) -> Generator[str, None, None]:
        """Yield SSE-formatted events as they occur.

        Args:
            include_latest: Replay the latest event of each type first.
            timeout: Seconds without events before a keep-alive comment.
        """
        event_queue: queue.Queue = queue.Queue(maxsize=self._queue_size)

        with self._lock:
            self._sse_queues.append(event_queue)
            replay = sorted(self._latest.values(), key=lambda e: int(e.id or 0))

        try:
            if include_latest:
                for event in replay:
                    yield event.to_sse()
            while True:
                try:
                    event = event_queue.get(timeout=timeout)
                    yield event.to_sse()
                except queue.Empty:
                    yield ": keep-alive\n\n"
        finally:
            with self._lock:
                if event_queue in self._sse_queues:
                    self._sse_queues.remove(event_queue)

    @property
    def subscriber_count(self) -> int:
        """Get the number of connected SSE clients."""
        with self._lock:
            return len(self._sse_queues)


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
