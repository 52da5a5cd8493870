"""PollScheduler - drives the fetch → classify → attention → publish cycle.

Owns the display slots (which tab index each display key shows), the poll
thread, the single in-flight guard and the supervision of the log
subscription.
"""

import logging
import threading
import time
from collections import deque
from collections.abc import Callable
from dataclasses import dataclass

from tabwatch.backends.base import TerminalBackend
from tabwatch.models.snapshot import Snapshot
from tabwatch.models.tab_state import ProgramLabel, TabState, serialize_states, split_title
from tabwatch.services.attention_engine import AttentionEngine
from tabwatch.services.event_bus import SLOTS_CHANGED, TAB_STATES, EventBus, get_event_bus
from tabwatch.services.log_monitor import LogMonitor, NotificationMailbox
from tabwatch.services.program_classifier import ProgramClassifier
from tabwatch.services.snapshot_fetcher import SnapshotFetcher

logger = logging.getLogger(__name__)

PublishedStates = dict[int, TabState | None]


@dataclass
class LatencyStats:
    """Cycle latency over the recent history, in milliseconds."""

    count: int = 0
    last_ms: float | None = None
    min_ms: float | None = None
    max_ms: float | None = None
    mean_ms: float | None = None


class PollScheduler:
    """Fixed-cadence poll loop with early wake-up.

    At most one cycle runs at a time. A cycle requested while another is in
    flight, by the timer or by a notification, is dropped rather than queued.
    """

    DEFAULT_INTERVAL_SECONDS = 3.0
    DEFAULT_MAX_SLOTS = 6
    DEFAULT_LATENCY_HISTORY = 20
    STOP_TIMEOUT = 5.0

    def __init__(
        self,
        backend: TerminalBackend,
        fetcher: SnapshotFetcher | None = None,
        classifier: ProgramClassifier | None = None,
        engine: AttentionEngine | None = None,
        mailbox: NotificationMailbox | None = None,
        log_monitor: LogMonitor | None = None,
        event_bus: EventBus | None = None,
        interval: float = DEFAULT_INTERVAL_SECONDS,
        max_slots: int = DEFAULT_MAX_SLOTS,
        latency_history: int = DEFAULT_LATENCY_HISTORY,
        autostart: bool = True,
    ):
        """Initialize the PollScheduler.

        Args:
            backend: Terminal backend, used for tab switching.
            fetcher: Snapshot source. Defaults to a SnapshotFetcher on backend.
            classifier: Program classifier.
            engine: Attention engine.
            mailbox: Notification handoff shared with the log monitor.
            log_monitor: Log subscription to keep alive while slots are tracked.
            event_bus: Where published states are emitted. Uses singleton if not provided.
            interval: Seconds between scheduled cycles.
            max_slots: Highest tab index auto-assigned to a new slot.
            latency_history: Number of recent cycles kept for latency stats.
            autostart: Start the poll thread when the first slot is tracked.
        """
        self._backend = backend
        self._fetcher = fetcher or SnapshotFetcher(backend)
        self._classifier = classifier or ProgramClassifier()
        self._engine = engine or AttentionEngine()
        self._mailbox = mailbox or NotificationMailbox()
        self._log_monitor = log_monitor
        self._event_bus = event_bus or get_event_bus()
        self._interval = interval
        self._max_slots = max_slots
        self._autostart = autostart

        # Display slots: slot id → tab index
        self._slots: dict[str, int] = {}
        self._lock = threading.Lock()

        # Single in-flight guard for cycles
        self._cycle_lock = threading.Lock()
        self._latencies: deque[float] = deque(maxlen=latency_history)
        self._latest: PublishedStates = {}

        # Threading
        self._running = False
        self._poll_thread: threading.Thread | None = None
        self._wake = threading.Event()
        self._stop = threading.Event()

        self._listeners: list[Callable[[PublishedStates], None]] = []

    # -- Slots --

    def track(self, slot_id: str, tab_index: int | None = None) -> int:
        """Register a display slot and start polling if it is the first.

        Args:
            slot_id: Identifier of the display key.
            tab_index: Tab to show. When omitted, the lowest index in
                1..max_slots not shown by another slot is used, else 1.

        Returns:
            The tab index assigned to the slot.
        """
        with self._lock:
            if not tab_index:
                used = set(self._slots.values())
                tab_index = next(
                    (i for i in range(1, self._max_slots + 1) if i not in used),
                    1,
                )
            self._slots[slot_id] = tab_index
            slots = dict(self._slots)

        logger.info(f"Tracking slot {slot_id} → tab {tab_index}")
        self._event_bus.emit(SLOTS_CHANGED, {"slots": slots})
        if self._autostart:
            self.start()
        return tab_index

    def untrack(self, slot_id: str) -> bool:
        """Remove a display slot; polling stops with the last one.

        Returns:
            True if the slot was tracked.
        """
        with self._lock:
            removed = self._slots.pop(slot_id, None)
            remaining = len(self._slots)
            slots = dict(self._slots)

        if removed is None:
            return False

        logger.info(f"Untracked slot {slot_id} (tab {removed})")
        self._event_bus.emit(SLOTS_CHANGED, {"slots": slots})
        if remaining == 0:
            self.stop()
        return True

    @property
    def slots(self) -> dict[str, int]:
        with self._lock:
            return dict(self._slots)

    def tracked_indices(self) -> list[int]:
        with self._lock:
            return sorted(set(self._slots.values()))

    # -- Tab switching --

    def select_tab(self, tab_index: int) -> bool:
        """Switch the terminal to a tab. Failures are logged by the backend."""
        try:
            selected = self._backend.select_tab(tab_index)
        except Exception as e:
            logger.warning(f"Failed to switch to tab {tab_index}: {e}")
            return False
        if selected:
            self.request_poll()
        return selected

    def select_slot(self, slot_id: str) -> bool:
        """Switch to the tab shown by a slot (the display key was pressed)."""
        with self._lock:
            tab_index = self._slots.get(slot_id)
        if tab_index is None:
            return False
        return self.select_tab(tab_index)

    # -- Loop --

    def start(self) -> None:
        """Start the poll thread; the first cycle runs immediately."""
        with self._lock:
            if self._running:
                return
            self._running = True
            # One stop event per thread
            self._stop = threading.Event()
            self._poll_thread = threading.Thread(
                target=self._poll_loop, args=(self._stop,), daemon=True, name="tabwatch-poll"
            )
            self._poll_thread.start()
        logger.info(f"Polling started (interval: {self._interval}s)")

    def stop(self) -> None:
        """Stop the poll thread and the log subscription."""
        with self._lock:
            if not self._running:
                return
            self._running = False
            thread = self._poll_thread
            self._poll_thread = None
            stop = self._stop

        stop.set()
        self._wake.set()
        if thread is not None and thread is not threading.current_thread():
            thread.join(timeout=self.STOP_TIMEOUT)
            if thread.is_alive():
                logger.warning("Poll thread still finishing a cycle, leaving it to exit")
        if self._log_monitor is not None:
            self._log_monitor.stop()
        logger.info("Polling stopped")

    @property
    def is_running(self) -> bool:
        return self._running

    @property
    def cycle_in_flight(self) -> bool:
        return self._cycle_lock.locked()

    def request_poll(self) -> bool:
        """Ask for a cycle now instead of at the next tick.

        Returns:
            False if a cycle is already in flight (the request is dropped).
        """
        if self._cycle_lock.locked():
            logger.debug("Poll requested while a cycle is in flight, ignoring")
            return False
        self._wake.set()
        return True

    def _poll_loop(self, stop: threading.Event) -> None:
        """Background loop: run a cycle, then sleep until the tick or a wake-up."""
        while not stop.is_set():
            try:
                self.run_cycle()
            except Exception as e:
                logger.error(f"Poll cycle error: {e}")
            self._wake.wait(self._interval)
            self._wake.clear()

    def run_cycle(self) -> PublishedStates | None:
        """Run one fetch → classify → attention → publish cycle.

        Returns:
            The published states, or None if another cycle was in flight.
        """
        if not self._cycle_lock.acquire(blocking=False):
            logger.debug("Cycle already in flight, skipping")
            return None

        try:
            started = time.monotonic()
            self._supervise_log_monitor()

            snapshot = self._fetcher.fetch()
            programs = self._classifier.classify(
                snapshot.ttys, snapshot.processes, snapshot.tab_names
            )
            signal = self._mailbox.take()
            flagged = self._engine.update(snapshot, signal)

            states = self._build_states(snapshot, programs, flagged)
            self._latencies.append(time.monotonic() - started)
            self._latest = states
            self._publish(states)
            return states
        finally:
            self._cycle_lock.release()

    def _supervise_log_monitor(self) -> None:
        """Restart the log subscription if it died while slots are tracked."""
        if self._log_monitor is None or not self.tracked_indices():
            return
        if not self._log_monitor.is_alive:
            logger.info("Log stream not running, starting it")
            self._log_monitor.start()

    def _build_states(
        self,
        snapshot: Snapshot,
        programs: dict[int, ProgramLabel],
        flagged: set[int],
    ) -> PublishedStates:
        """Build the published record for every tracked tab index."""
        states: PublishedStates = {}
        for tab_index in self.tracked_indices():
            if tab_index > snapshot.tab_count:
                states[tab_index] = None
                continue
            display_name, _ = split_title(snapshot.tab_names[tab_index - 1])
            states[tab_index] = TabState(
                tab_index=tab_index,
                display_name=display_name,
                program=programs.get(tab_index, ProgramLabel.OTHER),
                is_active=tab_index == snapshot.active_index,
                has_attention=tab_index in flagged,
            )
        return states

    def _publish(self, states: PublishedStates) -> None:
        """Hand states to listeners and the event bus."""
        for listener in list(self._listeners):
            try:
                listener(states)
            except Exception as e:
                logger.error(f"Tab state listener error: {e}")

        self._event_bus.emit(
            TAB_STATES,
            {"poll": self._engine.poll_count, "tabs": serialize_states(states)},
        )

    # -- Listeners and diagnostics --

    def add_listener(self, callback: Callable[[PublishedStates], None]) -> None:
        """Register a callback receiving every cycle's published states."""
        self._listeners.append(callback)

    def remove_listener(self, callback: Callable[[PublishedStates], None]) -> None:
        self._listeners = [cb for cb in self._listeners if cb != callback]

    @property
    def latest_states(self) -> PublishedStates:
        return dict(self._latest)

    @property
    def poll_count(self) -> int:
        return self._engine.poll_count

    def latency_stats(self) -> LatencyStats:
        """Summarise recent cycle latencies."""
        samples = [s * 1000.0 for s in self._latencies]
        if not samples:
            return LatencyStats()
        return LatencyStats(
            count=len(samples),
            last_ms=round(samples[-1], 1),
            min_ms=round(min(samples), 1),
            max_ms=round(max(samples), 1),
            mean_ms=round(sum(samples) / len(samples), 1),
        )

    def shutdown(self) -> None:
        """Stop polling and release the fetcher's workers."""
        self.stop()
        self._fetcher.shutdown()
