"""AttentionEngine - decides which background tabs need the user's attention.

A tab is flagged when it finished work while hidden and an OS notification
says some program wants the user. Flagging on state transitions alone would
fire for every quick command, so edge-based rules only apply inside a short
window of polls opened by a notification.

Per poll (``update``):
1. Visible tab = active tab when the terminal is frontmost, else none
2. Consume a pending notification:
   a. Project hint matches tab names → flag those tabs, done
   b. Otherwise open the window and flag idle tabs that were busy recently
3. Inside the window, flag hidden tabs whose prompt rose or processing fell
4. Clear the visible tab
5. Record per-tab history and advance the poll counter
"""

import logging
from dataclasses import dataclass, field

from tabwatch.models.snapshot import Snapshot
from tabwatch.models.tab_state import split_title
from tabwatch.services.log_monitor import NotificationSignal

logger = logging.getLogger(__name__)

# Tab index meaning "no tab is visible" (terminal is in the background)
NO_VISIBLE_TAB = 0


@dataclass
class AttentionState:
    """Mutable engine state, owned by one AttentionEngine."""

    flagged: set[int] = field(default_factory=set)
    last_processing_poll: dict[int, int] = field(default_factory=dict)
    prev_at_prompt: dict[int, bool] = field(default_factory=dict)
    prev_processing: dict[int, bool] = field(default_factory=dict)
    notification_window_end_poll: int = -1
    poll_count: int = 0


class AttentionEngine:
    """Windowed, notification-gated attention state machine."""

    # Polls a notification window stays open (about 12s at the 3s cadence)
    WINDOW_POLLS = 4
    # A tab busy within this many polls counts as having just finished
    RECENT_PROCESSING_POLLS = 3

    def __init__(self):
        self._state = AttentionState()

    @property
    def state(self) -> AttentionState:
        return self._state

    @property
    def flagged(self) -> frozenset[int]:
        return frozenset(self._state.flagged)

    @property
    def poll_count(self) -> int:
        return self._state.poll_count

    @property
    def window_open(self) -> bool:
        return self._state.poll_count <= self._state.notification_window_end_poll

    def has_attention(self, tab_index: int) -> bool:
        return tab_index in self._state.flagged

    def update(self, snapshot: Snapshot, signal: NotificationSignal | None = None) -> set[int]:
        """Apply one poll's snapshot and any pending notification.

        Args:
            snapshot: The poll's snapshot.
            signal: Notification taken from the mailbox, if one arrived.

        Returns:
            The tab indices flagged after this poll.
        """
        state = self._state
        tab_count = snapshot.tab_count
        tabs = range(1, tab_count + 1)
        visible_tab = snapshot.active_index if snapshot.frontmost else NO_VISIBLE_TAB

        if signal is not None:
            self._correlate(snapshot, signal, visible_tab)

        in_window = state.poll_count <= state.notification_window_end_poll

        for tab in tabs:
            at_prompt = snapshot.at_prompt[tab - 1]
            processing = snapshot.is_processing[tab - 1]
            if in_window and tab != visible_tab:
                # A tab seen for the first time has no edge to report
                prompt_rose = (
                    at_prompt
                    and tab in state.prev_at_prompt
                    and not state.prev_at_prompt[tab]
                )
                processing_fell = not processing and state.prev_processing.get(tab, False)
                if prompt_rose or processing_fell:
                    if tab not in state.flagged:
                        logger.info(
                            f"Tab {tab} settled inside notification window "
                            f"(prompt_rose={prompt_rose}, processing_fell={processing_fell})"
                        )
                    state.flagged.add(tab)

        if visible_tab != NO_VISIBLE_TAB:
            state.flagged.discard(visible_tab)

        for tab in tabs:
            if snapshot.is_processing[tab - 1]:
                state.last_processing_poll[tab] = state.poll_count
            state.prev_at_prompt[tab] = snapshot.at_prompt[tab - 1]
            state.prev_processing[tab] = snapshot.is_processing[tab - 1]

        state.poll_count += 1
        return set(state.flagged)

    def _correlate(self, snapshot: Snapshot, signal: NotificationSignal, visible_tab: int) -> None:
        """Attribute a notification to tabs: project hint first, timing second."""
        state = self._state
        hidden_tabs = [
            tab for tab in range(1, snapshot.tab_count + 1) if tab != visible_tab
        ]

        if signal.correlation_hint:
            hint = signal.correlation_hint.lower()
            matched = []
            for tab in hidden_tabs:
                display_name, _ = split_title(snapshot.tab_names[tab - 1])
                if display_name and hint in display_name.lower():
                    matched.append(tab)
            if matched:
                state.flagged.update(matched)
                logger.info(f"Notification for '{signal.correlation_hint}' flagged tabs {matched}")
                return

        state.notification_window_end_poll = state.poll_count + self.WINDOW_POLLS
        logger.debug(
            f"Notification window open until poll {state.notification_window_end_poll}"
        )

        for tab in hidden_tabs:
            if snapshot.is_processing[tab - 1] or snapshot.at_prompt[tab - 1]:
                continue
            last_busy = state.last_processing_poll.get(tab)
            if last_busy is not None and state.poll_count - last_busy <= self.RECENT_PROCESSING_POLLS:
                state.flagged.add(tab)
                logger.info(f"Tab {tab} finished work just before a notification")

    def reset(self) -> None:
        """Forget all history and flags."""
        self._state = AttentionState()
