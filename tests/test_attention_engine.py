"""Tests for AttentionEngine."""

import pytest

from tabwatch.models.snapshot import Snapshot
from tabwatch.services.attention_engine import AttentionEngine
from tabwatch.services.log_monitor import NotificationSignal

IDLE = (True, False)  # at prompt, not processing
BUSY = (False, True)
SETTLED = (False, False)  # neither at prompt nor processing (e.g., agent waiting)


@pytest.fixture
def engine():
    """Create a fresh AttentionEngine."""
    return AttentionEngine()


@pytest.fixture
def tabs(make_snapshot):
    """Build a snapshot from (name, (at_prompt, processing)) pairs."""

    def _tabs(*entries, active_index=1, frontmost=True) -> Snapshot:
        return make_snapshot(
            [(name, flags[0], flags[1]) for name, flags in entries],
            active_index=active_index,
            frontmost=frontmost,
        )

    return _tabs


class TestVisibleTab:
    """Tests for clearing attention on the visible tab."""

    def test_visible_tab_never_flagged_by_hint(self, engine, tabs):
        """A hint matching the visible tab does not flag it."""
        snapshot = tabs(("deploy (zsh)", IDLE), ("notes (vim)", IDLE))

        flagged = engine.update(snapshot, NotificationSignal(correlation_hint="deploy"))

        assert 1 not in flagged

    def test_viewing_tab_clears_attention(self, engine, tabs):
        """Selecting a flagged tab while iTerm is frontmost clears it."""
        engine.update(tabs(("main", IDLE), ("deploy", IDLE)))
        engine.update(
            tabs(("main", IDLE), ("deploy", IDLE)),
            NotificationSignal(correlation_hint="deploy"),
        )
        assert engine.has_attention(2)

        flagged = engine.update(tabs(("main", IDLE), ("deploy", IDLE), active_index=2))

        assert 2 not in flagged

    def test_backgrounded_terminal_has_no_visible_tab(self, engine, tabs):
        """When iTerm is not frontmost, even the active tab can be flagged."""
        engine.update(tabs(("main", BUSY), ("other", IDLE), frontmost=False))

        flagged = engine.update(
            tabs(("main", SETTLED), ("other", IDLE), frontmost=False),
            NotificationSignal(),
        )

        assert 1 in flagged

    def test_visible_clear_overrides_window_edges(self, engine, tabs):
        """Edge rules inside the window never flag the visible tab."""
        engine.update(tabs(("main", BUSY), ("other", IDLE)))

        flagged = engine.update(tabs(("main", IDLE), ("other", IDLE)), NotificationSignal())

        assert flagged == set()


class TestIdempotence:
    """Tests for repeated polls without changes."""

    def test_unchanged_snapshot_keeps_flags_and_advances_count(self, engine, tabs):
        """Two identical polls leave flags alone and count one poll each."""
        engine.update(tabs(("main", IDLE), ("build", BUSY)))
        engine.update(tabs(("main", IDLE), ("build", SETTLED)), NotificationSignal())
        flagged_before = set(engine.flagged)
        count_before = engine.poll_count

        snapshot = tabs(("main", IDLE), ("build", SETTLED))
        first = engine.update(snapshot)
        assert engine.poll_count == count_before + 1
        second = engine.update(snapshot)
        assert engine.poll_count == count_before + 2

        assert first == flagged_before
        assert second == flagged_before

    def test_poll_count_starts_at_zero(self, engine):
        """A new engine has no history."""
        assert engine.poll_count == 0
        assert engine.flagged == frozenset()
        assert engine.state.notification_window_end_poll == -1


class TestTimingHeuristic:
    """Tests for notifications without a usable project hint."""

    def test_recently_busy_tab_flagged(self, engine, tabs):
        """A hidden tab that stopped processing right before the signal is flagged."""
        engine.update(tabs(("main", IDLE), ("build", BUSY)))

        flagged = engine.update(tabs(("main", IDLE), ("build", SETTLED)), NotificationSignal())

        assert flagged == {2}
        assert engine.state.notification_window_end_poll == 1 + AttentionEngine.WINDOW_POLLS

    def test_long_idle_tab_not_flagged(self, engine, tabs):
        """A tab last busy more than three polls ago is not flagged by timing."""
        engine.update(tabs(("main", IDLE), ("build", BUSY)))
        for _ in range(4):
            engine.update(tabs(("main", IDLE), ("build", SETTLED)))

        flagged = engine.update(tabs(("main", IDLE), ("build", SETTLED)), NotificationSignal())

        assert flagged == set()

    def test_tab_at_prompt_not_flagged_by_timing(self, engine, tabs):
        """Timing only considers tabs that are neither busy nor at a prompt."""
        engine.update(tabs(("main", IDLE), ("build", BUSY)))
        engine.update(tabs(("main", IDLE), ("build", IDLE)))

        flagged = engine.update(tabs(("main", IDLE), ("build", IDLE)), NotificationSignal())

        assert flagged == set()

    def test_unmatched_hint_falls_back_to_timing(self, engine, tabs):
        """A hint matching no tab still opens the window."""
        engine.update(tabs(("main", IDLE), ("build", BUSY)))

        flagged = engine.update(
            tabs(("main", IDLE), ("build", SETTLED)),
            NotificationSignal(correlation_hint="unrelated-project"),
        )

        assert flagged == {2}
        assert engine.window_open


class TestNotificationWindow:
    """Tests for edge-based flagging inside the window."""

    def test_processing_falling_edge_flags_inside_window(self, engine, tabs):
        """A tab that stops processing a few polls after the signal is flagged."""
        engine.update(tabs(("main", IDLE), ("agent", SETTLED)))
        engine.update(tabs(("main", IDLE), ("agent", SETTLED)), NotificationSignal())
        engine.update(tabs(("main", IDLE), ("agent", BUSY)))
        assert engine.flagged == frozenset()

        flagged = engine.update(tabs(("main", IDLE), ("agent", SETTLED)))

        assert flagged == {2}

    def test_prompt_rising_edge_flags_inside_window(self, engine, tabs):
        """A tab returning to its shell prompt inside the window is flagged."""
        engine.update(tabs(("main", IDLE), ("tests", SETTLED)))
        engine.update(tabs(("main", IDLE), ("tests", SETTLED)), NotificationSignal())

        flagged = engine.update(tabs(("main", IDLE), ("tests", IDLE)))

        assert flagged == {2}

    def test_new_idle_tab_inside_window_not_flagged(self, engine, tabs):
        """A tab opened at its prompt during the window has no rising edge."""
        engine.update(tabs(("main", IDLE), ("build", IDLE)))
        engine.update(tabs(("main", IDLE), ("build", IDLE)), NotificationSignal())
        assert engine.window_open

        flagged = engine.update(tabs(("main", IDLE), ("build", IDLE), ("fresh", IDLE)))

        assert 3 not in flagged

    def test_edges_ignored_without_notification(self, engine, tabs):
        """Finishing a command with no notification does not flag."""
        engine.update(tabs(("main", IDLE), ("build", BUSY)))

        flagged = engine.update(tabs(("main", IDLE), ("build", IDLE)))

        assert flagged == set()

    def test_window_closes_after_four_polls(self, engine, tabs):
        """Edges after poll_count exceeds the window end do not flag."""
        engine.update(tabs(("main", IDLE), ("build", SETTLED)))
        engine.update(tabs(("main", IDLE), ("build", SETTLED)), NotificationSignal())
        opened_at = 1
        assert engine.state.notification_window_end_poll == opened_at + 4

        while engine.poll_count < opened_at + 4:
            engine.update(tabs(("main", IDLE), ("build", SETTLED)))
        engine.update(tabs(("main", IDLE), ("build", BUSY)))
        assert engine.poll_count == opened_at + 5
        assert not engine.window_open

        flagged = engine.update(tabs(("main", IDLE), ("build", SETTLED)))

        assert flagged == set()

    def test_last_poll_of_window_still_flags(self, engine, tabs):
        """The poll numbered opened_at + 4 is still inside the window."""
        engine.update(tabs(("main", IDLE), ("build", SETTLED)))
        engine.update(tabs(("main", IDLE), ("build", SETTLED)), NotificationSignal())
        opened_at = 1

        while engine.poll_count < opened_at + 3:
            engine.update(tabs(("main", IDLE), ("build", SETTLED)))
        engine.update(tabs(("main", IDLE), ("build", BUSY)))
        assert engine.poll_count == opened_at + 4

        flagged = engine.update(tabs(("main", IDLE), ("build", SETTLED)))

        assert flagged == {2}

    def test_signal_then_settle_next_poll(self, engine, tabs):
        """Processing at N, stopped at N+1 with a signal: flagged at N+1."""
        engine.update(tabs(("main", IDLE), ("build", BUSY)))
        assert 2 not in engine.flagged

        engine.update(tabs(("main", IDLE), ("build", SETTLED)), NotificationSignal())

        assert 2 in engine.flagged


class TestProjectCorrelation:
    """Tests for notifications carrying a project hint."""

    def test_hint_flags_matching_tab_only(self, engine, tabs):
        """Project match wins and the timing heuristic is skipped."""
        engine.update(tabs(("main (zsh)", IDLE), ("Deploy (zsh)", IDLE), ("api (node)", BUSY)))

        flagged = engine.update(
            tabs(("main (zsh)", IDLE), ("Deploy (zsh)", IDLE), ("api (node)", SETTLED)),
            NotificationSignal(correlation_hint="deploy"),
        )

        assert flagged == {2}
        assert engine.state.notification_window_end_poll == -1

    def test_hint_matches_case_insensitively(self, engine, tabs):
        """Hint and name are compared case-insensitively."""
        flagged = engine.update(
            tabs(("main", IDLE), ("my-App server", IDLE)),
            NotificationSignal(correlation_hint="MY-APP"),
        )

        assert flagged == {2}

    def test_hint_flags_every_matching_tab(self, engine, tabs):
        """All hidden tabs containing the hint are flagged."""
        flagged = engine.update(
            tabs(("main", IDLE), ("shop api", IDLE), ("shop web", IDLE)),
            NotificationSignal(correlation_hint="shop"),
        )

        assert flagged == {2, 3}

    def test_hint_ignores_process_suffix(self, engine, tabs):
        """The '(process)' suffix is not part of the matched name."""
        engine.update(tabs(("main", IDLE), ("notes (zsh)", IDLE)))

        flagged = engine.update(
            tabs(("main", IDLE), ("notes (zsh)", IDLE)),
            NotificationSignal(correlation_hint="zsh"),
        )

        assert flagged == set()
        assert engine.window_open


class TestDegradedSnapshots:
    """Tests for snapshots produced by failed queries."""

    def test_empty_snapshot(self, engine):
        """An empty snapshot advances the count without errors."""
        flagged = engine.update(Snapshot.empty(), NotificationSignal())

        assert flagged == set()
        assert engine.poll_count == 1

    def test_failed_tab_query_keeps_flags(self, engine, tabs):
        """A poll with no tab data does not drop existing flags."""
        engine.update(
            tabs(("main", IDLE), ("deploy", IDLE)),
            NotificationSignal(correlation_hint="deploy"),
        )

        flagged = engine.update(Snapshot.empty())

        assert flagged == {2}

    def test_reset_forgets_state(self, engine, tabs):
        """reset() returns the engine to its initial state."""
        engine.update(
            tabs(("main", IDLE), ("deploy", IDLE)),
            NotificationSignal(correlation_hint="deploy"),
        )

        engine.reset()

        assert engine.poll_count == 0
        assert engine.flagged == frozenset()
