"""Pytest configuration and shared fixtures for iTerm Tab Watch tests."""

import pytest

from tabwatch.models.snapshot import ProcessRecord, Snapshot
from tabwatch.services.event_bus import reset_event_bus


@pytest.fixture(autouse=True)
def isolate_environment(monkeypatch):
    """Keep the developer's TABWATCH_* variables and the global bus out of tests."""
    monkeypatch.delenv("TABWATCH_LOG_MATCHERS", raising=False)
    monkeypatch.delenv("TABWATCH_CORRELATION_FILE", raising=False)
    reset_event_bus()
    yield
    reset_event_bus()


@pytest.fixture
def make_snapshot():
    """Factory for snapshots from compact per-tab descriptions.

    Each tab is (name, at_prompt, is_processing); TTYs are /dev/ttys00N.
    """

    def _make(
        tabs: list[tuple[str, bool, bool]],
        active_index: int = 1,
        frontmost: bool = True,
        processes: list[ProcessRecord] | None = None,
    ) -> Snapshot:
        return Snapshot(
            tab_names=[t[0] for t in tabs],
            active_index=active_index,
            at_prompt=[t[1] for t in tabs],
            is_processing=[t[2] for t in tabs],
            ttys=[f"/dev/ttys00{i}" for i in range(1, len(tabs) + 1)],
            frontmost=frontmost,
            processes=processes or [],
        )

    return _make
