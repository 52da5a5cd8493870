"""Domain models for iTerm Tab Watch."""

from tabwatch.models.config import (
    DEFAULT_LOG_MATCHERS,
    AppConfig,
    EventMonitorConfig,
    PollingConfig,
)
from tabwatch.models.snapshot import ProcessRecord, Snapshot
from tabwatch.models.tab_state import (
    ProgramLabel,
    TabState,
    format_title,
    serialize_states,
    split_title,
)

__all__ = [
    # Snapshot
    "ProcessRecord",
    "Snapshot",
    # Tab state
    "ProgramLabel",
    "TabState",
    "format_title",
    "serialize_states",
    "split_title",
    # Config
    "AppConfig",
    "DEFAULT_LOG_MATCHERS",
    "EventMonitorConfig",
    "PollingConfig",
]
