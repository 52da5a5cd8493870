"""Services for iTerm Tab Watch."""

from tabwatch.services.attention_engine import AttentionEngine, AttentionState
from tabwatch.services.config_service import (
    ConfigService,
    get_config_service,
    reset_config_service,
)
from tabwatch.services.event_bus import Event, EventBus, get_event_bus, reset_event_bus
from tabwatch.services.log_monitor import (
    LogMonitor,
    NotificationMailbox,
    NotificationSignal,
    build_predicate,
    read_correlation_hint,
    resolve_matchers,
)
from tabwatch.services.poll_scheduler import LatencyStats, PollScheduler
from tabwatch.services.program_classifier import RULES, ProgramClassifier
from tabwatch.services.snapshot_fetcher import SnapshotFetcher

__all__ = [
    # Attention
    "AttentionEngine",
    "AttentionState",
    # Config
    "ConfigService",
    "get_config_service",
    "reset_config_service",
    # Event bus
    "Event",
    "EventBus",
    "get_event_bus",
    "reset_event_bus",
    # Notification log
    "LogMonitor",
    "NotificationMailbox",
    "NotificationSignal",
    "build_predicate",
    "read_correlation_hint",
    "resolve_matchers",
    # Polling
    "LatencyStats",
    "PollScheduler",
    "SnapshotFetcher",
    # Classification
    "ProgramClassifier",
    "RULES",
]
