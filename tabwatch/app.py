"""Flask application factory for iTerm Tab Watch.

This module creates and configures the Flask application, wiring together
the polling services:

- ConfigService: Configuration loading and environment overrides
- EventBus: Fan-out of published tab state (SSE and in-process listeners)
- ITermBackend: AppleScript access to iTerm
- SnapshotFetcher: Concurrent per-poll queries
- ProgramClassifier: What runs in each tab
- LogMonitor: Notification log subscription
- AttentionEngine: Which background tabs need attention
- PollScheduler: The poll loop and display slots

Usage:
    from tabwatch.app import create_app
    app = create_app()
    app.run(port=5051)
"""

import logging
import os
from pathlib import Path

from flask import Flask

from tabwatch.backends.iterm import get_iterm_backend
from tabwatch.backends.processes import list_processes
from tabwatch.models import AppConfig
from tabwatch.routes import register_blueprints
from tabwatch.services import (
    AttentionEngine,
    LogMonitor,
    NotificationMailbox,
    PollScheduler,
    ProgramClassifier,
    SnapshotFetcher,
    get_config_service,
    get_event_bus,
)
from tabwatch.services.event_bus import NOTIFICATION_OBSERVED

logger = logging.getLogger(__name__)


def _load_dotenv(env_file: Path = Path(".env")) -> None:
    """Load environment variables from .env file if it exists."""
    if env_file.exists():
        with open(env_file) as f:
            for line in f:
                line = line.strip()
                if line and not line.startswith("#") and "=" in line:
                    key, value = line.split("=", 1)
                    key = key.strip()
                    value = value.strip().strip('"').strip("'")
                    if key and key not in os.environ:
                        os.environ[key] = value


def create_app(config_path: str = "config.yaml") -> Flask:
    """Create and configure the Flask application.

    Args:
        config_path: Path to the configuration file.

    Returns:
        Configured Flask application. Polling starts when the first display
        slot is tracked.
    """
    _load_dotenv()

    config_service = get_config_service(config_path)
    config = config_service.get_config()

    app = Flask(__name__)
    app.config["TESTING"] = False

    app.extensions["config"] = config
    app.extensions["config_service"] = config_service

    _init_services(app, config)
    register_blueprints(app)

    return app


def _init_services(app: Flask, config: AppConfig) -> None:
    """Initialize all services and wire them together.

    Args:
        app: Flask application.
        config: Application configuration.
    """
    event_bus = get_event_bus()
    app.extensions["event_bus"] = event_bus

    backend = get_iterm_backend()
    app.extensions["terminal_backend"] = backend

    timeout = max(int(config.polling.query_timeout), 1)
    fetcher = SnapshotFetcher(
        backend,
        process_reader=lambda: list_processes(timeout=timeout),
        query_timeout=config.polling.query_timeout,
    )

    mailbox = NotificationMailbox()
    scheduler: PollScheduler | None = None

    def on_notification() -> None:
        event_bus.emit(NOTIFICATION_OBSERVED, {"pending": mailbox.pending})
        if scheduler is not None:
            scheduler.request_poll()

    log_monitor = LogMonitor(
        mailbox,
        on_notification=on_notification,
        matchers=config.events.log_matchers,
        correlation_file=config.events.correlation_file,
    )
    app.extensions["log_monitor"] = log_monitor

    scheduler = PollScheduler(
        backend,
        fetcher=fetcher,
        classifier=ProgramClassifier(),
        engine=AttentionEngine(),
        mailbox=mailbox,
        log_monitor=log_monitor,
        event_bus=event_bus,
        interval=config.polling.interval,
        max_slots=config.polling.max_slots,
        latency_history=config.polling.latency_history,
    )
    app.extensions["poll_scheduler"] = scheduler

    logger.info("Services initialized")


def main():
    """Run the Flask application."""
    logging.basicConfig(
        level=logging.INFO,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )

    app = create_app()
    config = app.extensions.get("config")

    port = config.port if config else 5051
    debug = config.debug if config else False

    logger.info(f"Starting iTerm Tab Watch on port {port}")
    try:
        app.run(host="127.0.0.1", port=port, debug=debug, threaded=True, use_reloader=False)
    finally:
        scheduler = app.extensions.get("poll_scheduler")
        if scheduler is not None:
            scheduler.shutdown()


if __name__ == "__main__":
    main()
