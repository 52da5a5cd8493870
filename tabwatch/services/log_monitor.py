"""LogMonitor - watches the macOS unified log for notification events.

Runs ``log stream`` as a long-lived subprocess filtered by a predicate built
from substring matchers. When a matching line arrives, a NotificationSignal
is left in a single-slot mailbox for the attention engine and an early poll
is requested.
"""

import json
import logging
import os
import subprocess
import threading
import time
from collections.abc import Callable, Sequence
from dataclasses import dataclass, field
from pathlib import Path

from tabwatch.models.config import DEFAULT_LOG_MATCHERS

logger = logging.getLogger(__name__)

MATCHERS_ENV_VAR = "TABWATCH_LOG_MATCHERS"

# Side-channel records older than this are stale
CORRELATION_MAX_AGE_SECONDS = 5.0

# log stream echoes the predicate in its banner, which would match every matcher
BANNER_PREFIXES = ("Filtering the log data", "Timestamp")


@dataclass(frozen=True)
class NotificationSignal:
    """An observed notification, optionally naming the project that raised it."""

    correlation_hint: str | None = None
    observed_at: float = field(default_factory=time.time)


class NotificationMailbox:
    """Single-slot handoff between the log reader and the poll cycle.

    A new signal replaces any pending one; ``take()`` returns the pending
    signal and empties the slot in one step.
    """

    def __init__(self):
        self._signal: NotificationSignal | None = None
        self._lock = threading.Lock()

    def put(self, signal: NotificationSignal) -> None:
        with self._lock:
            if self._signal is not None:
                logger.debug("Replacing unconsumed notification signal")
            self._signal = signal

    def take(self) -> NotificationSignal | None:
        with self._lock:
            signal, self._signal = self._signal, None
        return signal

    @property
    def pending(self) -> bool:
        with self._lock:
            return self._signal is not None


def parse_matchers(value: str | None) -> list[str]:
    """Split a comma-separated matcher list, dropping blanks."""
    if not value:
        return []
    return [m.strip() for m in value.split(",") if m.strip()]


def resolve_matchers(configured: Sequence[str] | None = None) -> list[str]:
    """Pick the matcher set: environment override, then config, then defaults."""
    from_env = parse_matchers(os.environ.get(MATCHERS_ENV_VAR))
    if from_env:
        return from_env
    if configured:
        return list(configured)
    return list(DEFAULT_LOG_MATCHERS)


def build_predicate(matchers: Sequence[str]) -> str:
    """Build a ``log stream --predicate`` expression ORing the matchers."""
    clauses = []
    for matcher in matchers:
        escaped = matcher.replace("\\", "\\\\").replace('"', '\\"')
        clauses.append(f'eventMessage CONTAINS "{escaped}"')
    return " OR ".join(clauses)


def read_correlation_hint(
    path: str | Path,
    max_age: float = CORRELATION_MAX_AGE_SECONDS,
    now: float | None = None,
) -> str | None:
    """Read the project name from the side-channel file.

    The file holds ``{"project": str, "timestamp": epoch_millis}``. Absent,
    malformed or stale records yield None.

    Args:
        path: Side-channel file path (``~`` is expanded).
        max_age: Maximum record age in seconds.
        now: Current epoch seconds (for testing).

    Returns:
        The project name, or None.
    """
    file_path = Path(path).expanduser()
    try:
        record = json.loads(file_path.read_text())
    except FileNotFoundError:
        return None
    except (OSError, ValueError) as e:
        logger.debug(f"Ignoring unreadable correlation file {file_path}: {e}")
        return None

    if not isinstance(record, dict):
        return None
    project = record.get("project")
    timestamp = record.get("timestamp")
    if not isinstance(project, str) or not project.strip():
        return None
    if isinstance(timestamp, bool) or not isinstance(timestamp, (int, float)):
        return None

    current = time.time() if now is None else now
    age = current - timestamp / 1000.0
    if age > max_age:
        logger.debug(f"Ignoring stale correlation record ({age:.1f}s old)")
        return None
    return project.strip()


class LogMonitor:
    """Subscribes to the OS notification log.

    The subscription may die at any time (``log`` exits, permissions change);
    ``is_alive`` reports it and the poll scheduler calls ``start()`` again.
    """

    def __init__(
        self,
        mailbox: NotificationMailbox,
        on_notification: Callable[[], object] | None = None,
        matchers: Sequence[str] | None = None,
        correlation_file: str | Path = "~/.claude/tabwatch-notify.json",
        popen: Callable[..., subprocess.Popen] | None = None,
    ):
        """Initialize the LogMonitor.

        Args:
            mailbox: Where observed notifications are left.
            on_notification: Called after each signal, used to request a poll.
            matchers: Substrings marking a notification line. Resolved against
                the environment override and defaults when not given.
            correlation_file: Side-channel file naming the notifying project.
            popen: subprocess.Popen replacement (for testing).
        """
        self._mailbox = mailbox
        self._on_notification = on_notification
        self._matchers = list(matchers) if matchers else resolve_matchers()
        self._correlation_file = correlation_file
        self._popen = popen or subprocess.Popen

        self._process: subprocess.Popen | None = None
        self._reader: threading.Thread | None = None
        self._lock = threading.Lock()
        self._restarts = 0

    @property
    def matchers(self) -> list[str]:
        return list(self._matchers)

    @property
    def restarts(self) -> int:
        """Number of times the subscription was started after the first."""
        return self._restarts

    @property
    def is_alive(self) -> bool:
        """Check whether the log subscription is running."""
        with self._lock:
            return (
                self._process is not None
                and self._process.poll() is None
                and self._reader is not None
                and self._reader.is_alive()
            )

    def start(self) -> bool:
        """Start the subscription if it is not already running.

        Returns:
            True if a subscription is running after the call.
        """
        if self.is_alive:
            return True
        if not self._matchers:
            logger.warning("No log matchers configured, notification monitor disabled")
            return False

        cmd = [
            "log",
            "stream",
            "--style",
            "compact",
            "--predicate",
            build_predicate(self._matchers),
        ]
        try:
            process = self._popen(
                cmd,
                stdout=subprocess.PIPE,
                stderr=subprocess.DEVNULL,
                text=True,
                errors="replace",
                bufsize=1,
            )
        except FileNotFoundError:
            logger.warning("log command not found, notification monitor disabled")
            return False
        except Exception as e:
            logger.warning(f"Failed to start log stream: {e}")
            return False

        with self._lock:
            stale = self._process
            if stale is not None:
                self._restarts += 1
            self._process = process
            self._reader = threading.Thread(
                target=self._read_lines,
                args=(process,),
                daemon=True,
                name="tabwatch-log-reader",
            )
            self._reader.start()

        if stale is not None:
            _terminate(stale)
        logger.info(f"Log stream started (matchers: {', '.join(self._matchers)})")
        return True

    def stop(self) -> None:
        """Terminate the subscription."""
        with self._lock:
            process = self._process
            self._process = None
            self._reader = None
        if process is not None:
            _terminate(process)
        logger.info("Log stream stopped")

    def handle_line(self, line: str) -> bool:
        """Process one log line.

        Args:
            line: A line from the log stream, as delivered.

        Returns:
            True if the line matched and a signal was raised.
        """
        if line.startswith(BANNER_PREFIXES):
            return False
        if not any(matcher in line for matcher in self._matchers):
            return False

        hint = read_correlation_hint(self._correlation_file)
        self._mailbox.put(NotificationSignal(correlation_hint=hint))
        logger.info(f"Notification observed (project hint: {hint or 'none'})")

        if self._on_notification is not None:
            try:
                self._on_notification()
            except Exception as e:
                logger.error(f"Notification callback error: {e}")
        return True

    def _read_lines(self, process: subprocess.Popen) -> None:
        """Reader thread body: feed each line to handle_line until EOF."""
        try:
            for line in process.stdout:
                self.handle_line(line.rstrip("\n"))
        except Exception as e:
            logger.warning(f"Log stream reader error: {e}")
        finally:
            # A reader that gave up must not leave its process running
            _terminate(process)
            returncode = process.poll()
            logger.warning(f"Log stream ended (exit code: {returncode})")


def _terminate(process: subprocess.Popen) -> None:
    """Terminate a log process if it is still running, killing it if it lingers."""
    if process.poll() is not None:
        return
    process.terminate()
    try:
        process.wait(timeout=2)
    except subprocess.TimeoutExpired:
        process.kill()
