"""SnapshotFetcher - runs the per-poll external queries and assembles a Snapshot.

The tab query, process table read and frontmost check are independent and
each costs a subprocess round trip, so they run concurrently and are joined
before the Snapshot is built.
"""

import logging
import time
from collections.abc import Callable
from concurrent.futures import Future, ThreadPoolExecutor
from concurrent.futures import TimeoutError as FutureTimeoutError
from typing import TypeVar

from tabwatch.backends.base import TabInfo, TerminalBackend
from tabwatch.backends.processes import list_processes
from tabwatch.models.snapshot import ProcessRecord, Snapshot

logger = logging.getLogger(__name__)

T = TypeVar("T")


class SnapshotFetcher:
    """Builds one consistent Snapshot per poll cycle.

    ``fetch()`` never raises. A failing or timed-out query contributes its
    default (no tabs, no processes, not frontmost) and the rest of the
    snapshot is still used.
    """

    DEFAULT_QUERY_TIMEOUT_SECONDS = 10.0

    def __init__(
        self,
        backend: TerminalBackend,
        process_reader: Callable[[], list[ProcessRecord]] | None = None,
        query_timeout: float | None = None,
    ):
        """Initialize the SnapshotFetcher.

        Args:
            backend: Terminal backend for the tab and frontmost queries.
            process_reader: Callable returning the process table. Defaults to ps.
            query_timeout: Seconds to wait for the whole join before falling
                back to defaults for queries still running.
        """
        self._backend = backend
        self._process_reader = process_reader or list_processes
        self._query_timeout = query_timeout or self.DEFAULT_QUERY_TIMEOUT_SECONDS
        # Extra workers so a hung query from an earlier cycle cannot starve this one
        self._executor = ThreadPoolExecutor(max_workers=6, thread_name_prefix="tabwatch-fetch")

    def fetch(self) -> Snapshot:
        """Run all queries concurrently and assemble the Snapshot."""
        tabs_future = self._executor.submit(self._backend.query_tabs)
        processes_future = self._executor.submit(self._process_reader)
        frontmost_future = self._executor.submit(self._backend.is_frontmost)

        deadline = time.monotonic() + self._query_timeout
        tabs = self._result(tabs_future, TabInfo(), "tab query", deadline)
        processes = self._result(processes_future, [], "process table", deadline)
        frontmost = self._result(frontmost_future, False, "frontmost check", deadline)

        try:
            return Snapshot(
                tab_names=tabs.names,
                active_index=tabs.active_index,
                at_prompt=tabs.at_prompt,
                is_processing=tabs.is_processing,
                ttys=tabs.ttys,
                frontmost=bool(frontmost),
                processes=processes,
            )
        except ValueError as e:
            logger.warning(f"Inconsistent tab data, dropping tabs for this poll: {e}")
            return Snapshot(frontmost=bool(frontmost), processes=processes)

    def _result(self, future: Future, default: T, label: str, deadline: float) -> T:
        """Wait for a query future, substituting the default on failure."""
        remaining = max(deadline - time.monotonic(), 0.0)
        try:
            return future.result(timeout=remaining)
        except FutureTimeoutError:
            logger.warning(f"{label} timed out after {self._query_timeout}s, using defaults")
            return default
        except Exception as e:
            logger.warning(f"{label} failed: {e}")
            return default

    def shutdown(self) -> None:
        """Release the worker threads without waiting on hung queries."""
        self._executor.shutdown(wait=False, cancel_futures=True)
