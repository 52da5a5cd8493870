"""Tab routes for iTerm Tab Watch.

Provides REST API endpoints for tab state:
- Latest published per-tab state
- Switch iTerm to a tab
- Poll diagnostics
"""

import logging
from dataclasses import asdict

from flask import Blueprint, current_app, jsonify

from tabwatch.models.tab_state import format_title, serialize_states
from tabwatch.services.poll_scheduler import PollScheduler

logger = logging.getLogger(__name__)

tabs_bp = Blueprint("tabs", __name__)


def _get_scheduler() -> PollScheduler | None:
    """Get the poll scheduler from app extensions (shared instance)."""
    return current_app.extensions.get("poll_scheduler")


@tabs_bp.route("/tabs", methods=["GET"])
def list_tabs():
    """Latest published state of every tracked tab.

    Returns:
        JSON object with:
        - poll: Completed poll count
        - tabs: One entry per tracked tab index; entries past the current
          tab count are {"tab_index": n, "empty": true}
    """
    scheduler = _get_scheduler()
    if scheduler is None:
        return jsonify({"poll": 0, "tabs": []})

    states = scheduler.latest_states
    tabs = serialize_states(states)
    for entry in tabs:
        entry["title"] = format_title(states.get(entry["tab_index"]))

    return jsonify({"poll": scheduler.poll_count, "tabs": tabs})


@tabs_bp.route("/tabs/<int:tab_index>/select", methods=["POST"])
def select_tab(tab_index: int):
    """Bring iTerm forward and select a tab.

    Returns:
        JSON object with success status. Failure is not an HTTP error; the
        terminal simply did not switch.
    """
    if tab_index < 1:
        return jsonify({"error": "tab_index must be >= 1"}), 400

    scheduler = _get_scheduler()
    if scheduler is None:
        return jsonify({"success": False, "error": "Poller not running"}), 503

    success = scheduler.select_tab(tab_index)
    if not success:
        logger.debug(f"[API] Tab switch to {tab_index} had no effect")
    return jsonify({"success": success, "tab_index": tab_index})


@tabs_bp.route("/stats", methods=["GET"])
def poll_stats():
    """Poll diagnostics: cycle latency and counters.

    Returns:
        JSON object with poll count, tracked indices and latency statistics.
    """
    scheduler = _get_scheduler()
    if scheduler is None:
        return jsonify({"error": "Poller not running"}), 503

    return jsonify(
        {
            "poll": scheduler.poll_count,
            "running": scheduler.is_running,
            "tracked": scheduler.tracked_indices(),
            "latency": asdict(scheduler.latency_stats()),
        }
    )
