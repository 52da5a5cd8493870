"""Slot routes for iTerm Tab Watch.

A slot is one display key showing one tab. Displays register their slots
here; polling runs while at least one slot is tracked.
"""

import logging

from flask import Blueprint, current_app, jsonify, request

logger = logging.getLogger(__name__)

slots_bp = Blueprint("slots", __name__)


def _get_scheduler():
    return current_app.extensions.get("poll_scheduler")


@slots_bp.route("/slots", methods=["GET"])
def list_slots():
    """List tracked slots and their tab indices."""
    scheduler = _get_scheduler()
    if scheduler is None:
        return jsonify({"slots": {}})
    return jsonify({"slots": scheduler.slots})


@slots_bp.route("/slots", methods=["POST"])
def track_slot():
    """Track a slot.

    Request body:
        {
            "slot_id": "key-1",
            "tab_index": 2  (optional, auto-assigned when omitted)
        }

    Returns:
        JSON object with the assigned tab index.
    """
    data = request.get_json(silent=True) or {}
    slot_id = data.get("slot_id")
    tab_index = data.get("tab_index")

    if not slot_id or not isinstance(slot_id, str):
        return jsonify({"error": "'slot_id' field is required"}), 400
    if tab_index is not None and (
        isinstance(tab_index, bool) or not isinstance(tab_index, int) or tab_index < 1
    ):
        return jsonify({"error": "'tab_index' must be a positive integer"}), 400

    scheduler = _get_scheduler()
    if scheduler is None:
        return jsonify({"error": "Poller not running"}), 503

    assigned = scheduler.track(slot_id, tab_index)
    return jsonify({"slot_id": slot_id, "tab_index": assigned}), 201


@slots_bp.route("/slots/<slot_id>", methods=["DELETE"])
def untrack_slot(slot_id: str):
    """Stop tracking a slot."""
    scheduler = _get_scheduler()
    if scheduler is None:
        return jsonify({"error": "Poller not running"}), 503

    if not scheduler.untrack(slot_id):
        return jsonify({"error": f"Unknown slot: {slot_id}"}), 404
    return jsonify({"slot_id": slot_id, "removed": True})


@slots_bp.route("/slots/<slot_id>/select", methods=["POST"])
def select_slot(slot_id: str):
    """Switch iTerm to the tab shown by a slot (the key was pressed)."""
    scheduler = _get_scheduler()
    if scheduler is None:
        return jsonify({"error": "Poller not running"}), 503

    if slot_id not in scheduler.slots:
        return jsonify({"error": f"Unknown slot: {slot_id}"}), 404

    success = scheduler.select_slot(slot_id)
    return jsonify({"slot_id": slot_id, "success": success})
