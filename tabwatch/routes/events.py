"""Event routes for iTerm Tab Watch.

Provides the Server-Sent Events endpoint displays subscribe to.
"""

from flask import Blueprint, Response

from tabwatch.services.event_bus import get_event_bus

events_bp = Blueprint("events", __name__)


@events_bp.route("/events")
def sse_events():
    """Server-Sent Events endpoint for real-time updates.

    Events:
    - tab_states: Published per-tab state after every poll
    - notification_observed: A notification log line matched
    - slots_changed: A display slot was tracked or untracked

    The latest event of each type is replayed on connect.
    """
    event_bus = get_event_bus()

    def generate():
        yield from event_bus.get_sse_stream()

    return Response(
        generate(),
        mimetype="text/event-stream",
        headers={
            "Cache-Control": "no-cache",
            "Connection": "keep-alive",
            "X-Accel-Buffering": "no",
        },
    )
