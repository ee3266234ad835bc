"""Event routes for Claude Tracker.

Provides the Server-Sent Events (SSE) endpoint for live dashboard updates.
"""

from flask import Blueprint, Response, current_app

from claude_tracker.services.event_bus import get_event_bus

events_bp = Blueprint("events", __name__)


@events_bp.route("/events")
def sse_events():
    """Server-Sent Events endpoint.

    Events:
    - sessions_updated: a poll cycle published a new snapshot
      (payload {"sessions": [...], "count": n})
    - config_updated: settings changed

    Returns:
        SSE stream with events in format:
        event: <event_type>
        data: <json_payload>
        id: <sequence>
    """
    event_bus = current_app.extensions.get("event_bus") or get_event_bus()

    return Response(
        event_bus.get_sse_stream(),
        mimetype="text/event-stream",
        headers={
            "Cache-Control": "no-cache",
            "Connection": "keep-alive",
            "X-Accel-Buffering": "no",
        },
    )
