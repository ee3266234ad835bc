"""Session routes for Claude Tracker.

Provides REST API endpoints for tracked sessions:
- GET /api/sessions - Last published snapshot
- POST /api/sessions/refresh - Run a poll cycle now
"""

import logging

from flask import Blueprint, current_app, jsonify

from claude_tracker.services.session_monitor import SessionMonitor

logger = logging.getLogger(__name__)

sessions_bp = Blueprint("sessions", __name__)


def _get_monitor() -> SessionMonitor | None:
    """Get the session monitor from app extensions."""
    return current_app.extensions.get("session_monitor")


@sessions_bp.route("/sessions", methods=["GET"])
def list_sessions():
    """List tracked sessions, most recent activity first.

    Returns:
        JSON object {"sessions": [...], "count": n}. Each session has name,
        display_name, status, status_detail, summary, context_percent,
        last_activity and the other TrackedSession row fields.
    """
    monitor = _get_monitor()
    if monitor is None:
        return jsonify({"error": "Session monitor not available"}), 500

    rows = monitor.get_rows()
    return jsonify({"sessions": rows, "count": len(rows)})


@sessions_bp.route("/sessions/refresh", methods=["POST"])
def refresh_sessions():
    """Run a poll cycle immediately and return its result.

    Waits for a cycle already in progress to finish first.
    """
    monitor = _get_monitor()
    if monitor is None:
        return jsonify({"error": "Session monitor not available"}), 500

    sessions = monitor.refresh()
    rows = [session.to_row() for session in sessions]
    logger.debug(f"[API] POST /sessions/refresh - {len(rows)} sessions")
    return jsonify({"sessions": rows, "count": len(rows)})
