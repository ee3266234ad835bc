"""Captured permission prompt routes for Claude Tracker."""

from flask import Blueprint, current_app, jsonify, request

from claude_tracker.services.prompt_capture import PromptCaptureService

captures_bp = Blueprint("captures", __name__)

DEFAULT_LIMIT = 50
MAX_LIMIT = 1000


@captures_bp.route("/captures", methods=["GET"])
def list_captures():
    """Get the most recently captured tool calls.

    Query params:
        limit: Maximum entries to return (default 50, max 1000).

    Returns:
        JSON object {"captures": [...], "count": n, "enabled": bool}.
    """
    limit = request.args.get("limit", DEFAULT_LIMIT, type=int)
    if limit is None or limit < 1:
        return jsonify({"error": "limit must be a positive integer"}), 400
    limit = min(limit, MAX_LIMIT)

    config = current_app.extensions["config_service"].get_config()
    capture = PromptCaptureService(config.capture.capture_file)
    captures = capture.get_captured(limit)

    return jsonify(
        {
            "captures": captures,
            "count": len(captures),
            "enabled": config.capture.enabled,
        }
    )
