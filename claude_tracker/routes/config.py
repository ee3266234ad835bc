"""Config routes for Claude Tracker.

Provides REST API endpoints for configuration management:
- GET /api/config - Get current configuration
- POST /api/config - Update configuration
"""

import logging

from flask import Blueprint, current_app, jsonify, request
from pydantic import ValidationError

from claude_tracker.services.config_service import ConfigService
from claude_tracker.services.event_bus import CONFIG_UPDATED

config_bp = Blueprint("config", __name__)

logger = logging.getLogger(__name__)


def _get_config_service() -> ConfigService | None:
    """Get the config service from app extensions."""
    return current_app.extensions.get("config_service")


def _public(config_dict: dict) -> dict:
    """Mask the API key before it leaves the server."""
    if config_dict.get("llm", {}).get("api_key"):
        config_dict["llm"]["api_key"] = "********"
    return config_dict


@config_bp.route("/config", methods=["GET"])
def get_config():
    """Get the current configuration.

    Returns:
        JSON object with all configuration values (API key masked).
    """
    config_service = _get_config_service()
    if config_service is None:
        return jsonify({"error": "Config not loaded"}), 500

    return jsonify(_public(config_service.get_config().model_dump(mode="json")))


@config_bp.route("/config", methods=["POST"])
def update_config():
    """Update the configuration.

    Request body contains the fields to change; nested ``llm`` and
    ``capture`` sections may be partial. The session monitor is restarted
    with the new settings.

    Request body:
        {
            "session_pattern": "^work-",
            "poll_interval_ms": 10000,
            "llm": {"provider": "ollama", "model": "qwen3"},
            ...
        }

    Returns:
        JSON object with the updated configuration, or 400 with validation
        errors.
    """
    config_service = _get_config_service()
    if config_service is None:
        return jsonify({"error": "Config service not available"}), 500

    data = request.get_json(silent=True)
    if not isinstance(data, dict):
        return jsonify({"error": "Request body must be a JSON object"}), 400

    # Masked key echoed back from GET means "unchanged"
    if isinstance(data.get("llm"), dict) and data["llm"].get("api_key") == "********":
        data["llm"] = {k: v for k, v in data["llm"].items() if k != "api_key"}

    try:
        new_config = config_service.update(data)
    except ValidationError as e:
        logger.warning(f"Config validation error: {e}")
        return (
            jsonify(
                {
                    "error": "Invalid configuration",
                    "details": e.errors(include_url=False, include_context=False),
                }
            ),
            400,
        )

    if not config_service.save(new_config):
        return jsonify({"error": "Failed to save configuration"}), 500

    current_app.extensions["config"] = new_config
    monitor = current_app.extensions.get("session_monitor")
    if monitor is not None:
        monitor.update_config(new_config)

    event_bus = current_app.extensions.get("event_bus")
    if event_bus is not None:
        event_bus.emit(CONFIG_UPDATED, {"status_source": new_config.status_source.value})

    logger.info(
        f"Configuration updated: source={new_config.status_source.value}, "
        f"llm={new_config.llm.provider.value}"
    )

    return jsonify(_public(new_config.model_dump(mode="json")))
