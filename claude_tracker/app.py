"""Flask application factory for Claude Tracker.

This module creates and configures the Flask application, wiring together
the services:

- ConfigService: Configuration loading and migration
- TmuxBackend: Session discovery and pane capture
- LlmClassifier: Optional LLM session analysis
- EventBus: Real-time SSE event broadcasting
- SessionMonitor: Polling orchestrator

Usage:
    from claude_tracker.app import create_app
    app = create_app()
    app.run(port=5050)
"""

import logging
import os
from pathlib import Path

from flask import Flask, jsonify

from claude_tracker import __version__
from claude_tracker.backends.tmux import get_tmux_backend
from claude_tracker.routes import register_blueprints
from claude_tracker.services import (
    SessionMonitor,
    get_config_service,
    get_event_bus,
    get_llm_classifier,
)
from claude_tracker.services.event_bus import SESSIONS_UPDATED

logger = logging.getLogger(__name__)


def _load_dotenv(env_file: Path = Path(".env")) -> None:
    """Load KEY=value pairs from a .env file without overriding the environment."""
    if not env_file.exists():
        return

    with open(env_file) as f:
        for line in f:
            line = line.strip()
            if not line or line.startswith("#") or "=" not in line:
                continue
            key, value = line.split("=", 1)
            key = key.strip()
            if key and key not in os.environ:
                os.environ[key] = value.strip().strip('"').strip("'")


def create_app(config_path: str = "config.yaml") -> Flask:
    """Create and configure the Flask application.

    The session monitor is created but not started; see
    start_background_tasks().

    Args:
        config_path: Path to the configuration file.

    Returns:
        Configured Flask application.
    """
    _load_dotenv()

    config_service = get_config_service(config_path)
    config = config_service.get_config()

    app = Flask(__name__)
    app.config["TESTING"] = False

    app.extensions["config"] = config
    app.extensions["config_service"] = config_service

    event_bus = get_event_bus()
    app.extensions["event_bus"] = event_bus

    backend = get_tmux_backend(config.tmux_path)
    app.extensions["terminal_backend"] = backend

    llm_classifier = get_llm_classifier()
    app.extensions["llm_classifier"] = llm_classifier

    app.extensions["session_monitor"] = SessionMonitor(
        config=config,
        backend=backend,
        llm_classifier=llm_classifier,
        event_bus=event_bus,
    )

    register_blueprints(app)

    @app.route("/api/health")
    def health():
        """Service status for scripts and the dashboard."""
        monitor = app.extensions["session_monitor"]
        last = event_bus.latest(SESSIONS_UPDATED)
        return jsonify(
            {
                "version": __version__,
                "monitor_running": monitor.is_running,
                "tmux_available": backend.is_available(),
                "status_source": monitor.config.status_source.value,
                "last_update": last.timestamp.isoformat() if last else None,
            }
        )

    logger.info("Services initialized")
    return app


def start_background_tasks(app: Flask) -> None:
    """Start the session monitor's polling loop.

    Args:
        app: Flask application.
    """
    monitor = app.extensions.get("session_monitor")
    if monitor is not None:
        monitor.start()


def main():
    """Run the Flask application."""
    logging.basicConfig(
        level=logging.INFO,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )

    app = create_app(os.environ.get("CLAUDE_TRACKER_CONFIG", "config.yaml"))
    config = app.extensions["config"]

    start_background_tasks(app)

    logger.info(f"Starting Claude Tracker on port {config.port}")
    app.run(host="127.0.0.1", port=config.port, debug=config.debug, threaded=True, use_reloader=False)


if __name__ == "__main__":
    main()
