"""Flask routes for Claude Tracker."""

from claude_tracker.routes.captures import captures_bp
from claude_tracker.routes.config import config_bp
from claude_tracker.routes.events import events_bp
from claude_tracker.routes.sessions import sessions_bp

__all__ = [
    "captures_bp",
    "config_bp",
    "events_bp",
    "sessions_bp",
]


def register_blueprints(app):
    """Register all blueprints with the Flask app.

    Args:
        app: The Flask application instance.
    """
    app.register_blueprint(captures_bp, url_prefix="/api")
    app.register_blueprint(config_bp, url_prefix="/api")
    app.register_blueprint(events_bp, url_prefix="/api")
    app.register_blueprint(sessions_bp, url_prefix="/api")
