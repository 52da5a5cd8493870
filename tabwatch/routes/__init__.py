"""Flask routes for iTerm Tab Watch."""

from tabwatch.routes.events import events_bp
from tabwatch.routes.slots import slots_bp
from tabwatch.routes.tabs import tabs_bp

__all__ = [
    "events_bp",
    "slots_bp",
    "tabs_bp",
]


def register_blueprints(app):
    """Register all blueprints with the Flask app.

    Args:
        app: The Flask application instance.
    """
    app.register_blueprint(events_bp, url_prefix="/api")
    app.register_blueprint(slots_bp, url_prefix="/api")
    app.register_blueprint(tabs_bp, url_prefix="/api")
