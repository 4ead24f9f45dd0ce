"""Flask blueprints for the EduPlan web frontend."""

from eduplan.web.blueprints.auth import auth_bp
from eduplan.web.blueprints.camera import camera_bp
from eduplan.web.blueprints.planner import planner_bp
from eduplan.web.blueprints.settings import settings_bp


def register_blueprints(app):
    """Register all blueprint modules on the Flask app."""
    app.register_blueprint(auth_bp)
    app.register_blueprint(planner_bp)
    app.register_blueprint(camera_bp)
    app.register_blueprint(settings_bp)
