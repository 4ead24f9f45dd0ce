"""Shared utilities for EduPlan blueprint modules."""

import functools
import logging

from flask import current_app, flash, g, redirect, request, url_for
from flask import session as flask_session

from eduplan.errors import EduPlanError
from eduplan.factory import build_controller
from eduplan.web.controllers import TOKEN_KEY

logger = logging.getLogger(__name__)


def _registry():
    return current_app.extensions["eduplan_controllers"]


def _request_credential():
    """Credential selection callback: the route redirects to the settings page."""
    g.credential_requested = True


def get_controller():
    """Return this browser session's controller, creating it on first use."""
    registry = _registry()
    token = flask_session.get(TOKEN_KEY)
    controller = registry.get(token) if token else None
    if controller is None:
        controller = build_controller(
            current_app.config["APP_CONFIG"],
            current_app.config["DB_ENGINE"],
            session_scope=flask_session,
            on_credential_request=_request_credential,
        )
        flask_session[TOKEN_KEY] = registry.add(controller)
    else:
        controller.refresh_history()
    return controller


def rotate_session(controller):
    """Regenerate the Flask session after login to prevent fixation."""
    registry = _registry()
    old_token = flask_session.get(TOKEN_KEY)
    flask_session.clear()
    flask_session[TOKEN_KEY] = registry.rekey(old_token, controller)
    controller.store.save_session(controller.state.session)


def end_session():
    """Forget this browser session's controller and clear the cookie."""
    token = flask_session.get(TOKEN_KEY)
    if token:
        _registry().discard(token)
    flask_session.clear()


def flash_error(exception):
    """Log an EduPlan error and flash its user-safe message."""
    logger.info("%s: %s", type(exception).__name__, exception)
    flash(exception.user_message, "error")


def finish(controller, endpoint="planner.index", **values):
    """Redirect after a controller operation.

    Goes to the credential page when the operation asked for one, and
    turns a pending notice into a flashed error.
    """
    if g.pop("credential_requested", False):
        flash("Conecte a IA para continuar.", "warning")
        return redirect(url_for("settings.credential"), code=303)
    if controller.state.notice:
        flash(controller.state.notice, "error")
        controller.dismiss_notice()
    return redirect(url_for(endpoint, **values), code=303)


def login_required(f):
    """Decorator to require login for a route; sets ``g.controller``."""

    @functools.wraps(f)
    def decorated_function(*args, **kwargs):
        controller = get_controller()
        if not controller.state.logged_in:
            return redirect(url_for("auth.login", next=request.path), code=303)
        g.controller = controller
        return f(*args, **kwargs)

    return decorated_function


def run_operation(operation, *args, **kwargs):
    """Call a controller operation, flashing EduPlan errors instead of raising."""
    try:
        return operation(*args, **kwargs)
    except EduPlanError as e:
        flash_error(e)
        return None
