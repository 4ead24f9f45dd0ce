"""Authentication routes: passcode login, logout, health check."""

from urllib.parse import urlparse

from flask import Blueprint, jsonify, redirect, render_template, request, url_for

from eduplan.web.blueprints.helpers import end_session, get_controller, rotate_session

auth_bp = Blueprint("auth", __name__)


def _is_safe_url(target):
    """Validate that a redirect URL is safe (relative, same-origin)."""
    if not target:
        return False
    parsed = urlparse(target)
    return not parsed.scheme and not parsed.netloc and not target.startswith("//")


@auth_bp.route("/login", methods=["GET", "POST"])
def login():
    """Check the teacher passcode on POST, render the login page on GET."""
    controller = get_controller()
    if controller.state.logged_in:
        return redirect(url_for("planner.index"), code=303)

    if request.method == "POST":
        if controller.login(request.form.get("passcode", "")):
            rotate_session(controller)
            next_url = request.args.get("next", "")
            if not _is_safe_url(next_url):
                next_url = url_for("planner.index")
            return redirect(next_url, code=303)
        return render_template("login.html", error=True), 401

    return render_template("login.html", error=controller.state.login_error)


@auth_bp.route("/login/clear-error", methods=["POST"])
def clear_login_error():
    """Called as the teacher types again after a rejected passcode."""
    get_controller().clear_login_error()
    return jsonify({"ok": True})


@auth_bp.route("/logout", methods=["POST"])
def logout():
    """Clear the session (history is kept) and go back to the login page."""
    get_controller().logout()
    end_session()
    return redirect(url_for("auth.login"), code=303)


@auth_bp.route("/health")
def health():
    """Health check endpoint for monitoring and Docker."""
    return jsonify({"status": "ok", "service": "eduplan"})
