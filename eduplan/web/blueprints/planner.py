"""Planner routes: plan form, generation, history, view toggle, tests."""

from flask import Blueprint, abort, g, jsonify, render_template, request

from eduplan.models import LessonPlanRequest
from eduplan.store import HISTORY_VERSION
from eduplan.web.blueprints.helpers import finish, login_required, run_operation

planner_bp = Blueprint("planner", __name__)

_REQUEST_FIELDS = ("subject", "grade", "topic", "duration", "planning_type")


@planner_bp.route("/")
@login_required
def index():
    """Render the plan form, or the selected plan in its current view."""
    state = g.controller.state
    return render_template(
        "planner.html",
        state=state,
        plan=state.current_plan,
        draft=state.draft,
        history=state.history,
        tier=state.session.tier.value,
    )


@planner_bp.route("/plans", methods=["POST"])
@login_required
def submit_plan():
    """Generate a lesson plan from the submitted form."""
    controller = g.controller
    draft = controller.state.draft
    fields = {name: request.form.get(name, getattr(draft, name)).strip() for name in _REQUEST_FIELDS}
    run_operation(controller.submit_plan_request, LessonPlanRequest(**fields))
    return finish(controller)


@planner_bp.route("/plans/new", methods=["POST"])
@login_required
def new_plan():
    g.controller.new_plan()
    return finish(g.controller)


@planner_bp.route("/plans/<plan_id>")
@login_required
def select_plan(plan_id):
    """Open a plan from the saved history."""
    try:
        g.controller.select_plan(plan_id)
    except KeyError:
        abort(404)
    return finish(g.controller)


@planner_bp.route("/plans/view", methods=["POST"])
@login_required
def set_view():
    run_operation(g.controller.set_view, request.form.get("view", "plan"))
    return finish(g.controller)


@planner_bp.route("/plans/test", methods=["POST"])
@login_required
def request_test():
    """Generate an objective or subjective test for the current plan."""
    controller = g.controller
    run_operation(controller.request_test, request.form.get("kind", ""))
    return finish(controller)


@planner_bp.route("/plans/grading/clear", methods=["POST"])
@login_required
def clear_grading():
    g.controller.clear_grading_result()
    return finish(g.controller)


@planner_bp.route("/plans/history.json")
@login_required
def history_json():
    """Export the saved history in its persisted layout."""
    plans = [p.to_dict() for p in g.controller.state.history]
    return jsonify({"version": HISTORY_VERSION, "plans": plans})
