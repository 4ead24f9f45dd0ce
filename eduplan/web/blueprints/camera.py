"""Camera routes: open, live preview, capture (device or browser frame), close."""

import base64
import binascii

from flask import (
    Blueprint,
    Response,
    current_app,
    flash,
    g,
    redirect,
    render_template,
    request,
    stream_with_context,
    url_for,
)

from eduplan.web.blueprints.helpers import finish, login_required, run_operation

camera_bp = Blueprint("camera", __name__)


def _camera_source():
    return current_app.config["APP_CONFIG"].get("camera", {}).get("source", "browser")


def _read_uploaded_frame():
    """Return the posted frame bytes from a file field or a data URL."""
    upload = request.files.get("image")
    if upload is not None and upload.filename:
        return upload.read()

    data_url = request.form.get("frame", "")
    if not data_url:
        return None
    payload = data_url.split(",", 1)[1] if data_url.startswith("data:") else data_url
    try:
        return base64.b64decode(payload, validate=True)
    except (binascii.Error, ValueError):
        return None


@camera_bp.route("/camera/open", methods=["POST"])
@login_required
def open_camera():
    """Open the camera for topic extraction or test grading."""
    controller = g.controller
    opened = run_operation(controller.open_camera, request.form.get("intent", "extract-topic"))
    if not opened:
        return finish(controller)
    return redirect(url_for("camera.camera_page"), code=303)


@camera_bp.route("/camera")
@login_required
def camera_page():
    state = g.controller.state
    if state.capture_intent is None:
        return redirect(url_for("planner.index"), code=303)
    return render_template("camera.html", intent=state.capture_intent.value, source=_camera_source())


@camera_bp.route("/camera/feed")
@login_required
def feed():
    """MJPEG live preview from a device camera."""
    camera = g.controller.camera

    def generate():
        for jpeg in camera.preview_frames():
            yield b"--frame\r\nContent-Type: image/jpeg\r\n\r\n" + jpeg + b"\r\n"

    return Response(stream_with_context(generate()), mimetype="multipart/x-mixed-replace; boundary=frame")


@camera_bp.route("/camera/capture", methods=["POST"])
@login_required
def capture():
    """Snapshot the device camera and route the frame by intent."""
    controller = g.controller
    result = run_operation(controller.capture)
    _flash_capture_result(controller, result)
    return finish(controller)


@camera_bp.route("/camera/upload", methods=["POST"])
@login_required
def upload():
    """Accept a frame captured in the browser and route it by intent."""
    controller = g.controller
    frame_bytes = _read_uploaded_frame()
    if frame_bytes is None:
        controller.close_camera()
        flash("Nenhuma imagem recebida.", "error")
        return finish(controller)
    result = run_operation(controller.capture, frame_bytes)
    _flash_capture_result(controller, result)
    return finish(controller)


@camera_bp.route("/camera/close", methods=["POST"])
@login_required
def close():
    """Close the camera; the device is released whatever its phase."""
    g.controller.close_camera()
    if request.form.get("denied"):
        flash("Acesso à câmera negado.", "error")
    return finish(g.controller)


def _flash_capture_result(controller, result):
    if result is None:
        return
    if controller.state.grading_result is not None:
        flash("Correção concluída.", "success")
    else:
        flash("Texto extraído para o conteúdo da aula.", "success")
