"""
Alpha Prompt Generator — Flask Application
Step-by-step wizard: script → scene count → style → image, video and
structured JSON prompts, all written by Gemini.
"""
import os
import json
import time
import uuid
import threading
from collections import OrderedDict

from flask import Flask, request, jsonify, Response, redirect, url_for, session
from dotenv import load_dotenv

import prompt_service
import wizard
import views
import exports
from previews import PreviewStore

load_dotenv()

app = Flask(__name__)
app.secret_key = os.environ.get("SECRET_KEY", "alpha-dev-key")

# Overridable for tests: the object exposing the four prompt operations,
# and how background work is started.
app.config.setdefault("PROMPT_SERVICE", prompt_service)
app.config.setdefault("WIZARD_SPAWN", None)

app.config.setdefault("MAX_SESSIONS", int(os.environ.get("MAX_SESSIONS", 500)))

# Per-browser wizard sessions, in memory only, least recently used first
_sessions = OrderedDict()
_sessions_lock = threading.Lock()
previews = PreviewStore()


# =============================================================================
# HELPERS
# =============================================================================

def _new_wizard_session():
    return {
        "controller": wizard.WizardController(
            app.config["PROMPT_SERVICE"], spawn=app.config["WIZARD_SPAWN"]
        ),
        "upload": None,
        "restore_upload": False,
        # Guards upload and restore_upload
        "lock": threading.Lock(),
    }


def _drop_upload(ws):
    views.release_upload(previews, ws["upload"])
    ws["upload"] = None
    ws["restore_upload"] = False


def find_wizard_session():
    """The current browser's wizard session, or None if it has none yet."""
    sid = session.get("wizard_id")
    if not sid:
        return None
    with _sessions_lock:
        ws = _sessions.get(sid)
        if ws is not None:
            _sessions.move_to_end(sid)
    return ws


def get_wizard_session():
    """Get or create the wizard session for the current browser."""
    ws = find_wizard_session()
    if ws is not None:
        return ws

    ws = _new_wizard_session()
    sid = uuid.uuid4().hex
    session["wizard_id"] = sid
    evicted = []
    with _sessions_lock:
        _sessions[sid] = ws
        while len(_sessions) > app.config["MAX_SESSIONS"]:
            old_sid, old = _sessions.popitem(last=False)
            evicted.append(old)
            print(f"[app] Evicting wizard session {old_sid[:8]} ({len(_sessions)} active)")
    for old in evicted:
        with old["lock"]:
            _drop_upload(old)
    return ws


def current_state():
    """State for read-only routes; a browser without a session sees a fresh one."""
    ws = find_wizard_session()
    return ws["controller"].state if ws else wizard.initial_state()


def state_for_client(state):
    """State as JSON-safe dict, with reference image bytes left out."""
    data = dict(state)
    if data.get("style_image"):
        data["style_image"] = {"mime_type": data["style_image"]["mime_type"]}
    return data


def _back_to_wizard():
    return redirect(url_for("index"))


# =============================================================================
# ROUTES — Pages
# =============================================================================

@app.route("/")
def index():
    """Render whichever step the wizard is on."""
    ws = find_wizard_session()
    if ws is None:
        return views.render_step(wizard.initial_state())
    state = ws["controller"].state
    with ws["lock"]:
        if state["step"] == wizard.STYLE_INPUT and ws["restore_upload"]:
            # Back on the style step after submitting: offer the same image again
            ws["restore_upload"] = False
            if ws["upload"] is None and state["style_image"]:
                ws["upload"] = views.restore_upload(previews, state["style_image"])
        upload = ws["upload"]
    return views.render_step(state, upload)


# =============================================================================
# ROUTES — Wizard transitions
# =============================================================================

@app.route("/script", methods=["POST"])
def submit_script():
    ws = get_wizard_session()
    try:
        ws["controller"].submit_script(request.form.get("script", ""))
    except wizard.WizardError as e:
        ws["controller"].set_error(str(e))
    return _back_to_wizard()


@app.route("/pacing", methods=["POST"])
def submit_pacing():
    ws = get_wizard_session()
    count = views.clamp_scene_count(request.form.get("scene_count"))
    try:
        ws["controller"].submit_pacing(count)
    except wizard.WizardError as e:
        ws["controller"].set_error(str(e))
    return _back_to_wizard()


@app.route("/style/image", methods=["POST"])
def upload_style_image():
    """Pick (or replace) the reference image without submitting the step."""
    ws = get_wizard_session()
    f = request.files.get("style_image")
    if not f or not f.filename:
        ws["controller"].set_error("No image file selected.")
        return _back_to_wizard()
    try:
        style_image, data = views.encode_style_image(f)
    except wizard.WizardError as e:
        ws["controller"].set_error(str(e))
        return _back_to_wizard()
    with ws["lock"]:
        ws["upload"] = views.attach_upload(previews, ws["upload"], style_image, data, f.filename)
    return _back_to_wizard()


@app.route("/style/image/remove", methods=["POST"])
def remove_style_image():
    ws = get_wizard_session()
    with ws["lock"]:
        _drop_upload(ws)
    return _back_to_wizard()


@app.route("/style/preview/<handle>")
def style_preview(handle):
    preview = previews.get(handle)
    if preview is None:
        return jsonify({"error": "Preview not found"}), 404
    data, mime_type = preview
    return Response(data, mimetype=mime_type, headers={"Cache-Control": "no-store"})


@app.route("/style", methods=["POST"])
def submit_style():
    ws = get_wizard_session()
    f = request.files.get("style_image")
    with ws["lock"]:
        try:
            if f and f.filename:
                style_image, data = views.encode_style_image(f)
                ws["upload"] = views.attach_upload(previews, ws["upload"], style_image, data, f.filename)
            image = ws["upload"]["image"] if ws["upload"] else None
            ws["controller"].submit_style(request.form.get("style", ""), image)
        except wizard.WizardError as e:
            ws["controller"].set_error(str(e))
            return _back_to_wizard()

        # The style step is done with its preview
        _drop_upload(ws)
        ws["restore_upload"] = True
    return _back_to_wizard()


@app.route("/video-prompts", methods=["POST"])
def request_video_prompts():
    ws = get_wizard_session()
    try:
        ws["controller"].request_video_prompts()
    except wizard.WizardError as e:
        ws["controller"].set_error(str(e))
    return _back_to_wizard()


@app.route("/json-prompts", methods=["POST"])
def request_json_prompts():
    ws = get_wizard_session()
    try:
        ws["controller"].request_json_prompts()
    except wizard.WizardError as e:
        ws["controller"].set_error(str(e))
    return _back_to_wizard()


@app.route("/back", methods=["POST"])
def go_back():
    ws = get_wizard_session()
    try:
        ws["controller"].go_back(request.form.get("target", ""))
    except wizard.WizardError as e:
        ws["controller"].set_error(str(e))
    return _back_to_wizard()


@app.route("/reset", methods=["POST"])
def reset():
    ws = get_wizard_session()
    with ws["lock"]:
        _drop_upload(ws)
    ws["controller"].reset()
    return _back_to_wizard()


# =============================================================================
# ROUTES — Exports
# =============================================================================

@app.route("/export/txt")
def export_text():
    """Download image (and video) prompts as a .txt file."""
    state = current_state()
    if not state["image_prompts"]:
        return jsonify({"error": "No image prompts yet"}), 404
    content = exports.build_text_export(state["image_prompts"], state["video_prompts"])
    return Response(
        content,
        mimetype="text/plain; charset=utf-8",
        headers={"Content-Disposition": f'attachment; filename="{exports.TEXT_FILENAME}"'}
    )


@app.route("/export/json")
def export_json():
    """Download the structured scene records as a .json file."""
    state = current_state()
    if state["json_prompts"] is None:
        return jsonify({"error": "No JSON prompts yet"}), 404
    return Response(
        exports.build_json_export(state["json_prompts"]),
        mimetype="application/json; charset=utf-8",
        headers={"Content-Disposition": f'attachment; filename="{exports.JSON_FILENAME}"'}
    )


# =============================================================================
# ROUTES — API
# =============================================================================

@app.route("/api/state")
def api_state():
    return jsonify(state_for_client(current_state()))


def _idle_snapshot():
    return 0, wizard.initial_state()


@app.route("/api/progress")
def progress_stream():
    """SSE endpoint: pushes the state on every change until loading ends."""
    ws = find_wizard_session()
    snapshot = ws["controller"].snapshot if ws else _idle_snapshot

    def generate():
        last_version = None
        heartbeat = 0

        while True:
            version, state = snapshot()
            if version != last_version:
                yield f"data: {json.dumps(state_for_client(state))}\n\n"
                last_version = version
                if state["step"] not in wizard.LOADING_STEPS and not state["is_loading"]:
                    return

            # Heartbeat every 15 seconds
            heartbeat += 1
            if heartbeat % 30 == 0:
                yield ": heartbeat\n\n"

            time.sleep(0.5)

    return Response(
        generate(),
        mimetype="text/event-stream",
        headers={
            "Cache-Control": "no-cache",
            "X-Accel-Buffering": "no"
        }
    )


# =============================================================================
# MAIN
# =============================================================================

if __name__ == "__main__":
    # No credential, no app
    prompt_service.init_client()
    port = int(os.environ.get("PORT", 5050))
    debug = os.environ.get("FLASK_ENV") == "development"
    app.run(host="0.0.0.0", port=port, debug=debug)
