"""
Alpha Prompt Generator — Step Views
One template per wizard step, plus the input-layer helpers the style and
pacing forms need. Views only read state; every change goes through the
WizardController.
"""
import io
import base64

from flask import render_template
from PIL import Image as PILImage, UnidentifiedImageError

import wizard
import exports

STEP_TEMPLATES = {
    wizard.SCRIPT_INPUT: "step_script.html",
    wizard.SCENE_PACING: "step_pacing.html",
    wizard.STYLE_INPUT: "step_style.html",
    wizard.LOADING: "step_loading.html",
    wizard.IMAGE_PROMPTS_RESULTS: "step_image_results.html",
    wizard.VIDEO_PROMPTS_LOADING: "step_loading.html",
    wizard.VIDEO_PROMPTS_RESULTS: "step_video_results.html",
    wizard.JSON_PROMPTS_LOADING: "step_loading.html",
    wizard.JSON_PROMPTS_RESULTS: "step_json_results.html",
}

LOADING_MESSAGES = [
    "Warming up the director's chair...",
    "Consulting with the AI cinematographer...",
    "Storyboarding your scenes...",
    "Adjusting the virtual camera lenses...",
    "Adding a touch of cinematic magic...",
    "Finalizing the shot list...",
]
IMAGE_ANALYSIS_MESSAGE = "Analyzing your style reference image..."

# (title, fixed message) for the later loading steps
LOADING_SCREENS = {
    wizard.VIDEO_PROMPTS_LOADING: ("Generating Videos", "Crafting cinematic video prompts..."),
    wizard.JSON_PROMPTS_LOADING: ("Structuring Data", "Building the detailed JSON output..."),
}

SCRIPT_PLACEHOLDER = (
    "e.g., A lone astronaut drifts through the silent void, tethered to a damaged ship. "
    "Below, the marbled blue of Earth hangs like a distant memory..."
)
STYLE_PLACEHOLDER = "e.g., Cinematic, hyperrealistic, 8k, volumetric lighting"
UPLOAD_HINT = "PNG, JPG, WEBP up to 10MB"


# =============================================================================
# INPUT HELPERS
# =============================================================================

def clamp_scene_count(value):
    """Parse a scene count from form input; anything below 1 or non-numeric is 1."""
    try:
        count = int(float(str(value).strip()))
    except (ValueError, OverflowError):
        return 1
    return max(count, 1)


def encode_style_image(file_storage):
    """
    Read an uploaded reference image.

    Returns:
        Tuple of ({"base64", "mime_type"}, raw bytes)
    """
    data = file_storage.read()
    if not data:
        raise wizard.WizardError("The selected file is empty.")
    try:
        with PILImage.open(io.BytesIO(data)) as img:
            image_format = img.format
    except (UnidentifiedImageError, OSError) as e:
        print(f"[views] Could not read uploaded image {file_storage.filename!r}: {e}")
        raise wizard.WizardError("Could not read the selected image file.") from e

    mime_type = PILImage.MIME.get(image_format) or file_storage.mimetype or "application/octet-stream"
    style_image = {
        "base64": base64.b64encode(data).decode("utf-8"),
        "mime_type": mime_type,
    }
    return style_image, data


def attach_upload(previews, current, style_image, data, file_name):
    """Replace the pending upload, releasing the preview it supersedes."""
    release_upload(previews, current)
    return {
        "image": style_image,
        "file_name": file_name,
        "preview": previews.create(data, style_image["mime_type"]),
    }


def release_upload(previews, upload):
    if upload:
        previews.release(upload.get("preview"))


def restore_upload(previews, style_image):
    """Rebuild a pending upload from an image already stored in state."""
    data = base64.b64decode(style_image["base64"])
    return attach_upload(previews, None, style_image, data, "Reference image")


# =============================================================================
# RENDERING
# =============================================================================

def step_context(state, upload=None):
    """Template variables for the current step."""
    step = state["step"]
    ctx = {"state": state, "step": step, "steps": wizard}

    if step == wizard.SCRIPT_INPUT:
        ctx["placeholder"] = SCRIPT_PLACEHOLDER
    elif step == wizard.STYLE_INPUT:
        ctx["placeholder"] = STYLE_PLACEHOLDER
        ctx["upload"] = upload
        ctx["upload_hint"] = UPLOAD_HINT
    elif step in wizard.LOADING_STEPS:
        if step in LOADING_SCREENS:
            title, message = LOADING_SCREENS[step]
            ctx.update(title=title, messages=[message])
        else:
            messages = list(LOADING_MESSAGES)
            if state["style_image"]:
                messages.insert(0, IMAGE_ANALYSIS_MESSAGE)
            ctx.update(title="Generating Prompts", messages=messages)
    elif step == wizard.IMAGE_PROMPTS_RESULTS:
        ctx["image_text"] = exports.format_scene_prompts(state["image_prompts"], "image_prompt")
    elif step == wizard.VIDEO_PROMPTS_RESULTS:
        ctx["image_text"] = exports.format_scene_prompts(state["image_prompts"], "image_prompt")
        ctx["video_text"] = exports.format_scene_prompts(state["video_prompts"], "video_prompt")
        ctx["combined_json"] = exports.build_combined_preview(state["image_prompts"], state["video_prompts"])
    elif step == wizard.JSON_PROMPTS_RESULTS:
        ctx["json_text"] = exports.build_json_export(state["json_prompts"])

    return ctx


def render_step(state, upload=None):
    return render_template(STEP_TEMPLATES[state["step"]], **step_context(state, upload))
