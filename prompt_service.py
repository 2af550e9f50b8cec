"""
Alpha Prompt Generator — Prompt Service
Uses Google Gemini API to summarize a script and to write image, video and
structured JSON prompts for each of its scenes.

Every call is a single round trip: no retries, no caching. Structured
responses are validated against the models in schemas.py before they are
returned, and anything that does not validate is a ServiceError.
"""
import os
import json
import base64
from pathlib import Path

from pydantic import ValidationError

# Google GenAI SDK
from google import genai
from google.genai import types

import schemas

# Models
GEMINI_MODEL = "gemini-2.5-flash"

# Placeholder for image prompts with no matching video prompt
MISSING_VIDEO_PROMPT = "N/A"

# Paths
BASE_DIR = Path(__file__).parent
CONFIG_PATH = BASE_DIR / "config" / "generator.json"

_client = None


class ServiceError(Exception):
    """Gemini could not produce a usable response."""


def load_config():
    """Load generator configuration (model, temperatures, token limits)."""
    with open(CONFIG_PATH) as f:
        return json.load(f)


def init_client():
    """Initialize the Google GenAI client."""
    global _client
    if _client is None:
        api_key = (
            os.environ.get("GEMINI_API_KEY")
            or os.environ.get("GOOGLE_API_KEY")
            or os.environ.get("API_KEY")
        )
        if not api_key:
            raise ValueError("GEMINI_API_KEY or GOOGLE_API_KEY must be set")
        _client = genai.Client(api_key=api_key)
    return _client


def _operation_settings(name):
    """Return (model, temperature, max_tokens) for one operation."""
    cfg = load_config()
    op = cfg.get("operations", {}).get(name, {})
    model = os.environ.get("GEMINI_MODEL") or cfg.get("model", GEMINI_MODEL)
    return model, op.get("temperature", 0.7), op.get("max_output_tokens", 8000)


def _block_reason(response):
    """Describe why a response came back without text."""
    candidates = getattr(response, "candidates", None)
    if candidates:
        c = candidates[0]
        reason = f"finish_reason={getattr(c, 'finish_reason', '?')}"
        ratings = getattr(c, "safety_ratings", None)
        if ratings:
            reason += f" safety={[(str(r.category), str(r.probability)) for r in ratings]}"
        return reason
    feedback = getattr(response, "prompt_feedback", None)
    if feedback:
        return f"prompt_feedback={feedback}"
    return "unknown"


def generate_text(contents, temperature=0.7, max_tokens=1024, model=None):
    """Generate plain text with Gemini."""
    client = init_client()
    model = model or GEMINI_MODEL

    response = client.models.generate_content(
        model=model,
        contents=contents,
        config=types.GenerateContentConfig(
            temperature=temperature,
            max_output_tokens=max_tokens,
        )
    )

    text = response.text
    if not text or not text.strip():
        reason = _block_reason(response)
        print(f"[prompt_service] Empty text response. Block reason: {reason}")
        raise ValueError(f"Gemini returned empty response. Reason: {reason}")
    return text.strip()


def generate_structured(contents, adapter, schema, temperature=0.3, max_tokens=8000, model=None):
    """
    Generate JSON with Gemini constrained to `schema`, then validate it.

    Args:
        contents: Prompt text, or a list of prompt text and image parts
        adapter: pydantic TypeAdapter used for local validation
        schema: Type passed to Gemini as response_schema
        temperature: Sampling temperature
        max_tokens: Output token limit
        model: Model override

    Returns:
        List of plain dicts, exactly as validated
    """
    client = init_client()
    model = model or GEMINI_MODEL

    response = client.models.generate_content(
        model=model,
        contents=contents,
        config=types.GenerateContentConfig(
            temperature=temperature,
            max_output_tokens=max_tokens,
            response_mime_type="application/json",
            response_schema=schema,
        )
    )

    text = response.text
    if text is None:
        reason = _block_reason(response)
        print(f"[prompt_service] Empty JSON response. Block reason: {reason}")
        raise ValueError(f"Gemini returned empty response. Reason: {reason}")

    try:
        items = adapter.validate_json(text.strip())
    except ValidationError as e:
        print(f"[prompt_service] Response failed validation ({len(text)} chars): {e.error_count()} error(s)")
        raise
    return adapter.dump_python(items)


# =============================================================================
# SCRIPT SUMMARY
# =============================================================================

def summarize_script(script):
    """Describe the main theme or subject of `script` in one sentence."""
    prompt = (
        "In one sentence, analyze the following script and describe its main theme or subject. "
        f'Script: "{script}"'
    )
    try:
        model, temperature, max_tokens = _operation_settings("summary")
        return generate_text(prompt, temperature=temperature, max_tokens=max_tokens, model=model)
    except Exception as e:
        print(f"[prompt_service] Error summarizing script: {e}")
        raise ServiceError("Failed to communicate with the AI for script summarization.") from e


# =============================================================================
# IMAGE PROMPTS
# =============================================================================

def _build_image_prompt(script, scene_count, style):
    return f"""You are an expert film director and prompt engineer. Your task is to break down a script into a specific number of scenes and generate exceptionally detailed and creative prompts for an AI image generator.

**Script:**
"{script}"

**Instructions:**
1. Analyze the script and divide it into exactly {scene_count} distinct, logical scenes, numbered from 1 to {scene_count}.
2. For each scene, create a very detailed **Image Prompt** in an infographic style, similar to prompts for Leonardo or MidJourney.
3. Each Image Prompt must be a rich, descriptive paragraph of at least 40 words. Describe the visual elements, composition, colors, and overall aesthetic in a way that an AI image generator can create a high-quality, visually appealing infographic.
4. If a text style is provided, infuse it into every single Image Prompt. Style: "{style}".
5. If a reference image is provided, analyze its artistic style (e.g., color palette, lighting, composition, texture) and apply that style meticulously to every prompt.
6. Return the output as a JSON array."""


def generate_image_prompts(script, scene_count, style, style_image=None):
    """
    Split `script` into `scene_count` scenes and write an image prompt for each.

    Args:
        script: The user's script
        scene_count: Number of scenes to request
        style: Free-text style to infuse into every prompt (may be empty)
        style_image: Optional {"base64", "mime_type"} reference image

    Returns:
        List of {"scene": int, "image_prompt": str}
    """
    contents = [_build_image_prompt(script, scene_count, style)]
    try:
        model, temperature, max_tokens = _operation_settings("image_prompts")
        if style_image:
            contents.append(types.Part.from_bytes(
                data=base64.b64decode(style_image["base64"]),
                mime_type=style_image["mime_type"],
            ))
        prompts = generate_structured(
            contents, schemas.IMAGE_PROMPTS, list[schemas.ImagePrompt],
            temperature=temperature, max_tokens=max_tokens, model=model,
        )
    except Exception as e:
        print(f"[prompt_service] Error generating image prompts: {e}")
        raise ServiceError("Failed to generate image prompts from the AI.") from e

    if len(prompts) != scene_count:
        print(f"[prompt_service] WARNING: asked for {scene_count} scenes, got {len(prompts)}")
    return prompts


# =============================================================================
# VIDEO PROMPTS
# =============================================================================

def _build_video_prompt(image_prompts):
    return f"""You are an expert video animator. Based on the following set of detailed image prompts, generate a corresponding cinematic, motion-based descriptive **Video Prompt** for each scene.

**Image Prompts:**
{json.dumps(image_prompts, indent=2, ensure_ascii=False)}

**Instructions:**
1. For each scene, create one corresponding video prompt in the style of advanced video generation models like Kling AI or Hailuo AI. Keep the scene number of the image prompt it animates.
2. Describe dynamic camera movements (e.g., dolly zoom, crane shot, tracking shot), character actions, environmental effects (e.g., wind, rain), and seamless transitions to create a visually stunning and coherent video sequence.
3. Return the output as a JSON array."""


def generate_video_prompts(image_prompts):
    """Write one video prompt per scene, using the image prompts as context."""
    try:
        model, temperature, max_tokens = _operation_settings("video_prompts")
        return generate_structured(
            _build_video_prompt(image_prompts), schemas.VIDEO_PROMPTS, list[schemas.VideoPrompt],
            temperature=temperature, max_tokens=max_tokens, model=model,
        )
    except Exception as e:
        print(f"[prompt_service] Error generating video prompts: {e}")
        raise ServiceError("Failed to generate video prompts from the AI.") from e


# =============================================================================
# STRUCTURED JSON PROMPTS
# =============================================================================

def join_prompts(image_prompts, video_prompts, missing=MISSING_VIDEO_PROMPT):
    """
    Pair every image prompt with the video prompt of the same scene.

    Always returns exactly one record per image prompt; scenes without a
    video prompt get `missing` instead.
    """
    by_scene = {}
    for vp in video_prompts or []:
        by_scene.setdefault(vp["scene"], vp["video_prompt"])

    return [
        {
            "scene": ip["scene"],
            "image_prompt": ip["image_prompt"],
            "video_prompt": by_scene.get(ip["scene"], missing),
        }
        for ip in image_prompts
    ]


def _build_json_prompt(combined):
    return f"""You are a meticulous data architect. Your task is to convert a series of scene descriptions (image and video prompts) into a structured JSON format. Analyze the provided prompts for each scene and extract the key details.

**Scene Prompts:**
{json.dumps(combined, indent=2, ensure_ascii=False)}

**Instructions:**
1. For each scene, create a single JSON object.
2. Populate the properties based on the details in the prompts. Infer reasonable values where necessary (e.g., duration, resolution).
3. The 'elements' property should be an array of objects, each describing a key visual component in the scene.
4. Return the output as a JSON array of these objects."""


def generate_json_prompts(image_prompts, video_prompts):
    """Turn the joined image/video prompts into structured per-scene records."""
    combined = join_prompts(image_prompts, video_prompts)
    try:
        model, temperature, max_tokens = _operation_settings("json_prompts")
        return generate_structured(
            _build_json_prompt(combined), schemas.JSON_PROMPTS, list[schemas.JsonPrompt],
            temperature=temperature, max_tokens=max_tokens, model=model,
        )
    except Exception as e:
        print(f"[prompt_service] Error generating JSON prompts: {e}")
        raise ServiceError("Failed to generate structured JSON prompts from the AI.") from e
