"""
Alpha Prompt Generator — Exports
Plain-text and JSON renderings of the prompts held in wizard state.
Nothing here touches the network or the filesystem.
"""
import json

from prompt_service import join_prompts

TEXT_FILENAME = "alpha-prompts.txt"
JSON_FILENAME = "alpha-prompts.json"

TEXT_HEADER = "--- ALPHA PROMPT GENERATOR ---"


def format_scene_prompts(prompts, field):
    """Render prompts as 'SCENE n' blocks separated by blank lines."""
    return "\n\n".join(f"SCENE {p['scene']}\n{p[field]}" for p in prompts or [])


def build_text_export(image_prompts, video_prompts=None):
    """Scene-numbered image prompts, followed by video prompts when there are any."""
    lines = [TEXT_HEADER, "", "--- IMAGE PROMPTS ---", ""]
    lines.append(format_scene_prompts(image_prompts, "image_prompt"))

    if video_prompts:
        lines += ["", "", "--- VIDEO PROMPTS ---", ""]
        lines.append(format_scene_prompts(video_prompts, "video_prompt"))

    return "\n".join(lines)


def build_json_export(json_prompts):
    return json.dumps(json_prompts, indent=2, ensure_ascii=False)


def build_combined_preview(image_prompts, video_prompts):
    """Image and video prompts joined per scene; video is None where missing."""
    return json.dumps(join_prompts(image_prompts, video_prompts, missing=None), indent=2, ensure_ascii=False)
