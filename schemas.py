"""
Alpha Prompt Generator — Response Schemas

Pydantic models for the structured output requested from Gemini.
Each model is passed as response_schema and validated locally before
anything is merged into wizard state.
"""
from pydantic import BaseModel, ConfigDict, Field, TypeAdapter


class ImagePrompt(BaseModel):
    """One scene of the script and its image-generator prompt."""

    model_config = ConfigDict(strict=True)

    scene: int = Field(ge=1, description="The scene number, starting from 1.")
    image_prompt: str = Field(
        min_length=1,
        description="The highly detailed, infographic-style prompt for the AI image generator.",
    )


class VideoPrompt(BaseModel):
    """Motion prompt matching an image prompt by scene number."""

    model_config = ConfigDict(strict=True)

    scene: int = Field(ge=1, description="The scene number, starting from 1.")
    video_prompt: str = Field(
        min_length=1,
        description="The corresponding cinematic, motion-based prompt for the AI video generator.",
    )


class JsonPromptElement(BaseModel):
    model_config = ConfigDict(strict=True)

    type: str = Field(description="The type of element (e.g., map, character, icon, text).")
    description: str = Field(description="A detailed description of the element.")


class JsonPrompt(BaseModel):
    """Structured record for one scene, built from its image and video prompts."""

    model_config = ConfigDict(strict=True)

    scene: int = Field(ge=1)
    scene_description: str = Field(
        description="A concise summary of the scene's content from the image prompt."
    )
    style: str = Field(
        description="The overall visual style (e.g., Minimalistic infographic, cinematic, hyperrealistic)."
    )
    camera_motion: str = Field(
        description="The specific camera movement or animation from the video prompt."
    )
    elements: list[JsonPromptElement] = Field(description="Key visual elements in the scene.")
    duration: str = Field(description="An estimated duration for the video clip, e.g., '8 seconds'.")
    resolution: str = Field(description="The target resolution, e.g., '4K', '1080p'.")


IMAGE_PROMPTS = TypeAdapter(list[ImagePrompt])
VIDEO_PROMPTS = TypeAdapter(list[VideoPrompt])
JSON_PROMPTS = TypeAdapter(list[JsonPrompt])
