"""Pydantic models for story projects.

Every model is frozen: a change to a project is a new value built with
``model_copy(update=...)``, never an in-place field assignment. JSON uses
camelCase keys so exported projects stay readable by the web studio.
"""

import time
import uuid
from typing import Literal, Optional

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from storystudio.config import settings

Language = Literal["ar", "en", "fr", "es", "de"]
Pacing = Literal["slow", "balanced", "fast"]
PlotTwist = Literal["none", "mild", "shocking"]
CharacterRole = Literal["protagonist", "antagonist", "supporting"]
VoiceType = Literal["man_deep", "man_soft", "man_drama", "woman", "child"]
AspectRatio = Literal["16:9", "9:16", "1:1", "4:5", "3:4", "4:3"]

# Scene fields that generation jobs may fill; everything else is script text.
MEDIA_SLOTS = ("audio_data", "image_url", "video_data")


def _now_ms() -> int:
    return int(time.time() * 1000)


class StoryModel(BaseModel):
    """Base for all persisted story models."""

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        frozen=True,
        extra="ignore",
    )


class Character(StoryModel):
    """A recurring character and its canonical appearance.

    visual_signature is the single source of truth injected into every
    image prompt the character appears in.
    """

    id: str = Field(default_factory=lambda: f"char_{uuid.uuid4().hex[:12]}")
    name: str
    role: CharacterRole = "supporting"
    visual_signature: str = Field(default="", alias="description")
    image: Optional[str] = None


class StoryConfig(StoryModel):
    language: Language = "ar"
    category: str = ""
    title: str = ""
    premise: str = ""
    setting: str = ""
    pacing: Pacing = "balanced"
    plot_twist: PlotTwist = "mild"
    characters: list[Character] = Field(default_factory=list)
    scene_count: int = Field(default=3, ge=1, le=10)
    character_count: int = Field(default=2, ge=1, le=5)


class VoiceConfig(StoryModel):
    voice_type: VoiceType = "man_soft"
    tone: str = "calm"
    accent: str = "neutral"
    language: Language = "ar"


class ImageStyleConfig(StoryModel):
    """Global style vector applied to every scene image."""

    art_style: str = "Cinematic Realistic"
    camera_angle: str = "Wide Shot"
    lighting: str = "Cinematic Volumetric"
    color_grade: str = "Vibrant"
    character_look: str = "Detailed Realistic"
    clothing_style: str = "Modern Casual"


class MediaSettings(StoryModel):
    aspect_ratio: AspectRatio = "16:9"
    image_model: str = Field(default_factory=lambda: settings.models.image_primary)


class Scene(StoryModel):
    """One scripted scene plus its independently generated media slots."""

    scene_number: int
    narrative: str
    image_prompt: str
    motion_prompt: str
    character_names: list[str] = Field(default_factory=list)
    # Media slots: base64 WAV, image data URL, base64 MP4
    audio_data: Optional[str] = None
    image_url: Optional[str] = None
    video_data: Optional[str] = None


class StoryOutput(StoryModel):
    title: str
    summary: str
    scenes: list[Scene]


class ScriptScene(StoryModel):
    """Scene exactly as the script model must return it (all fields required)."""

    scene_number: int
    narrative: str
    image_prompt: str
    motion_prompt: str
    character_names: list[str]


class ScriptDraft(StoryModel):
    """Raw structured response of the script generation call."""

    title: str
    summary: str
    scenes: list[ScriptScene]

    def to_story_output(self) -> StoryOutput:
        """Number scenes densely from 1 in response order, media slots empty."""
        return StoryOutput(
            title=self.title,
            summary=self.summary,
            scenes=[
                Scene(
                    scene_number=i,
                    narrative=s.narrative,
                    image_prompt=s.image_prompt,
                    motion_prompt=s.motion_prompt,
                    character_names=list(s.character_names),
                )
                for i, s in enumerate(self.scenes, start=1)
            ],
        )


class StoryIdeas(StoryModel):
    """Auto-fill suggestions for the story core."""

    premise: str
    setting: str
    pacing: Optional[Pacing] = None
    plot_twist: Optional[PlotTwist] = None


class CharacterProfile(StoryModel):
    name: str
    role: CharacterRole
    description: str


class CharacterProfiles(StoryModel):
    characters: list[CharacterProfile]


class Project(StoryModel):
    """Unit of persistence: configuration, script output and credentials."""

    id: str = Field(default_factory=lambda: uuid.uuid4().hex)
    title: Optional[str] = None
    created_at: int = Field(default_factory=_now_ms)
    last_saved: Optional[int] = None
    config: StoryConfig = Field(default_factory=StoryConfig)
    output: Optional[StoryOutput] = None
    media_settings: MediaSettings = Field(default_factory=MediaSettings)
    image_style: ImageStyleConfig = Field(default_factory=ImageStyleConfig)
    voice_config: VoiceConfig = Field(default_factory=VoiceConfig)
    api_key: Optional[str] = None
