"""Helpers that fill in a story before the script is generated.

Idea suggestions, auto-generated character profiles and reference-photo
analysis. Only the two character actions here may rewrite a visual
signature.
"""

import logging
import time
from typing import Optional

from storystudio.config import settings
from storystudio.orchestrator.state import merge_scene, update_character
from storystudio.prompts.consistency import (
    build_analysis_prompt,
    build_characters_prompt,
    build_ideas_prompt,
)
from storystudio.schemas.story import (
    Character,
    CharacterProfiles,
    Project,
    StoryIdeas,
)
from storystudio.services.audio_codec import to_data_url
from storystudio.services.llm import GenerativeClient
from storystudio.services.retry import RetryPolicy

logger = logging.getLogger(__name__)


async def generate_story_ideas(
    client: GenerativeClient,
    category: str,
    language: str,
    retry_policy: Optional[RetryPolicy] = None,
) -> StoryIdeas:
    policy = retry_policy or RetryPolicy.from_settings()
    prompt = build_ideas_prompt(category, language)
    return await policy.run(
        lambda: client.generate_json(
            prompt, StoryIdeas, temperature=settings.pipeline.ideas_temperature,
        )
    )


def apply_story_ideas(project: Project, ideas: StoryIdeas) -> Project:
    """Copy suggested fields onto the story config; unset suggestions are skipped."""
    changes = {"premise": ideas.premise, "setting": ideas.setting}
    if ideas.pacing:
        changes["pacing"] = ideas.pacing
    if ideas.plot_twist:
        changes["plot_twist"] = ideas.plot_twist
    config = project.config.model_copy(update=changes)
    return project.model_copy(update={"config": config})


async def generate_character_profiles(
    client: GenerativeClient,
    premise: str,
    setting: str,
    count: int,
    language: str,
    retry_policy: Optional[RetryPolicy] = None,
) -> list[Character]:
    """Ask the model for a cast with detailed visual signatures.

    Ids are assigned locally; the model never chooses them.
    """
    policy = retry_policy or RetryPolicy.from_settings()
    prompt = build_characters_prompt(premise, setting, count, language)
    profiles = await policy.run(
        lambda: client.generate_json(
            prompt, CharacterProfiles, temperature=settings.pipeline.ideas_temperature,
        )
    )
    stamp = int(time.time() * 1000)
    characters = [
        Character(
            id=f"char_{stamp}_{i}",
            name=p.name,
            role=p.role,
            visual_signature=p.description,
        )
        for i, p in enumerate(profiles.characters)
    ]
    logger.info("Generated %d character profiles", len(characters))
    return characters


async def analyze_character_image(
    client: GenerativeClient,
    project: Project,
    character_id: str,
    image_bytes: bytes,
    mime_type: str = "image/jpeg",
    retry_policy: Optional[RetryPolicy] = None,
) -> Project:
    """Describe a reference photo and make it the character's signature.

    The photo itself is stored on the character as a data URL.

    Raises:
        KeyError: Unknown character id
        ValueError: The vision model returned no description
    """
    # Fail before the service call if the id is wrong
    if not any(c.id == character_id for c in project.config.characters):
        raise KeyError(f"Unknown character id: {character_id}")

    policy = retry_policy or RetryPolicy.from_settings()
    prompt = build_analysis_prompt(project.config.language)
    description = await policy.run(
        lambda: client.analyze_image(image_bytes, prompt, mime_type=mime_type)
    )
    # An empty answer must not wipe the stored signature
    if not description or not description.strip():
        raise ValueError("Image analysis returned no description")
    return update_character(
        project,
        character_id,
        visual_signature=description.strip(),
        image=to_data_url(image_bytes, mime_type),
    )


def set_scene_image_upload(project: Project, index: int, data: bytes, mime_type: str) -> Project:
    """Put a user-supplied image into a scene's image slot."""
    return merge_scene(project, index, {"image_url": to_data_url(data, mime_type)})
