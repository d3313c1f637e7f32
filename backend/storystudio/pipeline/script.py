"""Script generation using Gemini structured output.

Transforms a project's story configuration into an ordered list of scenes,
each with narration, an image prompt naming its characters, a motion
prompt and the list of characters present.

Usage:
    from storystudio.pipeline.script import generate_script

    output = await generate_script(client, project)
    project = project.model_copy(update={"output": output})
"""

import logging
from typing import Optional

from storystudio.config import settings
from storystudio.prompts.consistency import (
    build_script_prompt,
    build_script_system_instruction,
)
from storystudio.schemas.story import Project, StoryOutput
from storystudio.services.llm import GenerativeClient
from storystudio.services.retry import RetryPolicy

logger = logging.getLogger(__name__)


class ScriptGenerationError(RuntimeError):
    """The script could not be produced; no partial script exists."""


async def generate_script(
    client: GenerativeClient,
    project: Project,
    retry_policy: Optional[RetryPolicy] = None,
) -> StoryOutput:
    """Generate the scene script for a project.

    The project itself is never modified; the caller decides whether to
    attach the returned output.

    Args:
        client: Generative service client
        project: Project whose config, voice and style drive the prompt
        retry_policy: Transient-failure policy (defaults from settings)

    Returns:
        StoryOutput with exactly config.scene_count scenes numbered from 1
        and all media slots empty.

    Raises:
        ScriptGenerationError: On any service, parse or shape failure.
    """
    policy = retry_policy or RetryPolicy.from_settings()
    config = project.config

    prompt = build_script_prompt(config, project.voice_config, project.image_style)
    system_instruction = build_script_system_instruction(config, project.voice_config)

    try:
        draft = await policy.run(
            lambda: client.generate_script(
                prompt,
                system_instruction=system_instruction,
                temperature=settings.pipeline.script_temperature,
            )
        )
    except Exception as e:
        logger.error("Project %s: script generation failed: %s", project.id, e)
        raise ScriptGenerationError(f"Script generation failed: {e}") from e

    if len(draft.scenes) != config.scene_count:
        logger.error(
            "Project %s: expected %d scenes, model returned %d",
            project.id, config.scene_count, len(draft.scenes),
        )
        raise ScriptGenerationError(
            f"Script generation failed: expected {config.scene_count} scenes, "
            f"got {len(draft.scenes)}"
        )

    output = draft.to_story_output()
    logger.info(
        "Project %s: script '%s' with %d scenes",
        project.id, output.title, len(output.scenes),
    )
    return output
