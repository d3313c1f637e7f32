"""Per-scene media generation: narration audio, scene image and video clip.

Each job reads one scene from a project snapshot and returns an update
dict naming exactly one media slot. Jobs never touch project state; the
caller merges the update (see orchestrator.state.merge_scene).

Usage:
    from storystudio.pipeline.scene_media import generate_scene_image

    update = await generate_scene_image(client, project, 0)
    project = merge_scene(project, 0, update)
"""

import asyncio
import logging
from typing import Awaitable, Callable, Optional

from storystudio.config import settings
from storystudio.prompts.consistency import build_image_prompt, match_active_characters
from storystudio.schemas.story import Project, Scene
from storystudio.services.audio_codec import (
    b64decode_chunked,
    b64encode_chunked,
    encode_wav,
    to_data_url,
)
from storystudio.services.llm import GenerativeClient, ImageResult, MissingCredentialsError
from storystudio.services.retry import RetryPolicy

logger = logging.getLogger(__name__)

# Prebuilt TTS voice per narrator type
VOICE_NAMES = {
    "man_deep": "Charon",
    "man_soft": "Puck",
    "man_drama": "Fenrir",
    "woman": "Kore",
    "child": "Puck",
}
DEFAULT_VOICE = "Charon"

# Video models only render landscape or portrait
_PORTRAIT_RATIOS = {"9:16", "4:5", "3:4"}


class SceneJobError(RuntimeError):
    """A single scene's media job failed; other scenes are unaffected."""


class VideoTimeoutError(SceneJobError):
    """The video operation did not finish within the poll budget."""


def voice_name_for(voice_type: str) -> str:
    return VOICE_NAMES.get(voice_type, DEFAULT_VOICE)


def _scene_at(project: Project, index: int) -> Scene:
    if project.output is None:
        raise SceneJobError("Generate a script first.")
    scenes = project.output.scenes
    if not 0 <= index < len(scenes):
        raise SceneJobError(f"Scene index {index} out of range (0-{len(scenes) - 1})")
    return scenes[index]


def _parse_data_url(url: str) -> ImageResult:
    """Split 'data:<mime>;base64,<payload>' into bytes and mime type."""
    header, _, payload = url.partition(",")
    mime_type = "image/png"
    if header.startswith("data:"):
        mime_type = header[5:].split(";", 1)[0] or mime_type
    return ImageResult(data=b64decode_chunked(payload), mime_type=mime_type)


# ---------------------------------------------------------------------------
# Audio
# ---------------------------------------------------------------------------
async def generate_scene_audio(
    client: GenerativeClient,
    project: Project,
    index: int,
    retry_policy: Optional[RetryPolicy] = None,
) -> dict[str, str]:
    """Synthesize one scene's narration as a base64 WAV.

    Returns:
        {"audio_data": <base64 WAV>}
    """
    scene = _scene_at(project, index)
    if not scene.narrative.strip():
        raise SceneJobError(f"Scene {scene.scene_number} has no narration")

    policy = retry_policy or RetryPolicy.from_settings()
    voice = voice_name_for(project.voice_config.voice_type)
    speech = await policy.run(lambda: client.synthesize_speech(scene.narrative, voice))

    wav = encode_wav(speech.pcm, speech.sample_rate or settings.pipeline.sample_rate)
    logger.info(
        "Scene %d: %d bytes of narration with voice %s",
        scene.scene_number, len(wav), voice,
    )
    return {"audio_data": b64encode_chunked(wav)}


# ---------------------------------------------------------------------------
# Image
# ---------------------------------------------------------------------------
async def generate_with_fallback(
    attempt: Callable[[str], Awaitable[ImageResult]],
    primary_model: str,
    fallback_model: str,
    policy: RetryPolicy,
) -> ImageResult:
    """Try the primary tier, then the fallback tier.

    Each tier runs under its own retry budget. Any primary failure other
    than missing credentials falls through to the fallback tier; a
    fallback failure propagates.
    """
    try:
        return await policy.run(lambda: attempt(primary_model))
    except MissingCredentialsError:
        raise
    except Exception as e:
        if fallback_model == primary_model:
            raise
        logger.warning("%s failed: %s. Falling back to %s.", primary_model, e, fallback_model)
    return await policy.run(lambda: attempt(fallback_model))


async def generate_scene_image(
    client: GenerativeClient,
    project: Project,
    index: int,
    retry_policy: Optional[RetryPolicy] = None,
) -> dict[str, str]:
    """Render one scene with every active character's signature injected.

    Returns:
        {"image_url": <data URL>}
    """
    scene = _scene_at(project, index)
    active = match_active_characters(scene.character_names, project.config.characters)
    prompt = build_image_prompt(scene.image_prompt, project.image_style, active)
    aspect_ratio = project.media_settings.aspect_ratio

    logger.info(
        "Scene %d: image with %d active character(s): %s",
        scene.scene_number, len(active), ", ".join(c.name for c in active) or "-",
    )
    image = await generate_with_fallback(
        lambda model: client.generate_image(prompt, aspect_ratio, model),
        primary_model=project.media_settings.image_model,
        fallback_model=settings.models.image_fallback,
        policy=retry_policy or RetryPolicy.from_settings(),
    )
    return {"image_url": to_data_url(image.data, image.mime_type)}


# ---------------------------------------------------------------------------
# Video
# ---------------------------------------------------------------------------
def video_aspect_ratio(aspect_ratio: str) -> str:
    return "9:16" if aspect_ratio in _PORTRAIT_RATIOS else "16:9"


def build_video_prompt(scene: Scene) -> str:
    return f"{scene.motion_prompt.strip()}\n\nScene: {scene.image_prompt.strip()}"


async def generate_scene_video(
    client: GenerativeClient,
    project: Project,
    index: int,
    retry_policy: Optional[RetryPolicy] = None,
    poll_interval: Optional[float] = None,
    max_seconds: Optional[float] = None,
    sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
) -> dict[str, str]:
    """Animate one scene, seeded from its image when one exists.

    Submits a long-running video operation and polls it at a fixed
    interval until it finishes or the wall-clock budget runs out.

    Returns:
        {"video_data": <base64 MP4>}

    Raises:
        VideoTimeoutError: Budget exhausted before the operation finished
        SceneJobError: The operation finished with an error or no video
    """
    scene = _scene_at(project, index)
    policy = retry_policy or RetryPolicy.from_settings()
    interval = poll_interval if poll_interval is not None else settings.pipeline.video_poll_interval
    budget = max_seconds if max_seconds is not None else settings.pipeline.video_poll_max_seconds
    max_polls = max(1, int(budget // interval)) if interval > 0 else 1

    seed = _parse_data_url(scene.image_url) if scene.image_url else None
    prompt = build_video_prompt(scene)
    operation_name = await policy.run(
        lambda: client.start_video(
            prompt,
            seed,
            resolution=settings.pipeline.video_resolution,
            aspect_ratio=video_aspect_ratio(project.media_settings.aspect_ratio),
        )
    )
    logger.info("Scene %d: video operation %s submitted", scene.scene_number, operation_name)

    for poll_attempt in range(max_polls):
        poll = await policy.run(lambda: client.poll_video(operation_name))
        if poll.done:
            if poll.error:
                raise SceneJobError(f"Video generation failed: {poll.error}")
            if not poll.video_bytes:
                raise SceneJobError("Video generation failed: no video data in response")
            logger.info(
                "Scene %d: video ready after %d poll(s)",
                scene.scene_number, poll_attempt + 1,
            )
            return {"video_data": b64encode_chunked(poll.video_bytes)}
        await sleep(interval)

    raise VideoTimeoutError(
        f"Video operation did not complete after {max_polls * interval:g} seconds"
    )
