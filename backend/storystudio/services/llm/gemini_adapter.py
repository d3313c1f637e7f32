"""Gemini adapter for the generative client abstraction.

Wraps the google-genai async client. Each method issues a single request;
callers add RetryPolicy and model-tier fallback around it.
"""

import logging
import re
from typing import Optional, Type

import httpx
from google.genai import types as genai_types

from storystudio.config import settings
from storystudio.schemas.story import ScriptDraft
from storystudio.services.audio_codec import DEFAULT_SAMPLE_RATE, b64decode_chunked
from storystudio.services.genai_client import get_genai_client, resolve_api_key
from storystudio.services.llm.base import (
    GenerativeClient,
    ImageResult,
    M,
    SpeechResult,
    VideoPoll,
)

logger = logging.getLogger(__name__)

_S = genai_types.Schema
_T = genai_types.Type

# Strict script schema; every scene field is required.
SCRIPT_RESPONSE_SCHEMA = _S(
    type=_T.OBJECT,
    properties={
        "title": _S(type=_T.STRING),
        "summary": _S(type=_T.STRING),
        "scenes": _S(
            type=_T.ARRAY,
            items=_S(
                type=_T.OBJECT,
                properties={
                    "sceneNumber": _S(type=_T.INTEGER),
                    "narrative": _S(
                        type=_T.STRING,
                        description="The story text for narration.",
                    ),
                    "characterNames": _S(
                        type=_T.ARRAY,
                        items=_S(type=_T.STRING),
                        description="Names of characters present in this scene.",
                    ),
                    "imagePrompt": _S(
                        type=_T.STRING,
                        description="A standalone visual description. Describe the action "
                        "and setting. Use Character Names.",
                    ),
                    "motionPrompt": _S(
                        type=_T.STRING,
                        description="Technical instructions for camera movement and "
                        "character action.",
                    ),
                },
                required=["sceneNumber", "narrative", "imagePrompt", "motionPrompt", "characterNames"],
            ),
        ),
    },
    required=["title", "summary", "scenes"],
)

_RATE_RE = re.compile(r"rate=(\d+)")


def _sample_rate_from_mime(mime_type: Optional[str]) -> int:
    """Extract rate from e.g. 'audio/L16;codec=pcm;rate=24000'."""
    match = _RATE_RE.search(mime_type or "")
    return int(match.group(1)) if match else DEFAULT_SAMPLE_RATE


def _inline_bytes(data) -> bytes:
    if isinstance(data, str):
        return b64decode_chunked(data)
    return bytes(data)


class GeminiAdapter(GenerativeClient):
    """Generative client backed by the Gemini API (google-genai SDK).

    The API key is resolved per call so a missing credential is reported
    at first use, not at construction.
    """

    def __init__(self, api_key: Optional[str] = None) -> None:
        """Initialize adapter.

        Args:
            api_key: Per-project key override. Falls back to the process
                default when None.
        """
        self._api_key = api_key

    def _client(self):
        return get_genai_client(self._api_key)

    async def generate_script(
        self,
        prompt: str,
        *,
        system_instruction: Optional[str] = None,
        temperature: float = 0.85,
    ) -> ScriptDraft:
        response = await self._client().aio.models.generate_content(
            model=settings.models.script_llm,
            contents=prompt,
            config=genai_types.GenerateContentConfig(
                system_instruction=system_instruction,
                response_mime_type="application/json",
                response_schema=SCRIPT_RESPONSE_SCHEMA,
                temperature=temperature,
            ),
        )
        if not response.text:
            raise ValueError("No text returned from Gemini.")
        return ScriptDraft.model_validate_json(response.text)

    async def generate_json(
        self,
        prompt: str,
        schema: Type[M],
        *,
        temperature: float = 0.9,
    ) -> M:
        response = await self._client().aio.models.generate_content(
            model=settings.models.script_llm,
            contents=prompt,
            config=genai_types.GenerateContentConfig(
                response_mime_type="application/json",
                response_schema=schema,
                temperature=temperature,
            ),
        )
        if not response.text:
            raise ValueError("No structured output returned from Gemini.")
        return schema.model_validate_json(response.text)

    async def synthesize_speech(self, text: str, voice_name: str) -> SpeechResult:
        response = await self._client().aio.models.generate_content(
            model=settings.models.tts,
            contents=text,
            config=genai_types.GenerateContentConfig(
                response_modalities=["AUDIO"],
                speech_config=genai_types.SpeechConfig(
                    voice_config=genai_types.VoiceConfig(
                        prebuilt_voice_config=genai_types.PrebuiltVoiceConfig(
                            voice_name=voice_name,
                        )
                    )
                ),
            ),
        )
        for candidate in response.candidates or []:
            for part in candidate.content.parts or []:
                if part.inline_data and part.inline_data.data:
                    return SpeechResult(
                        pcm=_inline_bytes(part.inline_data.data),
                        sample_rate=_sample_rate_from_mime(part.inline_data.mime_type),
                    )
        raise ValueError("No audio returned from Gemini.")

    async def generate_image(self, prompt: str, aspect_ratio: str, model: str) -> ImageResult:
        image_config = genai_types.ImageConfig(aspect_ratio=aspect_ratio)
        if "pro" in model:
            image_config = genai_types.ImageConfig(aspect_ratio=aspect_ratio, image_size="1K")

        response = await self._client().aio.models.generate_content(
            model=model,
            contents=prompt,
            config=genai_types.GenerateContentConfig(
                response_modalities=["IMAGE"],
                image_config=image_config,
            ),
        )
        for candidate in response.candidates or []:
            for part in candidate.content.parts or []:
                if part.inline_data and part.inline_data.data:
                    return ImageResult(
                        data=_inline_bytes(part.inline_data.data),
                        mime_type=part.inline_data.mime_type or "image/png",
                    )
        raise ValueError("No image data returned.")

    async def analyze_image(
        self,
        image_bytes: bytes,
        prompt: str,
        *,
        mime_type: str = "image/jpeg",
    ) -> str:
        image_part = genai_types.Part.from_bytes(data=image_bytes, mime_type=mime_type)
        response = await self._client().aio.models.generate_content(
            model=settings.models.vision,
            contents=[image_part, prompt],
        )
        description = (response.text or "").strip()
        if not description:
            raise ValueError("No description returned from Gemini.")
        return description

    async def start_video(
        self,
        prompt: str,
        seed_image: Optional[ImageResult],
        *,
        resolution: str,
        aspect_ratio: str,
    ) -> str:
        image = None
        if seed_image is not None:
            image = genai_types.Image(image_bytes=seed_image.data, mime_type=seed_image.mime_type)
        operation = await self._client().aio.models.generate_videos(
            model=settings.models.video,
            prompt=prompt,
            image=image,
            config=genai_types.GenerateVideosConfig(
                aspect_ratio=aspect_ratio,
                resolution=resolution,
                number_of_videos=1,
            ),
        )
        logger.info("Submitted video operation %s", operation.name)
        return operation.name

    async def poll_video(self, operation_name: str) -> VideoPoll:
        op_obj = genai_types.GenerateVideosOperation(name=operation_name)
        operation = await self._client().aio.operations.get(operation=op_obj)
        if not operation.done:
            return VideoPoll(done=False)
        if operation.error:
            return VideoPoll(done=True, error=str(operation.error))

        response = operation.response
        videos = (response.generated_videos or []) if response else []
        if not videos or videos[0].video is None:
            filtered = getattr(response, "rai_media_filtered_count", None) if response else None
            if filtered:
                return VideoPoll(done=True, error="Content filtered by responsible AI")
            return VideoPoll(done=True, error="No video data in response")

        video = videos[0].video
        if video.video_bytes:
            return VideoPoll(done=True, video_bytes=video.video_bytes)
        return VideoPoll(done=True, video_bytes=await self._download(video.uri))

    async def _download(self, uri: str) -> bytes:
        """Fetch a generated video file; the Files API needs the key header."""
        headers = {"x-goog-api-key": resolve_api_key(self._api_key)}
        async with httpx.AsyncClient(follow_redirects=True, timeout=120.0) as http:
            response = await http.get(uri, headers=headers)
            response.raise_for_status()
            return response.content
