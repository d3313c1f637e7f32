"""Abstract base class for generative service adapters.

Defines the async capability contract consumed by every generation job:
script text, speech, images, image analysis and long-running video.
Adapters perform exactly one service call per method; retry and model
fallback are layered on top by the jobs.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Optional, Type, TypeVar

from pydantic import BaseModel

from storystudio.schemas.story import ScriptDraft

M = TypeVar("M", bound=BaseModel)


@dataclass(frozen=True)
class SpeechResult:
    """Headerless signed 16-bit little-endian mono PCM."""

    pcm: bytes
    sample_rate: int


@dataclass(frozen=True)
class ImageResult:
    data: bytes
    mime_type: str


@dataclass(frozen=True)
class VideoPoll:
    """Snapshot of a long-running video operation."""

    done: bool
    video_bytes: Optional[bytes] = None
    error: Optional[str] = None


class GenerativeClient(ABC):
    """Capability interface to the external generative service."""

    @abstractmethod
    async def generate_script(
        self,
        prompt: str,
        *,
        system_instruction: Optional[str] = None,
        temperature: float = 0.85,
    ) -> ScriptDraft:
        """Generate a story script as strict structured JSON.

        Raises:
            pydantic.ValidationError: If the response does not match the
                script schema.
        """
        ...

    @abstractmethod
    async def generate_json(
        self,
        prompt: str,
        schema: Type[M],
        *,
        temperature: float = 0.9,
    ) -> M:
        """Generate structured output validated against a Pydantic schema."""
        ...

    @abstractmethod
    async def synthesize_speech(self, text: str, voice_name: str) -> SpeechResult:
        """Synthesize narration with a prebuilt voice."""
        ...

    @abstractmethod
    async def generate_image(self, prompt: str, aspect_ratio: str, model: str) -> ImageResult:
        """Generate a single image with the given model tier."""
        ...

    @abstractmethod
    async def analyze_image(
        self,
        image_bytes: bytes,
        prompt: str,
        *,
        mime_type: str = "image/jpeg",
    ) -> str:
        """Describe an image in free text."""
        ...

    @abstractmethod
    async def start_video(
        self,
        prompt: str,
        seed_image: Optional[ImageResult],
        *,
        resolution: str,
        aspect_ratio: str,
    ) -> str:
        """Submit a video job and return its operation name."""
        ...

    @abstractmethod
    async def poll_video(self, operation_name: str) -> VideoPoll:
        """Fetch the current state of a video operation."""
        ...
