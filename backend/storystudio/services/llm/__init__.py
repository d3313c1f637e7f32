"""Generative service abstraction layer.

Provides a unified async interface for script, speech, image, image
analysis and video generation.

Usage:
    from storystudio.services.llm import get_client, GenerativeClient

    client = get_client(project.api_key)
    draft = await client.generate_script(prompt)
"""

from typing import Optional

from storystudio.services.genai_client import MissingCredentialsError
from storystudio.services.llm.base import (
    GenerativeClient,
    ImageResult,
    SpeechResult,
    VideoPoll,
)


def get_client(api_key: Optional[str] = None) -> GenerativeClient:
    """Return the Gemini-backed client for an optional per-project key."""
    from storystudio.services.llm.gemini_adapter import GeminiAdapter

    return GeminiAdapter(api_key=api_key)


__all__ = [
    "GenerativeClient",
    "ImageResult",
    "MissingCredentialsError",
    "SpeechResult",
    "VideoPoll",
    "get_client",
]
