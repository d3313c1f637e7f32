"""Gemini API client wrapper using google-genai SDK.

Clients are keyed by API key so a per-project override and the process
default can coexist in one session.

Usage:
    from storystudio.services.genai_client import get_genai_client

    client = get_genai_client()                 # process default key
    client = get_genai_client(project.api_key)  # per-project override
"""

import os
from typing import Optional

from dotenv import load_dotenv
from google import genai

from storystudio.config import settings

# Load .env for GEMINI_API_KEY / GOOGLE_API_KEY
load_dotenv()

# Per-key client cache
_clients: dict[str, genai.Client] = {}


class MissingCredentialsError(RuntimeError):
    """No API key in the project or the process environment."""


def resolve_api_key(override: Optional[str] = None) -> str:
    """Return the key to use: project override, then process default.

    Raises:
        MissingCredentialsError: If neither source provides a key.
    """
    for candidate in (
        override,
        settings.gemini.api_key,
        os.getenv("GEMINI_API_KEY"),
        os.getenv("GOOGLE_API_KEY"),
    ):
        if candidate and candidate.strip():
            return candidate.strip()
    raise MissingCredentialsError(
        "Missing API key. Set one on the project or export GEMINI_API_KEY."
    )


def get_genai_client(api_key: Optional[str] = None) -> genai.Client:
    """Get or create a Gemini API client for the resolved key.

    Resolution happens on each call, so a missing credential surfaces at
    first use rather than at startup.
    """
    key = resolve_api_key(api_key)
    if key not in _clients:
        _clients[key] = genai.Client(api_key=key)
    return _clients[key]
