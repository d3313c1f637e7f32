"""Gemini adapter tests with the SDK client replaced by a stub."""

import base64
from types import SimpleNamespace

import pytest

from storystudio.config import settings
from storystudio.services import genai_client
from storystudio.services.genai_client import MissingCredentialsError, resolve_api_key
from storystudio.services.llm import gemini_adapter
from storystudio.services.llm.gemini_adapter import GeminiAdapter, _sample_rate_from_mime


class StubModels:
    def __init__(self, response):
        self.response = response
        self.requests = []

    async def generate_content(self, **kwargs):
        self.requests.append(kwargs)
        return self.response


def _install(monkeypatch, response) -> StubModels:
    models = StubModels(response)
    stub = SimpleNamespace(aio=SimpleNamespace(models=models))
    monkeypatch.setattr(gemini_adapter, "get_genai_client", lambda api_key=None: stub)
    return models


def _inline(data: bytes, mime_type: str):
    part = SimpleNamespace(inline_data=SimpleNamespace(data=data, mime_type=mime_type))
    return SimpleNamespace(candidates=[SimpleNamespace(content=SimpleNamespace(parts=[part]))])


# ---------------------------------------------------------------------------
# Credentials
# ---------------------------------------------------------------------------

def test_01_project_key_overrides_default(monkeypatch):
    monkeypatch.setenv("GEMINI_API_KEY", "env-key")
    assert resolve_api_key("  project-key ") == "project-key"
    assert resolve_api_key(None) in ("env-key", settings.gemini.api_key)


def test_02_missing_key_raises(monkeypatch):
    monkeypatch.delenv("GEMINI_API_KEY", raising=False)
    monkeypatch.delenv("GOOGLE_API_KEY", raising=False)
    monkeypatch.setattr(settings.gemini, "api_key", None)
    monkeypatch.setattr(genai_client, "_clients", {})

    with pytest.raises(MissingCredentialsError):
        genai_client.get_genai_client(None)


# ---------------------------------------------------------------------------
# Adapter
# ---------------------------------------------------------------------------

def test_03_sample_rate_from_mime():
    assert _sample_rate_from_mime("audio/L16;codec=pcm;rate=16000") == 16000
    assert _sample_rate_from_mime("audio/L16") == 24000
    assert _sample_rate_from_mime(None) == 24000


@pytest.mark.asyncio
async def test_04_speech_returns_pcm_and_rate(monkeypatch):
    _install(monkeypatch, _inline(b"\x01\x00\x02\x00", "audio/L16;codec=pcm;rate=24000"))

    speech = await GeminiAdapter("k").synthesize_speech("hello", "Kore")

    assert speech.pcm == b"\x01\x00\x02\x00"
    assert speech.sample_rate == 24000


@pytest.mark.asyncio
async def test_05_image_size_only_for_pro_tier(monkeypatch):
    models = _install(monkeypatch, _inline(base64.b64encode(b"img").decode(), "image/png"))
    adapter = GeminiAdapter("k")

    pro = await adapter.generate_image("a fox", "9:16", "gemini-3-pro-image-preview")
    await adapter.generate_image("a fox", "9:16", "gemini-2.5-flash-image")

    assert pro.data == b"img"
    assert pro.mime_type == "image/png"
    pro_config, flash_config = (r["config"].image_config for r in models.requests)
    assert pro_config.image_size == "1K"
    assert flash_config.image_size is None
    assert flash_config.aspect_ratio == "9:16"


@pytest.mark.asyncio
async def test_06_image_without_data_raises(monkeypatch):
    _install(monkeypatch, SimpleNamespace(candidates=[]))

    with pytest.raises(ValueError, match="No image data returned"):
        await GeminiAdapter("k").generate_image("a fox", "1:1", "gemini-2.5-flash-image")


@pytest.mark.asyncio
async def test_07_analysis_without_text_raises(monkeypatch):
    _install(monkeypatch, SimpleNamespace(text="   "))

    with pytest.raises(ValueError, match="No description returned"):
        await GeminiAdapter("k").analyze_image(b"\xff\xd8", "describe")
