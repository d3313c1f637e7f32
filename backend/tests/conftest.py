"""Shared fixtures: a scripted generative client and ready-made projects.

No test touches the network. The fake client records every call and
replays queued responses or errors.
"""

from collections import defaultdict, deque
from typing import Optional

import pytest

from storystudio.schemas.story import (
    Character,
    ImageStyleConfig,
    Project,
    ScriptDraft,
    ScriptScene,
    StoryConfig,
    StoryIdeas,
    VoiceConfig,
)
from storystudio.services.llm import GenerativeClient, ImageResult, SpeechResult, VideoPoll
from storystudio.services.retry import RetryPolicy

LINA_SIGNATURE = "young woman, short silver hair, green eyes, red scarf"
VOSS_SIGNATURE = "elderly man, white beard, round spectacles, grey lab coat"


async def _no_sleep(_seconds: float) -> None:
    return None


class FakeClient(GenerativeClient):
    """GenerativeClient double with per-capability response queues.

    Queue an Exception instance to make that call raise it.
    """

    def __init__(self):
        self.calls: list[tuple] = []
        self.scripts: deque = deque()
        self.json_responses: deque = deque()
        self.speech: deque = deque()
        self.image_errors: dict[str, deque] = defaultdict(deque)
        self.analysis: deque = deque()
        self.video_polls: deque = deque()
        self.fail_speech_for: set[str] = set()

    @staticmethod
    def _next(queue: deque, default=None):
        item = queue.popleft() if queue else default
        if isinstance(item, Exception):
            raise item
        return item

    def calls_to(self, name: str) -> list[tuple]:
        return [c for c in self.calls if c[0] == name]

    async def generate_script(self, prompt, *, system_instruction=None, temperature=0.85):
        self.calls.append(("generate_script", prompt, system_instruction))
        return self._next(self.scripts)

    async def generate_json(self, prompt, schema, *, temperature=0.9):
        self.calls.append(("generate_json", prompt, schema))
        return self._next(self.json_responses)

    async def synthesize_speech(self, text, voice_name):
        self.calls.append(("synthesize_speech", text, voice_name))
        if text in self.fail_speech_for:
            raise ValueError("No audio returned from Gemini.")
        return self._next(self.speech, SpeechResult(pcm=b"\x01\x00\xff\x7f", sample_rate=24000))

    async def generate_image(self, prompt, aspect_ratio, model):
        self.calls.append(("generate_image", prompt, aspect_ratio, model))
        self._next(self.image_errors[model])
        return ImageResult(data=f"png:{model}".encode(), mime_type="image/png")

    async def analyze_image(self, image_bytes, prompt, *, mime_type="image/jpeg"):
        self.calls.append(("analyze_image", image_bytes, prompt, mime_type))
        return self._next(self.analysis, "Detailed character description.")

    async def start_video(self, prompt, seed_image, *, resolution, aspect_ratio):
        self.calls.append(("start_video", prompt, seed_image, resolution, aspect_ratio))
        return "operations/video-1"

    async def poll_video(self, operation_name):
        self.calls.append(("poll_video", operation_name))
        return self._next(self.video_polls, VideoPoll(done=False))


def make_draft(count: int = 3, names: Optional[list[list[str]]] = None) -> ScriptDraft:
    names = names or [["Lina"], ["Lina", "Dr. Voss"], []][:count]
    while len(names) < count:
        names.append([])
    return ScriptDraft(
        title="The Clockwork Garden",
        summary="Lina uncovers Dr. Voss's secret.",
        scenes=[
            ScriptScene(
                scene_number=i * 10,
                narrative=f"Narration {i}",
                image_prompt=f"Cinematic Realistic style, Cinematic Volumetric lighting, shot {i}",
                motion_prompt="Slow pan right",
                character_names=names[i - 1],
            )
            for i in range(1, count + 1)
        ],
    )


def make_project(scene_count: int = 3, **overrides) -> Project:
    config = StoryConfig(
        language="en",
        category="mystery",
        title="The Clockwork Garden",
        premise="A gardener finds a mechanical rose",
        setting="Victorian greenhouse",
        scene_count=scene_count,
        characters=[
            Character(id="char_lina", name="Lina", role="protagonist", visual_signature=LINA_SIGNATURE),
            Character(id="char_voss", name="Dr. Voss", role="antagonist", visual_signature=VOSS_SIGNATURE),
        ],
    )
    fields = dict(
        config=config,
        voice_config=VoiceConfig(voice_type="woman", language="en"),
        image_style=ImageStyleConfig(),
    )
    fields.update(overrides)
    return Project(**fields)


def make_scripted_project(scene_count: int = 3) -> Project:
    project = make_project(scene_count)
    return project.model_copy(update={"output": make_draft(scene_count).to_story_output()})


@pytest.fixture
def fake_client() -> FakeClient:
    return FakeClient()


@pytest.fixture
def no_wait_policy() -> RetryPolicy:
    return RetryPolicy(max_retries=3, initial_delay=1.0, sleep=_no_sleep)


@pytest.fixture
def project() -> Project:
    return make_project()


@pytest.fixture
def scripted_project() -> Project:
    return make_scripted_project()


@pytest.fixture
def ideas() -> StoryIdeas:
    return StoryIdeas(premise="A lighthouse that remembers", setting="Stormy coast", pacing="slow")
