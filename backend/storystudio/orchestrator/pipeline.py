"""Studio orchestrator binding a session to a generative client.

Coordinates the three user-facing stages:
- Story setup (ideas, characters, reference analysis)
- Script generation
- Per-scene media, singly or as sequential "generate all" batches

Single-scene failures become the session's displayable error; batch
failures are reported per scene and never stop the batch.
"""

import logging
from typing import Callable, Optional

from storystudio.orchestrator.state import StudioSession, replace_characters, update_character
from storystudio.pipeline.batch import BatchReport, run_scene_batch
from storystudio.pipeline.scene_media import (
    generate_scene_audio,
    generate_scene_image,
    generate_scene_video,
)
from storystudio.pipeline.script import generate_script
from storystudio.pipeline.story_setup import (
    analyze_character_image,
    apply_story_ideas,
    generate_character_profiles,
    generate_story_ideas,
)
from storystudio.schemas.story import Project
from storystudio.services.llm import GenerativeClient, get_client
from storystudio.services.retry import RetryPolicy

logger = logging.getLogger(__name__)

_FAILURE_LABELS = {
    "audio": "Audio failed",
    "image": "Image failed",
    "video": "Video failed",
}


class StudioPipeline:
    """High-level operations over one StudioSession."""

    def __init__(
        self,
        session: Optional[StudioSession] = None,
        client: Optional[GenerativeClient] = None,
        retry_policy: Optional[RetryPolicy] = None,
    ):
        self.session = session or StudioSession()
        self._client = client
        self.retry_policy = retry_policy or RetryPolicy.from_settings()

    @property
    def client(self) -> GenerativeClient:
        # Resolved lazily so a key set on the project after construction is used
        return self._client or get_client(self.session.project.api_key)

    @property
    def project(self) -> Project:
        return self.session.project

    # ------------------------------------------------------------------
    # Story setup
    # ------------------------------------------------------------------
    async def suggest_ideas(self) -> Project:
        epoch = self.session.epoch
        config = self.project.config
        ideas = await generate_story_ideas(
            self.client, config.category, config.language, retry_policy=self.retry_policy,
        )
        self.session.commit(epoch, lambda p: apply_story_ideas(p, ideas))
        return self.project

    async def auto_generate_characters(self) -> Project:
        epoch = self.session.epoch
        config = self.project.config
        characters = await generate_character_profiles(
            self.client,
            config.premise,
            config.setting,
            config.character_count,
            config.language,
            retry_policy=self.retry_policy,
        )
        self.session.commit(epoch, lambda p: replace_characters(p, characters))
        return self.project

    async def analyze_character(
        self,
        character_id: str,
        image_bytes: bytes,
        mime_type: str = "image/jpeg",
    ) -> Project:
        epoch = self.session.epoch
        updated = await analyze_character_image(
            self.client,
            self.project,
            character_id,
            image_bytes,
            mime_type=mime_type,
            retry_policy=self.retry_policy,
        )
        character = next(c for c in updated.config.characters if c.id == character_id)
        try:
            self.session.commit(
                epoch,
                lambda p: update_character(
                    p, character_id, visual_signature=character.visual_signature, image=character.image,
                ),
            )
        except KeyError:
            # The cast was replaced while the analysis ran
            logger.info("Discarding analysis for removed character %s", character_id)
        return self.project

    # ------------------------------------------------------------------
    # Script
    # ------------------------------------------------------------------
    async def generate_script(self) -> Project:
        """Generate and attach the script.

        Raises:
            ScriptGenerationError: After recording it as the session error.
        """
        epoch = self.session.epoch
        self.session.dismiss_error()
        try:
            output = await generate_script(self.client, self.project, self.retry_policy)
        except Exception as e:
            if epoch == self.session.epoch:
                self.session.report_error(str(e))
            raise
        self.session.commit(epoch, lambda p: p.model_copy(update={"output": output}))
        return self.project

    # ------------------------------------------------------------------
    # Scene media
    # ------------------------------------------------------------------
    def _job(self, kind: str):
        jobs = {
            "audio": generate_scene_audio,
            "image": generate_scene_image,
            "video": generate_scene_video,
        }
        func = jobs[kind]
        return lambda project, index: func(
            self.client, project, index, retry_policy=self.retry_policy,
        )

    async def _generate_one(self, kind: str, index: int) -> bool:
        """Run one scene job; failures become the session error."""
        epoch = self.session.epoch
        self.session.active_index[kind] = index
        try:
            update = await self._job(kind)(self.project, index)
        except Exception as e:
            logger.exception("%s generation failed for scene %d", kind, index + 1)
            if epoch == self.session.epoch:
                self.session.report_error(f"{_FAILURE_LABELS[kind]}: {e}")
            return False
        finally:
            if epoch == self.session.epoch:
                self.session.active_index[kind] = None
        return self.session.commit_scene(epoch, index, update)

    async def _generate_all(
        self,
        kind: str,
        progress_callback: Optional[Callable[[str], None]] = None,
    ) -> BatchReport:
        self.session.dismiss_error()
        return await run_scene_batch(
            self.session, kind, self._job(kind), progress_callback=progress_callback,
        )

    async def generate_audio(self, index: int) -> bool:
        return await self._generate_one("audio", index)

    async def generate_all_audio(self, progress_callback=None) -> BatchReport:
        return await self._generate_all("audio", progress_callback)

    async def generate_image(self, index: int) -> bool:
        return await self._generate_one("image", index)

    async def generate_all_images(self, progress_callback=None) -> BatchReport:
        return await self._generate_all("image", progress_callback)

    async def generate_video(self, index: int) -> bool:
        return await self._generate_one("video", index)

    def start_over(self) -> None:
        self.session.start_over()
