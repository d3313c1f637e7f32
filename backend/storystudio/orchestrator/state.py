"""Project state merging and the interactive session that owns it.

A project is an immutable value. Every generation result is folded into
the latest snapshot through a pure merge, so two jobs that finish out of
order for different scenes can never overwrite each other.

The session carries an epoch. start_over() bumps it, and any job that
started under an older epoch has its result discarded on commit.
"""

import logging
from typing import Callable, Mapping, Optional

from storystudio.schemas.story import MEDIA_SLOTS, Character, Project

logger = logging.getLogger(__name__)


def merge_scene(project: Project, scene_index: int, update: Mapping[str, Optional[str]]) -> Project:
    """Return a new project with media slots of one scene replaced.

    Every other scene object is carried over unchanged (same identity).

    Args:
        project: Current snapshot
        scene_index: 0-based scene position
        update: Subset of {"audio_data", "image_url", "video_data"}

    Raises:
        ValueError: No script yet, or update names a non-media field
        IndexError: scene_index out of range
    """
    if project.output is None:
        raise ValueError("Project has no script output to merge into")
    unknown = set(update) - set(MEDIA_SLOTS)
    if unknown:
        raise ValueError(f"Not a media slot: {', '.join(sorted(unknown))}")

    scenes = list(project.output.scenes)
    if not 0 <= scene_index < len(scenes):
        raise IndexError(f"Scene index {scene_index} out of range (0-{len(scenes) - 1})")

    scenes[scene_index] = scenes[scene_index].model_copy(update=dict(update))
    output = project.output.model_copy(update={"scenes": scenes})
    return project.model_copy(update={"output": output})


def update_character(project: Project, character_id: str, **changes) -> Project:
    """Return a new project with one character's fields replaced."""
    characters = list(project.config.characters)
    for i, c in enumerate(characters):
        if c.id == character_id:
            characters[i] = c.model_copy(update=changes)
            break
    else:
        raise KeyError(f"Unknown character id: {character_id}")
    config = project.config.model_copy(update={"characters": characters})
    return project.model_copy(update={"config": config})


def set_character_signature(project: Project, character_id: str, signature: str) -> Project:
    return update_character(project, character_id, visual_signature=signature)


def replace_characters(project: Project, characters: list[Character]) -> Project:
    config = project.config.model_copy(update={"characters": list(characters)})
    return project.model_copy(update={"config": config})


class StudioSession:
    """Holds the current project snapshot for one interactive user.

    Attributes:
        project: Latest committed snapshot
        epoch: Bumped by start_over() and load(); stale commits are dropped
        error: Most recent user-facing error message, if any
        active_index: Scene index currently processed, per batch kind
        running_batches: Epoch each running batch kind was started under
    """

    def __init__(self, project: Optional[Project] = None):
        self.project = project or Project()
        self.epoch = 0
        self.error: Optional[str] = None
        self.active_index: dict[str, Optional[int]] = {}
        self.running_batches: dict[str, int] = {}

    def commit(self, epoch: int, fn: Callable[[Project], Project]) -> bool:
        """Apply fn to the latest snapshot if epoch is still current.

        Returns:
            True if the change was applied, False if it was discarded.
        """
        if epoch != self.epoch:
            logger.info("Discarding result from epoch %d (current %d)", epoch, self.epoch)
            return False
        self.project = fn(self.project)
        return True

    def commit_scene(self, epoch: int, scene_index: int, update: Mapping[str, Optional[str]]) -> bool:
        return self.commit(epoch, lambda p: merge_scene(p, scene_index, update))

    def report_error(self, message: str) -> None:
        logger.warning("Session error: %s", message)
        self.error = message

    def dismiss_error(self) -> None:
        self.error = None

    def load(self, project: Project) -> None:
        """Switch to another project; in-flight jobs for the old one are dropped."""
        self.epoch += 1
        self.project = project
        self.error = None
        self.active_index.clear()

    def start_over(self) -> None:
        """Reset to a fresh project, keeping only the API key override."""
        self.load(Project(api_key=self.project.api_key))
