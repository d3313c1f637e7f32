"""Sequential "generate all" runner for per-scene media jobs.

Scenes are processed one at a time in ascending order. Each result is
committed to the session before the next scene starts, a failing scene is
recorded and skipped, and nothing already committed is ever rolled back.
"""

import asyncio
import logging
import time
from dataclasses import dataclass, field
from typing import Awaitable, Callable, Iterable, Mapping, Optional

from storystudio.config import settings
from storystudio.orchestrator.state import StudioSession
from storystudio.schemas.story import Project

logger = logging.getLogger(__name__)

SceneJob = Callable[[Project, int], Awaitable[Mapping[str, str]]]


class BatchInProgressError(RuntimeError):
    """A batch of the same kind is already running in this session."""


@dataclass(frozen=True)
class SceneResult:
    """Outcome of one scene inside a batch."""

    index: int
    ok: bool
    error: Optional[str] = None


@dataclass
class BatchReport:
    kind: str
    results: list[SceneResult] = field(default_factory=list)
    abandoned: bool = False
    duration: float = 0.0

    @property
    def succeeded(self) -> list[int]:
        return [r.index for r in self.results if r.ok]

    @property
    def failed(self) -> list[SceneResult]:
        return [r for r in self.results if not r.ok]


async def run_scene_batch(
    session: StudioSession,
    kind: str,
    job: SceneJob,
    indices: Optional[Iterable[int]] = None,
    progress_callback: Optional[Callable[[str], None]] = None,
    scene_delay: Optional[float] = None,
    sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
) -> BatchReport:
    """Run job for each selected scene and commit results as they land.

    Args:
        session: Session whose project is read and updated
        kind: Batch kind ("audio", "image", "video"); one run per kind at a time
        job: Coroutine taking (project snapshot, scene index) and returning
            a media slot update
        indices: Scene indices to process (default: all), run in ascending order
        progress_callback: Optional callback for status updates
        scene_delay: Pause between scenes (default from settings)

    Returns:
        BatchReport with one SceneResult per processed scene. If the session
        was reset mid-run, processing stops and abandoned is set.

    Raises:
        BatchInProgressError: A batch of this kind is already running
        ValueError: The project has no script yet
        IndexError: An index is out of range
    """
    if session.running_batches.get(kind) == session.epoch:
        raise BatchInProgressError(f"A {kind} batch is already running")

    output = session.project.output
    if output is None:
        raise ValueError("Generate a script first.")
    total = len(output.scenes)
    order = sorted(set(indices)) if indices is not None else list(range(total))
    for index in order:
        if not 0 <= index < total:
            raise IndexError(f"Scene index {index} out of range (0-{total - 1})")

    delay = settings.pipeline.scene_delay if scene_delay is None else scene_delay
    epoch = session.epoch
    report = BatchReport(kind=kind)
    start = time.monotonic()

    session.running_batches[kind] = epoch
    try:
        for position, index in enumerate(order):
            if session.epoch != epoch:
                report.abandoned = True
                break

            session.active_index[kind] = index
            if progress_callback:
                progress_callback(f"Scene {index + 1} ({position + 1}/{len(order)}): {kind}...")

            try:
                # Always hand the job the latest snapshot
                update = await job(session.project, index)
            except Exception as e:
                logger.exception("%s batch: scene %d failed", kind, index + 1)
                report.results.append(SceneResult(index=index, ok=False, error=str(e)))
            else:
                if not session.commit_scene(epoch, index, update):
                    report.abandoned = True
                    break
                report.results.append(SceneResult(index=index, ok=True))

            if delay > 0 and position < len(order) - 1:
                await sleep(delay)
    finally:
        # A newer batch of this kind may own the slot after a reset
        if session.running_batches.get(kind) == epoch:
            del session.running_batches[kind]
        if session.epoch == epoch:
            session.active_index[kind] = None

    report.duration = time.monotonic() - start
    logger.info(
        "%s batch finished in %.2fs: %d ok, %d failed%s",
        kind, report.duration, len(report.succeeded), len(report.failed),
        " (abandoned)" if report.abandoned else "",
    )
    return report
