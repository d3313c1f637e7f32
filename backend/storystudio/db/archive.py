"""Project archive repository.

Keeps the most recent saved projects in the database, newest first.
Saving beyond the limit drops the oldest entries.

Usage:
    from storystudio.db import async_session, init_database
    from storystudio.db.archive import ProjectArchive

    await init_database()
    archive = ProjectArchive(async_session)
    project = await archive.save(project)
"""

import logging
import time
from dataclasses import dataclass
from typing import Callable, Optional

from sqlalchemy import delete, select
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from storystudio.config import settings
from storystudio.db.models import ArchivedProject
from storystudio.project_io import export_project, import_project
from storystudio.schemas.story import Project

logger = logging.getLogger(__name__)


class ArchiveError(RuntimeError):
    """Archive operation refused or target missing."""


@dataclass(frozen=True)
class ArchiveEntry:
    id: str
    title: str
    last_saved: int


def _now_ms() -> int:
    return int(time.time() * 1000)


def archive_title(project: Project) -> str:
    if project.output and project.output.title:
        return project.output.title
    return project.config.premise or "Untitled"


class ProjectArchive:
    """Async repository of saved projects."""

    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        limit: Optional[int] = None,
        clock: Callable[[], int] = _now_ms,
    ):
        self._session_factory = session_factory
        self._limit = limit if limit is not None else settings.storage.archive_limit
        self._clock = clock

    async def save(self, project: Project) -> Project:
        """Insert or replace a project and trim the archive.

        Returns:
            The project with title and last_saved stamped.

        Raises:
            ArchiveError: The project has no generated story yet.
        """
        if project.output is None:
            raise ArchiveError("Cannot save an empty project. Generate a story first.")

        title = archive_title(project)
        stamped = project.model_copy(update={"title": title, "last_saved": self._clock()})
        payload = export_project(stamped, touch=False)

        async with self._session_factory() as session:
            row = await session.get(ArchivedProject, stamped.id)
            if row is None:
                session.add(ArchivedProject(
                    id=stamped.id,
                    title=title[:200],
                    last_saved=stamped.last_saved,
                    payload=payload,
                ))
            else:
                row.title = title[:200]
                row.last_saved = stamped.last_saved
                row.payload = payload
            await session.flush()

            # Keep only the newest entries
            stale = await session.execute(
                select(ArchivedProject.id)
                .order_by(ArchivedProject.last_saved.desc())
                .offset(self._limit)
            )
            stale_ids = list(stale.scalars())
            if stale_ids:
                await session.execute(
                    delete(ArchivedProject).where(ArchivedProject.id.in_(stale_ids))
                )
                logger.info("Archive trimmed %d old project(s)", len(stale_ids))
            await session.commit()

        logger.info("Archived project %s (%s)", stamped.id, title)
        return stamped

    async def load(self, project_id: str) -> Project:
        async with self._session_factory() as session:
            row = await session.get(ArchivedProject, project_id)
            if row is None:
                raise ArchiveError(f"Project {project_id} not found in archive")
            return import_project(row.payload)

    async def list(self) -> list[ArchiveEntry]:
        """Return archived projects, most recently saved first."""
        async with self._session_factory() as session:
            result = await session.execute(
                select(ArchivedProject.id, ArchivedProject.title, ArchivedProject.last_saved)
                .order_by(ArchivedProject.last_saved.desc())
            )
            return [ArchiveEntry(id=r.id, title=r.title, last_saved=r.last_saved) for r in result]

    async def delete(self, project_id: str) -> bool:
        """Remove a project; returns False if it was not archived."""
        async with self._session_factory() as session:
            result = await session.execute(
                delete(ArchivedProject).where(ArchivedProject.id == project_id)
            )
            await session.commit()
            return result.rowcount > 0
