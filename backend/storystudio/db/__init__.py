"""
Database module for storystudio.

Provides the async SQLAlchemy engine, session factory, schema
initialization and the project archive repository.
"""
from typing import Optional

from sqlalchemy.ext.asyncio import AsyncEngine

from storystudio.db.engine import async_session, engine, make_engine, make_session_factory, shutdown
from storystudio.db.models import ArchivedProject, Base


async def init_database(bind: Optional[AsyncEngine] = None):
    """Create the archive schema on first run."""
    async with (bind or engine).begin() as conn:
        await conn.run_sync(Base.metadata.create_all)


__all__ = [
    "ArchivedProject",
    "Base",
    "engine",
    "async_session",
    "make_engine",
    "make_session_factory",
    "shutdown",
    "init_database",
]
