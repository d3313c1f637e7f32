"""SQLAlchemy 2.0 ORM models for the project archive."""

from datetime import datetime
from typing import Optional

from sqlalchemy import BigInteger, String, Text, func
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column


class Base(DeclarativeBase):
    """Base class for all ORM models."""
    pass


class ArchivedProject(Base):
    """One saved project.

    payload holds the full exported JSON document (media included); title
    and last_saved are copied out of it for listing without decoding.
    """
    __tablename__ = "archived_projects"

    id: Mapped[str] = mapped_column(String(64), primary_key=True)
    title: Mapped[str] = mapped_column(String(200), default="")
    last_saved: Mapped[int] = mapped_column(BigInteger, index=True)
    payload: Mapped[str] = mapped_column(Text)
    created_at: Mapped[Optional[datetime]] = mapped_column(server_default=func.now())
