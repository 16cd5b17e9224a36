"""SQLAlchemy models for the SQL wiki store."""

from datetime import datetime
from typing import Any

from sqlalchemy import JSON, DateTime, String, func
from sqlalchemy.orm import Mapped, mapped_column

from tiddly_mcp.database import Base


class TiddlerRecord(Base):
    """One tiddler, stored as its full field map.

    Attributes:
        title: Unique tiddler title.
        fields: Every field of the tiddler, title included.
        updated_at: Timestamp of the last write.
    """

    __tablename__ = "tiddlers"

    title: Mapped[str] = mapped_column(
        String(1024),
        primary_key=True,
        comment="Unique tiddler title"
    )
    fields: Mapped[dict[str, Any]] = mapped_column(
        JSON,
        nullable=False,
        comment="All tiddler fields"
    )
    updated_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True),
        server_default=func.now(),
        onupdate=func.now(),
        nullable=True,
        comment="Last write timestamp"
    )

    def __repr__(self) -> str:
        """String representation for debugging."""
        return f"<TiddlerRecord(title='{self.title}')>"
