"""Repository layer for tiddler data access."""

from typing import Any

from sqlalchemy import delete, select
from sqlalchemy.ext.asyncio import AsyncSession

from .models import TiddlerRecord


async def get_tiddler_by_title(db: AsyncSession, title: str) -> TiddlerRecord | None:
    """Fetch a single tiddler by its title.

    Args:
        db: Async database session.
        title: Tiddler title to look up.

    Returns:
        TiddlerRecord if found, None otherwise.
    """
    stmt = select(TiddlerRecord).where(TiddlerRecord.title == title)
    result = await db.execute(stmt)
    return result.scalar_one_or_none()


async def get_all_tiddlers(db: AsyncSession) -> list[TiddlerRecord]:
    """Fetch every tiddler ordered by title."""
    stmt = select(TiddlerRecord).order_by(TiddlerRecord.title)
    result = await db.execute(stmt)
    return list(result.scalars().all())


async def get_all_titles(db: AsyncSession) -> list[str]:
    stmt = select(TiddlerRecord.title).order_by(TiddlerRecord.title)
    result = await db.execute(stmt)
    return list(result.scalars().all())


async def upsert_tiddler(db: AsyncSession, fields: dict[str, Any]) -> TiddlerRecord:
    """Create the tiddler or replace all of its fields.

    Args:
        db: Async database session.
        fields: Complete field map, including ``title``.

    Returns:
        The stored TiddlerRecord.
    """
    record = await get_tiddler_by_title(db, fields["title"])
    if record is None:
        record = TiddlerRecord(title=fields["title"], fields=fields)
        db.add(record)
    else:
        record.fields = fields
    await db.commit()
    return record


async def delete_tiddler_by_title(db: AsyncSession, title: str) -> int:
    """Delete a tiddler.

    Returns:
        Number of rows removed (0 or 1).
    """
    result = await db.execute(delete(TiddlerRecord).where(TiddlerRecord.title == title))
    await db.commit()
    return result.rowcount or 0
