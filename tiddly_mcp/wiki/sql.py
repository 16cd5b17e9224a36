"""Wiki persisted through SQLAlchemy's async engine."""

import copy

import structlog

from tiddly_mcp.database import Base, create_engine, create_session_factory

from .base import Fields, Wiki, validate_fields
from .repository import (
    delete_tiddler_by_title,
    get_all_tiddlers,
    get_all_titles,
    get_tiddler_by_title,
    upsert_tiddler,
)

logger = structlog.get_logger(__name__)


class SQLWiki(Wiki):
    """Stores each tiddler as a JSON field map keyed by title.

    Args:
        database_url: SQLAlchemy async URL, e.g. ``sqlite+aiosqlite:///./wiki.db``.
        echo: Log emitted SQL.
    """

    def __init__(self, database_url: str, echo: bool = False):
        self.database_url = database_url
        self._engine = create_engine(database_url, echo=echo)
        self._sessions = create_session_factory(self._engine)

    async def start(self) -> None:
        async with self._engine.begin() as conn:
            await conn.run_sync(Base.metadata.create_all)
        logger.info("wiki_started", backend="sql")

    async def close(self) -> None:
        await self._engine.dispose()

    async def get(self, title: str) -> Fields | None:
        async with self._sessions() as db:
            record = await get_tiddler_by_title(db, title)
            return copy.deepcopy(record.fields) if record is not None else None

    async def put(self, fields: Fields) -> None:
        fields = validate_fields(fields)
        async with self._sessions() as db:
            await upsert_tiddler(db, copy.deepcopy(fields))

    async def delete(self, title: str) -> None:
        async with self._sessions() as db:
            await delete_tiddler_by_title(db, title)

    async def list_titles(self) -> list[str]:
        async with self._sessions() as db:
            return await get_all_titles(db)

    async def snapshot(self) -> list[Fields]:
        async with self._sessions() as db:
            return [copy.deepcopy(record.fields) for record in await get_all_tiddlers(db)]
