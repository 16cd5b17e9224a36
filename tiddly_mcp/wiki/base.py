"""Store interface shared by the in-memory and SQL wikis."""

from abc import ABC, abstractmethod
from datetime import datetime, timezone
from typing import Any, Iterable

SYSTEM_PREFIX = "$:/"
TIDDLYWIKI_DATE_FORMAT = "%Y%m%d%H%M%S"

Fields = dict[str, Any]


def is_system_title(title: str) -> bool:
    return title.startswith(SYSTEM_PREFIX)


def stringify_date(value: datetime) -> str:
    """Render a datetime as a 17-digit TiddlyWiki UTC timestamp."""
    value = value.astimezone(timezone.utc)
    return value.strftime(TIDDLYWIKI_DATE_FORMAT) + f"{value.microsecond // 1000:03d}"


def parse_date(value: str) -> datetime:
    """Parse a TiddlyWiki timestamp (14 to 17 digits) into an aware datetime."""
    parsed = datetime.strptime(value[:14], TIDDLYWIKI_DATE_FORMAT)
    millis = int(value[14:17] or 0)
    return parsed.replace(microsecond=millis * 1000, tzinfo=timezone.utc)


def field_as_text(value: Any) -> str:
    """Flatten a field value the way tiddler fields are searched and compared."""
    if value is None:
        return ""
    if isinstance(value, (list, tuple)):
        return " ".join(str(item) for item in value)
    return str(value)


def field_as_list(value: Any) -> list[str]:
    if value is None:
        return []
    if isinstance(value, (list, tuple)):
        return [str(item) for item in value]
    return [str(value)]


def matches_search(fields: Fields, query: str, field: str | None = None, case_sensitive: bool = False) -> bool:
    """Substring search over one field or every field of a tiddler."""
    if field:
        haystack = field_as_text(fields.get(field))
    else:
        haystack = "\n".join(field_as_text(value) for value in fields.values())

    if not case_sensitive:
        return query.lower() in haystack.lower()
    return query in haystack


class Wiki(ABC):
    """A store of uniquely titled tiddlers.

    Implementations are async so that network or database backed stores can
    be used without blocking the event loop.
    """

    async def start(self) -> None:
        """Prepare the store for use."""

    async def close(self) -> None:
        """Release any resources held by the store."""

    @abstractmethod
    async def get(self, title: str) -> Fields | None:
        """Return a copy of the tiddler's fields, or None if it does not exist."""

    @abstractmethod
    async def put(self, fields: Fields) -> None:
        """Create or replace the tiddler named by ``fields["title"]``."""

    @abstractmethod
    async def delete(self, title: str) -> None:
        """Remove a tiddler; deleting a missing tiddler is a no-op."""

    @abstractmethod
    async def list_titles(self) -> list[str]:
        """All titles in store order, system tiddlers included."""

    @abstractmethod
    async def snapshot(self) -> list[Fields]:
        """Field maps of every tiddler, in store order."""

    async def filter(self, expression: str) -> list[str]:
        from .filtering import evaluate_filter

        return evaluate_filter(expression, await self.snapshot())

    async def search(self, query: str, field: str | None = None, case_sensitive: bool = False) -> list[str]:
        return [
            fields["title"]
            for fields in await self.snapshot()
            if matches_search(fields, query, field=field, case_sensitive=case_sensitive)
        ]

    async def get_text(self, title: str, default: str = "") -> str:
        fields = await self.get(title)
        if fields is None or fields.get("text") is None:
            return default
        return str(fields["text"])

    async def put_many(self, tiddlers: Iterable[Fields]) -> None:
        for fields in tiddlers:
            await self.put(fields)


def validate_fields(fields: Fields) -> Fields:
    title = fields.get("title")
    if not isinstance(title, str) or not title:
        raise ValueError("Tiddler fields must include a non-empty 'title'")
    return dict(fields)
