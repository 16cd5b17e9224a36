"""Dict-backed wiki, used for tests and when no database is configured."""

import copy
from typing import Iterable

from .base import Fields, Wiki, validate_fields


class MemoryWiki(Wiki):
    """Keeps tiddlers in insertion order in a plain dict."""

    def __init__(self, tiddlers: Iterable[Fields] = ()):
        self._tiddlers: dict[str, Fields] = {}
        for fields in tiddlers:
            fields = validate_fields(fields)
            self._tiddlers[fields["title"]] = fields

    def __len__(self) -> int:
        return len(self._tiddlers)

    async def get(self, title: str) -> Fields | None:
        fields = self._tiddlers.get(title)
        return copy.deepcopy(fields) if fields is not None else None

    async def put(self, fields: Fields) -> None:
        fields = validate_fields(fields)
        self._tiddlers[fields["title"]] = copy.deepcopy(fields)

    async def delete(self, title: str) -> None:
        self._tiddlers.pop(title, None)

    async def list_titles(self) -> list[str]:
        return list(self._tiddlers)

    async def snapshot(self) -> list[Fields]:
        return [copy.deepcopy(fields) for fields in self._tiddlers.values()]
