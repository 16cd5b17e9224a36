"""The full tool catalog in listing order."""

from .contract import Tool
from .delete_tiddler import DELETE_TIDDLER
from .list_tiddlers import LIST_TIDDLERS
from .read_tiddler import READ_TIDDLER
from .search_tiddlers import SEARCH_TIDDLERS
from .write_tiddler import DEFAULT_CONTENT_TYPE, make_write_tiddler_tool

MUTATING_TOOL_NAMES = frozenset({"delete_tiddler", "write_tiddler"})


def build_catalog(default_content_type: str | None = None) -> list[Tool]:
    """Every tool, read-only tools first."""
    return [
        READ_TIDDLER,
        LIST_TIDDLERS,
        SEARCH_TIDDLERS,
        DELETE_TIDDLER,
        make_write_tiddler_tool(default_content_type or DEFAULT_CONTENT_TYPE),
    ]
