"""Wiki module - tiddler storage behind the MCP tools."""

from tiddly_mcp.config import Settings

from .base import SYSTEM_PREFIX, Fields, Wiki, is_system_title, parse_date, stringify_date
from .filtering import evaluate_filter, parse_filter
from .memory import MemoryWiki
from .sql import SQLWiki


def create_wiki(settings: Settings) -> Wiki:
    """Pick the store backend from settings: SQL when DATABASE_URL is set."""
    if settings.DATABASE_URL:
        return SQLWiki(settings.DATABASE_URL, echo=settings.DEBUG)
    return MemoryWiki()


__all__ = [
    "SYSTEM_PREFIX",
    "Fields",
    "Wiki",
    "MemoryWiki",
    "SQLWiki",
    "create_wiki",
    "evaluate_filter",
    "parse_filter",
    "is_system_title",
    "parse_date",
    "stringify_date",
]
