"""Tools module - MCP tools over the wiki and their registry."""

from .catalog import MUTATING_TOOL_NAMES, build_catalog
from .contract import Tool, ToolHandler
from .registry import ToolRegistry
from .schemas import TextContent, ToolResult

__all__ = [
    "MUTATING_TOOL_NAMES",
    "build_catalog",
    "Tool",
    "ToolHandler",
    "ToolRegistry",
    "TextContent",
    "ToolResult",
]
