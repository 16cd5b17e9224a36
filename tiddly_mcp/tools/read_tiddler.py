"""read_tiddler - retrieve tiddler content and fields."""

import json

import structlog

from tiddly_mcp.wiki import Wiki

from .contract import Tool
from .schemas import ReadTiddlerInput, ToolResult

logger = structlog.get_logger(__name__)


async def read_tiddler(params: ReadTiddlerInput, wiki: Wiki) -> ToolResult:
    logger.info("tool_call", tool="read_tiddler", title=params.title)
    try:
        fields = await wiki.get(params.title)
    except Exception as e:
        return ToolResult.error(f"Error reading tiddler: {e}")

    if fields is None:
        return ToolResult.error(f'Tiddler "{params.title}" not found')

    return ToolResult.text(json.dumps(fields, indent=2, ensure_ascii=False, default=str))


READ_TIDDLER = Tool(
    name="read_tiddler",
    description="Read a tiddler and return its content and fields",
    input_model=ReadTiddlerInput,
    handler=read_tiddler,
)
