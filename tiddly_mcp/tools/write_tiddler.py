"""write_tiddler - create or update a tiddler."""

from datetime import datetime, timezone
from typing import Any

import structlog

from tiddly_mcp.config import DEFAULT_CONTENT_TYPE_TIDDLER
from tiddly_mcp.wiki import Wiki, stringify_date

from .contract import Tool
from .schemas import MutationOutput, ToolResult, WriteTiddlerInput

logger = structlog.get_logger(__name__)

DEFAULT_CONTENT_TYPE = "text/vnd.tiddlywiki"


def make_write_tiddler_tool(default_content_type: str = DEFAULT_CONTENT_TYPE) -> Tool[WriteTiddlerInput]:
    """Build the write tool.

    Args:
        default_content_type: Type used when neither the call nor the wiki's
            default-content-type config tiddler names one.
    """

    async def write_tiddler(params: WriteTiddlerInput, wiki: Wiki) -> ToolResult:
        logger.info("tool_call", tool="write_tiddler", title=params.title, username=params.username)
        try:
            existing = await wiki.get(params.title)
            is_update = existing is not None
            now = stringify_date(datetime.now(timezone.utc))

            content_type = params.type or await wiki.get_text(DEFAULT_CONTENT_TYPE_TIDDLER, default_content_type)

            fields: dict[str, Any] = {
                "title": params.title,
                "text": params.text,
                "type": content_type,
                "created": existing.get("created", now) if is_update else now,
                "creator": existing.get("creator", params.username) if is_update else params.username,
                "modified": now,
                "modifier": params.username,
            }
            if params.tags:
                fields["tags"] = list(params.tags)

            await wiki.put(fields)
        except Exception as e:
            return ToolResult.error(f"Error writing tiddler: {e}")

        operation = "updated" if is_update else "created"
        output = MutationOutput(
            operation=operation,
            title=params.title,
            message=f'Tiddler "{params.title}" {operation} successfully',
        )
        return ToolResult.text(output.model_dump_json())

    return Tool(
        name="write_tiddler",
        description="Create or update a tiddler with the specified content and fields",
        input_model=WriteTiddlerInput,
        handler=write_tiddler,
        output_model=MutationOutput,
        mutating=True,
    )
