"""delete_tiddler - remove a tiddler from the wiki."""

import structlog

from tiddly_mcp.wiki import Wiki

from .contract import Tool
from .schemas import DeleteTiddlerInput, MutationOutput, ToolResult

logger = structlog.get_logger(__name__)


async def delete_tiddler(params: DeleteTiddlerInput, wiki: Wiki) -> ToolResult:
    logger.info("tool_call", tool="delete_tiddler", title=params.title)
    try:
        if await wiki.get(params.title) is None:
            return ToolResult.error(f'Tiddler "{params.title}" not found')
        await wiki.delete(params.title)
    except Exception as e:
        return ToolResult.error(f"Error deleting tiddler: {e}")

    output = MutationOutput(
        operation="deleted",
        title=params.title,
        message=f'Tiddler "{params.title}" deleted successfully',
    )
    return ToolResult.text(output.model_dump_json())


DELETE_TIDDLER = Tool(
    name="delete_tiddler",
    description="Delete a tiddler from the wiki",
    input_model=DeleteTiddlerInput,
    handler=delete_tiddler,
    output_model=MutationOutput,
    mutating=True,
)
