"""search_tiddlers - find tiddlers containing some text."""

import structlog

from tiddly_mcp.wiki import Wiki

from .contract import Tool
from .schemas import SearchTiddlersInput, SearchTiddlersOutput, ToolResult

logger = structlog.get_logger(__name__)


async def search_tiddlers(params: SearchTiddlersInput, wiki: Wiki) -> ToolResult:
    logger.info(
        "tool_call",
        tool="search_tiddlers",
        query=params.query,
        field=params.field,
        case_sensitive=params.case_sensitive,
    )
    try:
        results = await wiki.search(params.query, field=params.field, case_sensitive=params.case_sensitive)
    except Exception as e:
        return ToolResult.error(f"Error searching tiddlers: {e}")

    # Stores may hand back field maps instead of titles
    titles = [result["title"] if isinstance(result, dict) else str(result) for result in results]
    output = SearchTiddlersOutput(query=params.query, count=len(titles), results=titles)
    return ToolResult.text(output.model_dump_json(indent=2))


SEARCH_TIDDLERS = Tool(
    name="search_tiddlers",
    description="Search for tiddlers containing specific text",
    input_model=SearchTiddlersInput,
    handler=search_tiddlers,
    output_model=SearchTiddlersOutput,
)
