"""list_tiddlers - list all tiddlers or the result of a filter expression."""

import structlog

from tiddly_mcp.wiki import Wiki, is_system_title

from .contract import Tool
from .schemas import ListTiddlersInput, ListTiddlersOutput, TiddlerDetails, ToolResult

logger = structlog.get_logger(__name__)


def _details(title: str, fields: dict) -> TiddlerDetails:
    tags = fields.get("tags") or []
    return TiddlerDetails(
        title=title,
        text=str(fields.get("text") or ""),
        tags=[str(tag) for tag in tags] if isinstance(tags, list) else [str(tags)],
        type=str(fields.get("type") or "text/vnd.tiddlywiki"),
        created=fields.get("created"),
        modified=fields.get("modified"),
    )


async def list_tiddlers(params: ListTiddlersInput, wiki: Wiki) -> ToolResult:
    logger.info(
        "tool_call",
        tool="list_tiddlers",
        filter=params.filter,
        include_system=params.include_system,
        limit=params.limit,
    )
    try:
        if params.filter:
            titles = await wiki.filter(params.filter)
        else:
            titles = await wiki.list_titles()
            if not params.include_system:
                titles = [title for title in titles if not is_system_title(title)]

        titles = sorted(titles)
        if params.limit and params.limit > 0:
            titles = titles[:params.limit]

        if params.include_details:
            details = []
            for title in titles:
                fields = await wiki.get(title)
                if fields is not None:
                    details.append(_details(title, fields))
            output = ListTiddlersOutput(count=len(details), tiddlers=details)
        else:
            output = ListTiddlersOutput(count=len(titles), tiddlers=titles)
    except Exception as e:
        return ToolResult.error(f"Error listing tiddlers: {e}")

    return ToolResult.text(output.model_dump_json(indent=2))


LIST_TIDDLERS = Tool(
    name="list_tiddlers",
    description=(
        "List all tiddlers or filter them using a TiddlyWiki filter expression "
        '(e.g. "[tag[Journal]sort[created]]")'
    ),
    input_model=ListTiddlersInput,
    handler=list_tiddlers,
    output_model=ListTiddlersOutput,
)
