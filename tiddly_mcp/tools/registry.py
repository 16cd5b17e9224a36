"""Tool registry: schema introspection and validated dispatch."""

from typing import Any, Iterable, Sequence

import structlog
from mcp import types
from mcp.server.lowlevel import Server
from pydantic import ValidationError

from tiddly_mcp.exceptions import UnknownToolError
from tiddly_mcp.wiki import Wiki

from .catalog import build_catalog
from .contract import Tool
from .schemas import ToolResult

logger = structlog.get_logger(__name__)


def _fallback_input_schema() -> dict[str, Any]:
    return {"type": "object", "properties": {}}


def _format_validation_error(exc: ValidationError) -> str:
    problems = []
    for error in exc.errors():
        location = ".".join(str(part) for part in error.get("loc", ())) or "arguments"
        problems.append(f"{location}: {error.get('msg', 'invalid value')}")
    return "; ".join(problems)


class ToolRegistry:
    """The fixed, ordered set of tools exposed by one server.

    Membership is decided once at construction: a read-only registry leaves
    out every mutating tool, so calling one by name is indistinguishable from
    calling a name that was never registered.

    Args:
        wiki: Store handed to every tool handler.
        read_only: Exclude mutating tools (delete_tiddler, write_tiddler).
        default_content_type: Fallback tiddler type for write_tiddler.
        tools: Explicit tool set; defaults to the full catalog.
    """

    def __init__(
        self,
        wiki: Wiki,
        read_only: bool = True,
        default_content_type: str | None = None,
        tools: Iterable[Tool] | None = None,
    ):
        self.wiki = wiki
        self.read_only = read_only

        candidates = list(tools) if tools is not None else build_catalog(default_content_type)
        self._tools: dict[str, Tool] = {}
        for tool in candidates:
            if read_only and tool.mutating:
                continue
            if tool.name in self._tools:
                raise ValueError(f"duplicate tool name: {tool.name}")
            self._tools[tool.name] = tool

    @property
    def names(self) -> list[str]:
        return list(self._tools)

    @property
    def tools(self) -> Sequence[Tool]:
        return list(self._tools.values())

    def __contains__(self, name: object) -> bool:
        return name in self._tools

    def __len__(self) -> int:
        return len(self._tools)

    def input_schema(self, tool: Tool) -> dict[str, Any]:
        """JSON Schema for a tool's arguments, or a permissive fallback.

        A tool whose model cannot be rendered is still listed so one broken
        schema never hides the other tools.
        """
        try:
            return tool.input_model.model_json_schema()
        except Exception as e:
            logger.error("tool_schema_conversion_failed", tool=tool.name, error=str(e))
            return _fallback_input_schema()

    def output_schema(self, tool: Tool) -> dict[str, Any] | None:
        if tool.output_model is None:
            return None
        try:
            return tool.output_model.model_json_schema()
        except Exception as e:
            logger.error("tool_schema_conversion_failed", tool=tool.name, schema="output", error=str(e))
            return None

    def list_tools(self) -> list[types.Tool]:
        logger.debug("tools_list", count=len(self._tools))
        return [
            types.Tool(
                name=tool.name,
                description=tool.description,
                inputSchema=self.input_schema(tool),
                outputSchema=self.output_schema(tool),
            )
            for tool in self._tools.values()
        ]

    async def call_tool(self, name: str, arguments: dict[str, Any] | None) -> ToolResult:
        """Validate arguments and run the named tool.

        Args:
            name: Tool name.
            arguments: Raw arguments from the client.

        Returns:
            The handler's result, or an ``isError`` result when the arguments
            are invalid or the handler raised.

        Raises:
            UnknownToolError: If no tool with that name is registered.
        """
        tool = self._tools.get(name)
        if tool is None:
            raise UnknownToolError(name)

        try:
            params = tool.input_model.model_validate(arguments or {})
        except ValidationError as e:
            logger.info("tool_arguments_invalid", tool=name, error_count=e.error_count())
            return ToolResult.error(f"Invalid arguments for tool {name}: {_format_validation_error(e)}")

        try:
            result = await tool.handler(params, self.wiki)
        except Exception as e:
            logger.error("tool_handler_failed", tool=name, error=str(e), exc_info=True)
            return ToolResult.error(f"Error executing tool {name}: {e}")

        return self._structure(tool, result)

    def _structure(self, tool: Tool, result: ToolResult) -> ToolResult:
        """Attach the parsed JSON payload of a successful result."""
        if tool.output_model is None or result.isError or not result.content:
            return result
        if result.structuredContent is not None:
            return result
        try:
            payload = tool.output_model.model_validate_json(result.content[0].text)
        except ValidationError as e:
            logger.warning("tool_output_invalid", tool=tool.name, error_count=e.error_count())
            return result
        return result.model_copy(update={"structuredContent": payload.model_dump(mode="json")})

    def register(self, engine: Server) -> None:
        """Install the tools/list and tools/call handlers on the protocol engine."""

        async def handle_list_tools(request: types.ListToolsRequest) -> types.ServerResult:
            return types.ServerResult(types.ListToolsResult(tools=self.list_tools()))

        async def handle_call_tool(request: types.CallToolRequest) -> types.ServerResult:
            result = await self.call_tool(request.params.name, request.params.arguments)
            return types.ServerResult(
                types.CallToolResult(
                    content=[types.TextContent(type="text", text=block.text) for block in result.content],
                    structuredContent=result.structuredContent,
                    isError=bool(result.isError),
                )
            )

        engine.request_handlers[types.ListToolsRequest] = handle_list_tools
        engine.request_handlers[types.CallToolRequest] = handle_call_tool
