"""Tests for ToolRegistry: membership, schemas and dispatch."""

import pytest
from mcp import types
from mcp.server.lowlevel import Server
from pydantic import BaseModel

from tiddly_mcp.exceptions import UnknownToolError
from tiddly_mcp.tools import MUTATING_TOOL_NAMES, Tool, ToolRegistry, ToolResult
from tiddly_mcp.tools.schemas import ToolInput


class _UnrenderableInput(ToolInput):
    @classmethod
    def model_json_schema(cls, *args, **kwargs):
        raise TypeError("cannot render callback field")


class _NamedInput(ToolInput):
    name: str


async def _echo(params: BaseModel, wiki) -> ToolResult:
    return ToolResult.text("ok")


async def _explode(params: BaseModel, wiki) -> ToolResult:
    raise RuntimeError("boom")


class TestMembership:
    """Tests for which tools a registry exposes."""

    def test_full_catalog_order(self, wiki):
        registry = ToolRegistry(wiki, read_only=False)
        assert registry.names == [
            "read_tiddler",
            "list_tiddlers",
            "search_tiddlers",
            "delete_tiddler",
            "write_tiddler",
        ]

    def test_read_only_excludes_mutating_tools(self, wiki):
        registry = ToolRegistry(wiki, read_only=True)
        assert len(registry) == 3
        assert not any(name in registry for name in MUTATING_TOOL_NAMES)

    def test_duplicate_names_rejected(self, wiki):
        tool = Tool(name="dup", description="d", input_model=ToolInput, handler=_echo)
        with pytest.raises(ValueError):
            ToolRegistry(wiki, tools=[tool, tool])


class TestListTools:
    """Tests for list_tools and schema conversion."""

    def test_input_schema_uses_wire_names(self, wiki):
        registry = ToolRegistry(wiki)
        listed = {tool.name: tool for tool in registry.list_tools()}
        properties = listed["list_tiddlers"].inputSchema["properties"]
        assert "includeSystem" in properties
        assert "includeDetails" in properties
        assert listed["read_tiddler"].inputSchema["required"] == ["title"]

    def test_unrenderable_schema_falls_back(self, wiki):
        broken = Tool(name="broken", description="b", input_model=_UnrenderableInput, handler=_echo)
        healthy = Tool(name="healthy", description="h", input_model=_NamedInput, handler=_echo)
        registry = ToolRegistry(wiki, tools=[broken, healthy])

        listed = {tool.name: tool for tool in registry.list_tools()}

        assert list(listed) == ["broken", "healthy"]
        assert listed["broken"].inputSchema == {"type": "object", "properties": {}}
        assert listed["healthy"].inputSchema == _NamedInput.model_json_schema()
        assert listed["healthy"].inputSchema["required"] == ["name"]


class TestCallTool:
    """Tests for call_tool dispatch."""

    @pytest.mark.asyncio
    async def test_unknown_tool_raises(self, wiki):
        registry = ToolRegistry(wiki)
        with pytest.raises(UnknownToolError) as exc_info:
            await registry.call_tool("no_such_tool", {})
        assert exc_info.value.message == "Unknown tool: no_such_tool"

    @pytest.mark.asyncio
    async def test_read_only_mutating_tool_looks_unknown(self, wiki):
        registry = ToolRegistry(wiki, read_only=True)
        with pytest.raises(UnknownToolError) as exc_info:
            await registry.call_tool("write_tiddler", {"title": "X", "text": "y"})
        assert exc_info.value.message == "Unknown tool: write_tiddler"
        assert await wiki.get("X") is None

    @pytest.mark.asyncio
    async def test_invalid_arguments_are_tool_error(self, wiki):
        registry = ToolRegistry(wiki)
        result = await registry.call_tool("read_tiddler", {})
        assert result.isError is True
        assert result.content[0].text.startswith("Invalid arguments for tool read_tiddler:")

    @pytest.mark.asyncio
    async def test_handler_exception_is_tool_error(self, wiki):
        tool = Tool(name="explode", description="e", input_model=ToolInput, handler=_explode)
        registry = ToolRegistry(wiki, tools=[tool])
        result = await registry.call_tool("explode", None)
        assert result.isError is True
        assert result.content[0].text == "Error executing tool explode: boom"

    @pytest.mark.asyncio
    async def test_valid_call(self, wiki):
        registry = ToolRegistry(wiki)
        result = await registry.call_tool("read_tiddler", {"title": "Apple"})
        assert not result.isError
        assert '"A red fruit"' in result.content[0].text


class TestRegister:
    """Tests for installing the handlers on the protocol engine."""

    @pytest.mark.asyncio
    async def test_handlers_installed(self, wiki):
        engine = Server("test")
        ToolRegistry(wiki).register(engine)

        listed = await engine.request_handlers[types.ListToolsRequest](
            types.ListToolsRequest(method="tools/list")
        )
        assert [tool.name for tool in listed.root.tools] == ["read_tiddler", "list_tiddlers", "search_tiddlers"]

        called = await engine.request_handlers[types.CallToolRequest](
            types.CallToolRequest(
                method="tools/call",
                params=types.CallToolRequestParams(name="read_tiddler", arguments={"title": "Nope"}),
            )
        )
        assert called.root.isError is True
        assert called.root.content[0].text == 'Tiddler "Nope" not found'


class TestStructuredOutput:
    """Tests for output schemas and structured results."""

    def test_output_schema_only_for_tools_with_output_model(self, wiki):
        listed = {tool.name: tool for tool in ToolRegistry(wiki).list_tools()}
        assert listed["read_tiddler"].outputSchema is None
        assert "count" in listed["list_tiddlers"].outputSchema["properties"]

    @pytest.mark.asyncio
    async def test_successful_result_carries_structured_content(self, wiki):
        result = await ToolRegistry(wiki).call_tool("search_tiddlers", {"query": "fruit"})
        assert result.structuredContent == {"query": "fruit", "count": 2, "results": ["Apple", "Banana"]}

    @pytest.mark.asyncio
    async def test_error_result_has_no_structured_content(self, wiki):
        result = await ToolRegistry(wiki, read_only=False).call_tool("delete_tiddler", {"title": "Nope"})
        assert result.isError is True
        assert result.structuredContent is None

    @pytest.mark.asyncio
    async def test_unparseable_payload_left_unstructured(self, wiki):
        tool = Tool(
            name="chatty",
            description="c",
            input_model=ToolInput,
            handler=_echo,
            output_model=ToolResult,
        )
        result = await ToolRegistry(wiki, tools=[tool]).call_tool("chatty", {})
        assert result.content[0].text == "ok"
        assert result.structuredContent is None
