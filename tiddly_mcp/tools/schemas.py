"""Pydantic schemas for tool inputs, payloads and results."""

from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field


class TextContent(BaseModel):
    """Text block in a tool result."""

    type: Literal["text"] = "text"
    text: str


class ToolResult(BaseModel):
    """Result returned by every tool handler.

    Attributes:
        content: Ordered text blocks.
        isError: Set when the tool failed; the protocol envelope still succeeds.
        structuredContent: The JSON payload as an object, for tools with an
            output model.
    """

    content: list[TextContent]
    isError: bool | None = None
    structuredContent: dict[str, Any] | None = None

    @classmethod
    def text(cls, text: str) -> "ToolResult":
        return cls(content=[TextContent(text=text)])

    @classmethod
    def error(cls, message: str) -> "ToolResult":
        return cls(content=[TextContent(text=message)], isError=True)


class ToolInput(BaseModel):
    """Base for tool inputs; camelCase aliases are the wire names."""

    model_config = ConfigDict(populate_by_name=True)


class ReadTiddlerInput(ToolInput):
    title: str = Field(..., description="Title of the tiddler to read")


class ListTiddlersInput(ToolInput):
    filter: str | None = Field(default=None, description="TiddlyWiki filter expression (optional)")
    limit: int | None = Field(default=None, description="Maximum number of tiddlers to return")
    include_system: bool = Field(
        default=False,
        alias="includeSystem",
        description="Include system tiddlers (starting with $:/)",
    )
    include_details: bool = Field(
        default=False,
        alias="includeDetails",
        description="Return title, text, tags, type and timestamps instead of just titles",
    )


class SearchTiddlersInput(ToolInput):
    query: str = Field(..., description="Search query text")
    field: str | None = Field(
        default=None,
        description="Specific field to search in (default: searches all fields)",
    )
    case_sensitive: bool = Field(
        default=False,
        alias="caseSensitive",
        description="Whether search should be case-sensitive",
    )


class DeleteTiddlerInput(ToolInput):
    title: str = Field(..., description="Title of the tiddler to delete")


class WriteTiddlerInput(ToolInput):
    title: str = Field(..., description="Title of the tiddler")
    text: str = Field(..., description="Content/text of the tiddler")
    tags: list[str] | None = Field(default=None, description="Array of tags for the tiddler")
    type: str | None = Field(default=None, description="Content type (default: the wiki's default content type)")
    username: str = Field(
        default="tiddly-mcp",
        description=(
            "Username of the agent creating or updating the tiddler. "
            "AI agents should use their name in lowercase."
        ),
    )


class TiddlerDetails(BaseModel):
    title: str
    text: str = ""
    tags: list[str] = Field(default_factory=list)
    type: str = "text/vnd.tiddlywiki"
    created: str | None = None
    modified: str | None = None


class ListTiddlersOutput(BaseModel):
    count: int
    tiddlers: list[str] | list[TiddlerDetails]


class SearchTiddlersOutput(BaseModel):
    query: str
    count: int
    results: list[str]


class MutationOutput(BaseModel):
    """Payload of the write and delete tools."""

    success: bool = True
    operation: Literal["created", "updated", "deleted"]
    title: str
    message: str
