"""The Tool type shared by every handler and the registry."""

from dataclasses import dataclass
from typing import Awaitable, Callable, Generic, TypeVar

from pydantic import BaseModel

from tiddly_mcp.wiki import Wiki

from .schemas import ToolInput, ToolResult

InputT = TypeVar("InputT", bound=ToolInput)

ToolHandler = Callable[[InputT, Wiki], Awaitable[ToolResult]]


@dataclass(frozen=True)
class Tool(Generic[InputT]):
    """A named, schema-described operation exposed to MCP clients.

    Attributes:
        name: Unique tool name.
        description: Human-readable description shown to clients.
        input_model: Pydantic model the arguments are validated against.
        handler: Receives already-validated input and the wiki.
        output_model: Optional model the JSON payload of successful results
            conforms to; advertised as the output schema.
        mutating: Excluded from read-only registries.
    """

    name: str
    description: str
    input_model: type[InputT]
    handler: ToolHandler
    output_model: type[BaseModel] | None = None
    mutating: bool = False
