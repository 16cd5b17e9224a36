"""Custom exceptions for the TiddlyWiki MCP server."""

from mcp import types


class MCPGatewayError(Exception):
    """Base exception for all gateway errors.

    Attributes:
        message: Human-readable description.
        code: Stable string error code.
        rpc_code: JSON-RPC error code used when the error crosses the
            protocol boundary.
    """

    rpc_code: int = types.INTERNAL_ERROR

    def __init__(self, message: str, code: str | None = None):
        self.message = message
        self.code = code or self.__class__.__name__
        super().__init__(self.message)


class SessionNotFoundError(MCPGatewayError):
    """Raised when a request names a session the registry does not hold.

    Attributes:
        session_id: The unknown session identifier.
    """

    def __init__(self, session_id: str):
        super().__init__(
            message=f"No transport found for session: {session_id}",
            code="SESSION_NOT_FOUND",
        )
        self.session_id = session_id


class SessionAlreadyExistsError(MCPGatewayError):
    """Raised when a second transport is registered under a live session id."""

    def __init__(self, session_id: str):
        super().__init__(
            message=f"Session '{session_id}' already has a transport",
            code="SESSION_ALREADY_EXISTS",
        )
        self.session_id = session_id


class UnknownToolError(MCPGatewayError):
    """Raised when a tool call names a tool that is not registered.

    Attributes:
        tool_name: Name of the tool that was requested.
    """

    rpc_code = types.INVALID_PARAMS

    def __init__(self, tool_name: str):
        super().__init__(
            message=f"Unknown tool: {tool_name}",
            code="TOOL_NOT_FOUND",
        )
        self.tool_name = tool_name


class FilterSyntaxError(MCPGatewayError, ValueError):
    """Raised when a filter expression cannot be parsed."""

    def __init__(self, expression: str, reason: str):
        super().__init__(
            message=f"Invalid filter '{expression}': {reason}",
            code="FILTER_SYNTAX",
        )
        self.expression = expression
        self.reason = reason
