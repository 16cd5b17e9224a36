"""Wire-level constants and JSON-RPC envelope helpers for the MCP transport."""

from typing import Any

MCP_SESSION_ID_HEADER = "mcp-session-id"

EVENT_STREAM = "text/event-stream"
APPLICATION_JSON = "application/json"


class TransportErrorCodes:
    """JSON-RPC codes used by the transport for HTTP-level rejections."""

    # Streamable HTTP uses the implementation-defined server error range
    BAD_REQUEST = -32000
    SESSION_NOT_FOUND = -32001


def jsonrpc_error(
    request_id: str | int | None,
    code: int,
    message: str,
    data: Any | None = None,
) -> dict[str, Any]:
    """Build a JSON-RPC 2.0 error envelope.

    Args:
        request_id: Id of the request being answered, None when unknown.
        code: JSON-RPC error code.
        message: Human-readable message.
        data: Optional structured detail.

    Returns:
        The envelope as a plain dict ready for JSON encoding.
    """
    error: dict[str, Any] = {"code": code, "message": message}
    if data is not None:
        error["data"] = data
    return {"jsonrpc": "2.0", "id": request_id, "error": error}


def jsonrpc_result(request_id: str | int, result: Any) -> dict[str, Any]:
    return {"jsonrpc": "2.0", "id": request_id, "result": result}
