"""MCP transport module - Streamable HTTP sessions behind the /mcp endpoint."""

from .adapter import ASGIHostAdapter, HostAdapter, HostResponse
from .cors import CORSPolicyMiddleware
from .endpoint import MCPEndpoint
from .schemas import MCP_SESSION_ID_HEADER
from .sessions import SessionRegistry, Transport
from .transport import StreamableHTTPTransport, generate_session_id

__all__ = [
    "ASGIHostAdapter",
    "HostAdapter",
    "HostResponse",
    "CORSPolicyMiddleware",
    "MCPEndpoint",
    "MCP_SESSION_ID_HEADER",
    "SessionRegistry",
    "Transport",
    "StreamableHTTPTransport",
    "generate_session_id",
]
