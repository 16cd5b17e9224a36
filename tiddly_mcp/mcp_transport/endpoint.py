"""The /mcp endpoint: routes each HTTP exchange to its session transport."""

import structlog
from starlette.requests import Request
from starlette.types import Receive, Scope, Send

from .adapter import ASGIHostAdapter, HostAdapter, HostResponse
from .schemas import MCP_SESSION_ID_HEADER
from .sessions import SessionRegistry

logger = structlog.get_logger(__name__)


class MCPEndpoint:
    """Raw ASGI application serving GET, POST and DELETE on the MCP path.

    Requests carrying an ``mcp-session-id`` header go to the registered
    transport for that session. Requests without one get a fresh transport,
    which is kept only if it establishes a session.

    Args:
        sessions: Registry of live sessions.
        adapter: Converts between ASGI and the standard request/response types.
    """

    def __init__(self, sessions: SessionRegistry, adapter: HostAdapter | None = None):
        self.sessions = sessions
        self.adapter = adapter or ASGIHostAdapter()

    async def __call__(self, scope: Scope, receive: Receive, send: Send) -> None:
        request = Request(scope, receive)
        host_response = HostResponse(send)
        try:
            await self.handle(request, host_response)
        except Exception as e:
            logger.exception("mcp_request_failed", method=request.method, error=str(e))
            if not host_response.headers_sent:
                await host_response.send_json(500, {"error": str(e)})
            elif not host_response.finished:
                await self._abort(host_response)

    async def handle(self, request: Request, host_response: HostResponse) -> None:
        body = await request.body()
        standard_request = self.adapter.to_standard_request(request, body)
        session_id = request.headers.get(MCP_SESSION_ID_HEADER)

        if session_id:
            transport = self.sessions.resolve(session_id)
            response = await transport.handle_request(standard_request)
            try:
                await self.adapter.from_standard_response(response, host_response)
            finally:
                if request.method == "DELETE" and response.is_success:
                    await self.sessions.close(session_id)
            return

        transport = self.sessions.create_for_new_session()
        response = await transport.handle_request(standard_request)
        new_session_id = response.headers.get(MCP_SESSION_ID_HEADER)
        if new_session_id:
            self.sessions.register(new_session_id, transport)
        else:
            logger.warning("session_not_established", method=request.method, status=response.status_code)
            await transport.close()
        await self.adapter.from_standard_response(response, host_response)

    async def _abort(self, host_response: HostResponse) -> None:
        try:
            await host_response.end()
        except OSError as e:
            logger.warning("response_end_failed", error=str(e))
