"""Streamable HTTP transport for a single MCP session.

One transport instance serves one client session. It takes standard
``httpx.Request`` objects, runs the JSON-RPC messages they carry against the
protocol engine (an ``mcp`` low-level ``Server``) and answers with standard
``httpx.Response`` objects, either as JSON or as a server-sent event stream.
"""

import asyncio
import json
import uuid
from typing import Any, AsyncIterator, Callable, get_args

import httpx
import structlog
from mcp import types
from mcp.server.lowlevel import Server
from mcp.shared.exceptions import McpError
from mcp.shared.version import SUPPORTED_PROTOCOL_VERSIONS
from pydantic import ValidationError

from tiddly_mcp.exceptions import MCPGatewayError

from .schemas import (
    APPLICATION_JSON,
    EVENT_STREAM,
    MCP_SESSION_ID_HEADER,
    TransportErrorCodes,
    jsonrpc_error,
    jsonrpc_result,
)

logger = structlog.get_logger(__name__)

SessionIdGenerator = Callable[[], str]

ALLOWED_METHODS = "GET, POST, DELETE"


def generate_session_id() -> str:
    return str(uuid.uuid4())


class _IteratorStream(httpx.AsyncByteStream):
    """Exposes an async generator of chunks as an httpx response stream."""

    def __init__(self, iterator: AsyncIterator[bytes]):
        self._iterator = iterator

    async def __aiter__(self) -> AsyncIterator[bytes]:
        async for chunk in self._iterator:
            yield chunk

    async def aclose(self) -> None:
        aclose = getattr(self._iterator, "aclose", None)
        if aclose is not None:
            await aclose()


def _sse_event(payload: dict[str, Any]) -> bytes:
    data = json.dumps(payload, separators=(",", ":"))
    return f"event: message\ndata: {data}\n\n".encode("utf-8")


def _dump(model: Any) -> dict[str, Any]:
    return model.model_dump(by_alias=True, mode="json", exclude_none=True)


class StreamableHTTPTransport:
    """Server side of one Streamable HTTP MCP session.

    The session id is assigned when the client's ``initialize`` request is
    accepted and is echoed in the ``mcp-session-id`` header of every later
    response. Requests for any other session id are rejected.

    Args:
        engine: Protocol engine whose request handlers serve the session.
        session_id_generator: Produces the id for this session.
        json_response: Always answer POSTs with JSON, never an event stream.
        keepalive_interval: Seconds between comments on the GET stream.
    """

    def __init__(
        self,
        engine: Server,
        session_id_generator: SessionIdGenerator = generate_session_id,
        json_response: bool = False,
        keepalive_interval: float = 30.0,
    ):
        self._engine = engine
        self._session_id_generator = session_id_generator
        self._json_response = json_response
        self._keepalive_interval = keepalive_interval
        self._closed = asyncio.Event()
        self.session_id: str | None = None
        self.client_info: types.Implementation | None = None

    @property
    def closed(self) -> bool:
        return self._closed.is_set()

    async def handle_request(self, request: httpx.Request) -> httpx.Response:
        """Answer one HTTP exchange for this session."""
        if self.closed:
            return self._error_response(404, TransportErrorCodes.SESSION_NOT_FOUND, "Session terminated")

        if request.method == "POST":
            return await self._handle_post(request)
        if request.method == "GET":
            return self._handle_get(request)
        if request.method == "DELETE":
            return await self._handle_delete(request)

        return httpx.Response(
            405,
            headers={"allow": ALLOWED_METHODS},
            json=jsonrpc_error(None, TransportErrorCodes.BAD_REQUEST, "Method not allowed."),
        )

    async def close(self) -> None:
        if self.closed:
            return
        self._closed.set()
        logger.info("transport_closed", session_id=self.session_id)

    # POST

    async def _handle_post(self, request: httpx.Request) -> httpx.Response:
        content_type = request.headers.get("content-type", "")
        if APPLICATION_JSON not in content_type.lower():
            return self._error_response(
                415,
                TransportErrorCodes.BAD_REQUEST,
                "Unsupported Media Type: Content-Type must be application/json",
            )

        try:
            body = json.loads(request.content or b"")
        except (json.JSONDecodeError, UnicodeDecodeError) as e:
            return self._error_response(400, types.PARSE_ERROR, f"Parse error: {e}")

        is_batch = isinstance(body, list)
        items = body if is_batch else [body]
        if not items:
            return self._error_response(400, types.INVALID_REQUEST, "Invalid Request: empty batch")

        try:
            messages = [types.JSONRPCMessage.model_validate(item).root for item in items]
        except ValidationError as e:
            return self._error_response(400, types.INVALID_REQUEST, f"Invalid Request: {e.error_count()} validation error(s)")

        initializes = [
            message for message in messages
            if isinstance(message, types.JSONRPCRequest) and message.method == "initialize"
        ]
        if initializes:
            return self._handle_initialize(request, messages, is_batch)

        rejection = self._validate_session(request)
        if rejection is not None:
            return rejection

        for message in messages:
            if isinstance(message, types.JSONRPCNotification):
                await self._dispatch_notification(message)

        requests = [message for message in messages if isinstance(message, types.JSONRPCRequest)]
        if not requests:
            return httpx.Response(202, headers=self._session_headers())

        replies = [await self._dispatch(message) for message in requests]
        return self._reply(request, replies, is_batch)

    def _handle_initialize(self, request: httpx.Request, messages: list[Any], is_batch: bool) -> httpx.Response:
        if self.session_id is not None:
            return self._error_response(400, types.INVALID_REQUEST, "Invalid Request: Server already initialized")
        if len(messages) > 1:
            return self._error_response(
                400, types.INVALID_REQUEST, "Invalid Request: Only one initialization request is allowed"
            )

        message = messages[0]
        try:
            params = types.InitializeRequestParams.model_validate(message.params or {})
        except ValidationError as e:
            return self._error_response(
                400, types.INVALID_PARAMS, f"Invalid initialize params: {e.error_count()} validation error(s)", message.id
            )

        requested = str(params.protocolVersion)
        version = requested if requested in SUPPORTED_PROTOCOL_VERSIONS else types.LATEST_PROTOCOL_VERSION
        options = self._engine.create_initialization_options()
        result = types.InitializeResult(
            protocolVersion=version,
            capabilities=options.capabilities,
            serverInfo=types.Implementation(name=options.server_name, version=options.server_version),
            instructions=options.instructions,
        )

        self.session_id = self._session_id_generator()
        self.client_info = params.clientInfo
        logger.info(
            "session_initialized",
            session_id=self.session_id,
            client=params.clientInfo.name,
            protocol_version=version,
        )
        return self._reply(request, [jsonrpc_result(message.id, _dump(result))], is_batch)

    def _reply(self, request: httpx.Request, replies: list[dict[str, Any]], is_batch: bool) -> httpx.Response:
        if self._wants_event_stream(request):
            return httpx.Response(
                200,
                headers={
                    **self._session_headers(),
                    "content-type": EVENT_STREAM,
                    "cache-control": "no-cache",
                },
                stream=_IteratorStream(self._reply_events(replies)),
            )
        payload = replies if is_batch else replies[0]
        return httpx.Response(200, headers=self._session_headers(), json=payload)

    async def _reply_events(self, replies: list[dict[str, Any]]) -> AsyncIterator[bytes]:
        for reply in replies:
            yield _sse_event(reply)

    def _wants_event_stream(self, request: httpx.Request) -> bool:
        return not self._json_response and EVENT_STREAM in request.headers.get("accept", "")

    async def _dispatch(self, message: types.JSONRPCRequest) -> dict[str, Any]:
        payload: dict[str, Any] = {"method": message.method}
        if message.params is not None:
            payload["params"] = message.params

        try:
            client_request = types.ClientRequest.model_validate(payload)
        except ValidationError as e:
            if message.method in self._handled_methods():
                return jsonrpc_error(message.id, types.INVALID_PARAMS, f"Invalid params for {message.method}: {e.error_count()} validation error(s)")
            return jsonrpc_error(message.id, types.METHOD_NOT_FOUND, f"Method not found: {message.method}")

        handler = self._engine.request_handlers.get(type(client_request.root))
        if handler is None:
            return jsonrpc_error(message.id, types.METHOD_NOT_FOUND, f"Method not found: {message.method}")

        try:
            result = await handler(client_request.root)
        except McpError as e:
            return jsonrpc_error(message.id, e.error.code, e.error.message, e.error.data)
        except MCPGatewayError as e:
            logger.info("request_rejected", method=message.method, error=e.code)
            return jsonrpc_error(message.id, e.rpc_code, e.message, {"code": e.code})
        except Exception as e:
            logger.error("request_handler_failed", method=message.method, error=str(e), exc_info=True)
            return jsonrpc_error(message.id, types.INTERNAL_ERROR, f"Internal error: {e}")

        return jsonrpc_result(message.id, _dump(result))

    async def _dispatch_notification(self, message: types.JSONRPCNotification) -> None:
        payload: dict[str, Any] = {"method": message.method}
        if message.params is not None:
            payload["params"] = message.params

        try:
            notification = types.ClientNotification.model_validate(payload)
        except ValidationError:
            logger.debug("notification_ignored", method=message.method)
            return

        handler = self._engine.notification_handlers.get(type(notification.root))
        if handler is None:
            return
        try:
            await handler(notification.root)
        except Exception as e:
            logger.error("notification_handler_failed", method=message.method, error=str(e), exc_info=True)

    def _handled_methods(self) -> set[str]:
        methods: set[str] = set()
        for request_type in self._engine.request_handlers:
            field = request_type.model_fields.get("method")
            if field is not None:
                methods.update(get_args(field.annotation))
        return methods

    # GET / DELETE

    def _handle_get(self, request: httpx.Request) -> httpx.Response:
        rejection = self._validate_session(request)
        if rejection is not None:
            return rejection
        if EVENT_STREAM not in request.headers.get("accept", ""):
            return self._error_response(
                406, TransportErrorCodes.BAD_REQUEST, "Not Acceptable: Client must accept text/event-stream"
            )

        return httpx.Response(
            200,
            headers={
                **self._session_headers(),
                "content-type": EVENT_STREAM,
                "cache-control": "no-cache",
            },
            stream=_IteratorStream(self._keepalive()),
        )

    async def _keepalive(self) -> AsyncIterator[bytes]:
        while not self._closed.is_set():
            try:
                await asyncio.wait_for(self._closed.wait(), timeout=self._keepalive_interval)
            except asyncio.TimeoutError:
                yield b": ping\n\n"

    async def _handle_delete(self, request: httpx.Request) -> httpx.Response:
        rejection = self._validate_session(request)
        if rejection is not None:
            return rejection
        headers = self._session_headers()
        await self.close()
        return httpx.Response(200, headers=headers)

    # Helpers

    def _validate_session(self, request: httpx.Request) -> httpx.Response | None:
        if self.session_id is None:
            return self._error_response(400, TransportErrorCodes.BAD_REQUEST, "Bad Request: Server not initialized")

        header = request.headers.get(MCP_SESSION_ID_HEADER)
        if not header:
            return self._error_response(400, TransportErrorCodes.BAD_REQUEST, "Bad Request: Mcp-Session-Id header is required")
        if header != self.session_id:
            return self._error_response(404, TransportErrorCodes.SESSION_NOT_FOUND, "Session not found")
        return None

    def _session_headers(self) -> dict[str, str]:
        if self.session_id is None:
            return {}
        return {MCP_SESSION_ID_HEADER: self.session_id}

    def _error_response(
        self,
        status_code: int,
        code: int,
        message: str,
        request_id: str | int | None = None,
    ) -> httpx.Response:
        return httpx.Response(status_code, json=jsonrpc_error(request_id, code, message))
