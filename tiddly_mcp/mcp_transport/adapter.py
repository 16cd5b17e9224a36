"""Bridges host HTTP exchanges to the standard request/response types.

The transport speaks ``httpx.Request``/``httpx.Response`` only, so it never
sees a host-specific object. The host side is an ASGI application: requests
arrive as Starlette ``Request`` objects and responses are written through the
ASGI ``send`` callable.
"""

import json
from typing import Any, Iterable, Protocol

import httpx
import structlog
from starlette.requests import Request
from starlette.types import Send

logger = structlog.get_logger(__name__)

BODYLESS_METHODS = frozenset({"GET", "HEAD"})


class HostResponse:
    """One outgoing response on an ASGI connection.

    Tracks whether the status line has gone out and whether the body was
    ended, so callers can tell if an error is still reportable and the
    response is never started or ended twice.
    """

    def __init__(self, send: Send):
        self._send = send
        self.headers_sent = False
        self.finished = False

    async def start(self, status: int, headers: Iterable[tuple[bytes, bytes]]) -> None:
        if self.headers_sent:
            raise RuntimeError("Response already started")
        self.headers_sent = True
        await self._send({
            "type": "http.response.start",
            "status": status,
            "headers": list(headers),
        })

    async def write(self, chunk: bytes) -> None:
        if not self.headers_sent:
            raise RuntimeError("Response not started")
        if self.finished or not chunk:
            return
        try:
            await self._send({"type": "http.response.body", "body": chunk, "more_body": True})
        except OSError as e:
            # Peer went away; the rest of the body has nowhere to go
            logger.warning("response_write_failed", error=str(e))
            self.finished = True

    async def end(self, chunk: bytes = b"") -> None:
        if self.finished:
            return
        if not self.headers_sent:
            raise RuntimeError("Response not started")
        self.finished = True
        await self._send({"type": "http.response.body", "body": chunk, "more_body": False})

    async def send_json(self, status: int, payload: Any) -> None:
        body = json.dumps(payload).encode("utf-8")
        await self.start(status, [
            (b"content-type", b"application/json"),
            (b"content-length", str(len(body)).encode("latin-1")),
        ])
        await self.end(body)


class HostAdapter(Protocol):
    """Converts between one host HTTP exchange and the standard types."""

    def to_standard_request(self, host_request: Any, body: bytes | None = None) -> httpx.Request:
        ...

    async def from_standard_response(self, response: httpx.Response, host_response: HostResponse) -> None:
        ...


class ASGIHostAdapter:
    """HostAdapter for Starlette/ASGI hosts."""

    scheme = "http"

    def to_standard_request(self, host_request: Request, body: bytes | None = None) -> httpx.Request:
        """Build an ``httpx.Request`` from a Starlette request.

        Repeated headers are kept as separate entries. The body is attached
        only for methods that carry one.

        Args:
            host_request: Incoming Starlette request.
            body: Already-read request body.

        Raises:
            ValueError: If the ASGI scope has no method or headers.
        """
        scope = host_request.scope
        method = scope.get("method")
        raw_headers = scope.get("headers")
        if not method or raw_headers is None:
            raise ValueError("Host request is missing its method or headers")

        headers = httpx.Headers([
            (name.decode("latin-1"), value.decode("latin-1"))
            for name, value in raw_headers
        ])
        host = headers.get("host") or "localhost"
        target = scope.get("path") or "/"
        query = scope.get("query_string") or b""
        if query:
            target = f"{target}?{query.decode('latin-1')}"

        content = body if body and method not in BODYLESS_METHODS else None
        return httpx.Request(method, f"{self.scheme}://{host}{target}", headers=headers, content=content)

    async def from_standard_response(self, response: httpx.Response, host_response: HostResponse) -> None:
        """Write status, headers and the streamed body to the host response.

        The body is forwarded chunk by chunk as the standard response yields
        it, then the host response is ended exactly once.
        """
        headers = [(name.lower(), value) for name, value in response.headers.raw]
        await host_response.start(response.status_code, headers)
        try:
            async for chunk in response.aiter_bytes():
                await host_response.write(chunk)
                if host_response.finished:
                    break
        finally:
            await response.aclose()
        await host_response.end()
