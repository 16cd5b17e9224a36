"""Tests for the ASGI host adapter and HostResponse."""

import httpx
import pytest
from starlette.requests import Request

from tiddly_mcp.mcp_transport.adapter import ASGIHostAdapter, HostResponse


def _request(method: str = "POST", headers: list[tuple[bytes, bytes]] | None = None, query: bytes = b"") -> Request:
    scope = {
        "type": "http",
        "method": method,
        "path": "/mcp",
        "query_string": query,
        "headers": headers if headers is not None else [(b"host", b"wiki.local:3100")],
    }
    return Request(scope)


class _Recorder:
    def __init__(self):
        self.messages: list[dict] = []

    async def __call__(self, message: dict) -> None:
        self.messages.append(message)


class _ChunkStream(httpx.AsyncByteStream):
    def __init__(self, chunks: list[bytes]):
        self.chunks = chunks
        self.closed = False

    async def __aiter__(self):
        for chunk in self.chunks:
            yield chunk

    async def aclose(self) -> None:
        self.closed = True


class TestToStandardRequest:
    """Tests for ASGIHostAdapter.to_standard_request."""

    def test_url_from_host_header_and_query(self):
        request = ASGIHostAdapter().to_standard_request(_request(query=b"a=1&b=2"), b"{}")
        assert str(request.url) == "http://wiki.local:3100/mcp?a=1&b=2"
        assert request.method == "POST"

    def test_missing_host_defaults_to_localhost(self):
        request = ASGIHostAdapter().to_standard_request(_request(headers=[]), b"")
        assert request.url.host == "localhost"

    def test_repeated_headers_kept(self):
        headers = [(b"host", b"h"), (b"x-trace", b"one"), (b"x-trace", b"two")]
        request = ASGIHostAdapter().to_standard_request(_request(headers=headers), b"")
        assert request.headers.get_list("x-trace") == ["one", "two"]

    def test_body_attached_for_post(self):
        request = ASGIHostAdapter().to_standard_request(_request("POST"), b'{"a": 1}')
        assert request.content == b'{"a": 1}'

    def test_body_dropped_for_get(self):
        request = ASGIHostAdapter().to_standard_request(_request("GET"), b"ignored")
        assert request.content == b""

    def test_missing_method_rejected(self):
        request = Request({"type": "http", "headers": [], "path": "/mcp"})
        with pytest.raises(ValueError):
            ASGIHostAdapter().to_standard_request(request, b"")


class TestFromStandardResponse:
    """Tests for ASGIHostAdapter.from_standard_response."""

    @pytest.mark.asyncio
    async def test_streams_every_chunk_then_ends_once(self):
        stream = _ChunkStream([b"one", b"two", b"three"])
        response = httpx.Response(200, headers=[("X-Multi", "a"), ("X-Multi", "b")], stream=stream)
        send = _Recorder()

        await ASGIHostAdapter().from_standard_response(response, HostResponse(send))

        start, *bodies = send.messages
        assert start["status"] == 200
        assert [value for name, value in start["headers"] if name == b"x-multi"] == [b"a", b"b"]
        assert [body["body"] for body in bodies] == [b"one", b"two", b"three", b""]
        assert [body["more_body"] for body in bodies] == [True, True, True, False]
        assert stream.closed is True

    @pytest.mark.asyncio
    async def test_prebuilt_content(self):
        send = _Recorder()
        await ASGIHostAdapter().from_standard_response(httpx.Response(202), HostResponse(send))
        assert send.messages[0]["status"] == 202
        assert send.messages[-1] == {"type": "http.response.body", "body": b"", "more_body": False}


class TestHostResponse:
    """Tests for HostResponse bookkeeping."""

    @pytest.mark.asyncio
    async def test_start_twice_rejected(self):
        response = HostResponse(_Recorder())
        await response.start(200, [])
        with pytest.raises(RuntimeError):
            await response.start(200, [])

    @pytest.mark.asyncio
    async def test_end_is_idempotent(self):
        send = _Recorder()
        response = HostResponse(send)
        await response.start(200, [])
        await response.end()
        await response.end()
        assert len(send.messages) == 2
        assert response.finished is True

    @pytest.mark.asyncio
    async def test_write_failure_marks_finished(self):
        response = HostResponse(_Recorder())
        await response.start(200, [])

        async def broken_send(message):
            raise ConnectionResetError("peer gone")

        response._send = broken_send
        await response.write(b"data")
        assert response.finished is True

    @pytest.mark.asyncio
    async def test_send_json(self):
        send = _Recorder()
        await HostResponse(send).send_json(500, {"error": "x"})
        assert send.messages[0]["status"] == 500
        assert send.messages[1]["body"] == b'{"error": "x"}'
