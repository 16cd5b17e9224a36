"""CORS middleware for the MCP listener."""

from typing import Callable, Iterable

from fastapi import Request, Response
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.types import ASGIApp

ALLOW_METHODS = "GET, POST, DELETE, OPTIONS"
ALLOW_HEADERS = "Content-Type, MCP-Session-ID, MCP-Protocol-Version"
EXPOSE_HEADERS = "MCP-Session-ID"


def add_cors_headers(response: Response, origin: str) -> None:
    """Add the CORS headers granting ``origin`` to a response.

    Args:
        response: Response to add headers to.
        origin: Origin to echo back.
    """
    response.headers["Access-Control-Allow-Origin"] = origin
    response.headers["Access-Control-Allow-Methods"] = ALLOW_METHODS
    response.headers["Access-Control-Allow-Headers"] = ALLOW_HEADERS
    response.headers["Access-Control-Allow-Credentials"] = "true"
    response.headers["Access-Control-Expose-Headers"] = EXPOSE_HEADERS


class CORSPolicyMiddleware(BaseHTTPMiddleware):
    """Applies the configured origin allow-list to every response.

    A request without an Origin header is treated as origin ``*``. Preflight
    OPTIONS requests are answered here with 200 and an empty body for any
    path; disallowed origins simply get no CORS headers.
    """

    def __init__(self, app: ASGIApp, allowed_origins: Iterable[str] = ("*",)):
        super().__init__(app)
        self.allowed_origins = list(allowed_origins)

    def is_allowed(self, origin: str) -> bool:
        return "*" in self.allowed_origins or origin in self.allowed_origins

    async def dispatch(self, request: Request, call_next: Callable):
        origin = request.headers.get("origin") or "*"

        if request.method == "OPTIONS":
            response = Response(status_code=200)
        else:
            response = await call_next(request)

        if self.is_allowed(origin):
            add_cors_headers(response, origin)
        return response
