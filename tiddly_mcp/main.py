import asyncio
from contextlib import asynccontextmanager
from functools import partial

import structlog
import uvicorn
from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse, PlainTextResponse
from mcp.server.lowlevel import Server

from tiddly_mcp import __version__
from tiddly_mcp.config import Settings, apply_wiki_config, get_settings
from tiddly_mcp.exceptions import MCPGatewayError
from tiddly_mcp.logging_config import configure_logging
from tiddly_mcp.mcp_transport import (
    CORSPolicyMiddleware,
    MCPEndpoint,
    SessionRegistry,
    StreamableHTTPTransport,
)
from tiddly_mcp.tools import ToolRegistry
from tiddly_mcp.wiki import Wiki, create_wiki

logger = structlog.get_logger(__name__)

MCP_PATH = "/mcp"
NOT_FOUND_TEXT = "Not Found. Available endpoints: /mcp, /health"
ANY_METHOD = ["GET", "HEAD", "POST", "PUT", "PATCH", "DELETE"]


def create_engine(settings: Settings, wiki: Wiki) -> Server:
    """Protocol engine with the wiki tools installed."""
    engine = Server(settings.APP_NAME, version=__version__)
    ToolRegistry(
        wiki,
        read_only=settings.MCP_READ_ONLY,
        default_content_type=settings.MCP_DEFAULT_CONTENT_TYPE,
    ).register(engine)
    return engine


class ListenerServer(uvicorn.Server):
    """Uvicorn server that closes every MCP session as soon as shutdown begins.

    Uvicorn drains open connections before the lifespan shutdown runs, and a
    GET event stream only ends once its transport is closed.
    """

    def __init__(self, config: uvicorn.Config, sessions: SessionRegistry):
        super().__init__(config)
        self.sessions = sessions

    async def shutdown(self, sockets=None) -> None:
        await self.sessions.close_all()
        await super().shutdown(sockets=sockets)


def create_app(
    settings: Settings | None = None,
    wiki: Wiki | None = None,
    engine: Server | None = None,
) -> FastAPI:
    """Build the HTTP listener.

    Args:
        settings: Listener settings; defaults to the environment.
        wiki: Store served by the tools; defaults to ``create_wiki(settings)``.
        engine: Protocol engine; defaults to one with the wiki tools.

    Returns:
        The FastAPI application. Wiki start and session cleanup run in its
        lifespan.
    """
    settings = settings or get_settings()
    wiki = wiki if wiki is not None else create_wiki(settings)
    engine = engine or create_engine(settings, wiki)

    sessions = SessionRegistry(
        partial(
            StreamableHTTPTransport,
            engine,
            json_response=settings.MCP_JSON_RESPONSE,
            keepalive_interval=settings.MCP_KEEPALIVE_SECONDS,
        )
    )

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        await wiki.start()
        logger.info(
            "mcp_server_started",
            host=settings.MCP_HOST,
            port=settings.MCP_PORT,
            read_only=settings.MCP_READ_ONLY,
        )

        yield

        await sessions.close_all()
        await wiki.close()
        logger.info("mcp_server_stopped")

    app = FastAPI(
        title=settings.APP_NAME,
        version=__version__,
        lifespan=lifespan,
        debug=settings.DEBUG,
        docs_url=None,
        redoc_url=None,
        openapi_url=None,
    )
    app.state.settings = settings
    app.state.wiki = wiki
    app.state.engine = engine
    app.state.sessions = sessions

    app.add_middleware(CORSPolicyMiddleware, allowed_origins=settings.cors_origins)

    @app.exception_handler(MCPGatewayError)
    async def gateway_exception_handler(request: Request, exc: MCPGatewayError):
        return JSONResponse(
            status_code=500,
            content={"error": exc.code, "message": exc.message}
        )

    @app.exception_handler(404)
    async def not_found_handler(request: Request, exc: Exception):
        return PlainTextResponse(NOT_FOUND_TEXT, status_code=404)

    @app.api_route("/health", methods=ANY_METHOD)
    async def health_check():
        return {
            "status": "ok",
            "service": settings.APP_NAME,
            "activeSessions": len(sessions),
        }

    # OAuth discovery probes get an empty document instead of a 404
    @app.api_route("/.well-known/{path:path}", methods=ANY_METHOD)
    async def well_known(path: str):
        return {}

    app.add_route(MCP_PATH, MCPEndpoint(sessions), include_in_schema=False)

    return app


async def serve(settings: Settings | None = None) -> None:
    """Start the store, apply its config tiddlers and run the listener."""
    settings = settings or get_settings()
    configure_logging(settings.MCP_LOG_LEVEL)

    wiki = create_wiki(settings)
    await wiki.start()
    try:
        settings = await apply_wiki_config(settings, wiki)
    except Exception:
        await wiki.close()
        raise

    configure_logging(settings.MCP_LOG_LEVEL)
    if not settings.MCP_ENABLED:
        logger.info("mcp_server_disabled")
        await wiki.close()
        return

    app = create_app(settings=settings, wiki=wiki)
    config = uvicorn.Config(
        app,
        host=settings.MCP_HOST,
        port=settings.MCP_PORT,
        log_level="warning" if settings.MCP_LOG_LEVEL == "warn" else settings.MCP_LOG_LEVEL,
        timeout_graceful_shutdown=settings.MCP_SHUTDOWN_TIMEOUT_SECONDS,
    )
    try:
        await ListenerServer(config, app.state.sessions).serve()
    except OSError as e:
        logger.error("http_server_error", host=settings.MCP_HOST, port=settings.MCP_PORT, error=str(e))


def run() -> None:
    """Console entry point."""
    asyncio.run(serve())
