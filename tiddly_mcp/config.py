from functools import lru_cache
from typing import TYPE_CHECKING, Literal

import structlog
from pydantic import TypeAdapter
from pydantic_settings import BaseSettings, SettingsConfigDict

if TYPE_CHECKING:
    from tiddly_mcp.wiki import Wiki

logger = structlog.get_logger(__name__)

CONFIG_TIDDLER_PREFIX = "$:/plugins/rryan/tiddly-mcp/configs/"
DEFAULT_CONTENT_TYPE_TIDDLER = CONFIG_TIDDLER_PREFIX + "default-content-type"

LogLevel = Literal["debug", "info", "warn", "error"]


class Settings(BaseSettings):
    # App
    APP_NAME: str = "tiddlywiki-mcp"
    DEBUG: bool = False

    # MCP listener
    MCP_ENABLED: bool = True
    MCP_READ_ONLY: bool = True
    MCP_HOST: str = "127.0.0.1"
    MCP_PORT: int = 3100
    MCP_CORS_ORIGINS: str = "*"
    MCP_DEFAULT_CONTENT_TYPE: str = "text/vnd.tiddlywiki"
    MCP_LOG_LEVEL: LogLevel = "info"
    MCP_JSON_RESPONSE: bool = False
    MCP_KEEPALIVE_SECONDS: float = 30.0
    MCP_SHUTDOWN_TIMEOUT_SECONDS: int = 10

    # Store; empty selects the in-memory wiki
    DATABASE_URL: str = ""

    model_config = SettingsConfigDict(env_file=".env", case_sensitive=True, extra="ignore")

    @property
    def cors_origins(self) -> list[str]:
        return parse_cors_origins(self.MCP_CORS_ORIGINS)


@lru_cache()
def get_settings() -> Settings:
    return Settings()


def parse_cors_origins(origins: str | None) -> list[str]:
    """Split a comma separated origin list; empty or ``*`` means any origin."""
    if not origins or origins.strip() == "*":
        return ["*"]
    return [origin.strip() for origin in origins.split(",") if origin.strip()]


def _flag(value: str) -> bool:
    return value.strip().lower() == "yes"


async def apply_wiki_config(settings: Settings, wiki: "Wiki") -> Settings:
    """Overlay the plugin config tiddlers stored in the wiki onto ``settings``.

    Only tiddlers that exist and hold a valid value are applied; environment
    values stay in effect for anything else.

    Args:
        settings: Settings loaded from the environment.
        wiki: Started wiki store.

    Returns:
        A new Settings instance with the overrides applied.
    """
    readers = {
        "enabled": ("MCP_ENABLED", _flag),
        "read-only": ("MCP_READ_ONLY", _flag),
        "port": ("MCP_PORT", lambda value: int(value.strip())),
        "cors-origins": ("MCP_CORS_ORIGINS", str.strip),
        "default-content-type": ("MCP_DEFAULT_CONTENT_TYPE", str.strip),
        "log-level": ("MCP_LOG_LEVEL", lambda value: value.strip().lower()),
    }

    updates = {}
    for suffix, (field_name, convert) in readers.items():
        title = CONFIG_TIDDLER_PREFIX + suffix
        tiddler = await wiki.get(title)
        if tiddler is None:
            continue
        raw = str(tiddler.get("text", ""))
        try:
            annotation = Settings.model_fields[field_name].annotation
            updates[field_name] = TypeAdapter(annotation).validate_python(convert(raw))
        except ValueError as e:
            logger.warning("config_tiddler_invalid", tiddler=title, value=raw, error=str(e))

    if not updates:
        return settings
    return Settings.model_validate({**settings.model_dump(), **updates})
