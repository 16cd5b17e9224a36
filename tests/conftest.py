# Test configuration
import sys
from pathlib import Path

import pytest

REPO_ROOT = Path(__file__).parent.parent

# Add repo root to path so tests can import modules
sys.path.insert(0, str(REPO_ROOT))

from tiddly_mcp.config import Settings  # noqa: E402
from tiddly_mcp.wiki import MemoryWiki  # noqa: E402


def sample_tiddlers() -> list[dict]:
    return [
        {
            "title": "Zebra",
            "text": "Striped animal",
            "tags": ["Animals"],
            "created": "20240101120000000",
            "modified": "20240102120000000",
        },
        {"title": "Apple", "text": "A red fruit", "tags": ["Fruit", "Food"], "type": "text/markdown"},
        {"title": "Banana", "text": "A yellow fruit", "tags": ["Fruit"]},
        {"title": "$:/SiteTitle", "text": "My Wiki"},
        {"title": "$:/config/Hidden", "text": "hidden"},
    ]


@pytest.fixture
def wiki() -> MemoryWiki:
    return MemoryWiki(sample_tiddlers())


@pytest.fixture
def settings() -> Settings:
    return Settings(MCP_JSON_RESPONSE=True, DATABASE_URL="", MCP_CORS_ORIGINS="*")
