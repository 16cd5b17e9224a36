"""Tests for the SQLAlchemy-backed wiki using a temporary SQLite file."""

import pytest
import pytest_asyncio

from tiddly_mcp.config import Settings
from tiddly_mcp.wiki import MemoryWiki, SQLWiki, create_wiki
from tiddly_mcp.wiki.models import TiddlerRecord

from conftest import sample_tiddlers


@pytest_asyncio.fixture
async def sql_wiki(tmp_path):
    wiki = SQLWiki(f"sqlite+aiosqlite:///{tmp_path / 'wiki.db'}")
    await wiki.start()
    await wiki.put_many(sample_tiddlers())
    yield wiki
    await wiki.close()


@pytest.mark.asyncio
async def test_get_round_trips_fields(sql_wiki):
    fields = await sql_wiki.get("Apple")
    assert fields == {"title": "Apple", "text": "A red fruit", "tags": ["Fruit", "Food"], "type": "text/markdown"}


@pytest.mark.asyncio
async def test_get_missing_returns_none(sql_wiki):
    assert await sql_wiki.get("Nope") is None


@pytest.mark.asyncio
async def test_put_replaces_all_fields(sql_wiki):
    await sql_wiki.put({"title": "Apple", "text": "replaced"})
    assert await sql_wiki.get("Apple") == {"title": "Apple", "text": "replaced"}


@pytest.mark.asyncio
async def test_list_titles_sorted_by_title(sql_wiki):
    assert await sql_wiki.list_titles() == ["$:/SiteTitle", "$:/config/Hidden", "Apple", "Banana", "Zebra"]


@pytest.mark.asyncio
async def test_delete(sql_wiki):
    await sql_wiki.delete("Banana")
    await sql_wiki.delete("Banana")
    assert "Banana" not in await sql_wiki.list_titles()


@pytest.mark.asyncio
async def test_filter_and_search_use_snapshot(sql_wiki):
    assert await sql_wiki.filter("[tag[Fruit]]") == ["Apple", "Banana"]
    assert await sql_wiki.search("striped") == ["Zebra"]


@pytest.mark.asyncio
async def test_data_survives_reopen(tmp_path):
    url = f"sqlite+aiosqlite:///{tmp_path / 'persist.db'}"
    first = SQLWiki(url)
    await first.start()
    await first.put({"title": "Kept", "text": "still here"})
    await first.close()

    second = SQLWiki(url)
    await second.start()
    try:
        assert await second.get_text("Kept") == "still here"
    finally:
        await second.close()


def test_tiddler_record_repr():
    assert "Apple" in repr(TiddlerRecord(title="Apple", fields={"title": "Apple"}))


def test_create_wiki_picks_backend():
    assert isinstance(create_wiki(Settings(DATABASE_URL="")), MemoryWiki)
    assert isinstance(create_wiki(Settings(DATABASE_URL="sqlite+aiosqlite:///:memory:")), SQLWiki)
