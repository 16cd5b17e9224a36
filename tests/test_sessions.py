"""Tests for SessionRegistry."""

from types import SimpleNamespace
from unittest.mock import AsyncMock

import pytest

from tiddly_mcp.exceptions import SessionAlreadyExistsError, SessionNotFoundError
from tiddly_mcp.mcp_transport.sessions import SessionRegistry


def _transport(session_id=None, close_side_effect=None):
    return SimpleNamespace(
        session_id=session_id,
        handle_request=AsyncMock(),
        close=AsyncMock(side_effect=close_side_effect),
    )


def _registry():
    created = []

    def factory(generator):
        transport = _transport()
        transport.generator = generator
        created.append(transport)
        return transport

    return SessionRegistry(factory, session_id_generator=lambda: "fixed-id"), created


def test_resolve_returns_registered_instance():
    registry, _ = _registry()
    transport = _transport("s1")
    registry.register("s1", transport)
    assert registry.resolve("s1") is transport
    assert registry.resolve("s1") is transport


def test_resolve_unknown_raises():
    registry, _ = _registry()
    with pytest.raises(SessionNotFoundError) as exc_info:
        registry.resolve("missing")
    assert exc_info.value.message == "No transport found for session: missing"


def test_create_for_new_session_does_not_register():
    registry, created = _registry()
    transport = registry.create_for_new_session()
    assert created == [transport]
    assert transport.generator() == "fixed-id"
    assert len(registry) == 0


def test_create_for_new_session_custom_generator():
    registry, _ = _registry()
    transport = registry.create_for_new_session(lambda: "other")
    assert transport.generator() == "other"


def test_register_conflict():
    registry, _ = _registry()
    first = _transport("s1")
    registry.register("s1", first)
    registry.register("s1", first)
    with pytest.raises(SessionAlreadyExistsError):
        registry.register("s1", _transport("s1"))
    assert registry.session_ids == ["s1"]


@pytest.mark.asyncio
async def test_close_removes_and_closes():
    registry, _ = _registry()
    transport = _transport("s1")
    registry.register("s1", transport)

    await registry.close("s1")

    transport.close.assert_awaited_once()
    assert "s1" not in registry


@pytest.mark.asyncio
async def test_close_failure_still_removes():
    registry, _ = _registry()
    transport = _transport("s1", close_side_effect=RuntimeError("stuck"))
    registry.register("s1", transport)

    await registry.close("s1")

    assert len(registry) == 0
    with pytest.raises(SessionNotFoundError):
        registry.resolve("s1")


@pytest.mark.asyncio
async def test_close_unknown_is_noop():
    registry, _ = _registry()
    await registry.close("missing")
    assert len(registry) == 0


@pytest.mark.asyncio
async def test_close_all():
    registry, _ = _registry()
    transports = [_transport(f"s{i}") for i in range(3)]
    for transport in transports:
        registry.register(transport.session_id, transport)

    await registry.close_all()

    assert len(registry) == 0
    for transport in transports:
        transport.close.assert_awaited_once()
