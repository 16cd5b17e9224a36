"""Registry of live MCP sessions keyed by session id."""

from typing import Callable, Protocol

import httpx
import structlog

from tiddly_mcp.exceptions import SessionAlreadyExistsError, SessionNotFoundError

from .transport import SessionIdGenerator, generate_session_id

logger = structlog.get_logger(__name__)


class Transport(Protocol):
    """What the registry and endpoint need from a session transport."""

    session_id: str | None

    async def handle_request(self, request: httpx.Request) -> httpx.Response:
        ...

    async def close(self) -> None:
        ...


TransportFactory = Callable[[SessionIdGenerator], Transport]


class SessionRegistry:
    """Maps session ids to the transport serving each session.

    Lookups never create anything; a new transport is only built through
    ``create_for_new_session`` and becomes resolvable once ``register`` is
    called with the id it assigned.

    Args:
        transport_factory: Builds a transport from a session id generator.
        session_id_generator: Default generator for new sessions.
    """

    def __init__(
        self,
        transport_factory: TransportFactory,
        session_id_generator: SessionIdGenerator = generate_session_id,
    ):
        self._transport_factory = transport_factory
        self._session_id_generator = session_id_generator
        self._sessions: dict[str, Transport] = {}

    def __len__(self) -> int:
        return len(self._sessions)

    def __contains__(self, session_id: object) -> bool:
        return session_id in self._sessions

    @property
    def session_ids(self) -> list[str]:
        return list(self._sessions)

    def resolve(self, session_id: str) -> Transport:
        """Return the transport for ``session_id``.

        Raises:
            SessionNotFoundError: If no such session is registered.
        """
        transport = self._sessions.get(session_id)
        if transport is None:
            raise SessionNotFoundError(session_id)
        return transport

    def create_for_new_session(self, session_id_generator: SessionIdGenerator | None = None) -> Transport:
        return self._transport_factory(session_id_generator or self._session_id_generator)

    def register(self, session_id: str, transport: Transport) -> None:
        """Make ``transport`` resolvable under ``session_id``.

        Registering the same transport twice is a no-op.

        Raises:
            SessionAlreadyExistsError: If a different transport owns the id.
        """
        existing = self._sessions.get(session_id)
        if existing is not None and existing is not transport:
            raise SessionAlreadyExistsError(session_id)
        self._sessions[session_id] = transport
        logger.info("session_registered", session_id=session_id, active_sessions=len(self._sessions))

    async def close(self, session_id: str) -> None:
        """Remove a session and close its transport.

        The entry is removed even when closing the transport fails.
        """
        transport = self._sessions.pop(session_id, None)
        if transport is None:
            logger.debug("session_close_skipped", session_id=session_id)
            return

        try:
            await transport.close()
        except Exception as e:
            logger.warning("session_close_failed", session_id=session_id, error=str(e))
        logger.info("session_closed", session_id=session_id, active_sessions=len(self._sessions))

    async def close_all(self) -> None:
        for session_id in list(self._sessions):
            await self.close(session_id)
