"""TCP front end: one independent line session per connected client."""

from __future__ import annotations

import asyncio
import logging

from ..core.logging import bind_peer
from .dispatcher import DEFAULT_PROMPT, Dispatcher
from .engine import QuizEngine
from .errors import TransportError
from .lines import LINE_LIMIT, StreamLineSession
from .render import banner

__all__ = ["QuizServer"]

logger = logging.getLogger(__name__)


class QuizServer:
    """Accept clients and run a dispatcher for each of them.

    Clients share the engine (and therefore the repository) but nothing else;
    a client quitting or disconnecting only ends its own session.
    """

    def __init__(
        self,
        engine: QuizEngine,
        *,
        host: str = "127.0.0.1",
        port: int = 3030,
        color: bool = True,
        prompt: str = DEFAULT_PROMPT,
        line_limit: int = LINE_LIMIT,
    ) -> None:
        self._engine = engine
        self._host = host
        self._port = port
        self._color = color
        self._prompt = prompt
        self._line_limit = line_limit
        self._server: asyncio.Server | None = None
        self._sessions: set[StreamLineSession] = set()

    @property
    def sessions(self) -> frozenset[StreamLineSession]:
        return frozenset(self._sessions)

    @property
    def port(self) -> int:
        """Bound port; differs from the configured one when that was 0."""

        if self._server is None or not self._server.sockets:
            return self._port
        return self._server.sockets[0].getsockname()[1]

    async def start(self) -> None:
        self._server = await asyncio.start_server(
            self._handle_client,
            self._host,
            self._port,
            limit=self._line_limit,
        )
        logger.info(
            "server listening", extra={"host": self._host, "port": self.port}
        )

    async def serve_forever(self) -> None:
        if self._server is None:
            await self.start()
        assert self._server is not None
        async with self._server:
            await self._server.serve_forever()

    async def close(self) -> None:
        if self._server is None:
            return
        self._server.close()
        for session in list(self._sessions):
            await session.close()
        await self._server.wait_closed()
        self._server = None
        logger.info("server stopped")

    async def _handle_client(
        self, reader: asyncio.StreamReader, writer: asyncio.StreamWriter
    ) -> None:
        session = StreamLineSession(
            reader, writer, color=self._color, line_limit=self._line_limit
        )
        self._sessions.add(session)
        with bind_peer(session.peer):
            logger.info("client connected")
            try:
                await session.write(banner("Quiz Shell", "green"))
                await Dispatcher(
                    self._engine, session, prompt=self._prompt
                ).run()
            except TransportError as exc:
                logger.info("client dropped", extra={"reason": str(exc)})
            except Exception:  # noqa: BLE001 - isolate client failures
                logger.exception("client session crashed")
            finally:
                self._sessions.discard(session)
                await session.close()
