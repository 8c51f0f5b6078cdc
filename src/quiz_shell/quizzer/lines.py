"""Line sessions: one user's bidirectional text channel.

A session exposes exactly two capabilities to the engine: ``ask`` suspends
until the user submits one line, and ``write`` emits output. The console
flavour talks to the local terminal; the stream flavour wraps one TCP client
connection accepted by :mod:`quiz_shell.quizzer.server`.
"""

from __future__ import annotations

import asyncio
import logging
from typing import TYPE_CHECKING, Callable

from rich.console import Console, RenderableType
from rich.text import Text

from .errors import LineTooLong, SessionClosed, TransportError
from .render import render_to_text

if TYPE_CHECKING:  # pragma: no cover
    from .engine import PlaySession

__all__ = [
    "LineSession",
    "ConsoleLineSession",
    "StreamLineSession",
]

logger = logging.getLogger(__name__)

InputProvider = Callable[[str], str]

# Matches the asyncio StreamReader default buffer limit.
LINE_LIMIT = 2**16


class LineSession:
    """Base class holding the per-session state shared by all transports."""

    def __init__(self, peer: str) -> None:
        self.peer = peer
        self.game: PlaySession | None = None
        self._closed = False

    @property
    def closed(self) -> bool:
        return self._closed

    async def ask(self, prompt: str) -> str:
        """Show ``prompt`` and return the next line without its newline."""

        raise NotImplementedError

    async def write(self, *renderables: RenderableType) -> None:
        """Emit each renderable on its own line."""

        raise NotImplementedError

    async def close(self) -> None:
        """Stop the session and drop any game in progress."""

        self.game = None
        self._closed = True

    def _ensure_open(self) -> None:
        if self._closed:
            raise SessionClosed()


class ConsoleLineSession(LineSession):
    """Session bound to the local terminal through a Rich console.

    Reads happen in a worker thread so the event loop stays free while the
    user is typing.
    """

    def __init__(
        self,
        console: Console | None = None,
        *,
        input_provider: InputProvider | None = None,
    ) -> None:
        super().__init__("console")
        self._console = console or Console(highlight=False)
        self._input = input_provider or self._console_input

    @property
    def console(self) -> Console:
        return self._console

    async def ask(self, prompt: str) -> str:
        self._ensure_open()
        try:
            line = await asyncio.to_thread(self._input, prompt)
        except EOFError as exc:
            self._closed = True
            raise SessionClosed("End of input.") from exc
        return line.rstrip("\r\n")

    async def write(self, *renderables: RenderableType) -> None:
        self._ensure_open()
        for renderable in renderables:
            self._console.print(renderable)

    def _console_input(self, prompt: str) -> str:
        return self._console.input(Text(prompt, style="red"))


class StreamLineSession(LineSession):
    """Session bound to one asyncio stream pair (a TCP client)."""

    def __init__(
        self,
        reader: asyncio.StreamReader,
        writer: asyncio.StreamWriter,
        *,
        color: bool = True,
        width: int = 80,
        line_limit: int = LINE_LIMIT,
    ) -> None:
        peer = writer.get_extra_info("peername")
        super().__init__(
            "{0}:{1}".format(*peer[:2]) if peer else "unknown"
        )
        self._reader = reader
        self._writer = writer
        self._color = color
        self._width = width
        self._line_limit = line_limit

    async def ask(self, prompt: str) -> str:
        self._ensure_open()
        await self._send(
            render_to_text(
                Text(prompt, style="red"),
                color=self._color,
                width=self._width,
                end="",
            )
        )
        try:
            raw = await self._read_line()
        except (ConnectionError, asyncio.IncompleteReadError) as exc:
            self._closed = True
            raise SessionClosed(f"Connection lost: {exc}") from exc
        if not raw:
            self._closed = True
            raise SessionClosed("Client disconnected.")
        return raw.decode("utf-8", errors="replace").rstrip("\r\n")

    async def _read_line(self) -> bytes:
        """Read one line; overlong lines are skipped and raise LineTooLong."""

        try:
            return await self._reader.readuntil(b"\n")
        except asyncio.IncompleteReadError as exc:
            return exc.partial
        except asyncio.LimitOverrunError as exc:
            pending = exc.consumed
        while True:
            await self._reader.readexactly(pending)
            try:
                await self._reader.readuntil(b"\n")
            except asyncio.LimitOverrunError as exc:
                pending = exc.consumed
                continue
            logger.info(
                "overlong line discarded",
                extra={"limit": self._line_limit},
            )
            raise LineTooLong(self._line_limit)

    async def write(self, *renderables: RenderableType) -> None:
        self._ensure_open()
        for renderable in renderables:
            await self._send(
                render_to_text(
                    renderable, color=self._color, width=self._width
                )
            )

    async def close(self) -> None:
        await super().close()
        if self._writer.is_closing():
            return
        self._writer.close()
        try:
            await self._writer.wait_closed()
        except ConnectionError as exc:
            logger.debug(
                "connection reset during close",
                extra={"peer": self.peer, "error": str(exc)},
            )

    async def _send(self, text: str) -> None:
        try:
            self._writer.write(text.encode("utf-8"))
            await self._writer.drain()
        except ConnectionError as exc:
            self._closed = True
            raise TransportError(
                f"Failed to write to {self.peer}: {exc}"
            ) from exc
