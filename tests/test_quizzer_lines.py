from __future__ import annotations

import asyncio

import pytest
from rich.console import Console

from quiz_shell.quizzer.errors import (
    LineTooLong,
    SessionClosed,
    TransportError,
)
from quiz_shell.quizzer.lines import ConsoleLineSession, StreamLineSession
from quiz_shell.quizzer.render import banner


def make_provider(lines: list[str]):
    iterator = iter(lines)

    def _provider(prompt: str) -> str:
        try:
            return next(iterator)
        except StopIteration:
            raise EOFError from None

    return _provider


class FakeWriter:
    def __init__(self, *, fail: bool = False) -> None:
        self.buffer = bytearray()
        self.fail = fail
        self.close_calls = 0
        self._closing = False

    def get_extra_info(self, name: str):
        return ("127.0.0.1", 50000) if name == "peername" else None

    def write(self, data: bytes) -> None:
        self.buffer.extend(data)

    async def drain(self) -> None:
        if self.fail:
            raise ConnectionResetError("reset by peer")

    def is_closing(self) -> bool:
        return self._closing

    def close(self) -> None:
        self.close_calls += 1
        self._closing = True

    async def wait_closed(self) -> None:
        return None

    @property
    def text(self) -> str:
        return self.buffer.decode("utf-8")


@pytest.mark.asyncio
async def test_console_session_reads_and_writes() -> None:
    console = Console(record=True, width=80)
    session = ConsoleLineSession(
        console, input_provider=make_provider(["list\n"])
    )

    assert await session.ask("quiz > ") == "list"
    await session.write("hello", banner(3))

    rendered = console.export_text()
    assert "hello" in rendered
    assert "3" in rendered
    assert session.peer == "console"


@pytest.mark.asyncio
async def test_console_session_eof_closes() -> None:
    session = ConsoleLineSession(
        Console(record=True), input_provider=make_provider([])
    )

    with pytest.raises(SessionClosed):
        await session.ask("quiz > ")

    assert session.closed
    with pytest.raises(SessionClosed):
        await session.write("late")


@pytest.mark.asyncio
async def test_stream_session_prompt_and_line() -> None:
    reader = asyncio.StreamReader()
    reader.feed_data(b"show 1\r\n")
    writer = FakeWriter()
    session = StreamLineSession(reader, writer, color=False)

    assert await session.ask("quiz > ") == "show 1"

    assert writer.text == "quiz > "
    assert session.peer == "127.0.0.1:50000"


@pytest.mark.asyncio
async def test_stream_session_plain_output() -> None:
    writer = FakeWriter()
    session = StreamLineSession(asyncio.StreamReader(), writer, color=False)

    await session.write("first", "second")

    assert writer.text == "first\nsecond\n"
    assert "\x1b[" not in writer.text


@pytest.mark.asyncio
async def test_stream_session_color_output() -> None:
    writer = FakeWriter()
    session = StreamLineSession(asyncio.StreamReader(), writer, color=True)

    await session.write(banner("Correct", "green"))

    assert "\x1b[" in writer.text


@pytest.mark.asyncio
async def test_stream_session_disconnect() -> None:
    reader = asyncio.StreamReader()
    reader.feed_eof()
    session = StreamLineSession(reader, FakeWriter(), color=False)

    with pytest.raises(SessionClosed):
        await session.ask("quiz > ")
    assert session.closed


@pytest.mark.asyncio
async def test_stream_session_write_failure() -> None:
    session = StreamLineSession(
        asyncio.StreamReader(), FakeWriter(fail=True), color=False
    )

    with pytest.raises(TransportError):
        await session.write("hello")
    assert session.closed


@pytest.mark.asyncio
async def test_stream_session_close_is_idempotent() -> None:
    writer = FakeWriter()
    session = StreamLineSession(asyncio.StreamReader(), writer)
    session.game = object()

    await session.close()
    await session.close()

    assert writer.close_calls == 1
    assert session.game is None
    assert session.closed


@pytest.mark.asyncio
async def test_stream_session_skips_overlong_line() -> None:
    reader = asyncio.StreamReader(limit=16)
    reader.feed_data(b"x" * 40 + b"\nshow 1\n")
    session = StreamLineSession(
        reader, FakeWriter(), color=False, line_limit=16
    )

    with pytest.raises(LineTooLong, match="limit 16 bytes"):
        await session.ask("quiz > ")

    assert not session.closed
    assert await session.ask("quiz > ") == "show 1"


@pytest.mark.asyncio
async def test_stream_session_skips_overlong_line_split_across_reads() -> None:
    reader = asyncio.StreamReader(limit=16)
    reader.feed_data(b"x" * 40)
    session = StreamLineSession(
        reader, FakeWriter(), color=False, line_limit=16
    )

    pending = asyncio.ensure_future(session.ask("quiz > "))
    await asyncio.sleep(0)
    reader.feed_data(b"y" * 40)
    await asyncio.sleep(0)
    reader.feed_data(b"zz\nlist\n")

    with pytest.raises(LineTooLong):
        await pending
    assert await session.ask("quiz > ") == "list"


@pytest.mark.asyncio
async def test_stream_session_eof_inside_overlong_line() -> None:
    reader = asyncio.StreamReader(limit=16)
    reader.feed_data(b"x" * 40)
    reader.feed_eof()
    session = StreamLineSession(
        reader, FakeWriter(), color=False, line_limit=16
    )

    with pytest.raises(SessionClosed):
        await session.ask("quiz > ")
    assert session.closed
