"""Command dispatcher: the read-dispatch-prompt loop of one line session.

Each loop iteration issues exactly one command prompt, so a handler that
returns (normally or by raising a :class:`QuizError`) is followed by exactly
one "ready for next command" signal. Transport failures end the loop for that
session only.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Awaitable, Callable, Mapping

from ..core.logging import bind_peer
from .engine import QuizEngine
from .errors import QuizError, TransportError
from .lines import LineSession
from .render import error_text

__all__ = [
    "DEFAULT_PROMPT",
    "ParsedCommand",
    "Dispatcher",
    "parse_command_line",
]

logger = logging.getLogger(__name__)

DEFAULT_PROMPT = "quiz > "

Handler = Callable[[LineSession, "str | None"], Awaitable[object]]


@dataclass(frozen=True)
class ParsedCommand:
    """Command name (lower-cased) plus its optional first argument."""

    name: str
    argument: str | None = None


def parse_command_line(raw: str | None) -> ParsedCommand | None:
    """Split an input line into command and argument; ``None`` when blank."""

    if raw is None:
        return None
    words = raw.split()
    if not words:
        return None
    argument = words[1] if len(words) > 1 else None
    return ParsedCommand(words[0].lower(), argument)


def _command_table(engine: QuizEngine) -> Mapping[str, Handler]:
    return {
        "h": engine.help,
        "help": engine.help,
        "list": engine.list_items,
        "show": engine.show,
        "add": engine.add,
        "delete": engine.delete,
        "edit": engine.edit,
        "test": engine.test,
        "p": engine.play,
        "play": engine.play,
        "credits": engine.credits,
        "q": engine.quit,
        "quit": engine.quit,
    }


class Dispatcher:
    """Drive one line session until it quits or its transport closes."""

    def __init__(
        self,
        engine: QuizEngine,
        session: LineSession,
        *,
        prompt: str = DEFAULT_PROMPT,
    ) -> None:
        self._engine = engine
        self._session = session
        self._prompt = prompt
        self._handlers = _command_table(engine)

    @property
    def session(self) -> LineSession:
        return self._session

    async def run(self) -> None:
        with bind_peer(self._session.peer):
            await self._loop()

    async def _loop(self) -> None:
        session = self._session
        logger.info("session opened")
        try:
            while not session.closed:
                try:
                    line = await session.ask(self._prompt)
                except TransportError as exc:
                    logger.info("input ended", extra={"reason": str(exc)})
                    break
                except QuizError as exc:
                    logger.info(
                        "input rejected", extra={"error": type(exc).__name__}
                    )
                    step = self._report(exc)
                else:
                    command = parse_command_line(line)
                    if command is None:
                        continue
                    step = self.dispatch(command)
                try:
                    await step
                except TransportError as exc:
                    logger.info(
                        "transport failed", extra={"reason": str(exc)}
                    )
                    break
        finally:
            await session.close()
            logger.info("session closed")

    async def dispatch(self, command: ParsedCommand) -> None:
        """Run one command, reporting recoverable failures to the session."""

        session = self._session
        handler = self._handlers.get(command.name)
        if handler is None:
            await session.write(
                error_text(f"Unknown command: '{command.name}'."),
                "Use 'help' to see every available command.",
            )
            return
        logger.debug(
            "command dispatched",
            extra={"command": command.name, "argument": command.argument},
        )
        try:
            await handler(session, command.argument)
        except TransportError:
            raise
        except QuizError as exc:
            logger.info(
                "command failed",
                extra={
                    "command": command.name,
                    "error": type(exc).__name__,
                },
            )
            await self._report(exc)
        except Exception as exc:  # noqa: BLE001 - keep the session alive
            logger.exception(
                "command crashed", extra={"command": command.name}
            )
            await session.write(error_text(f"Unexpected failure: {exc}"))

    async def _report(self, exc: QuizError) -> None:
        await self._session.write(
            *(error_text(line) for line in exc.messages())
        )
