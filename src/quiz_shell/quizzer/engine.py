"""Quiz session engine: command semantics and the play game state machine.

Every public coroutine on :class:`QuizEngine` takes the caller's
:class:`~quiz_shell.quizzer.lines.LineSession` and the raw command argument.
Validation and "not found" failures are raised as
:class:`~quiz_shell.quizzer.errors.QuizError` subclasses for the dispatcher to
report; ``play`` reports its own failures because every game must end in a
terminal state.
"""

from __future__ import annotations

import logging
import random
import re
from dataclasses import dataclass, field
from enum import Enum
from typing import Sequence

from rich.text import Text

from .errors import (
    MissingArgument,
    NotANumber,
    NotFound,
    QuizError,
    TransportError,
)
from .lines import LineSession
from .models import QuizItem
from .render import banner, colorize, error_text
from .repository import QuizRepository

__all__ = [
    "HELP_LINES",
    "GameState",
    "GameResult",
    "PlaySession",
    "QuizEngine",
    "validate_id",
]

logger = logging.getLogger(__name__)

_INTEGER_PREFIX = re.compile(r"^\s*([+-]?\d+)")

HELP_LINES: tuple[tuple[str, str], ...] = (
    ("h|help", "Show this help."),
    ("list", "List the existing quizzes."),
    ("show <id>", "Show the question and answer of the given quiz."),
    ("add", "Add a new quiz interactively."),
    ("delete <id>", "Delete the given quiz."),
    ("edit <id>", "Edit the given quiz."),
    ("test <id>", "Try the given quiz."),
    ("p|play", "Play: answer every quiz in random order."),
    ("credits", "Credits."),
    ("q|quit", "Leave the program."),
)


def validate_id(raw: str | None) -> int:
    """Parse a user-supplied identifier.

    Mirrors integer-prefix parsing: surrounding whitespace is ignored and any
    fractional or trailing part is truncated, so ``"3.9"`` yields ``3``.
    """

    if raw is None:
        raise MissingArgument("id")
    match = _INTEGER_PREFIX.match(raw)
    if match is None:
        raise NotANumber(raw, "id")
    value = int(match.group(1))
    if value < 0:
        raise NotANumber(raw, "id")
    return value


class GameState(str, Enum):
    LOADING = "loading"
    ASKING = "asking"
    WON = "won"
    LOST = "lost"
    EMPTY = "empty"
    ERROR = "error"


@dataclass
class PlaySession:
    """State of one in-progress game, owned by a single line session."""

    remaining: list[QuizItem]
    score: int = 0
    asked: int = 0
    state: GameState = GameState.ASKING

    @classmethod
    def from_snapshot(cls, items: Sequence[QuizItem]) -> "PlaySession":
        unique: dict[int, QuizItem] = {}
        for item in items:
            unique.setdefault(item.id, item)
        return cls(remaining=list(unique.values()))

    @property
    def exhausted(self) -> bool:
        return not self.remaining

    def draw(self, rng: random.Random) -> QuizItem:
        """Remove and return a uniformly chosen item that was not yet asked."""

        index = rng.randrange(len(self.remaining))
        self.asked += 1
        return self.remaining.pop(index)

    def grade(self, item: QuizItem, response: str) -> bool:
        correct = item.accepts(response)
        if correct:
            self.score += 1
            self.state = GameState.WON if self.exhausted else GameState.ASKING
        else:
            self.state = GameState.LOST
        return correct


@dataclass(frozen=True)
class GameResult:
    state: GameState
    score: int
    asked: int = 0
    asked_ids: tuple[int, ...] = field(default_factory=tuple)


class QuizEngine:
    """Command semantics shared by every line session of a process."""

    def __init__(
        self,
        repository: QuizRepository,
        *,
        rng: random.Random | None = None,
        credits: Sequence[str] = ("Quiz Shell maintainers",),
    ) -> None:
        self._repository = repository
        self._rng = rng or random.Random()
        self._credits = tuple(credits)

    @property
    def repository(self) -> QuizRepository:
        return self._repository

    async def help(self, session: LineSession, argument: str | None = None):
        width = max(len(name) for name, _ in HELP_LINES)
        lines = [Text("Commands:", style="bold")]
        for name, summary in HELP_LINES:
            lines.append(
                Text.assemble(" ", (name.ljust(width), "cyan"), "  ", summary)
            )
        await session.write(*lines)

    async def credits(
        self, session: LineSession, argument: str | None = None
    ) -> None:
        await session.write(
            "Author of the practice:",
            *(colorize(name, "green") for name in self._credits),
        )

    async def quit(self, session: LineSession, argument: str | None = None):
        await session.close()

    async def list_items(
        self, session: LineSession, argument: str | None = None
    ) -> None:
        items = await self._repository.all()
        if not items:
            await session.write("There are no quizzes yet.")
            return
        await session.write(*(_item_heading(item) for item in items))

    async def show(self, session: LineSession, argument: str | None) -> None:
        item = await self._fetch(argument)
        heading = _item_heading(item)
        heading.append(" => ", style="magenta")
        heading.append(item.answer)
        await session.write(heading)

    async def add(self, session: LineSession, argument: str | None = None):
        question = await session.ask("Enter a question: ")
        answer = await session.ask("Enter the answer: ")
        item = await self._repository.create(question, answer)
        logger.info("quiz added", extra={"item_id": item.id})
        await session.write(
            Text.assemble(
                ("Added", "magenta"),
                f": {item.question} ",
                ("=>", "magenta"),
                f" {item.answer}",
            )
        )

    async def delete(self, session: LineSession, argument: str | None) -> None:
        item_id = validate_id(argument)
        if not await self._repository.delete(item_id):
            raise NotFound(item_id)
        logger.info("quiz deleted", extra={"item_id": item_id})
        await session.write(
            Text.assemble("Deleted quiz ", (str(item_id), "magenta"), ".")
        )

    async def edit(self, session: LineSession, argument: str | None) -> None:
        item = await self._fetch(argument)
        question = await session.ask(f"Enter the question [{item.question}]: ")
        answer = await session.ask(f"Enter the answer [{item.answer}]: ")
        updated = await self._repository.update(
            item.id,
            question if question.strip() else item.question,
            answer if answer.strip() else item.answer,
        )
        logger.info("quiz edited", extra={"item_id": item.id})
        await session.write(
            Text.assemble(
                "Quiz ",
                (str(updated.id), "magenta"),
                f" changed to: {updated.question} ",
                ("=>", "magenta"),
                f" {updated.answer}",
            )
        )

    async def test(self, session: LineSession, argument: str | None) -> bool:
        item = await self._fetch(argument)
        response = await session.ask(f" {item.question} ")
        if item.accepts(response):
            await session.write(
                "Your answer is correct.", banner("Correct", "green")
            )
            return True
        await session.write(
            "Your answer is incorrect.", banner("Incorrect", "red")
        )
        return False

    async def play(
        self, session: LineSession, argument: str | None = None
    ) -> GameResult:
        """Ask every stored quiz once, in random order, until a miss.

        The game works on a snapshot taken when it starts, so edits made by
        other sessions meanwhile are not seen. The session's ``game`` slot is
        cleared on every exit path, including a dropped connection.
        """

        if session.game is not None:
            raise QuizError("A game is already in progress on this session.")
        asked_ids: list[int] = []
        try:
            snapshot = await self._repository.all()
        except TransportError:
            raise
        except QuizError as exc:
            await _report(session, exc)
            return self._finish(session, None, GameState.ERROR, asked_ids)

        game = PlaySession.from_snapshot(snapshot)
        session.game = game
        logger.info("game started", extra={"items": len(game.remaining)})
        try:
            if game.exhausted:
                game.state = GameState.EMPTY
                await session.write("There is nothing to ask.")
                await _announce_score(session, game.score)
                return self._finish(session, game, game.state, asked_ids)

            while game.state is GameState.ASKING:
                item = game.draw(self._rng)
                asked_ids.append(item.id)
                response = await session.ask(f" {item.question} ")
                if game.grade(item, response):
                    await session.write(
                        f"CORRECT - {game.score} hits so far."
                    )
                else:
                    await session.write("INCORRECT.")

            if game.state is GameState.WON:
                await session.write("There is nothing more to ask.")
            await _announce_score(session, game.score)
            return self._finish(session, game, game.state, asked_ids)
        except TransportError:
            logger.info("game abandoned", extra={"score": game.score})
            raise
        except QuizError as exc:
            await _report(session, exc)
            return self._finish(session, game, GameState.ERROR, asked_ids)
        except OSError as exc:
            await _report(session, QuizError(f"I/O failure: {exc}"))
            return self._finish(session, game, GameState.ERROR, asked_ids)
        finally:
            session.game = None

    def _finish(
        self,
        session: LineSession,
        game: PlaySession | None,
        state: GameState,
        asked_ids: list[int],
    ) -> GameResult:
        session.game = None
        score = game.score if game else 0
        result = GameResult(
            state=state,
            score=score,
            asked=len(asked_ids),
            asked_ids=tuple(asked_ids),
        )
        logger.info(
            "game finished",
            extra={
                "state": state.value,
                "score": score,
                "asked": result.asked,
            },
        )
        return result

    async def _fetch(self, argument: str | None) -> QuizItem:
        item_id = validate_id(argument)
        item = await self._repository.get(item_id)
        if item is None:
            raise NotFound(item_id)
        return item


def _item_heading(item: QuizItem) -> Text:
    return Text.assemble(
        " [", (str(item.id), "magenta"), f"]: {item.question}"
    )


async def _announce_score(session: LineSession, score: int) -> None:
    await session.write(f"End of the game. Score: {score}", banner(score))


async def _report(session: LineSession, exc: QuizError) -> None:
    logger.warning("game failed", extra={"error": str(exc)})
    await session.write(*(error_text(line) for line in exc.messages()))
