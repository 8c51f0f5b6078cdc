from __future__ import annotations

import random

import pytest

from fixtures import FailingRepository, ScriptedLineSession
from quiz_shell.quizzer.engine import GameState, PlaySession, QuizEngine
from quiz_shell.quizzer.errors import QuizError, SessionClosed
from quiz_shell.quizzer.models import QuizItem
from quiz_shell.quizzer.repository import InMemoryQuizRepository


def make_engine(*items: tuple[str, str], seed: int = 7) -> QuizEngine:
    return QuizEngine(InMemoryQuizRepository(items), rng=random.Random(seed))


@pytest.mark.asyncio
async def test_play_empty_set_reports_zero_without_prompt() -> None:
    session = ScriptedLineSession()

    result = await make_engine().play(session)

    assert result.state is GameState.EMPTY
    assert result.score == 0
    assert result.asked == 0
    assert session.prompts == []
    assert "There is nothing to ask." in session.text
    assert "End of the game. Score: 0" in session.text
    assert session.game is None


@pytest.mark.asyncio
async def test_play_single_item_won() -> None:
    session = ScriptedLineSession([" 4  "])

    result = await make_engine(("2+2", "4")).play(session)

    assert result.state is GameState.WON
    assert result.score == 1
    assert session.prompts == [" 2+2 "]
    assert "CORRECT - 1 hits so far." in session.text
    assert "There is nothing more to ask." in session.text
    assert "End of the game. Score: 1" in session.text


@pytest.mark.asyncio
async def test_play_single_item_lost() -> None:
    session = ScriptedLineSession(["5"])

    result = await make_engine(("2+2", "4")).play(session)

    assert result.state is GameState.LOST
    assert result.score == 0
    assert "INCORRECT." in session.text
    assert "End of the game. Score: 0" in session.text
    assert session.game is None


@pytest.mark.asyncio
async def test_play_two_items_correct_then_wrong() -> None:
    session = ScriptedLineSession(["same", "different"])

    result = await make_engine(("first", "same"), ("second", "same")).play(
        session
    )

    assert result.state is GameState.LOST
    assert result.score == 1
    assert result.asked == 2


@pytest.mark.asyncio
async def test_play_asks_each_item_at_most_once() -> None:
    items = [(f"question {n}", "yes") for n in range(1, 7)]
    session = ScriptedLineSession(["yes"] * 6)

    result = await make_engine(*items).play(session)

    assert result.state is GameState.WON
    assert result.score == 6
    assert sorted(result.asked_ids) == [1, 2, 3, 4, 5, 6]
    assert len(session.prompts) == 6


@pytest.mark.asyncio
async def test_play_loss_leaves_remaining_items_unasked() -> None:
    items = [(f"question {n}", "yes") for n in range(1, 6)]
    session = ScriptedLineSession(["yes", "no", "yes"])

    result = await make_engine(*items).play(session)

    assert result.state is GameState.LOST
    assert result.score == 1
    assert result.asked == 2
    assert len(set(result.asked_ids)) == 2
    assert session.pending == 1


@pytest.mark.asyncio
async def test_play_order_follows_injected_rng() -> None:
    items = [(f"question {n}", "yes") for n in range(1, 5)]
    session = ScriptedLineSession(["yes"] * 4)

    result = await make_engine(*items, seed=99).play(session)

    rng = random.Random(99)
    remaining = [1, 2, 3, 4]
    expected = [
        remaining.pop(rng.randrange(len(remaining))) for _ in range(4)
    ]
    assert list(result.asked_ids) == expected


class _MutatingSession(ScriptedLineSession):
    """Changes the repository while the first question is pending."""

    def __init__(self, repository, answers):
        super().__init__(answers)
        self._repository = repository
        self.games_seen: list[PlaySession | None] = []

    async def ask(self, prompt: str) -> str:
        self.games_seen.append(self.game)
        if len(self.prompts) == 0:
            await self._repository.create("added later", "yes")
            await self._repository.delete(2)
        return await super().ask(prompt)


@pytest.mark.asyncio
async def test_play_uses_snapshot_taken_at_start() -> None:
    repository = InMemoryQuizRepository([("one", "yes"), ("two", "yes")])
    engine = QuizEngine(repository, rng=random.Random(3))
    session = _MutatingSession(repository, ["yes", "yes", "yes"])

    result = await engine.play(session)

    assert result.state is GameState.WON
    assert result.score == 2
    assert sorted(result.asked_ids) == [1, 2]
    assert all(game is not None for game in session.games_seen)
    assert session.game is None


@pytest.mark.asyncio
async def test_play_repository_failure_ends_in_error() -> None:
    session = ScriptedLineSession(["never used"])
    engine = QuizEngine(FailingRepository())

    result = await engine.play(session)

    assert result.state is GameState.ERROR
    assert session.prompts == []
    assert "Error: Quiz store unavailable." in session.text
    assert session.game is None


@pytest.mark.asyncio
async def test_play_transport_closure_releases_game() -> None:
    session = ScriptedLineSession([])

    with pytest.raises(SessionClosed):
        await make_engine(("2+2", "4")).play(session)

    assert session.game is None


@pytest.mark.asyncio
async def test_play_rejects_second_game_on_same_session() -> None:
    session = ScriptedLineSession(["4"])
    session.game = PlaySession(remaining=[])

    with pytest.raises(QuizError):
        await make_engine(("2+2", "4")).play(session)
    assert session.prompts == []


def test_play_session_from_snapshot_drops_duplicates() -> None:
    item = QuizItem(1, "q", "a")
    game = PlaySession.from_snapshot([item, item, QuizItem(2, "r", "b")])

    assert [entry.id for entry in game.remaining] == [1, 2]


def test_play_session_draw_shrinks_by_one() -> None:
    game = PlaySession.from_snapshot(
        [QuizItem(n, f"q{n}", "a") for n in range(1, 4)]
    )
    rng = random.Random(0)

    drawn = game.draw(rng)

    assert len(game.remaining) == 2
    assert drawn not in game.remaining
    assert game.asked == 1


def test_play_session_grade_transitions() -> None:
    first, second = QuizItem(1, "q", "a"), QuizItem(2, "r", "b")
    game = PlaySession(remaining=[second])

    assert game.grade(first, " A ") is True
    assert game.state is GameState.ASKING
    game.remaining.clear()
    assert game.grade(second, "b") is True
    assert game.state is GameState.WON
    assert game.score == 2

    lost = PlaySession(remaining=[])
    assert lost.grade(first, "nope") is False
    assert lost.state is GameState.LOST
    assert lost.score == 0


class _BrokenInputSession(ScriptedLineSession):
    """Fails the ``fail_on``-th prompt (1-based) with ``error``."""

    def __init__(self, answers, *, fail_on: int, error: BaseException):
        super().__init__(answers)
        self._fail_on = fail_on
        self._error = error

    async def ask(self, prompt: str) -> str:
        if len(self.prompts) + 1 == self._fail_on:
            self.prompts.append(prompt)
            raise self._error
        return await super().ask(prompt)


@pytest.mark.asyncio
async def test_play_io_failure_mid_game_ends_in_error() -> None:
    engine = make_engine(("one", "yes"), ("two", "yes"))
    session = _BrokenInputSession(
        ["yes", "yes", "yes"], fail_on=2, error=OSError("device unplugged")
    )

    result = await engine.play(session)

    assert result.state is GameState.ERROR
    assert result.score == 1
    assert result.asked == 2
    assert session.game is None
    assert "Error: I/O failure: device unplugged" in session.text
    assert "End of the game" not in session.text

    again = await engine.play(session)

    assert again.state is GameState.WON
    assert again.score == 2


@pytest.mark.asyncio
async def test_play_unexpected_failure_still_releases_game() -> None:
    engine = make_engine(("one", "yes"))
    session = _BrokenInputSession(
        ["yes"], fail_on=1, error=RuntimeError("boom")
    )

    with pytest.raises(RuntimeError, match="boom"):
        await engine.play(session)

    assert session.game is None
    result = await engine.play(session)
    assert result.state is GameState.WON
