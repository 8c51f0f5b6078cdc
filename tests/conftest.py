from __future__ import annotations

import random
import sys
from pathlib import Path

import pytest

TESTS_DIR = Path(__file__).resolve().parent
if str(TESTS_DIR) not in sys.path:
    sys.path.insert(0, str(TESTS_DIR))

# Ensure src/ is importable when the package is not installed
ROOT = TESTS_DIR.parent
for extra in (ROOT, ROOT / "src"):
    path_str = str(extra)
    if path_str not in sys.path:
        sys.path.insert(0, path_str)

from fixtures import ScriptedLineSession  # noqa: E402
from quiz_shell.core import workspace as workspace_mod  # noqa: E402
from quiz_shell.quizzer import config as quizzer_config  # noqa: E402
from quiz_shell.quizzer.engine import QuizEngine  # noqa: E402
from quiz_shell.quizzer.repository import InMemoryQuizRepository  # noqa: E402


@pytest.fixture(autouse=True)
def _isolated_workspace(tmp_path, monkeypatch):
    """Keep every test away from the real ~/.quiz-shell-data."""

    monkeypatch.setenv(workspace_mod.WORKSPACE_ENV, str(tmp_path / "home"))
    monkeypatch.delenv(quizzer_config.CONFIG_PATH_ENV, raising=False)


@pytest.fixture
def repository() -> InMemoryQuizRepository:
    return InMemoryQuizRepository(
        [("2+2", "4"), ("Capital of Italy", "Rome")]
    )


@pytest.fixture
def engine(repository) -> QuizEngine:
    return QuizEngine(
        repository, rng=random.Random(1234), credits=("Ada", "Grace")
    )


@pytest.fixture
def make_session():
    """Build a scripted session fed with the given answers."""

    def _factory(*answers: str) -> ScriptedLineSession:
        return ScriptedLineSession(answers)

    return _factory
