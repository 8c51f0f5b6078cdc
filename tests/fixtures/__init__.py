"""Shared testing fakes for the quiz_shell test suite."""

from .repositories import FailingRepository  # noqa: F401
from .sessions import ScriptedLineSession  # noqa: F401

__all__ = [
    "FailingRepository",
    "ScriptedLineSession",
]
