"""Quiz item records shared between the repository and the engine."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Mapping, MutableMapping

__all__ = [
    "QuizItem",
    "DEFAULT_ITEMS",
    "field_violations",
    "answers_match",
]


@dataclass(frozen=True)
class QuizItem:
    """One question/answer pair with a repository-assigned identifier."""

    id: int
    question: str
    answer: str

    def accepts(self, response: str) -> bool:
        return answers_match(response, self.answer)

    def to_dict(self) -> MutableMapping[str, Any]:
        return {
            "id": self.id,
            "question": self.question,
            "answer": self.answer,
        }

    @classmethod
    def from_dict(cls, payload: Mapping[str, Any]) -> "QuizItem":
        return cls(
            id=int(payload["id"]),
            question=str(payload["question"]),
            answer=str(payload["answer"]),
        )


DEFAULT_ITEMS: tuple[tuple[str, str], ...] = (
    ("Capital of Italy", "Rome"),
    ("Capital of France", "Paris"),
    ("Capital of Spain", "Madrid"),
    ("Capital of Portugal", "Lisbon"),
)


def field_violations(question: object, answer: object) -> list[str]:
    """Return one message per invalid field; empty when the pair is valid."""

    violations: list[str] = []
    if not isinstance(question, str) or not question.strip():
        violations.append("The question must not be empty.")
    if not isinstance(answer, str) or not answer.strip():
        violations.append("The answer must not be empty.")
    return violations


def answers_match(response: str, expected: str) -> bool:
    """Compare answers ignoring surrounding whitespace and case."""

    return response.strip().lower() == expected.strip().lower()
