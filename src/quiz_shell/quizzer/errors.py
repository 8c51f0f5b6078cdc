"""Closed error taxonomy recovered at the command-handler boundary."""

from __future__ import annotations

from typing import Iterable

__all__ = [
    "QuizError",
    "MissingArgument",
    "NotANumber",
    "NotFound",
    "RepositoryError",
    "LineTooLong",
    "TransportError",
    "SessionClosed",
]


class QuizError(RuntimeError):
    """Base class for every failure a command handler reports to its user."""

    def messages(self) -> list[str]:
        """Return the human-readable lines describing this failure."""

        return [str(self)]


class MissingArgument(QuizError):
    def __init__(self, name: str = "id") -> None:
        super().__init__(f"Missing parameter <{name}>.")
        self.name = name


class NotANumber(QuizError):
    def __init__(self, raw: str, name: str = "id") -> None:
        super().__init__(f"The value of parameter <{name}> is not a number.")
        self.raw = raw
        self.name = name


class NotFound(QuizError):
    def __init__(self, item_id: int) -> None:
        super().__init__(f"There is no quiz associated with id={item_id}.")
        self.item_id = item_id


class RepositoryError(QuizError):
    """Storage failure, optionally carrying one message per field violation."""

    def __init__(
        self, message: str, violations: Iterable[str] | None = None
    ) -> None:
        super().__init__(message)
        self.violations = list(violations or [])

    def messages(self) -> list[str]:
        return [str(self), *self.violations]


class LineTooLong(QuizError):
    """An input line overflowed the transport buffer and was discarded."""

    def __init__(self, limit: int) -> None:
        super().__init__(f"Input line too long (limit {limit} bytes).")
        self.limit = limit


class TransportError(QuizError):
    """The line session can no longer read or write."""


class SessionClosed(TransportError):
    def __init__(self, reason: str = "Session closed.") -> None:
        super().__init__(reason)
