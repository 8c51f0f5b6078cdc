"""Quiz item storage behind an async repository contract.

The engine only depends on :class:`QuizRepository`. Two implementations are
provided: an in-memory table used by tests and ``--memory`` sessions, and a
JSON document store that persists to the workspace data directory. Both are
safe to share between concurrently running line sessions on one event loop.
"""

from __future__ import annotations

import asyncio
import json
import logging
import os
import tempfile
import time
from pathlib import Path
from typing import Any, Iterable, Mapping, MutableMapping, Protocol

from .errors import NotFound, RepositoryError
from .models import DEFAULT_ITEMS, QuizItem, field_violations

__all__ = [
    "QuizRepository",
    "InMemoryQuizRepository",
    "JsonQuizRepository",
]

logger = logging.getLogger(__name__)

_SCHEMA_VERSION = "1.0"
_LOCK_SUFFIX = ".lock"
_LOCK_TIMEOUT_SECONDS = 5.0
# A lock file older than this was left by a process that died holding it.
_LOCK_STALE_SECONDS = 60.0


class QuizRepository(Protocol):
    """Async CRUD contract for quiz items."""

    async def create(self, question: str, answer: str) -> QuizItem:
        """Store a new item and return it with its assigned id."""

    async def get(self, item_id: int) -> QuizItem | None:
        """Return the item for ``item_id`` or ``None`` when absent."""

    async def all(self) -> list[QuizItem]:
        """Return every stored item ordered by id."""

    async def update(
        self, item_id: int, question: str, answer: str
    ) -> QuizItem:
        """Replace the fields of an existing item."""

    async def delete(self, item_id: int) -> bool:
        """Remove an item; ``False`` when nothing was stored under the id."""


class _ItemTable:
    """Synchronous id-keyed table shared by both repository flavours."""

    def __init__(
        self, items: Iterable[QuizItem] = (), next_id: int | None = None
    ) -> None:
        self._items: dict[int, QuizItem] = {item.id: item for item in items}
        highest = max(self._items, default=0)
        self._next_id = max(next_id or 1, highest + 1)

    @property
    def next_id(self) -> int:
        return self._next_id

    def create(self, question: str, answer: str) -> QuizItem:
        _check_fields(question, answer)
        item = QuizItem(self._next_id, question.strip(), answer.strip())
        self._items[item.id] = item
        self._next_id += 1
        return item

    def get(self, item_id: int) -> QuizItem | None:
        return self._items.get(item_id)

    def all(self) -> list[QuizItem]:
        return [self._items[key] for key in sorted(self._items)]

    def update(self, item_id: int, question: str, answer: str) -> QuizItem:
        if item_id not in self._items:
            raise NotFound(item_id)
        _check_fields(question, answer)
        item = QuizItem(item_id, question.strip(), answer.strip())
        self._items[item_id] = item
        return item

    def delete(self, item_id: int) -> bool:
        return self._items.pop(item_id, None) is not None


class InMemoryQuizRepository:
    """Process-local repository; contents vanish when the process exits."""

    def __init__(self, items: Iterable[tuple[str, str]] = ()) -> None:
        self._table = _ItemTable()
        for question, answer in items:
            self._table.create(question, answer)

    async def create(self, question: str, answer: str) -> QuizItem:
        return self._table.create(question, answer)

    async def get(self, item_id: int) -> QuizItem | None:
        return self._table.get(item_id)

    async def all(self) -> list[QuizItem]:
        return self._table.all()

    async def update(
        self, item_id: int, question: str, answer: str
    ) -> QuizItem:
        return self._table.update(item_id, question, answer)

    async def delete(self, item_id: int) -> bool:
        return self._table.delete(item_id)


class JsonQuizRepository:
    """Repository persisted as a single JSON document.

    Every mutation performs a locked read-modify-write cycle so separate
    processes sharing the file do not lose each other's updates.
    """

    def __init__(self, path: Path, *, seed_defaults: bool = True) -> None:
        self._path = path
        self._seed_defaults = seed_defaults
        self._lock = asyncio.Lock()

    @property
    def path(self) -> Path:
        return self._path

    async def create(self, question: str, answer: str) -> QuizItem:
        item = await self._mutate(lambda table: table.create(question, answer))
        logger.info("quiz created", extra={"item_id": item.id})
        return item

    async def get(self, item_id: int) -> QuizItem | None:
        table = await self._read()
        return table.get(item_id)

    async def all(self) -> list[QuizItem]:
        table = await self._read()
        return table.all()

    async def update(
        self, item_id: int, question: str, answer: str
    ) -> QuizItem:
        item = await self._mutate(
            lambda table: table.update(item_id, question, answer)
        )
        logger.info("quiz updated", extra={"item_id": item_id})
        return item

    async def delete(self, item_id: int) -> bool:
        removed = await self._mutate(lambda table: table.delete(item_id))
        if removed:
            logger.info("quiz deleted", extra={"item_id": item_id})
        return removed

    async def _read(self) -> _ItemTable:
        async with self._lock:
            return await asyncio.to_thread(self._locked_read)

    async def _mutate(self, operation):
        async with self._lock:
            return await asyncio.to_thread(self._locked_mutation, operation)

    def _locked_read(self) -> _ItemTable:
        if self._path.exists():
            return _table_from_payload(self._read_payload())
        with _StoreLock(self._path.with_name(self._path.name + _LOCK_SUFFIX)):
            return self._load_or_seed()

    def _locked_mutation(self, operation):
        with _StoreLock(self._path.with_name(self._path.name + _LOCK_SUFFIX)):
            table = self._load_or_seed()
            result = operation(table)
            self._write(table)
        return result

    def _load_or_seed(self) -> _ItemTable:
        if not self._path.exists():
            table = _ItemTable()
            if self._seed_defaults:
                for question, answer in DEFAULT_ITEMS:
                    table.create(question, answer)
                logger.info(
                    "seeded quiz store",
                    extra={"path": self._path, "count": len(DEFAULT_ITEMS)},
                )
            self._write(table)
            return table
        return _table_from_payload(self._read_payload())

    def _read_payload(self) -> Mapping[str, Any]:
        try:
            payload = json.loads(self._path.read_text(encoding="utf-8"))
        except json.JSONDecodeError as exc:
            raise RepositoryError(
                f"Failed to parse quiz store: {self._path}"
            ) from exc
        except OSError as exc:
            raise RepositoryError(
                f"Failed to read quiz store: {self._path} ({exc})"
            ) from exc
        if not isinstance(payload, Mapping):
            raise RepositoryError(
                f"Quiz store must contain a JSON object: {self._path}"
            )
        return payload

    def _write(self, table: _ItemTable) -> None:
        payload: MutableMapping[str, Any] = {
            "schema_version": _SCHEMA_VERSION,
            "next_id": table.next_id,
            "items": [item.to_dict() for item in table.all()],
        }
        try:
            _atomic_write_json(self._path, payload)
        except OSError as exc:
            raise RepositoryError(
                f"Failed to write quiz store: {self._path} ({exc})"
            ) from exc


class _StoreLock:
    """Simple filesystem lock using exclusive file creation."""

    def __init__(self, path: Path) -> None:
        self._path = path

    def __enter__(self) -> "_StoreLock":
        self._path.parent.mkdir(parents=True, exist_ok=True)
        deadline = time.monotonic() + _LOCK_TIMEOUT_SECONDS
        while True:
            try:
                fd = os.open(
                    self._path,
                    os.O_CREAT | os.O_EXCL | os.O_WRONLY,
                )
            except FileExistsError:
                if self._clear_stale():
                    continue
                if time.monotonic() > deadline:
                    raise RepositoryError(
                        f"Timed out waiting for quiz store lock: {self._path}"
                    )
                time.sleep(0.05)
                continue
            os.close(fd)
            return self

    def __exit__(self, exc_type, exc, tb) -> None:  # noqa: D401
        self._path.unlink(missing_ok=True)

    def _clear_stale(self) -> bool:
        try:
            age = time.time() - self._path.stat().st_mtime
        except FileNotFoundError:
            return True
        if age < _LOCK_STALE_SECONDS:
            return False
        logger.warning(
            "removing stale quiz store lock",
            extra={"path": str(self._path), "age": round(age, 1)},
        )
        self._path.unlink(missing_ok=True)
        return True


def _check_fields(question: object, answer: object) -> None:
    violations = field_violations(question, answer)
    if violations:
        raise RepositoryError("The quiz is invalid:", violations)


def _table_from_payload(payload: Mapping[str, Any]) -> _ItemTable:
    raw_items = payload.get("items", [])
    if not isinstance(raw_items, list):
        raise RepositoryError("Quiz store 'items' must be a list.")
    try:
        items = [QuizItem.from_dict(entry) for entry in raw_items]
        next_id = int(payload.get("next_id", 1))
    except (KeyError, TypeError, ValueError) as exc:
        raise RepositoryError(f"Malformed quiz store entry: {exc}") from exc
    return _ItemTable(items, next_id=next_id)


def _atomic_write_json(path: Path, payload: Mapping[str, Any]) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    handle = tempfile.NamedTemporaryFile(
        "w",
        delete=False,
        encoding="utf-8",
        dir=str(path.parent),
    )
    staging = Path(handle.name)
    try:
        with handle:
            json.dump(payload, handle, indent=2, ensure_ascii=False)
            handle.flush()
            os.fsync(handle.fileno())
        os.replace(staging, path)
    except BaseException:
        staging.unlink(missing_ok=True)
        raise
