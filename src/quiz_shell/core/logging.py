"""Structured logging for quiz-shell processes.

Records are written as one JSON object per line to a rotating file. Each
line session runs in its own asyncio task, so the peer it serves is kept in
a context variable and stamped onto every record emitted while it is bound.
"""

from __future__ import annotations

import contextlib
import contextvars
import json
import logging
import sys
import tempfile
from datetime import datetime, timezone
from logging.handlers import RotatingFileHandler
from pathlib import Path
from typing import Any, Iterator

__all__ = [
    "JsonLogFormatter",
    "bind_peer",
    "configure_logger",
    "current_peer",
    "release_logger",
]

_FILE_MARKER = "_quiz_shell_file"
_CONSOLE_MARKER = "_quiz_shell_console"
_CONSOLE_FORMAT = "%(levelname)-7s %(peer)s %(name)s: %(message)s"

_peer: contextvars.ContextVar[str | None] = contextvars.ContextVar(
    "quiz_shell_peer", default=None
)

# Attributes every LogRecord carries; anything else came in through ``extra``.
_RECORD_FIELDS = frozenset(
    vars(logging.LogRecord("", logging.INFO, "", 0, "", None, None))
) | {"message", "asctime", "taskName", "peer"}


def current_peer() -> str | None:
    return _peer.get()


@contextlib.contextmanager
def bind_peer(peer: str) -> Iterator[None]:
    """Tag records logged inside the block with ``peer``."""

    token = _peer.set(peer)
    try:
        yield
    finally:
        _peer.reset(token)


class _PeerFilter(logging.Filter):
    def filter(self, record: logging.LogRecord) -> bool:
        if getattr(record, "peer", None) is None:
            record.peer = _peer.get() or "-"
        return True


class JsonLogFormatter(logging.Formatter):
    """Render a record as a single JSON line."""

    def format(self, record: logging.LogRecord) -> str:  # noqa: D401
        stamp = datetime.fromtimestamp(record.created, tz=timezone.utc)
        payload: dict[str, Any] = {
            "timestamp": stamp.isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "peer": getattr(record, "peer", "-"),
            "message": record.getMessage(),
        }
        extra = {
            key: _jsonable(value)
            for key, value in vars(record).items()
            if key not in _RECORD_FIELDS
        }
        if extra:
            payload["extra"] = extra
        if record.exc_info:
            payload["exception"] = self.formatException(record.exc_info)
        return json.dumps(payload, ensure_ascii=True)


def configure_logger(
    name: str,
    *,
    log_dir: Path,
    level: str = "INFO",
    verbose: bool = False,
    max_bytes: int = 2 * 1024 * 1024,
    backup_count: int = 5,
    filename: str | None = None,
) -> tuple[logging.Logger, Path]:
    """Attach a rotating JSON file handler to ``name`` and return its path.

    Module loggers below ``name`` inherit the handlers. Reconfiguring keeps
    a single file handler, replacing it only when the target file changes.
    ``verbose`` mirrors every record to stderr and lowers the file threshold
    to DEBUG.
    """

    logger = logging.getLogger(name)
    logger.setLevel(logging.DEBUG)
    logger.propagate = False

    target = _open_log_file(log_dir, filename or f"{name.split('.')[-1]}.log")
    handler = _file_handler(logger, target, max_bytes, backup_count)
    handler.setLevel(logging.DEBUG if verbose else _coerce_level(level))
    target = Path(handler.baseFilename)

    console = _find(logger, _CONSOLE_MARKER)
    if verbose and console is None:
        console = logging.StreamHandler(sys.stderr)
        console.setFormatter(logging.Formatter(_CONSOLE_FORMAT))
        console.addFilter(_PeerFilter())
        setattr(console, _CONSOLE_MARKER, True)
        logger.addHandler(console)
    elif not verbose and console is not None:
        logger.removeHandler(console)
        console.close()
    return logger, target


def release_logger(name: str) -> None:
    """Detach and close the handlers :func:`configure_logger` installed."""

    logger = logging.getLogger(name)
    for marker in (_FILE_MARKER, _CONSOLE_MARKER):
        handler = _find(logger, marker)
        if handler is not None:
            logger.removeHandler(handler)
            handler.close()


def _find(logger: logging.Logger, marker: str) -> logging.Handler | None:
    return next(
        (h for h in logger.handlers if getattr(h, marker, False)), None
    )


def _file_handler(
    logger: logging.Logger, path: Path, max_bytes: int, backup_count: int
) -> RotatingFileHandler:
    current = _find(logger, _FILE_MARKER)
    if current is not None:
        active = Path(current.baseFilename)  # type: ignore[attr-defined]
        if active == path.absolute():
            return current  # type: ignore[return-value]
        logger.removeHandler(current)
        current.close()

    handler = RotatingFileHandler(
        path, maxBytes=max_bytes, backupCount=backup_count, encoding="utf-8"
    )
    handler.setFormatter(JsonLogFormatter())
    handler.addFilter(_PeerFilter())
    setattr(handler, _FILE_MARKER, True)
    logger.addHandler(handler)
    return handler


def _open_log_file(log_dir: Path, filename: str) -> Path:
    """Create the log file, falling back to the temp dir when denied."""

    fallback = Path(tempfile.gettempdir()) / "quiz-shell-logs"
    for directory in (log_dir, fallback):
        try:
            directory.mkdir(parents=True, exist_ok=True)
            path = directory / filename
            path.touch(mode=0o600, exist_ok=True)
        except PermissionError:
            continue
        return path
    raise PermissionError(f"No writable log directory for {filename}")


def _coerce_level(level: str) -> int:
    value = logging.getLevelName(level.upper())
    return value if isinstance(value, int) else logging.INFO


def _jsonable(value: Any) -> Any:
    if value is None or isinstance(value, (bool, int, float, str)):
        return value
    if isinstance(value, Path):
        return str(value)
    if isinstance(value, dict):
        return {str(key): _jsonable(item) for key, item in value.items()}
    if isinstance(value, (list, tuple, set, frozenset)):
        return [_jsonable(item) for item in value]
    return repr(value)
