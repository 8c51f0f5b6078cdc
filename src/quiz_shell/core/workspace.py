"""Workspace directory that holds quiz-shell config, logs and quiz data.

The root comes from an explicit path, then ``$QUIZ_SHELL_DATA_HOME``, then
``~/.quiz-shell-data``. Only the implicit default may fall back to a
directory under the system temp dir when it cannot be created.
"""

from __future__ import annotations

import os
import tempfile
from dataclasses import dataclass, field
from pathlib import Path
from typing import Mapping

WORKSPACE_ENV = "QUIZ_SHELL_DATA_HOME"
DEFAULT_WORKSPACE = Path.home() / ".quiz-shell-data"

SUBDIRECTORIES = ("config", "logs", "data")


class WorkspaceError(RuntimeError):
    """Raised when the workspace layout cannot be prepared."""


@dataclass(frozen=True)
class WorkspaceLayout:
    home: Path
    created: Mapping[str, bool] = field(default_factory=dict)

    @property
    def directories(self) -> dict[str, Path]:
        return {name: self.home / name for name in SUBDIRECTORIES}

    def path_for(self, key: str) -> Path:
        if key not in SUBDIRECTORIES:
            raise KeyError(f"Unknown workspace directory '{key}'.")
        return self.home / key

    def describe(self) -> dict[str, Path]:
        return {"home": self.home, **self.directories}


def resolve_home(
    *, env: Mapping[str, str] | None = None, path: Path | None = None
) -> tuple[Path, bool]:
    """Return the workspace root and whether the caller chose it."""

    if path is not None:
        return path.expanduser().absolute(), True
    env_map = os.environ if env is None else env
    custom = (env_map.get(WORKSPACE_ENV) or "").strip()
    if custom:
        return Path(custom).expanduser().absolute(), True
    return DEFAULT_WORKSPACE.expanduser().absolute(), False


def ensure_workspace(
    *,
    env: Mapping[str, str] | None = None,
    path: Path | None = None,
    create: bool = True,
) -> WorkspaceLayout:
    """Resolve the workspace and, when ``create``, build its directories."""

    home, chosen = resolve_home(env=env, path=path)
    if not create:
        _check_layout(home)
        return WorkspaceLayout(home=home)

    try:
        return _build(home)
    except PermissionError as exc:
        if chosen:
            raise WorkspaceError(
                f"Unable to prepare workspace at {home}: {exc}"
            ) from exc
        fallback = Path(tempfile.gettempdir()) / "quiz-shell-data"
        try:
            return _build(fallback)
        except PermissionError as fallback_exc:
            raise WorkspaceError(
                f"Unable to prepare workspace at {home} or {fallback}"
            ) from fallback_exc


def describe_layout(
    *, env: Mapping[str, str] | None = None, path: Path | None = None
) -> dict[str, Path]:
    """Map every workspace location by name without touching the disk."""

    return ensure_workspace(env=env, path=path, create=False).describe()


def _check_layout(home: Path) -> None:
    for candidate in (home, *(home / name for name in SUBDIRECTORIES)):
        if candidate.exists() and not candidate.is_dir():
            raise WorkspaceError(
                f"Workspace path exists and is not a directory: {candidate}"
            )


def _build(home: Path) -> WorkspaceLayout:
    _check_layout(home)
    created = {"home": _make_dir(home)}
    for name in SUBDIRECTORIES:
        created[name] = _make_dir(home / name)
    return WorkspaceLayout(home=home, created=created)


def _make_dir(path: Path) -> bool:
    """Create ``path`` owner-only; report whether it was new."""

    if path.is_dir():
        return False
    path.mkdir(mode=0o700, parents=True, exist_ok=True)
    return True
