"""TOML and ``.env`` plumbing shared by the quiz-shell config layers."""

from __future__ import annotations

import copy
import os
import tempfile
import tomllib
from pathlib import Path
from typing import Any, Mapping

from dotenv import find_dotenv, load_dotenv

__all__ = [
    "TomlConfigError",
    "load_environment",
    "load_toml",
    "merge_defaults",
    "write_toml_template",
]


class TomlConfigError(RuntimeError):
    """A config file could not be read, parsed, merged or written."""


def load_environment(dotenv_path: Path | None = None) -> bool:
    """Load ``.env`` (searched upward from the cwd) without overriding.

    Returns ``True`` when a file provided at least one variable.
    """

    target = dotenv_path or find_dotenv(usecwd=True)
    return load_dotenv(target, override=False)


def load_toml(path: Path) -> dict[str, Any]:
    try:
        raw = path.read_bytes()
    except FileNotFoundError as exc:
        raise TomlConfigError(f"Config file not found: {path}") from exc
    except OSError as exc:
        raise TomlConfigError(f"Cannot read config {path}: {exc}") from exc
    try:
        return tomllib.loads(raw.decode("utf-8"))
    except (UnicodeDecodeError, tomllib.TOMLDecodeError) as exc:
        raise TomlConfigError(f"Failed to parse config TOML: {exc}") from exc


def merge_defaults(
    defaults: Mapping[str, Any], override: Mapping[str, Any]
) -> dict[str, Any]:
    """Return ``defaults`` with ``override`` laid over it, table by table.

    Keys absent from ``defaults`` are rejected; every offending key is named
    in a single error so a broken file can be fixed in one pass.
    """

    merged = copy.deepcopy(dict(defaults))
    problems: list[str] = []
    _overlay(merged, override, "", problems)
    if problems:
        raise TomlConfigError("; ".join(problems))
    return merged


def _overlay(
    target: dict[str, Any],
    override: Mapping[str, Any],
    prefix: str,
    problems: list[str],
) -> None:
    for key, value in override.items():
        dotted = prefix + key
        if key not in target:
            problems.append(f"Unknown configuration key '{dotted}'.")
        elif isinstance(target[key], dict):
            if isinstance(value, Mapping):
                _overlay(target[key], value, dotted + ".", problems)
            else:
                problems.append(
                    f"Expected table for '{dotted}', "
                    f"found {type(value).__name__}."
                )
        else:
            target[key] = value


def write_toml_template(
    path: Path,
    *,
    template: str,
    overwrite: bool = False,
    mode: int = 0o600,
) -> Path:
    """Write ``template`` atomically unless it exists and not ``overwrite``."""

    if path.exists() and not overwrite:
        raise TomlConfigError(f"Config already exists: {path}")
    try:
        path.parent.mkdir(parents=True, exist_ok=True)
        fd, staging = tempfile.mkstemp(
            dir=path.parent, prefix=f".{path.name}.", suffix=".tmp"
        )
        with os.fdopen(fd, "w", encoding="utf-8") as handle:
            handle.write(template)
        os.chmod(staging, mode)
        os.replace(staging, path)
    except OSError as exc:
        raise TomlConfigError(f"Cannot write config {path}: {exc}") from exc
    return path
