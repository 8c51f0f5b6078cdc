"""Core shared helpers for quiz-shell subcommands."""

from __future__ import annotations

from .config import (
    TomlConfigError,
    load_environment,
    load_toml,
    merge_defaults,
    write_toml_template,
)
from .logging import (
    JsonLogFormatter,
    bind_peer,
    configure_logger,
    current_peer,
    release_logger,
)
from .workspace import (
    WORKSPACE_ENV,
    WorkspaceError,
    WorkspaceLayout,
    describe_layout,
    ensure_workspace,
    resolve_home,
)

__all__ = [
    "TomlConfigError",
    "load_environment",
    "load_toml",
    "merge_defaults",
    "write_toml_template",
    "JsonLogFormatter",
    "bind_peer",
    "configure_logger",
    "current_peer",
    "release_logger",
    "WORKSPACE_ENV",
    "WorkspaceError",
    "WorkspaceLayout",
    "describe_layout",
    "ensure_workspace",
    "resolve_home",
]
