"""Configuration for the quiz console and server.

Settings live in ``<workspace>/config/quizzer.toml``. Missing files fall back
to the defaults below; present files are merged over them, rejecting unknown
keys, and validated into frozen dataclasses.
"""

from __future__ import annotations

import copy
import os
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, Mapping, Optional

from quiz_shell.core import config as core_config
from quiz_shell.core import workspace as workspace_mod

__all__ = [
    "CONFIG_FILENAME",
    "CONFIG_PATH_ENV",
    "ConfigError",
    "StorageConfig",
    "ServerConfig",
    "SessionConfig",
    "LoggingConfig",
    "QuizzerConfig",
    "LoadResult",
    "config_template",
    "default_tree",
    "load_config",
    "resolve_config_path",
    "write_template",
]

CONFIG_FILENAME = "quizzer.toml"
CONFIG_PATH_ENV = "QUIZ_SHELL_CONFIG"
_STORE_FILENAME = "quizzes.json"
_BACKENDS = {"json", "memory"}
_LEVELS = {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}


class ConfigError(RuntimeError):
    """Raised when configuration parsing or validation fails."""


@dataclass(frozen=True)
class StorageConfig:
    backend: str
    path: Path
    seed_defaults: bool


@dataclass(frozen=True)
class ServerConfig:
    host: str
    port: int
    color: bool


@dataclass(frozen=True)
class SessionConfig:
    prompt: str
    credits: tuple[str, ...]
    random_seed: Optional[int]


@dataclass(frozen=True)
class LoggingConfig:
    level: str
    verbose: bool


@dataclass(frozen=True)
class QuizzerConfig:
    storage: StorageConfig
    server: ServerConfig
    session: SessionConfig
    logging: LoggingConfig


@dataclass(frozen=True)
class LoadResult:
    config: QuizzerConfig
    layout: workspace_mod.WorkspaceLayout
    path: Path
    from_file: bool


_DEFAULTS: Dict[str, Any] = {
    "storage": {
        "backend": "json",
        "path": None,
        "seed_defaults": True,
    },
    "server": {
        "host": "127.0.0.1",
        "port": 3030,
        "color": True,
    },
    "session": {
        "prompt": "quiz > ",
        "credits": ["Quiz Shell maintainers"],
        "random_seed": -1,
    },
    "logging": {
        "level": "INFO",
        "verbose": False,
    },
}


_CONFIG_TEMPLATE = """
# Quiz Shell configuration

[storage]
# "json" persists quizzes to a file, "memory" keeps them for one run only
backend = "json"
# Defaults to <workspace>/data/quizzes.json
# path = "~/quizzes.json"
# Populate a brand new store with a few sample questions
seed_defaults = true

[server]
host = "127.0.0.1"
port = 3030
# Send ANSI colors to network clients
color = true

[session]
prompt = "quiz > "
credits = ["Quiz Shell maintainers"]
# Fix the question order for reproducible games (-1 = random)
random_seed = -1

[logging]
level = "INFO"
verbose = false
"""


def default_tree() -> Dict[str, Any]:
    """Return a copy of the default configuration tree."""

    return copy.deepcopy(_DEFAULTS)


def config_template() -> str:
    """Return the TOML template recommended for new installs."""

    return _CONFIG_TEMPLATE.strip() + "\n"


def resolve_config_path(
    *,
    explicit_path: Optional[Path] = None,
    layout: Optional[workspace_mod.WorkspaceLayout] = None,
    env: Mapping[str, str] | None = None,
) -> Path:
    env_map = os.environ if env is None else env
    if explicit_path is not None:
        return explicit_path.expanduser().resolve()
    env_override = env_map.get(CONFIG_PATH_ENV)
    if env_override:
        return Path(env_override).expanduser().resolve()
    if layout is None:
        layout = _ensure_layout(None, env_map)
    return layout.path_for("config") / CONFIG_FILENAME


def write_template(path: Path, *, overwrite: bool = False) -> Path:
    try:
        return core_config.write_toml_template(
            path, template=config_template(), overwrite=overwrite
        )
    except core_config.TomlConfigError as exc:
        raise ConfigError(str(exc)) from exc


def load_config(
    *,
    explicit_path: Optional[Path] = None,
    workspace_path: Optional[Path] = None,
    env: Mapping[str, str] | None = None,
    require_file: bool = False,
) -> LoadResult:
    """Resolve the workspace, then load and validate the quizzer config.

    An explicitly requested config file must exist; the implicit workspace
    config is optional unless ``require_file`` is set.
    """

    env_map = os.environ if env is None else env
    layout = _ensure_layout(workspace_path, env_map)
    path = resolve_config_path(
        explicit_path=explicit_path, layout=layout, env=env_map
    )
    must_exist = require_file or explicit_path is not None
    tree = default_tree()
    from_file = False
    if path.exists() or must_exist:
        try:
            data = core_config.load_toml(path)
            tree = core_config.merge_defaults(tree, data)
        except core_config.TomlConfigError as exc:
            raise ConfigError(str(exc)) from exc
        from_file = True
    config = _build_config(tree, layout)
    return LoadResult(
        config=config, layout=layout, path=path, from_file=from_file
    )


def _ensure_layout(
    workspace_path: Optional[Path], env: Mapping[str, str]
) -> workspace_mod.WorkspaceLayout:
    try:
        return workspace_mod.ensure_workspace(env=env, path=workspace_path)
    except workspace_mod.WorkspaceError as exc:
        raise ConfigError(str(exc)) from exc


def _require_bool(value: Any, *, field: str) -> bool:
    if not isinstance(value, bool):
        raise ConfigError(f"'{field}' must be a boolean.")
    return value


def _require_string(value: Any, *, field: str) -> str:
    if not isinstance(value, str) or not value.strip():
        raise ConfigError(f"'{field}' must be a non-empty string.")
    return value


def _require_port(value: Any, *, field: str) -> int:
    if isinstance(value, bool) or not isinstance(value, int):
        raise ConfigError(f"'{field}' must be an integer.")
    if not 0 <= value <= 65535:
        raise ConfigError(f"'{field}' must be between 0 and 65535.")
    return value


def _build_storage(
    section: Mapping[str, Any], layout: workspace_mod.WorkspaceLayout
) -> StorageConfig:
    backend = _require_string(
        section.get("backend"), field="storage.backend"
    ).lower()
    if backend not in _BACKENDS:
        raise ConfigError("storage.backend must be one of: json, memory.")
    raw_path = section.get("path")
    if raw_path is None:
        path = layout.path_for("data") / _STORE_FILENAME
    else:
        path = Path(
            _require_string(raw_path, field="storage.path")
        ).expanduser()
    seed_defaults = _require_bool(
        section.get("seed_defaults"), field="storage.seed_defaults"
    )
    return StorageConfig(
        backend=backend, path=path, seed_defaults=seed_defaults
    )


def _build_server(section: Mapping[str, Any]) -> ServerConfig:
    return ServerConfig(
        host=_require_string(section.get("host"), field="server.host"),
        port=_require_port(section.get("port"), field="server.port"),
        color=_require_bool(section.get("color"), field="server.color"),
    )


def _build_session(section: Mapping[str, Any]) -> SessionConfig:
    prompt = _require_string(section.get("prompt"), field="session.prompt")
    credits = section.get("credits")
    if not isinstance(credits, list) or not credits or not all(
        isinstance(entry, str) and entry.strip() for entry in credits
    ):
        raise ConfigError("'session.credits' must be a list of names.")
    seed = section.get("random_seed")
    if isinstance(seed, bool) or not isinstance(seed, int):
        raise ConfigError("'session.random_seed' must be an integer.")
    return SessionConfig(
        prompt=prompt,
        credits=tuple(credits),
        random_seed=None if seed < 0 else seed,
    )


def _build_logging(section: Mapping[str, Any]) -> LoggingConfig:
    level = _require_string(
        section.get("level"), field="logging.level"
    ).upper()
    if level not in _LEVELS:
        raise ConfigError(
            "logging.level must be one of "
            "DEBUG, INFO, WARNING, ERROR, CRITICAL."
        )
    verbose = _require_bool(section.get("verbose"), field="logging.verbose")
    return LoggingConfig(level=level, verbose=verbose)


def _build_config(
    tree: Mapping[str, Any], layout: workspace_mod.WorkspaceLayout
) -> QuizzerConfig:
    return QuizzerConfig(
        storage=_build_storage(tree["storage"], layout),
        server=_build_server(tree["server"]),
        session=_build_session(tree["session"]),
        logging=_build_logging(tree["logging"]),
    )
