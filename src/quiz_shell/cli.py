"""``quiz``: single entry point that routes to the quiz-shell subcommands."""

from __future__ import annotations

import sys
from dataclasses import dataclass
from importlib import import_module, metadata
from typing import Optional, Sequence, TextIO

DISTRIBUTION = "quiz-shell"
_QUIZZER = "quiz_shell.quizzer._main"


@dataclass(frozen=True)
class CommandSpec:
    """A ``quiz`` subcommand backed by some module's ``main(argv)``.

    ``leading`` arguments are prepended so several subcommands can share one
    argparse program.
    """

    name: str
    summary: str
    module: str
    leading: tuple[str, ...] = ()
    interactive: bool = False

    def run(self, argv: Sequence[str]) -> int:
        entry = getattr(import_module(self.module), "main")
        try:
            outcome = entry([*self.leading, *argv])
        except SystemExit as exc:
            return _exit_code(exc)
        return outcome if isinstance(outcome, int) else 0


COMMANDS: dict[str, CommandSpec] = {
    spec.name: spec
    for spec in (
        CommandSpec(
            "init",
            "Create the workspace and a default quizzer.toml.",
            "quiz_shell.workspace.cli",
        ),
        CommandSpec(
            "console",
            "Manage and play quizzes in this terminal.",
            _QUIZZER,
            leading=("console",),
            interactive=True,
        ),
        CommandSpec(
            "serve",
            "Serve quiz sessions to TCP clients.",
            _QUIZZER,
            leading=("serve",),
        ),
        CommandSpec(
            "config",
            "Create, validate or locate quizzer.toml.",
            _QUIZZER,
            leading=("config",),
        ),
    )
}


def command_table() -> str:
    width = max(map(len, COMMANDS))
    rows = ["Available commands:"]
    for spec in COMMANDS.values():
        note = " (interactive)" if spec.interactive else ""
        rows.append(f"  {spec.name:<{width}}  {spec.summary}{note}")
    return "\n".join(rows)


def usage() -> str:
    return "\n".join(
        [
            "Usage: quiz <command> [args...]",
            "Run `quiz list` for commands or `quiz help <name>` for details.",
            "",
            command_table(),
        ]
    )


def main(argv: Optional[Sequence[str]] = None) -> int:
    args = list(sys.argv[1:] if argv is None else argv)
    if not args:
        _emit(usage())
        return 2

    head, rest = args[0], args[1:]
    if head in ("-h", "--help"):
        _emit(usage())
        return 0
    if head in ("-V", "--version", "version"):
        _emit(_version())
        return 0
    if head == "list":
        _emit(command_table())
        return 0
    if head == "help":
        return _help(rest)

    spec = COMMANDS.get(head)
    if spec is None:
        return _unknown(head)
    return spec.run(rest)


def _help(rest: Sequence[str]) -> int:
    if not rest:
        _emit(usage())
        return 0
    spec = COMMANDS.get(rest[0])
    if spec is None:
        return _unknown(rest[0])
    _emit(f"{spec.name}: {spec.summary}")
    _emit(f"Run `quiz {spec.name} --help` for its options.")
    return 0


def _unknown(name: str) -> int:
    _emit(f"Unknown command '{name}'.", sys.stderr)
    _emit(command_table(), sys.stderr)
    return 2


def _version() -> str:
    try:
        return metadata.version(DISTRIBUTION)
    except metadata.PackageNotFoundError:
        return "unknown"


def _exit_code(exc: SystemExit) -> int:
    if exc.code is None or isinstance(exc.code, int):
        return exc.code or 0
    _emit(str(exc.code), sys.stderr)
    return 1


def _emit(text: str, stream: Optional[TextIO] = None) -> None:
    (stream or sys.stdout).write(text + "\n")


if __name__ == "__main__":  # pragma: no cover - manual invocation guard
    raise SystemExit(main())
