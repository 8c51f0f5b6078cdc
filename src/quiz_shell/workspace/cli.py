"""``quiz init``: prepare the workspace, its config file and quiz store."""

from __future__ import annotations

import argparse
import asyncio
import sys
from pathlib import Path
from typing import Sequence

from quiz_shell.core import workspace as workspace_mod
from quiz_shell.quizzer import config as quizzer_config
from quiz_shell.quizzer.errors import RepositoryError
from quiz_shell.quizzer.repository import JsonQuizRepository


def _parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="quiz init",
        description="Create the quiz-shell workspace and a default config.",
    )
    parser.add_argument(
        "--path",
        type=Path,
        help="Workspace root (default: $QUIZ_SHELL_DATA_HOME or "
        "~/.quiz-shell-data)",
    )
    parser.add_argument(
        "--with-store",
        action="store_true",
        help="Also create data/quizzes.json seeded with sample quizzes",
    )
    parser.add_argument(
        "--quiet", action="store_true", help="Print nothing on success"
    )
    return parser


def _mark(is_new: bool) -> str:
    return "created" if is_new else "exists"


def main(argv: Sequence[str] | None = None) -> int:
    args = _parser().parse_args(argv)

    try:
        layout = workspace_mod.ensure_workspace(path=args.path)
    except workspace_mod.WorkspaceError as exc:
        print(exc, file=sys.stderr)
        return 2

    config_path = layout.path_for("config") / quizzer_config.CONFIG_FILENAME
    config_new = not config_path.exists()
    if config_new:
        quizzer_config.write_template(config_path)

    report = [
        f"Workspace ready at {layout.home} "
        f"({_mark(layout.created.get('home', False))})",
    ]
    for name, directory in layout.directories.items():
        is_new = layout.created.get(name, False)
        report.append(f"  {name:<6}  {directory} ({_mark(is_new)})")
    report.append(f"Config: {config_path} ({_mark(config_new)})")

    if args.with_store:
        store_path = layout.path_for("data") / "quizzes.json"
        store_new = not store_path.exists()
        try:
            items = asyncio.run(JsonQuizRepository(store_path).all())
        except RepositoryError as exc:
            print(f"Error: {exc}", file=sys.stderr)
            return 1
        report.append(
            f"Store: {store_path} ({_mark(store_new)}, {len(items)} quizzes)"
        )

    if not args.quiet:
        print("\n".join(report))
    return 0


if __name__ == "__main__":  # pragma: no cover - module CLI guard
    raise SystemExit(main())
