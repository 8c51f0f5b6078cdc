import argparse
import asyncio
import logging
import random
import sys
from dataclasses import replace
from pathlib import Path
from typing import Optional, Sequence

from rich.console import Console

from ..core import configure_logger, load_environment
from .config import (
    ConfigError,
    LoadResult,
    QuizzerConfig,
    load_config,
    resolve_config_path,
    write_template,
)
from .dispatcher import Dispatcher
from .engine import QuizEngine
from .lines import ConsoleLineSession
from .models import DEFAULT_ITEMS
from .render import banner
from .repository import (
    InMemoryQuizRepository,
    JsonQuizRepository,
    QuizRepository,
)
from .server import QuizServer

LOGGER_NAME = "quiz_shell"
LOG_FILENAME = "quizzer.log"


def _add_runtime_options(parser: argparse.ArgumentParser) -> None:
    parser.add_argument("--config", type=Path, help="Path to quizzer.toml")
    parser.add_argument(
        "--workspace",
        type=Path,
        help="Override the workspace root (defaults to ~/.quiz-shell-data)",
    )
    parser.add_argument("--store", type=Path, help="JSON quiz store to use")
    parser.add_argument(
        "--memory",
        action="store_true",
        help="Keep quizzes in memory only (nothing is saved)",
    )
    parser.add_argument(
        "--seed",
        type=int,
        help="Random seed for the play order (negative: unseeded)",
    )
    parser.add_argument("--log-level", help="Log file level (default INFO)")
    parser.add_argument(
        "--verbose", action="store_true", help="Mirror logs to stderr"
    )


def build_arg_parser() -> argparse.ArgumentParser:
    p = argparse.ArgumentParser(
        prog="quizzer",
        description="Interactive question/answer quiz shell",
        formatter_class=argparse.ArgumentDefaultsHelpFormatter,
    )
    sub = p.add_subparsers(dest="command", required=True)

    sp_console = sub.add_parser("console", help="Run a local quiz session")
    _add_runtime_options(sp_console)

    sp_serve = sub.add_parser(
        "serve", help="Serve quiz sessions to TCP clients"
    )
    _add_runtime_options(sp_serve)
    sp_serve.add_argument("--host", help="Interface to bind")
    sp_serve.add_argument("--port", type=int, help="Port to listen on")
    sp_serve.add_argument(
        "--no-color",
        dest="color",
        action="store_false",
        default=None,
        help="Send plain text to clients",
    )

    sp_config = sub.add_parser("config", help="Manage quizzer.toml")
    config_sub = sp_config.add_subparsers(dest="action", required=True)
    sp_c_init = config_sub.add_parser("init", help="Write the template")
    sp_c_init.add_argument("--path", type=Path)
    sp_c_init.add_argument("--force", action="store_true")
    sp_c_validate = config_sub.add_parser("validate", help="Check a config")
    sp_c_validate.add_argument("--path", type=Path)
    sp_c_validate.add_argument("--quiet", action="store_true")
    sp_c_path = config_sub.add_parser("path", help="Print the config path")
    sp_c_path.add_argument("--path", type=Path)
    return p


def _load(args: argparse.Namespace) -> LoadResult:
    result = load_config(
        explicit_path=args.config, workspace_path=args.workspace
    )
    cfg = result.config
    storage = cfg.storage
    if args.memory:
        storage = replace(storage, backend="memory")
    elif args.store is not None:
        storage = replace(
            storage, backend="json", path=args.store.expanduser()
        )
    session = cfg.session
    if args.seed is not None:
        seed = None if args.seed < 0 else args.seed
        session = replace(session, random_seed=seed)
    log_cfg = cfg.logging
    if args.log_level:
        log_cfg = replace(log_cfg, level=args.log_level.upper())
    if args.verbose:
        log_cfg = replace(log_cfg, verbose=True)
    server = cfg.server
    if getattr(args, "host", None):
        server = replace(server, host=args.host)
    if getattr(args, "port", None) is not None:
        server = replace(server, port=args.port)
    if getattr(args, "color", None) is not None:
        server = replace(server, color=args.color)
    cfg = QuizzerConfig(
        storage=storage, server=server, session=session, logging=log_cfg
    )
    return replace(result, config=cfg)


def build_repository(cfg: QuizzerConfig) -> QuizRepository:
    if cfg.storage.backend == "memory":
        seed = DEFAULT_ITEMS if cfg.storage.seed_defaults else ()
        return InMemoryQuizRepository(seed)
    return JsonQuizRepository(
        cfg.storage.path, seed_defaults=cfg.storage.seed_defaults
    )


def build_engine(cfg: QuizzerConfig) -> QuizEngine:
    return QuizEngine(
        build_repository(cfg),
        rng=random.Random(cfg.session.random_seed),
        credits=cfg.session.credits,
    )


def _start_logging(result: LoadResult) -> logging.Logger:
    logger, _ = configure_logger(
        LOGGER_NAME,
        log_dir=result.layout.path_for("logs"),
        level=result.config.logging.level,
        verbose=result.config.logging.verbose,
        filename=LOG_FILENAME,
    )
    return logger


def _cmd_console(args: argparse.Namespace) -> int:
    try:
        result = _load(args)
    except ConfigError as exc:
        print(f"Error: {exc}", file=sys.stderr)
        return 2
    logger = _start_logging(result)
    cfg = result.config
    logger.info(
        "console session starting",
        extra={"backend": cfg.storage.backend, "config": result.path},
    )
    console = Console(highlight=False)
    session = ConsoleLineSession(console)
    console.print(banner("Quiz Shell", "green"))
    dispatcher = Dispatcher(
        build_engine(cfg), session, prompt=cfg.session.prompt
    )
    try:
        asyncio.run(dispatcher.run())
    except KeyboardInterrupt:
        console.print()
        logger.info("console session interrupted")
    console.print("Bye!")
    return 0


async def _serve(server: QuizServer) -> None:
    await server.start()
    try:
        await server.serve_forever()
    finally:
        await server.close()


def _cmd_serve(args: argparse.Namespace) -> int:
    try:
        result = _load(args)
    except ConfigError as exc:
        print(f"Error: {exc}", file=sys.stderr)
        return 2
    logger = _start_logging(result)
    cfg = result.config
    server = QuizServer(
        build_engine(cfg),
        host=cfg.server.host,
        port=cfg.server.port,
        color=cfg.server.color,
        prompt=cfg.session.prompt,
    )
    print(f"Serving quizzes on {cfg.server.host}:{cfg.server.port}")
    try:
        asyncio.run(_serve(server))
    except KeyboardInterrupt:
        logger.info("server interrupted")
    except OSError as exc:
        print(f"Error: {exc}", file=sys.stderr)
        return 1
    return 0


def _cmd_config(args: argparse.Namespace) -> int:
    try:
        if args.action == "init":
            target = resolve_config_path(explicit_path=args.path)
            write_template(target, overwrite=args.force)
            print(f"Wrote config template to {target}")
            return 0
        if args.action == "validate":
            result = load_config(explicit_path=args.path, require_file=True)
            if not args.quiet:
                cfg = result.config
                print("Configuration OK")
                print(f"  path: {result.path}")
                print(f"  storage: {cfg.storage.backend} ({cfg.storage.path})")
                print(f"  server: {cfg.server.host}:{cfg.server.port}")
                print(f"  log level: {cfg.logging.level}")
            return 0
        print(resolve_config_path(explicit_path=args.path))
        return 0
    except ConfigError as exc:
        print(f"Error: {exc}", file=sys.stderr)
        return 2


def main(argv: Optional[Sequence[str]] = None) -> int:
    load_environment()
    parser = build_arg_parser()
    args = parser.parse_args(list(argv) if argv is not None else None)
    if args.command == "console":
        return _cmd_console(args)
    if args.command == "serve":
        return _cmd_serve(args)
    if args.command == "config":
        return _cmd_config(args)
    parser.print_help()  # pragma: no cover - argparse enforces choices
    return 2


if __name__ == "__main__":  # pragma: no cover
    raise SystemExit(main())
