from ._main import build_arg_parser, build_engine, build_repository
from .config import ConfigError, QuizzerConfig, load_config
from .dispatcher import Dispatcher, ParsedCommand, parse_command_line
from .engine import (
    GameResult,
    GameState,
    PlaySession,
    QuizEngine,
    validate_id,
)
from .errors import (
    LineTooLong,
    MissingArgument,
    NotANumber,
    NotFound,
    QuizError,
    RepositoryError,
    SessionClosed,
    TransportError,
)
from .lines import ConsoleLineSession, LineSession, StreamLineSession
from .models import QuizItem
from .repository import (
    InMemoryQuizRepository,
    JsonQuizRepository,
    QuizRepository,
)
from .server import QuizServer

__all__ = [
    "build_arg_parser",
    "build_engine",
    "build_repository",
    "ConfigError",
    "QuizzerConfig",
    "load_config",
    "Dispatcher",
    "ParsedCommand",
    "parse_command_line",
    "GameResult",
    "GameState",
    "PlaySession",
    "QuizEngine",
    "validate_id",
    "LineTooLong",
    "MissingArgument",
    "NotANumber",
    "NotFound",
    "QuizError",
    "RepositoryError",
    "SessionClosed",
    "TransportError",
    "ConsoleLineSession",
    "LineSession",
    "StreamLineSession",
    "QuizItem",
    "InMemoryQuizRepository",
    "JsonQuizRepository",
    "QuizRepository",
    "QuizServer",
]
