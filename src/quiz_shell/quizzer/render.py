"""Rich renderables used for session output."""

from __future__ import annotations

import io

from rich import box
from rich.align import Align
from rich.console import Console, RenderableType
from rich.panel import Panel
from rich.text import Text

__all__ = [
    "colorize",
    "banner",
    "error_text",
    "render_to_text",
]


def colorize(text: object, style: str) -> Text:
    return Text(str(text), style=style)


def banner(text: object, style: str = "magenta") -> Panel:
    """Large framed rendering used for verdicts and final scores."""

    label = Text(" ".join(str(text).upper()), style=f"bold {style}")
    return Panel(
        Align.center(label),
        box=box.DOUBLE,
        border_style=style,
        padding=(1, 4),
        expand=False,
    )


def error_text(message: str) -> Text:
    return Text.assemble(("Error: ", "bold red"), (message, "red"))


def render_to_text(
    renderable: RenderableType,
    *,
    color: bool = True,
    width: int = 80,
    end: str = "\n",
) -> str:
    """Render ``renderable`` into a string, with ANSI codes when ``color``."""

    buffer = io.StringIO()
    console = Console(
        file=buffer,
        width=width,
        force_terminal=color,
        color_system="standard" if color else None,
        no_color=not color,
        highlight=False,
        emoji=False,
    )
    console.print(renderable, end=end)
    return buffer.getvalue()
