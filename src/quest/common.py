"""Terminal output helpers shared by the API launcher and the CLI client."""

import os
import sys
from enum import Enum
from typing import (
    Any,
    TextIO,
)

RESET = "\033[0m"


class AnsiColors(Enum):
    """ANSI color codes, one per kind of terminal message."""

    ERROR = "\033[91m"
    TOOL = "\033[92m"
    REPLY = "\033[33m"
    PROMPT = "\033[94m"
    DIM = "\033[2m"

    # Aliases by hue
    RED = ERROR
    GREEN = TOOL
    YELLOW = REPLY
    BLUE = PROMPT


def supports_color(stream: TextIO | None = None) -> bool:
    """True when *stream* is a terminal and ``NO_COLOR`` is unset."""
    stream = stream or sys.stdout
    if os.environ.get("NO_COLOR"):
        return False
    return bool(getattr(stream, "isatty", lambda: False)())


def colored_print(text: str, color: AnsiColors, *args: Any, **kwargs: Any) -> None:
    """
    Print text in color, or plain when the output is not a terminal.

    Args:
        text: The text to print
        color: The color to use (AnsiColors enum)
        args: Additional positional arguments for print
        kwargs: Additional keyword arguments for print
    """
    if supports_color(kwargs.get("file")):
        text = f"{color.value}{text}{RESET}"
    print(text, *args, **kwargs)
