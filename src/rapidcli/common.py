"""Terminal output helpers shared by the interactive shell and the API launcher."""

from enum import Enum
from typing import Any


class AnsiColors(Enum):
    """ANSI colour codes for terminal output."""

    RED = "\033[91m"
    GREEN = "\033[92m"
    YELLOW = "\033[33m"
    BLUE = "\033[94m"
    MAGENTA = "\033[95m"
    CYAN = "\033[96m"
    GREY = "\033[90m"


RESET = "\033[0m"


def colored_print(text: str, color: AnsiColors, *args: Any, **kwargs: Any) -> None:
    """Print *text* in *color*; extra arguments are passed through to :func:`print`."""
    print(f"{color.value}{text}{RESET}", *args, **kwargs)


def preview(text: str, limit: int = 240) -> str:
    """Shorten *text* to *limit* characters, marking the cut with an ellipsis."""
    if len(text) <= limit:
        return text
    return text[:limit] + "…"
