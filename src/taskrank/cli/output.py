"""Terminal output for taskrank commands.

Every message is a single line on stdout, prefixed by a status symbol.
Color is used only on a TTY and is turned off by the ``NO_COLOR``
environment variable.
"""

import os
import sys

GREEN = "\033[32m"
YELLOW = "\033[33m"
BLUE = "\033[34m"
RED = "\033[31m"
DIM = "\033[2m"
RESET = "\033[0m"

CHECK = "✓"
BULLET = "•"
CROSS = "✗"
WARN = "!"


def _use_color() -> bool:
    if os.environ.get("NO_COLOR"):
        return False
    return hasattr(sys.stdout, "isatty") and sys.stdout.isatty()


def _paint(text: str, color: str) -> str:
    return f"{color}{text}{RESET}" if _use_color() else text


def _status(symbol: str, color: str, message: str) -> None:
    print(f"{_paint(symbol, color)} {message}")


def success(message: str) -> None:
    """A change was made."""
    _status(CHECK, GREEN, message)


def info(message: str) -> None:
    """Nothing changed, or a neutral notice."""
    _status(BULLET, YELLOW, message)


def warning(message: str) -> None:
    """The command stopped without doing what was asked."""
    _status(WARN, YELLOW, message)


def error(message: str) -> None:
    _status(CROSS, RED, message)


def header(message: str) -> None:
    print(_paint(message, BLUE))


def dim(message: str) -> None:
    """Secondary detail under a status line."""
    print(_paint(message, DIM))
