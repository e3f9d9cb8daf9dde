"""Coloured status lines for the terminal."""

import os
import sys

_RED = "31"
_GREEN = "32"
_RESET = "\x1b[0m"


def _colors_enabled() -> bool:
    isatty = getattr(sys.stdout, "isatty", None)
    return bool(isatty and isatty())


def _paint(text: str, code: str) -> str:
    if _colors_enabled():
        return f"\x1b[{code}m{text}{_RESET}"
    return text


def _emit(emoji: str, fallback: str, message: str, code: str) -> None:
    marker = fallback if "NO_EMOJI" in os.environ else emoji
    print(f"{_paint(marker, code)} {_paint(message, code)}")


def warn(message: str) -> None:
    """Print a red warning line, prefixed with a warning sign."""
    _emit("⚠️ ", "!", message, _RED)


def success(message: str) -> None:
    """Print a green success line, prefixed with a check mark."""
    _emit("✅", "✓", message, _GREEN)