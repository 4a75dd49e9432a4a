"""Color output support for the imagesolve CLI.

Color palette:
  - Red: errors
  - Orange: warnings
  - Green: success
  - Blue: contextual information
"""

import os
import sys

# ANSI color codes
_COLORS = {
    'reset': '\033[0m',
    'bold': '\033[1m',
    'red': '\033[91m',
    'orange': '\033[93m',
    'green': '\033[92m',
    'blue': '\033[94m',
    'dim': '\033[2m',
}

_colors_enabled = True


def init(nocolor: bool = False):
    """Initialize color support.

    Colors are disabled by nocolor, by NO_COLOR in the environment, or
    when stdout is not a terminal.
    """
    global _colors_enabled

    if nocolor or os.environ.get('NO_COLOR'):
        _colors_enabled = False
    else:
        _colors_enabled = sys.stdout.isatty()


def _wrap(text: str, color: str) -> str:
    if not _colors_enabled:
        return text
    return f"{_COLORS[color]}{text}{_COLORS['reset']}"


def error(text: str) -> str:
    return _wrap(text, 'red')


def warning(text: str) -> str:
    return _wrap(text, 'orange')


def success(text: str) -> str:
    return _wrap(text, 'green')


def info(text: str) -> str:
    return _wrap(text, 'blue')


def dim(text: str) -> str:
    return _wrap(text, 'dim')


def bold(text: str) -> str:
    return _wrap(text, 'bold')
