"""Terminal Output and Logging Package"""

import logging
import os
import re
import sys
import threading


class Colors:
    """ANSI escape codes for terminal colors."""
    RESET = '\033[0m'
    BOLD = '\033[1m'
    DIM = '\033[2m'
    RED = '\033[31m'
    GREEN = '\033[32m'
    YELLOW = '\033[33m'
    CYAN = '\033[36m'
    MAGENTA = '\033[35m'


def _supports_color() -> bool:
    if os.environ.get('NO_COLOR'):
        return False
    if os.environ.get('FORCE_COLOR'):
        return True
    return hasattr(sys.stdout, 'isatty') and sys.stdout.isatty()


def _supports_unicode() -> bool:
    try:
        '✓→'.encode(sys.stdout.encoding or 'utf-8')
        return True
    except (UnicodeEncodeError, LookupError):
        return False


COLORS_ENABLED = _supports_color()
UNICODE_ENABLED = _supports_unicode()

CHECK = '✓' if UNICODE_ENABLED else '[OK]'
CROSS = '✗' if UNICODE_ENABLED else '[X]'
RULE = '─' if UNICODE_ENABLED else '-'


def configure_logging(verbose: bool = False) -> None:
    """Send commitsmith log records to stderr; DEBUG with --verbose, else WARNING."""
    logger = logging.getLogger('commitsmith')
    logger.setLevel(logging.DEBUG if verbose else logging.WARNING)
    if not logger.handlers:
        handler = logging.StreamHandler(sys.stderr)
        handler.setFormatter(logging.Formatter('%(levelname)s %(name)s: %(message)s'))
        logger.addHandler(handler)


def _colorize(text: str, *codes: str) -> str:
    if not COLORS_ENABLED:
        return text
    return f"{''.join(codes)}{text}{Colors.RESET}"


def success(text: str) -> str:
    return _colorize(text, Colors.GREEN)


def error(text: str) -> str:
    return _colorize(text, Colors.RED)


def warning(text: str) -> str:
    return _colorize(text, Colors.YELLOW)


def info(text: str) -> str:
    return _colorize(text, Colors.CYAN)


def dim(text: str) -> str:
    return _colorize(text, Colors.DIM)


def bold(text: str) -> str:
    return _colorize(text, Colors.BOLD)


def print_success(message: str) -> None:
    print(f"{success(CHECK)} {message}")


def print_error(message: str) -> None:
    print(f"{error(CROSS)} {error(message)}", file=sys.stderr)


COMMIT_TYPE_COLORS = {
    'feat': Colors.GREEN,
    'fix': Colors.RED,
    'refactor': Colors.YELLOW,
    'docs': Colors.CYAN,
    'test': Colors.MAGENTA,
    'perf': Colors.GREEN,
    'chore': Colors.DIM,
    'style': Colors.DIM,
    'ci': Colors.CYAN,
    'build': Colors.CYAN,
    'revert': Colors.RED,
}


def colorize_commit_type(message: str) -> str:
    """Color the commit type prefix on the first line of a commit message."""
    if not COLORS_ENABLED:
        return message
    lines = message.split('\n')
    match = re.match(r'^(\w+)(\([^)]*\))?(!?:)', lines[0])
    if match:
        color = COMMIT_TYPE_COLORS.get(match.group(1))
        if color:
            prefix = match.group(0)
            lines[0] = _colorize(prefix, Colors.BOLD, color) + lines[0][len(prefix):]
    return '\n'.join(lines)


class StreamPrinter:
    """Echo streamed response pieces to the terminal as they arrive."""

    def __init__(self, stream=None):
        self._stream = stream or sys.stdout
        self.started = False

    def __call__(self, piece: str) -> None:
        if not self.started:
            self._stream.write('\n')
            self.started = True
        self._stream.write(dim(piece))
        self._stream.flush()

    def finish(self) -> None:
        if self.started:
            self._stream.write('\n')
            self._stream.flush()
        self.started = False


class Spinner:
    """Animated spinner for long operations. Use as context manager."""
    FRAMES_UNICODE = ['⠋', '⠙', '⠹', '⠸', '⠼', '⠴', '⠦', '⠧', '⠇', '⠏']
    FRAMES_ASCII = ['-', '\\', '|', '/']

    def __init__(self):
        self._thread = None
        self._stop_event = threading.Event()
        self._frames = self.FRAMES_UNICODE if UNICODE_ENABLED else self.FRAMES_ASCII

    def _spin(self):
        idx = 0
        while not self._stop_event.is_set():
            frame = self._frames[idx % len(self._frames)]
            print(f'\r\033[K{frame} ', end='', flush=True)
            idx += 1
            self._stop_event.wait(0.08)

    def __enter__(self):
        if sys.stdout.isatty():
            self._stop_event.clear()
            self._thread = threading.Thread(target=self._spin, daemon=True)
            self._thread.start()
        return self

    def __exit__(self, *args):
        self._stop_event.set()
        if self._thread:
            self._thread.join()
        if sys.stdout.isatty():
            print('\r\033[K', end='', flush=True)


__all__ = [
    "Colors", "COLORS_ENABLED", "UNICODE_ENABLED",
    "CHECK", "CROSS", "RULE",
    "configure_logging",
    "success", "error", "warning", "info", "dim", "bold",
    "print_success", "print_error",
    "colorize_commit_type", "COMMIT_TYPE_COLORS", "StreamPrinter", "Spinner",
]
