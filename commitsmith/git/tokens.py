"""Token estimation and line truncation helpers."""

import math
import re

CHARS_PER_TOKEN = 4

_TRAILER_RE = re.compile(r'^\.\.\. \(truncated \d+ more lines\)$')


def estimate_tokens(text: str) -> int:
    """Rough token estimate (~4 chars per token, rounded up)."""
    return math.ceil(len(text) / CHARS_PER_TOKEN)


def truncate_lines(text: str, max_lines: int) -> str:
    """Keep the first max_lines lines and note how many were dropped.

    Text that already carries a truncation trailer within the cap is
    returned unchanged, so capping twice gives the same result as once.
    """
    lines = text.split('\n')
    if len(lines) <= max_lines:
        return text
    if len(lines) == max_lines + 1 and _TRAILER_RE.match(lines[-1]):
        return text
    omitted = len(lines) - max_lines
    return '\n'.join(lines[:max_lines]) + f"\n... (truncated {omitted} more lines)"
