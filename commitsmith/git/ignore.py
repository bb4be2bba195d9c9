"""Ignore-set matching for noise files (lock files, build output, generated code)."""

import re

DEFAULT_IGNORE_FILES: list[str] = [
    'package-lock.json', 'yarn.lock', 'pnpm-lock.yaml', 'bun.lockb',
    'Gemfile.lock', 'Cargo.lock', 'poetry.lock', 'composer.lock', 'go.sum',
]

DEFAULT_IGNORE_DIRS: list[str] = [
    'dist/', 'build/', '.next/', '__pycache__/',
]

DEFAULT_IGNORE_GLOBS: list[str] = [
    '*.generated.*', '*.min.js', '*.min.css', '*.map',
]


def _under_dir(path: str, directory: str) -> bool:
    return path.startswith(directory) or f"/{directory}" in path


class IgnoreMatcher:
    """Decides whether a changed path is noise that should not reach the LLM.

    Rules are checked in order and the first hit wins: default lock file
    names, default build directories, default filename globs, then the
    caller's extra patterns. Globs understand only ``*`` and ``?``.
    """

    def __init__(self):
        self._glob_cache: dict[str, re.Pattern] = {}

    def should_ignore(self, path: str, extra_patterns: list[str] | tuple[str, ...] = ()) -> bool:
        filename = path.rsplit('/', 1)[-1]

        if filename in DEFAULT_IGNORE_FILES:
            return True

        if any(_under_dir(path, d) for d in DEFAULT_IGNORE_DIRS):
            return True

        if any(self.match_glob(filename, g) for g in DEFAULT_IGNORE_GLOBS):
            return True

        for pattern in extra_patterns:
            if pattern.endswith('/'):
                if _under_dir(path, pattern):
                    return True
            elif '*' in pattern:
                if self.match_glob(filename, pattern):
                    return True
            elif path == pattern or filename == pattern:
                return True

        return False

    def match_glob(self, filename: str, pattern: str) -> bool:
        regex = self._glob_cache.get(pattern)
        if regex is None:
            escaped = re.escape(pattern).replace(r'\*', '.*').replace(r'\?', '.')
            regex = re.compile(f'^{escaped}$')
            self._glob_cache[pattern] = regex
        return regex.match(filename) is not None

    @staticmethod
    def git_excludes(extra_patterns: list[str] | tuple[str, ...] = ()) -> list[str]:
        """Patterns to hand git as ``:(exclude)`` pathspecs before diffing."""
        return [*DEFAULT_IGNORE_FILES, *DEFAULT_IGNORE_DIRS, *extra_patterns]
