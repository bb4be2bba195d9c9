"""Git Operations Package"""

from commitsmith.git.analyzer import CommitInfo, GitAnalyzer, GitError, FileStatus, DiffStats
from commitsmith.git.diff_processor import (
    ChangeStatus,
    DiffChunk,
    DiffProcessor,
    ProcessorConfig,
    ReducedDiff,
    SOURCE_EXTENSIONS,
)
from commitsmith.git.ignore import IgnoreMatcher
from commitsmith.git.tokens import estimate_tokens, truncate_lines

__all__ = [
    "GitAnalyzer",
    "GitError",
    "FileStatus",
    "DiffStats",
    "CommitInfo",
    "ChangeStatus",
    "DiffChunk",
    "DiffProcessor",
    "ProcessorConfig",
    "ReducedDiff",
    "SOURCE_EXTENSIONS",
    "IgnoreMatcher",
    "estimate_tokens",
    "truncate_lines",
]
