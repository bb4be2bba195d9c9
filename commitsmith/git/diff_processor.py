"""Diff Processor - Fit a raw git diff into an LLM token budget."""

import logging
import re
from dataclasses import dataclass, field, replace
from enum import Enum

from commitsmith.git.analyzer import FileStatus
from commitsmith.git.ignore import IgnoreMatcher
from commitsmith.git.tokens import estimate_tokens, truncate_lines

logger = logging.getLogger(__name__)

SOURCE_EXTENSIONS: tuple[str, ...] = (
    '.ts', '.tsx', '.js', '.jsx', '.py', '.java', '.go', '.rs', '.rb',
    '.c', '.cpp', '.h', '.cs', '.swift', '.kt', '.scala', '.vue', '.svelte',
)

_DIFF_MARKER = re.compile(r'^diff --git ', re.MULTILINE)
_HEADER_RE = re.compile(r'^a/(.+?) b/(.+)$', re.MULTILINE)


class ChangeStatus(Enum):
    """How a file changed. SYNTHETIC_SUMMARY marks a chunk built to stand in for omitted files."""
    ADDED = 'A'
    MODIFIED = 'M'
    DELETED = 'D'
    RENAMED = 'R'
    SYNTHETIC_SUMMARY = 'S'

    @classmethod
    def from_code(cls, code: str | None) -> 'ChangeStatus':
        """Map a git status letter to a status; unknown letters count as modified."""
        if code:
            for status in (cls.ADDED, cls.DELETED, cls.RENAMED):
                if code.startswith(status.value):
                    return status
        return cls.MODIFIED


@dataclass(frozen=True)
class DiffChunk:
    """One file's slice of the diff."""
    path: str
    status: ChangeStatus
    diff: str
    additions: int = 0
    deletions: int = 0
    old_path: str | None = None

    @property
    def is_source(self) -> bool:
        return self.path.endswith(SOURCE_EXTENSIONS)

    @property
    def is_synthetic(self) -> bool:
        return self.status is ChangeStatus.SYNTHETIC_SUMMARY

    def describe(self) -> str:
        """One-line description: status prefix, path and line counts."""
        return f"{status_prefix(self)}{self.path} (+{self.additions} -{self.deletions})"


@dataclass
class ReducedDiff:
    """LLM-ready representation of the staged changes after budget reduction."""
    chunks: list[DiffChunk] = field(default_factory=list)
    summary: str = "No changes"
    total_additions: int = 0
    total_deletions: int = 0
    was_filtered: bool = False
    was_truncated: bool = False

    @property
    def file_chunks(self) -> list[DiffChunk]:
        """Chunks that represent real files (the synthetic summary excluded)."""
        return [c for c in self.chunks if not c.is_synthetic]

    @property
    def is_empty(self) -> bool:
        return not self.chunks

    @property
    def estimated_tokens(self) -> int:
        return estimate_tokens(_serialize(self.chunks))


@dataclass
class ProcessorConfig:
    """Tunable settings for diff reduction."""
    max_lines_per_file: int = 60
    min_token_budget: int = 500


def status_prefix(chunk: DiffChunk) -> str:
    match chunk.status:
        case ChangeStatus.ADDED:
            return "new: "
        case ChangeStatus.DELETED:
            return "deleted: "
        case ChangeStatus.RENAMED:
            return f"renamed: {chunk.old_path} → "
        case ChangeStatus.MODIFIED | ChangeStatus.SYNTHETIC_SUMMARY:
            return ""


def _serialize(chunks: list[DiffChunk]) -> str:
    return '\n'.join(c.diff for c in chunks)


def _count_changes(diff: str) -> tuple[int, int]:
    additions = deletions = 0
    for line in diff.split('\n'):
        if line.startswith('+') and not line.startswith('+++'):
            additions += 1
        elif line.startswith('-') and not line.startswith('---'):
            deletions += 1
    return additions, deletions


class DiffProcessor:
    """Splits a raw diff into per-file chunks and shrinks them to fit a token budget."""

    def __init__(self, config: ProcessorConfig | None = None, matcher: IgnoreMatcher | None = None):
        self.config = config or ProcessorConfig()
        self.matcher = matcher or IgnoreMatcher()

    def segment(self, raw_diff: str, files: list[FileStatus]) -> list[DiffChunk]:
        """Split a unified diff into one chunk per file header, in input order."""
        chunks = []
        for fragment in _DIFF_MARKER.split(raw_diff):
            if not fragment:
                continue
            header = _HEADER_RE.search(fragment.split('\n', 1)[0])
            if not header:
                continue

            old, new = header.group(1), header.group(2)
            entry = next((f for f in files if f.path == new or (f.old_path and f.old_path == old)), None)
            status = ChangeStatus.from_code(entry.status if entry else None)
            additions, deletions = _count_changes(fragment)

            chunks.append(DiffChunk(
                path=new,
                status=status,
                diff=f"diff --git {fragment}",
                additions=additions,
                deletions=deletions,
                old_path=entry.old_path if entry and status is ChangeStatus.RENAMED else None,
            ))
        return chunks

    def reduce(
        self,
        raw_diff: str,
        files: list[FileStatus],
        extra_ignore: list[str] | tuple[str, ...] = (),
        budget: int = 2000,
    ) -> ReducedDiff:
        """Main entry point: raw diff -> chunks that fit within budget tokens."""
        if not raw_diff.strip():
            return ReducedDiff()

        budget = max(budget, self.config.min_token_budget)

        chunks = self.segment(raw_diff, files)
        segmented = len(chunks)
        chunks = [c for c in chunks if not self.matcher.should_ignore(c.path, extra_ignore)]
        was_filtered = len(chunks) < segmented
        if was_filtered:
            logger.debug("Ignored %d noise files", segmented - len(chunks))

        total_additions = sum(c.additions for c in chunks)
        total_deletions = sum(c.deletions for c in chunks)

        was_truncated = False
        tokens = estimate_tokens(_serialize(chunks))
        if tokens > budget:
            was_truncated = True
            logger.debug("Diff is ~%d tokens, budget %d; truncating", tokens, budget)
            chunks = self._shrink(chunks, budget)

        return ReducedDiff(
            chunks=chunks,
            summary=self._build_summary(chunks, total_additions, total_deletions),
            total_additions=total_additions,
            total_deletions=total_deletions,
            was_filtered=was_filtered,
            was_truncated=was_truncated,
        )

    def _shrink(self, chunks: list[DiffChunk], budget: int) -> list[DiffChunk]:
        # Source files first, then smallest first so more files survive
        chunks = sorted(chunks, key=lambda c: (not c.is_source, len(c.diff)))
        chunks = [self._cap(c) for c in chunks]

        if estimate_tokens(_serialize(chunks)) <= budget:
            return chunks

        source = [c for c in chunks if c.is_source]
        others = [c for c in chunks if not c.is_source]
        logger.debug("Still over budget; keeping %d source files, summarizing %d others", len(source), len(others))

        # With no source files left, the summary replaces everything
        chunks = [self._cap(c) for c in source]
        if others:
            chunks.append(self._summarize(others))
        return chunks

    def _cap(self, chunk: DiffChunk) -> DiffChunk:
        capped = truncate_lines(chunk.diff, self.config.max_lines_per_file)
        return chunk if capped == chunk.diff else replace(chunk, diff=capped)

    def _summarize(self, others: list[DiffChunk]) -> DiffChunk:
        lines = '\n'.join(f"  {c.describe()}" for c in others)
        return DiffChunk(
            path="(other files summary)",
            status=ChangeStatus.SYNTHETIC_SUMMARY,
            diff=f"Other files:\n{lines}",
            additions=sum(c.additions for c in others),
            deletions=sum(c.deletions for c in others),
        )

    def _build_summary(self, chunks: list[DiffChunk], additions: int, deletions: int) -> str:
        real = [c for c in chunks if not c.is_synthetic]
        lines = [f"{len(real)} files changed, +{additions} -{deletions}"]
        lines.extend(c.describe() for c in real)
        return '\n'.join(lines)
