"""Commit Parser - Split conventional commit subjects into type, scope and description."""

import re
from dataclasses import dataclass

from commitsmith import COMMIT_TYPE_NAMES
from commitsmith.git import CommitInfo

# type(scope)!: description
CONVENTIONAL_COMMIT_RE = re.compile(
    rf'^(?P<type>{"|".join(COMMIT_TYPE_NAMES)})(?:\((?P<scope>[^)]+)\))?(?P<breaking>!)?:\s+(?P<description>.+)$'
)
PR_NUMBER_RE = re.compile(r'\(#(\d+)\)\s*$')
BREAKING_MARKERS = ("BREAKING CHANGE", "BREAKING:")


@dataclass(frozen=True)
class ParsedCommit:
    hash: str
    message: str
    description: str
    date: str = ''
    author: str = ''
    type: str | None = None
    scope: str | None = None
    body: str | None = None
    breaking: bool = False
    pr_number: int | None = None

    @property
    def is_conventional(self) -> bool:
        return self.type is not None


def is_conventional_commit(message: str) -> bool:
    return CONVENTIONAL_COMMIT_RE.match(message) is not None


def parse_commit(commit: CommitInfo) -> ParsedCommit:
    """Parse one commit. Freeform subjects keep the whole subject as description."""
    message = commit.message
    pr_match = PR_NUMBER_RE.search(message)
    pr_number = int(pr_match.group(1)) if pr_match else None

    match = CONVENTIONAL_COMMIT_RE.match(message)
    if match:
        return ParsedCommit(
            hash=commit.hash,
            message=message,
            description=match.group('description'),
            date=commit.date,
            author=commit.author,
            type=match.group('type'),
            scope=match.group('scope'),
            body=commit.body,
            breaking=bool(match.group('breaking')),
            pr_number=pr_number,
        )

    upper = message.upper()
    return ParsedCommit(
        hash=commit.hash,
        message=message,
        description=message,
        date=commit.date,
        author=commit.author,
        body=commit.body,
        breaking=any(marker in upper for marker in BREAKING_MARKERS),
        pr_number=pr_number,
    )


def parse_commits(commits: list[CommitInfo]) -> list[ParsedCommit]:
    return [parse_commit(c) for c in commits]
