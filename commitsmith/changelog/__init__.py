"""Changelog Package - Turn a range of commits into release notes."""

from commitsmith.changelog.categorizer import (
    ALL_CATEGORIES,
    CATEGORIZER_SYSTEM_PROMPT,
    CategorizedCommit,
    categorize_commits,
    group_by_category,
)
from commitsmith.changelog.formatter import FORMATS, format_changelog
from commitsmith.changelog.parser import ParsedCommit, is_conventional_commit, parse_commit, parse_commits

__all__ = [
    "ALL_CATEGORIES",
    "CATEGORIZER_SYSTEM_PROMPT",
    "CategorizedCommit",
    "categorize_commits",
    "group_by_category",
    "FORMATS",
    "format_changelog",
    "ParsedCommit",
    "is_conventional_commit",
    "parse_commit",
    "parse_commits",
]
