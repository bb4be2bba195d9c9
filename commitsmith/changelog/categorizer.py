"""Changelog Categorizer - Sort parsed commits into changelog sections.

Conventional commits are mapped by type. Freeform commits are sent to the
LLM one at a time; anything it cannot place lands in Chore.
"""

import json
import logging
import re
from dataclasses import dataclass

from commitsmith.changelog.parser import ParsedCommit
from commitsmith.llm import LLMClient, LLMError

logger = logging.getLogger(__name__)

BREAKING = "Breaking Changes"
CHORE = "Chore"

ALL_CATEGORIES = (
    "Features",
    "Bug Fixes",
    "Performance",
    BREAKING,
    "Documentation",
    "Refactoring",
    "Tests",
    "CI/CD",
    CHORE,
)

TYPE_TO_CATEGORY = {
    "feat": "Features",
    "fix": "Bug Fixes",
    "perf": "Performance",
    "docs": "Documentation",
    "refactor": "Refactoring",
    "test": "Tests",
    "build": "CI/CD",
    "ci": "CI/CD",
    "chore": CHORE,
    "style": CHORE,
    "revert": CHORE,
}

CATEGORIZER_SYSTEM_PROMPT = """You are a changelog categorizer. Given a commit message, categorize it into exactly ONE of these categories:
- Features (new functionality)
- Bug Fixes (bug fixes)
- Performance (performance improvements)
- Breaking Changes (backward-incompatible changes)
- Documentation (docs changes)
- Refactoring (code restructuring without behavior change)
- Tests (test additions or changes)
- CI/CD (CI/CD and build changes)
- Chore (maintenance, deps, etc.)

Respond with ONLY a JSON object (no markdown, no code fences):
{"category": "...", "summary": "..."}

The summary should be a concise, human-readable description of the change (imperative mood, no period)."""

_FENCE_RE = re.compile(r'^```(?:json)?\s*|\s*```$')


@dataclass(frozen=True)
class CategorizedCommit:
    commit: ParsedCommit
    category: str
    summary: str


def categorize_by_type(commit: ParsedCommit) -> CategorizedCommit | None:
    """Category from the conventional type, or None for freeform commits."""
    if commit.type is None:
        return None
    if commit.breaking:
        return CategorizedCommit(commit, BREAKING, commit.description)
    category = TYPE_TO_CATEGORY.get(commit.type)
    return CategorizedCommit(commit, category, commit.description) if category else None


def _match_category(name) -> str | None:
    if not isinstance(name, str):
        return None
    wanted = name.strip().lower()
    return next((c for c in ALL_CATEGORIES if c.lower() == wanted), None)


def parse_categorizer_response(content: str) -> tuple[str, str | None]:
    """(category, summary) from the model's JSON answer. Unknown categories become Chore.

    Raises ValueError when the answer is not a JSON object.
    """
    data = json.loads(_FENCE_RE.sub('', content.strip()))
    if not isinstance(data, dict):
        raise ValueError(f"Expected a JSON object, got {type(data).__name__}")
    summary = data.get("summary")
    if not isinstance(summary, str) or not summary.strip():
        summary = None
    return _match_category(data.get("category")) or CHORE, summary


def categorize_with_llm(commit: ParsedCommit, client: LLMClient) -> CategorizedCommit:
    prompt = f"Commit message: {commit.message}"
    if commit.body:
        prompt += f"\n\n{commit.body}"
    try:
        response = client.generate(prompt, CATEGORIZER_SYSTEM_PROMPT, validate=False)
        category, summary = parse_categorizer_response(response.content)
    except (LLMError, ValueError) as e:
        logger.debug("Could not categorize %s: %s", commit.hash[:8], e)
        return CategorizedCommit(commit, CHORE, commit.description)
    return CategorizedCommit(commit, category, summary or commit.description)


def _fallback(commit: ParsedCommit) -> CategorizedCommit:
    return CategorizedCommit(commit, BREAKING if commit.breaking else CHORE, commit.description)


def categorize_commits(commits: list[ParsedCommit], client: LLMClient | None = None,
                       exclude_patterns: list[str] | tuple[str, ...] = ()) -> list[CategorizedCommit]:
    """Categorize commits in order, dropping those whose subject matches an exclude regex."""
    excludes = [re.compile(p) for p in exclude_patterns]
    results = []
    for commit in commits:
        if any(p.search(commit.message) for p in excludes):
            continue
        categorized = categorize_by_type(commit)
        if categorized is None:
            categorized = categorize_with_llm(commit, client) if client else _fallback(commit)
        results.append(categorized)
    return results


def group_by_category(items: list[CategorizedCommit]) -> dict[str, list[CategorizedCommit]]:
    """Group by category, keeping first-seen category order and commit order."""
    grouped: dict[str, list[CategorizedCommit]] = {}
    for item in items:
        grouped.setdefault(item.category, []).append(item)
    return grouped
