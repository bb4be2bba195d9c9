"""Changelog Formatter - Render categorized commits as markdown, JSON or plain text."""

import json
from datetime import date as _date

from commitsmith.changelog.categorizer import ALL_CATEGORIES, CategorizedCommit, group_by_category

FORMATS = ("markdown", "json", "plain")
UNRELEASED = "Unreleased"


def _pr_ref(item: CategorizedCommit) -> str:
    return f" (#{item.commit.pr_number})" if item.commit.pr_number is not None else ""


def _sections(categorized, categories):
    """(category, items) pairs in display order, skipping empty categories."""
    grouped = group_by_category(categorized)
    for category in categories or ALL_CATEGORIES:
        if grouped.get(category):
            yield category, grouped[category]


def format_markdown(categorized: list[CategorizedCommit], version: str, date: str,
                    categories: list[str] | None = None) -> str:
    lines = [f"## [{version}] - {date}", ""]
    for category, items in _sections(categorized, categories):
        lines.append(f"### {category}")
        lines.extend(f"- {item.summary}{_pr_ref(item)}" for item in items)
        lines.append("")
    return "\n".join(lines).rstrip() + "\n"


def format_json(categorized: list[CategorizedCommit], version: str, date: str) -> str:
    """Every category present, in first-seen order. pr_number is left out when unknown."""
    output = {"version": version, "date": date, "categories": {}}
    for category, items in group_by_category(categorized).items():
        entries = []
        for item in items:
            entry = {"summary": item.summary, "hash": item.commit.hash, "author": item.commit.author}
            if item.commit.pr_number is not None:
                entry["pr_number"] = item.commit.pr_number
            entry["breaking"] = item.commit.breaking
            entries.append(entry)
        output["categories"][category] = entries
    return json.dumps(output, indent=2) + "\n"


def format_plain(categorized: list[CategorizedCommit], version: str, date: str,
                 categories: list[str] | None = None) -> str:
    title = f"{version} ({date})"
    lines = [title, "=" * len(title), ""]
    for category, items in _sections(categorized, categories):
        lines.append(f"{category}:")
        lines.extend(f"  * {item.summary}{_pr_ref(item)}" for item in items)
        lines.append("")
    return "\n".join(lines).rstrip() + "\n"


def format_changelog(categorized: list[CategorizedCommit], fmt: str = "markdown",
                     version: str | None = None, date: str | None = None,
                     categories: list[str] | None = None) -> str:
    """Render a changelog section. Version defaults to Unreleased and date to today."""
    version = version or UNRELEASED
    date = date or _date.today().isoformat()
    match fmt:
        case "json":
            return format_json(categorized, version, date)
        case "plain":
            return format_plain(categorized, version, date, categories)
        case _:
            return format_markdown(categorized, version, date, categories)
