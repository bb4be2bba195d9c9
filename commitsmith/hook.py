"""Git prepare-commit-msg hook: install, uninstall and the non-interactive run path.

The run path must never get in the way of a commit, so every failure is
swallowed and the message file is left as git wrote it.
"""

import logging
import os
import stat
from pathlib import Path

from commitsmith.config import load_config
from commitsmith.generator import CommitGenerator, GenerationRequest
from commitsmith.git import GitAnalyzer, IgnoreMatcher
from commitsmith.llm import get_client
from commitsmith.prompts import PromptConfig, learn_style

logger = logging.getLogger(__name__)

HOOK_NAME = "prepare-commit-msg"
HOOK_MARKER = "# commitsmith-hook"
HOOK_SCRIPT = f"""#!/bin/sh
{HOOK_MARKER} - auto-generated, do not edit
commitsmith --hook run "$1" "$2" 2>/dev/null || true
"""

# prepare-commit-msg sources where the user already has a message
SKIP_SOURCES = {"message", "merge", "squash", "commit"}


class HookError(Exception):
    """Raised when the hook cannot be installed or removed."""
    pass


def install_hook(hooks_dir: Path) -> Path:
    hooks_dir.mkdir(parents=True, exist_ok=True)
    path = hooks_dir / HOOK_NAME
    if path.exists() and HOOK_MARKER not in path.read_text(encoding="utf-8", errors="replace"):
        raise HookError(f"A {HOOK_NAME} hook already exists at {path}. Remove it first.")
    path.write_text(HOOK_SCRIPT, encoding="utf-8")
    path.chmod(path.stat().st_mode | stat.S_IXUSR | stat.S_IXGRP | stat.S_IXOTH)
    return path


def uninstall_hook(hooks_dir: Path) -> Path:
    path = hooks_dir / HOOK_NAME
    try:
        content = path.read_text(encoding="utf-8", errors="replace")
    except FileNotFoundError:
        raise HookError(f"No {HOOK_NAME} hook found.")
    if HOOK_MARKER not in content:
        raise HookError(f"The {HOOK_NAME} hook was not created by commitsmith. Refusing to remove it.")
    path.unlink()
    return path


def run_hook(msg_file: str, source: str | None = None, analyzer: GitAnalyzer | None = None) -> bool:
    """Write a generated message into msg_file. Returns True if one was written."""
    if source in SKIP_SOURCES:
        return False
    try:
        return _generate_into(Path(msg_file), analyzer or GitAnalyzer())
    except Exception as e:
        logger.debug("Hook generation skipped: %s", e, exc_info=True)
        return False


def _generate_into(msg_file: Path, analyzer: GitAnalyzer) -> bool:
    files = analyzer.get_staged_files()
    if not files:
        return False

    config = load_config(analyzer.get_root_dir())
    raw_diff = analyzer.get_staged_diff(IgnoreMatcher.git_excludes(config.ignore_paths))

    style_context = ""
    if config.learn_style:
        style_context = learn_style(analyzer, config.learn_style_commits)

    provider = os.environ.get("COMMITSMITH_PROVIDER") or config.provider
    model = os.environ.get("COMMITSMITH_MODEL") or config.model
    client = get_client(provider=provider, model=model, token_budget=config.token_budget)

    request = GenerationRequest(
        raw_diff=raw_diff,
        files=files,
        prompt_config=PromptConfig(
            style=config.style,
            include_body=config.include_body,
            max_subject_length=config.max_subject_length,
            language=config.language,
            style_context=style_context,
            branch_name=analyzer.get_branch_name() if config.branch_prefix else None,
            branch_pattern=config.branch_pattern,
        ),
        ignore_paths=config.ignore_paths,
        token_budget=config.token_budget,
    )
    result = CommitGenerator(client).generate(request)

    # Keep git's commented template below the generated message
    existing = msg_file.read_text(encoding="utf-8") if msg_file.exists() else ""
    msg_file.write_text(f"{result.message}\n{existing}", encoding="utf-8")
    return True
