"""Shared fixtures: synthetic git diffs and a scripted LLM client."""

import re

import pytest

from commitsmith.llm import LLMClient, LLMResponse

ANSI_RE = re.compile(r'\033\[[0-9;]*m')


def _file_diff(path, lines=3, width=10, old_path=None, deleted=0):
    old = old_path or path
    added = "\n".join("+" + "x" * width for _ in range(lines))
    removed = "\n".join("-" + "y" * width for _ in range(deleted))
    body = "\n".join(filter(None, [removed, added]))
    return (
        f"diff --git a/{old} b/{path}\n"
        f"index 1111111..2222222 100644\n"
        f"--- a/{old}\n"
        f"+++ b/{path}\n"
        f"@@ -1,{deleted} +1,{lines} @@\n"
        f"{body}\n"
    )


@pytest.fixture
def file_diff():
    """Return a factory for one file's unified diff text."""
    return _file_diff


@pytest.fixture
def make_diff():
    """Return a factory that joins (path, lines, width) specs into one raw diff."""
    def _make(*specs):
        return "".join(_file_diff(path, lines, width) for path, lines, width in specs)
    return _make


@pytest.fixture
def strip_ansi():
    """Return a function that removes ANSI escape codes."""
    def _strip(text: str) -> str:
        return ANSI_RE.sub('', text)
    return _strip


class ScriptedClient(LLMClient):
    """LLM client that replays a list of outcomes: strings are responses, exceptions are raised."""

    TOKEN_BUDGET = 8000

    def __init__(self, outcomes, token_budget=None):
        self.outcomes = list(outcomes)
        self.prompts = []
        self.system_prompts = []
        if token_budget is not None:
            self.TOKEN_BUDGET = token_budget

    @property
    def name(self) -> str:
        return "Scripted"

    def _next(self, prompt, system_prompt):
        self.prompts.append(prompt)
        self.system_prompts.append(system_prompt)
        outcome = self.outcomes.pop(0)
        if isinstance(outcome, Exception):
            raise outcome
        return outcome

    def generate(self, prompt, system_prompt, validate=True):
        return LLMResponse(content=self._next(prompt, system_prompt), model="scripted", tokens_used=42)

    def generate_stream(self, prompt, system_prompt):
        text = self._next(prompt, system_prompt)
        for i in range(0, len(text), 5):
            yield text[i:i + 5]


@pytest.fixture
def scripted_client():
    """Return a factory for ScriptedClient."""
    return ScriptedClient
