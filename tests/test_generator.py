"""
Tests for CommitGenerator: adaptive budget retries and streaming.

Run with:
    pytest tests/test_generator.py -v
"""

import pytest

from commitsmith.generator import (
    MAX_RETRIES, MIN_DIFF_BUDGET, RESPONSE_RESERVE, CommitGenerator, GenerationRequest, diff_budget,
)
from commitsmith.git import FileStatus
from commitsmith.llm import EmptyMessageError, LLMError, TokenLimitError
from commitsmith.prompts import PromptBuilder, PromptConfig
from commitsmith.prompts.builder import TRUNCATED_NOTE

MESSAGE = "feat(api): add pagination to list endpoint"


@pytest.fixture
def request_for(make_diff):
    """Return a factory building a GenerationRequest over n source files."""
    def _make(count=2, lines=5, width=20, **kwargs):
        specs = [(f"src/mod_{i}.py", lines, width) for i in range(count)]
        files = [FileStatus(path) for path, _, _ in specs]
        return GenerationRequest(raw_diff=make_diff(*specs), files=files, **kwargs)
    return _make


# ---------------------------------------------------------------------------
# diff_budget
# ---------------------------------------------------------------------------

class TestDiffBudget:

    def test_first_attempt_uses_remaining_budget(self):
        assert diff_budget(10000, 1000, 0) == 10000 - 1000 - RESPONSE_RESERVE

    def test_halves_each_attempt(self):
        budgets = [diff_budget(100000, 1000, i) for i in range(MAX_RETRIES)]
        assert budgets == [98500, 49250, 24625]

    @pytest.mark.parametrize("provider_budget", [100, 1000, 4000, 100000])
    def test_never_increases_and_never_below_floor(self, provider_budget):
        budgets = [diff_budget(provider_budget, 800, i) for i in range(6)]
        assert budgets == sorted(budgets, reverse=True)
        assert all(b >= MIN_DIFF_BUDGET for b in budgets)

    def test_tiny_provider_budget_clamped(self):
        assert diff_budget(200, 900, 0) == MIN_DIFF_BUDGET


# ---------------------------------------------------------------------------
# Retry behaviour
# ---------------------------------------------------------------------------

class TestRetries:

    def test_success_on_first_attempt(self, scripted_client, request_for):
        client = scripted_client([MESSAGE])
        result = CommitGenerator(client).generate(request_for())
        assert result.message == MESSAGE
        assert result.attempts == 1
        assert result.tokens_used == 42
        assert len(client.prompts) == 1

    def test_converges_after_size_failures(self, scripted_client, request_for):
        client = scripted_client([
            TokenLimitError("413 request too large"),
            TokenLimitError("context length exceeded"),
            MESSAGE,
        ])
        retries = []
        result = CommitGenerator(client).generate(
            request_for(), on_retry=lambda attempt, budget: retries.append((attempt, budget))
        )
        assert result.message == MESSAGE
        assert result.attempts == 3
        assert len(client.prompts) == 3
        assert [attempt for attempt, _ in retries] == [1, 2]
        assert retries[0][1] >= retries[1][1]

    def test_gives_up_after_max_retries(self, scripted_client, request_for):
        client = scripted_client([TokenLimitError("too large")] * 5)
        with pytest.raises(TokenLimitError):
            CommitGenerator(client).generate(request_for())
        assert len(client.prompts) == MAX_RETRIES

    def test_custom_retry_limit(self, scripted_client, request_for):
        client = scripted_client([TokenLimitError("too large")] * 5)
        with pytest.raises(TokenLimitError):
            CommitGenerator(client, max_retries=1).generate(request_for())
        assert len(client.prompts) == 1

    def test_other_errors_are_not_retried(self, scripted_client, request_for):
        client = scripted_client([LLMError("Invalid API key"), MESSAGE])
        with pytest.raises(LLMError, match="Invalid API key"):
            CommitGenerator(client).generate(request_for())
        assert len(client.prompts) == 1

    def test_empty_response_raises(self, scripted_client, request_for):
        client = scripted_client(["   \n"])
        with pytest.raises(EmptyMessageError):
            CommitGenerator(client).generate(request_for())

    def test_later_attempts_send_smaller_diff(self, scripted_client, request_for):
        client = scripted_client([TokenLimitError("too large"), MESSAGE], token_budget=20000)
        result = CommitGenerator(client).generate(request_for(count=8, lines=200, width=40))

        first, second = client.prompts
        assert TRUNCATED_NOTE not in first
        assert TRUNCATED_NOTE in second
        assert len(second) < len(first)
        assert result.diff.was_truncated is True


# ---------------------------------------------------------------------------
# Budget sources and streaming
# ---------------------------------------------------------------------------

class TestBudgetAndStreaming:

    def test_provider_budget_used_by_default(self, scripted_client, request_for):
        client = scripted_client([MESSAGE], token_budget=6000)
        request = request_for()
        result = CommitGenerator(client).generate(request)
        overhead = PromptBuilder().estimate_overhead(request.prompt_config)
        assert result.budget == diff_budget(6000, overhead, 0)

    def test_request_budget_overrides_provider(self, scripted_client, request_for):
        client = scripted_client([MESSAGE], token_budget=100000)
        request = request_for(token_budget=3000)
        result = CommitGenerator(client).generate(request)
        overhead = PromptBuilder().estimate_overhead(request.prompt_config)
        assert result.budget == diff_budget(3000, overhead, 0)

    def test_prompt_config_reaches_prompt(self, scripted_client, request_for):
        client = scripted_client([MESSAGE])
        request = request_for(prompt_config=PromptConfig(hint="speed up listing", forced_type="perf"))
        CommitGenerator(client).generate(request)
        assert "speed up listing" in client.prompts[0]
        assert "Use type 'perf'" in client.system_prompts[0]

    def test_ignore_paths_filter_the_diff(self, scripted_client, make_diff):
        client = scripted_client([MESSAGE])
        request = GenerationRequest(
            raw_diff=make_diff(("src/app.py", 2, 10), ("fixtures/data.snap", 2, 10)),
            files=[],
            ignore_paths=["*.snap"],
        )
        result = CommitGenerator(client).generate(request)
        assert result.diff.was_filtered is True
        assert "fixtures/data.snap" not in client.prompts[0]

    def test_streaming_forwards_pieces(self, scripted_client, request_for):
        client = scripted_client([MESSAGE])
        pieces = []
        result = CommitGenerator(client).generate(request_for(), on_chunk=pieces.append)
        assert "".join(pieces) == MESSAGE
        assert len(pieces) > 1
        assert result.message == MESSAGE
        assert result.tokens_used == 0

    def test_streaming_retries_too(self, scripted_client, request_for):
        client = scripted_client([TokenLimitError("too large"), MESSAGE])
        pieces = []
        result = CommitGenerator(client).generate(request_for(), on_chunk=pieces.append)
        assert result.attempts == 2
        assert "".join(pieces) == MESSAGE
