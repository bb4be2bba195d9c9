"""
Tests for LLM clients: error classification, response validation and
provider-specific error translation. No network access is needed.

Run with:
    pytest tests/test_llm.py -v
"""

import io
import json
import socket
import urllib.error

import httpx
import pytest

from commitsmith.llm import (
    ClaudeClient, EmptyMessageError, LLMError, OllamaClient, TokenLimitError,
    get_client, is_token_limit_error, validate_commit_message,
)


def _http_error(code, body=b""):
    return urllib.error.HTTPError("http://localhost:11434/api/generate", code, "error", {}, io.BytesIO(body))


class FakeStream:
    """Minimal urlopen() result: a context manager yielding NDJSON lines."""

    def __init__(self, lines):
        self.lines = [line.encode("utf-8") for line in lines]

    def __enter__(self):
        return self

    def __exit__(self, *args):
        return False

    def __iter__(self):
        return iter(self.lines)


@pytest.fixture
def ollama(monkeypatch):
    monkeypatch.setattr(OllamaClient, "_verify_connection", lambda self: None)
    monkeypatch.delenv("COMMITSMITH_TIMEOUT", raising=False)
    return OllamaClient()


@pytest.fixture
def claude(monkeypatch):
    monkeypatch.setenv("ANTHROPIC_API_KEY", "sk-test")
    return ClaudeClient()


# ---------------------------------------------------------------------------
# Shared helpers
# ---------------------------------------------------------------------------

class TestIsTokenLimitError:

    @pytest.mark.parametrize("error", [
        "HTTP 413 Payload Too Large",
        "rate_limit_error: slow down",
        "Rate limit reached for requests",
        "This model's maximum context length is 8192 tokens",
        "context_length_exceeded",
        "request_too_large",
        "Request is too large for model",
        "too many tokens in prompt",
        Exception("prompt exceeds maximum_context"),
        TokenLimitError("anything"),
    ])
    def test_size_errors(self, error):
        assert is_token_limit_error(error) is True

    @pytest.mark.parametrize("error", [
        None,
        "",
        "Invalid API key",
        "Connection refused",
        Exception("model not found"),
        LLMError("Ollama not running"),
    ])
    def test_other_errors(self, error):
        assert is_token_limit_error(error) is False

    def test_token_limit_is_an_llm_error(self):
        assert issubclass(TokenLimitError, LLMError)
        assert issubclass(EmptyMessageError, LLMError)


class TestValidateCommitMessage:

    @pytest.mark.parametrize("content", [
        "feat(api): add pagination",
        "fix: handle empty body",
        "refactor(core)!: drop legacy loader",
        "revert: undo cache change\n\n- restores old ttl",
    ])
    def test_valid(self, content):
        assert validate_commit_message(content) == (True, "")

    @pytest.mark.parametrize("content, reason", [
        ("", "too short"),
        ("feat: x", "too short"),
        ("Added a new pagination feature", "Missing conventional commit format"),
    ])
    def test_invalid(self, content, reason):
        valid, error = validate_commit_message(content)
        assert valid is False
        assert reason in error


class TestGetClient:

    def test_unknown_provider(self):
        with pytest.raises(LLMError, match="Unknown provider"):
            get_client("gpt4")

    def test_auto_without_any_backend(self, monkeypatch):
        def _offline(self):
            raise LLMError("Ollama not running")
        monkeypatch.setattr(OllamaClient, "_verify_connection", _offline)
        monkeypatch.delenv("ANTHROPIC_API_KEY", raising=False)
        with pytest.raises(LLMError, match="No LLM provider available"):
            get_client("auto")

    def test_auto_prefers_ollama(self, monkeypatch):
        monkeypatch.setattr(OllamaClient, "_verify_connection", lambda self: None)
        assert isinstance(get_client("auto"), OllamaClient)

    def test_auto_falls_back_to_claude(self, monkeypatch):
        def _offline(self):
            raise LLMError("Ollama not running")
        monkeypatch.setattr(OllamaClient, "_verify_connection", _offline)
        monkeypatch.setenv("ANTHROPIC_API_KEY", "sk-test")
        assert isinstance(get_client("auto"), ClaudeClient)

    def test_model_passed_through(self, monkeypatch):
        monkeypatch.setattr(OllamaClient, "_verify_connection", lambda self: None)
        assert get_client("ollama", "llama3.1:8b").model == "llama3.1:8b"

    def test_token_budget_passed_through(self, monkeypatch):
        monkeypatch.setattr(OllamaClient, "_verify_connection", lambda self: None)
        assert get_client("ollama", token_budget=12000).token_budget == 12000
        assert get_client("auto").token_budget == OllamaClient.TOKEN_BUDGET


# ---------------------------------------------------------------------------
# Ollama
# ---------------------------------------------------------------------------

class TestOllamaClient:

    def test_budget_and_name(self, ollama):
        assert ollama.token_budget == 4000
        assert ollama.name == f"Ollama ({OllamaClient.DEFAULT_MODEL})"

    def test_payload_sets_context_window(self, ollama):
        payload = ollama._payload("diff", "rules", stream=True)
        assert payload["options"]["num_ctx"] == ollama.token_budget
        assert payload["stream"] is True
        assert payload["system"] == "rules"

    def test_budget_override_sets_context_window(self, monkeypatch):
        monkeypatch.setattr(OllamaClient, "_verify_connection", lambda self: None)
        client = OllamaClient(token_budget=16000)
        assert client.token_budget == 16000
        assert client._payload("diff", "rules", stream=False)["options"]["num_ctx"] == 16000

    def test_generate_without_validation_skips_reask(self, ollama, monkeypatch):
        calls = []

        def _call(prompt, system):
            calls.append(prompt)
            return {"response": '{"category": "Features", "summary": "Add search"}'}

        monkeypatch.setattr(ollama, "_call_api", _call)
        assert ollama.generate("commit", "rules", validate=False).content.startswith("{")
        assert len(calls) == 1

    def test_timeout_from_env(self, monkeypatch):
        monkeypatch.setattr(OllamaClient, "_verify_connection", lambda self: None)
        monkeypatch.setenv("COMMITSMITH_TIMEOUT", "42")
        assert OllamaClient().timeout == 42

    @pytest.mark.parametrize("code, body", [
        (413, b""),
        (400, b'{"error": "input exceeds maximum context length"}'),
        (500, b'{"error": "too many tokens"}'),
    ])
    def test_size_failures_become_token_limit(self, ollama, code, body):
        assert isinstance(ollama._translate(_http_error(code, body)), TokenLimitError)

    def test_missing_model(self, ollama):
        error = ollama._translate(_http_error(404, b'{"error": "model not found"}'))
        assert type(error) is LLMError
        assert "ollama pull" in str(error)

    def test_other_http_error(self, ollama):
        error = ollama._translate(_http_error(500, b"internal error"))
        assert type(error) is LLMError
        assert "500" in str(error)

    def test_timeout(self, ollama):
        error = ollama._translate(urllib.error.URLError(socket.timeout("timed out")))
        assert "timed out" in str(error)

    def test_connection_refused(self, ollama):
        error = ollama._translate(urllib.error.URLError("[Errno 111] Connection refused"))
        assert "ollama serve" in str(error)

    def test_generate_returns_response(self, ollama, monkeypatch):
        monkeypatch.setattr(ollama, "_call_api", lambda p, s: {"response": " fix(db): close cursor \n", "eval_count": 12})
        response = ollama.generate("diff", "rules")
        assert response.content == "fix(db): close cursor"
        assert response.tokens_used == 12

    def test_generate_reasks_on_bad_format(self, ollama, monkeypatch):
        replies = [{"response": "Sure, here it is"}, {"response": "feat(ui): add dark mode"}]
        prompts = []

        def _call(prompt, system):
            prompts.append(prompt)
            return replies.pop(0)

        monkeypatch.setattr(ollama, "_call_api", _call)
        assert ollama.generate("diff", "rules").content == "feat(ui): add dark mode"
        assert "previous response was invalid" in prompts[1]

    def test_generate_http_413(self, ollama, monkeypatch):
        def _call(prompt, system):
            raise _http_error(413)
        monkeypatch.setattr(ollama, "_call_api", _call)
        with pytest.raises(TokenLimitError):
            ollama.generate("diff", "rules")

    def test_generate_error_field(self, ollama, monkeypatch):
        monkeypatch.setattr(ollama, "_call_api", lambda p, s: {"error": "prompt is too large for context length"})
        with pytest.raises(TokenLimitError):
            ollama.generate("diff", "rules")

    def test_generate_other_error_field(self, ollama, monkeypatch):
        monkeypatch.setattr(ollama, "_call_api", lambda p, s: {"error": "out of memory"})
        with pytest.raises(LLMError, match="out of memory") as exc:
            ollama.generate("diff", "rules")
        assert not isinstance(exc.value, TokenLimitError)

    def test_stream_yields_pieces(self, ollama, monkeypatch):
        lines = [
            json.dumps({"response": "feat(api): ", "done": False}),
            "not json",
            "",
            json.dumps({"response": "add paging", "done": False}),
            json.dumps({"response": "", "done": True}),
            json.dumps({"response": "ignored after done"}),
        ]
        monkeypatch.setattr("urllib.request.urlopen", lambda req, timeout=None: FakeStream(lines))
        assert list(ollama.generate_stream("diff", "rules")) == ["feat(api): ", "add paging"]

    def test_stream_error_line(self, ollama, monkeypatch):
        lines = [json.dumps({"error": "context length exceeded"})]
        monkeypatch.setattr("urllib.request.urlopen", lambda req, timeout=None: FakeStream(lines))
        with pytest.raises(TokenLimitError):
            list(ollama.generate_stream("diff", "rules"))


# ---------------------------------------------------------------------------
# Claude
# ---------------------------------------------------------------------------

def _api_response(code):
    return httpx.Response(code, request=httpx.Request("POST", "https://api.anthropic.com/v1/messages"))


class TestClaudeClient:

    def test_requires_api_key(self, monkeypatch):
        monkeypatch.delenv("ANTHROPIC_API_KEY", raising=False)
        with pytest.raises(LLMError, match="ANTHROPIC_API_KEY"):
            ClaudeClient()

    def test_budget_and_name(self, claude):
        assert claude.token_budget == 100000
        assert claude.name == f"Claude ({ClaudeClient.DEFAULT_MODEL})"

    def test_rate_limit_is_size_class(self, claude):
        from anthropic import RateLimitError
        error = RateLimitError("rate limited", response=_api_response(429), body=None)
        assert isinstance(claude._translate(error), TokenLimitError)

    def test_413_is_size_class(self, claude):
        from anthropic import APIStatusError
        error = APIStatusError("request_too_large", response=_api_response(413), body=None)
        assert isinstance(claude._translate(error), TokenLimitError)

    def test_context_message_is_size_class(self, claude):
        from anthropic import BadRequestError
        error = BadRequestError("prompt is too long: maximum context exceeded", response=_api_response(400), body=None)
        assert isinstance(claude._translate(error), TokenLimitError)

    def test_auth_failure(self, claude):
        from anthropic import AuthenticationError
        error = claude._translate(AuthenticationError("bad key", response=_api_response(401), body=None))
        assert type(error) is LLMError
        assert "Invalid API key" in str(error)

    def test_server_error(self, claude):
        from anthropic import InternalServerError
        error = claude._translate(InternalServerError("overloaded", response=_api_response(500), body=None))
        assert type(error) is LLMError
