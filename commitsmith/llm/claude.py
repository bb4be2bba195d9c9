"""Claude (Anthropic) LLM Client"""

import os
from collections.abc import Iterator

from commitsmith.llm.base import (
    LLMClient,
    LLMError,
    LLMResponse,
    TokenLimitError,
    is_token_limit_error,
    validate_commit_message,
)


class ClaudeClient(LLMClient):
    """Claude API client. Requires ANTHROPIC_API_KEY env var."""

    DEFAULT_MODEL = "claude-haiku-4-5-20251001"
    MAX_TOKENS = 1024
    TEMPERATURE = 0.4
    MAX_RETRIES = 2
    TOKEN_BUDGET = 100000

    def __init__(self, api_key: str | None = None, model: str | None = None, token_budget: int | None = None):
        self.api_key = api_key or os.environ.get("ANTHROPIC_API_KEY")
        self.model = model or self.DEFAULT_MODEL
        self._token_budget = token_budget

        if not self.api_key:
            raise LLMError(
                "No API key found. Set ANTHROPIC_API_KEY environment variable:\n"
                "  export ANTHROPIC_API_KEY='your-key-here'"
            )

        try:
            from anthropic import Anthropic
            self._client = Anthropic(api_key=self.api_key)
        except ImportError:
            raise LLMError(
                "Anthropic SDK not installed. Run:\n"
                "  pip install anthropic"
            )

    @property
    def name(self) -> str:
        return f"Claude ({self.model})"

    def _translate(self, error: Exception) -> LLMError:
        """Map SDK exceptions onto the LLMError family."""
        from anthropic import APIConnectionError, APIStatusError, AuthenticationError, RateLimitError

        if isinstance(error, AuthenticationError):
            return LLMError("Invalid API key. Check your ANTHROPIC_API_KEY.")
        if isinstance(error, RateLimitError):
            return TokenLimitError(f"Claude rate_limit: {error.message}")
        if isinstance(error, APIStatusError):
            if error.status_code == 413 or is_token_limit_error(error.message):
                return TokenLimitError(f"Claude request too large ({error.status_code}): {error.message}")
            return LLMError(f"Claude API error ({error.status_code}): {error.message}")
        if isinstance(error, APIConnectionError):
            return LLMError(f"Could not reach Claude API: {error.message}")
        return LLMError(f"Claude API error: {error}")

    def generate(self, prompt: str, system_prompt: str, validate: bool = True) -> LLMResponse:
        from anthropic import APIError

        last_error = ""
        for attempt in range(self.MAX_RETRIES + 1):
            retry_prompt = prompt
            if attempt > 0:
                retry_prompt = f"{prompt}\n\nIMPORTANT: Your previous response was invalid ({last_error}). Start directly with the commit type, e.g., 'feat(scope):'"

            try:
                response = self._client.messages.create(
                    model=self.model,
                    max_tokens=self.MAX_TOKENS,
                    temperature=self.TEMPERATURE,
                    system=system_prompt,
                    messages=[{"role": "user", "content": retry_prompt}]
                )
            except APIError as e:
                raise self._translate(e) from e

            content = ""
            for block in response.content:
                if block.type == "text":
                    content = block.text.strip()
                    break

            is_valid, error = validate_commit_message(content) if validate else (True, "")
            if not is_valid:
                last_error = error
                if attempt < self.MAX_RETRIES:
                    continue

            return LLMResponse(
                content=content,
                model=self.model,
                tokens_used=response.usage.input_tokens + response.usage.output_tokens
            )

        raise LLMError(f"Failed after {self.MAX_RETRIES} retries: {last_error}")

    def generate_stream(self, prompt: str, system_prompt: str) -> Iterator[str]:
        from anthropic import APIError

        try:
            with self._client.messages.stream(
                model=self.model,
                max_tokens=self.MAX_TOKENS,
                temperature=self.TEMPERATURE,
                system=system_prompt,
                messages=[{"role": "user", "content": prompt}],
            ) as stream:
                yield from stream.text_stream
        except APIError as e:
            raise self._translate(e) from e
