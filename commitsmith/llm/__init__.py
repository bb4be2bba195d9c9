"""LLM Client Package"""

from commitsmith.llm.base import (
    EmptyMessageError,
    LLMClient,
    LLMError,
    LLMResponse,
    TokenLimitError,
    is_token_limit_error,
    validate_commit_message,
)
from commitsmith.llm.claude import ClaudeClient
from commitsmith.llm.ollama import OllamaClient

PROVIDERS = {
    "claude": ClaudeClient,
    "ollama": OllamaClient,
}

AUTO_DETECT_ORDER = [OllamaClient, ClaudeClient]


def get_client(provider: str = "auto", model: str | None = None, token_budget: int | None = None) -> LLMClient:
    """Get an LLM client. Provider can be 'claude', 'ollama', or 'auto'.

    token_budget overrides the client's context window (and Ollama's num_ctx).
    """
    if provider in PROVIDERS:
        return PROVIDERS[provider](model=model, token_budget=token_budget)

    if provider == "auto":
        for client_class in AUTO_DETECT_ORDER:
            try:
                return client_class(model=model, token_budget=token_budget)
            except LLMError:
                continue

        raise LLMError(
            "No LLM provider available.\n\n"
            "Option 1 - Use Ollama (free, local):\n"
            "  1. Install: https://ollama.ai\n"
            "  2. Start: ollama serve\n"
            f"  3. Pull: ollama pull {OllamaClient.DEFAULT_MODEL}\n\n"
            "Option 2 - Use Claude API:\n"
            "  export ANTHROPIC_API_KEY='your-key-here'"
        )

    raise LLMError(f"Unknown provider: {provider}. Use 'claude', 'ollama', or 'auto'.")


__all__ = [
    "LLMClient",
    "LLMResponse",
    "LLMError",
    "TokenLimitError",
    "EmptyMessageError",
    "ClaudeClient",
    "OllamaClient",
    "get_client",
    "PROVIDERS",
    "is_token_limit_error",
    "validate_commit_message",
]
