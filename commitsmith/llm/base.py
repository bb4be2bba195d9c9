"""LLM Base Classes and Shared Code"""

import re
from abc import ABC, abstractmethod
from collections.abc import Iterator
from dataclasses import dataclass

from commitsmith import COMMIT_TYPE_NAMES


# Substrings that mark a backend rejection caused by request or context size
TOKEN_LIMIT_MARKERS = (
    '413',
    'rate_limit',
    'rate limit',
    'context_length',
    'context length',
    'too large',
    'too many tokens',
    'token_limit',
    'maximum context',
    'maximum_context',
    'request_too_large',
)


def validate_commit_message(content: str) -> tuple[bool, str]:
    """Validate that response looks like a proper commit message."""
    if not content or len(content.strip()) < 10:
        return False, "Response too short"

    types_pattern = '|'.join(COMMIT_TYPE_NAMES)
    pattern = rf'^({types_pattern})(\(.+\))?!?:'
    first_line = content.strip().split('\n')[0]

    if not re.match(pattern, first_line):
        return False, f"Missing conventional commit format. Got: {first_line[:50]}"

    return True, ""


def is_token_limit_error(error: object) -> bool:
    """True when an error (or error text) says the request was too big for the backend."""
    if error is None:
        return False
    if isinstance(error, TokenLimitError):
        return True
    text = str(error).lower()
    return any(marker in text for marker in TOKEN_LIMIT_MARKERS)


@dataclass
class LLMResponse:
    """Structured response from any LLM provider."""
    content: str
    model: str = ""
    tokens_used: int = 0


class LLMError(Exception):
    """Raised when LLM operations fail."""
    pass


class TokenLimitError(LLMError):
    """The backend rejected the request because it was too large."""
    pass


class EmptyMessageError(LLMError):
    """The backend answered but produced no usable text."""
    pass


class LLMClient(ABC):
    """Abstract base for LLM clients."""

    # Effective context window in tokens
    TOKEN_BUDGET = 4000

    @abstractmethod
    def generate(self, prompt: str, system_prompt: str, validate: bool = True) -> LLMResponse:
        """One completion. With validate, responses that are not a conventional commit are re-asked."""
        pass

    @abstractmethod
    def generate_stream(self, prompt: str, system_prompt: str) -> Iterator[str]:
        pass

    @property
    @abstractmethod
    def name(self) -> str:
        pass

    @property
    def token_budget(self) -> int:
        """Context window to plan prompts against: the configured override or TOKEN_BUDGET."""
        return getattr(self, "_token_budget", None) or self.TOKEN_BUDGET
