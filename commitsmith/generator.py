"""Commit Generator - Reduce, prompt and generate, shrinking the diff when the backend says it is too big.

Each attempt runs to completion before the next one starts. The only state
carried between attempts is the attempt index, which halves the diff budget:

    ATTEMPTING(i) -> SUCCEEDED
    ATTEMPTING(i) -> RETRYING -> ATTEMPTING(i+1)   (size-class failure, i+1 < MAX_RETRIES)
    ATTEMPTING(i) -> FAILED                        (anything else)
"""

import logging
from collections.abc import Callable
from dataclasses import dataclass, field
from enum import Enum

from commitsmith.git import DiffProcessor, FileStatus, ReducedDiff
from commitsmith.llm import EmptyMessageError, LLMClient, TokenLimitError
from commitsmith.prompts import Prompt, PromptBuilder, PromptConfig

logger = logging.getLogger(__name__)

MAX_RETRIES = 3
RESPONSE_RESERVE = 500
MIN_DIFF_BUDGET = 500


def diff_budget(provider_budget: int, overhead: int, attempt: int) -> int:
    """Tokens left for the diff on a given attempt, halved on every retry."""
    return max(MIN_DIFF_BUDGET, (provider_budget - overhead - RESPONSE_RESERVE) // (2 ** attempt))


class AttemptState(Enum):
    ATTEMPTING = "attempting"
    RETRYING = "retrying"
    SUCCEEDED = "succeeded"
    FAILED = "failed"


@dataclass
class GenerationResult:
    message: str
    diff: ReducedDiff
    prompt: Prompt
    attempts: int
    budget: int
    tokens_used: int = 0


@dataclass
class GenerationRequest:
    """Everything one generation needs besides the backend."""
    raw_diff: str
    files: list[FileStatus]
    prompt_config: PromptConfig = field(default_factory=PromptConfig)
    ignore_paths: list[str] = field(default_factory=list)
    token_budget: int | None = None


class CommitGenerator:
    """Drives reduce -> assemble -> generate with adaptive budget retries."""

    def __init__(
        self,
        client: LLMClient,
        processor: DiffProcessor | None = None,
        builder: PromptBuilder | None = None,
        max_retries: int = MAX_RETRIES,
    ):
        self.client = client
        self.processor = processor or DiffProcessor()
        self.builder = builder or PromptBuilder()
        self.max_retries = max_retries

    def generate(
        self,
        request: GenerationRequest,
        on_chunk: Callable[[str], None] | None = None,
        on_retry: Callable[[int, int], None] | None = None,
    ) -> GenerationResult:
        """Generate a commit message, retrying with a smaller diff on size-class failures.

        Args:
            request: diff, file statuses and prompt settings
            on_chunk: when given, the response is streamed and each piece passed here
            on_retry: called with (attempt, budget) before every retry attempt

        Raises:
            TokenLimitError: the last allowed attempt was still too large
            EmptyMessageError: the backend returned no text
            LLMError: any other backend failure, on the attempt it happened
        """
        provider_budget = request.token_budget or self.client.token_budget
        overhead = self.builder.estimate_overhead(request.prompt_config)
        logger.debug("Provider budget %d, prompt overhead ~%d tokens", provider_budget, overhead)

        attempt = 0
        state = AttemptState.ATTEMPTING
        result: GenerationResult | None = None
        failure: Exception | None = None

        while state in (AttemptState.ATTEMPTING, AttemptState.RETRYING):
            if state is AttemptState.RETRYING:
                attempt += 1
                if on_retry:
                    on_retry(attempt, diff_budget(provider_budget, overhead, attempt))
                state = AttemptState.ATTEMPTING

            budget = diff_budget(provider_budget, overhead, attempt)
            reduced = self.processor.reduce(request.raw_diff, request.files, request.ignore_paths, budget)
            prompt = self.builder.build(reduced, request.prompt_config)
            logger.debug("Attempt %d: diff budget %d, prompt ~%d tokens", attempt, budget, prompt.estimated_tokens)

            try:
                message, tokens_used = self._call(prompt, on_chunk)
            except TokenLimitError as e:
                if attempt + 1 < self.max_retries:
                    logger.debug("Attempt %d rejected as too large: %s", attempt, e)
                    state = AttemptState.RETRYING
                else:
                    failure, state = e, AttemptState.FAILED
                continue

            result = GenerationResult(
                message=message,
                diff=reduced,
                prompt=prompt,
                attempts=attempt + 1,
                budget=budget,
                tokens_used=tokens_used,
            )
            state = AttemptState.SUCCEEDED

        if state is AttemptState.FAILED:
            raise failure

        if not result.message:
            raise EmptyMessageError("AI returned an empty commit message. Try again.")
        return result

    def _call(self, prompt: Prompt, on_chunk: Callable[[str], None] | None) -> tuple[str, int]:
        if on_chunk is None:
            response = self.client.generate(prompt.user, prompt.system)
            return response.content.strip(), response.tokens_used

        pieces = []
        for piece in self.client.generate_stream(prompt.user, prompt.system):
            pieces.append(piece)
            on_chunk(piece)
        return "".join(pieces).strip(), 0
