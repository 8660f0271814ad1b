"""
Caller-side backoff for rate-limited LLM calls.

The client surfaces HTTP 429 as ``RateLimitedError`` and never retries on
its own. Callers that want to ride out a rate limit wrap the call here;
only ``RateLimitedError`` is retried, every other failure is raised at once.
"""

import logging

from tenacity import (
    AsyncRetrying,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
)
from tenacity.wait import wait_base

from summarizator.core.exceptions import RateLimitedError
from summarizator.services.llm.base import BaseLLM, ProgressCallback
from summarizator.services.llm.providers import LLMProvider

logger = logging.getLogger(__name__)


async def generate_with_backoff(
    llm: BaseLLM,
    text: str,
    instruction: str,
    provider: LLMProvider,
    model: str,
    *,
    retries: int,
    on_progress: ProgressCallback | None = None,
    wait: wait_base | None = None,
) -> str:
    """Call ``llm.generate`` and retry up to *retries* extra times on HTTP 429.

    Args:
        retries: Extra attempts after the first; 0 calls the client once.
        wait: Tenacity wait strategy (defaults to exponential, 1-16 s).

    Raises:
        RateLimitedError: When every attempt was rate limited.
    """
    if retries <= 0:
        return await llm.generate(text, instruction, provider, model, on_progress=on_progress)

    result = ""
    async for attempt in AsyncRetrying(
        stop=stop_after_attempt(retries + 1),
        wait=wait or wait_exponential(multiplier=1, min=1, max=16),
        retry=retry_if_exception_type(RateLimitedError),
        reraise=True,
    ):
        with attempt:
            if attempt.retry_state.attempt_number > 1:
                logger.info(
                    "Retrying %s after rate limit (attempt %s/%s)",
                    provider.value,
                    attempt.retry_state.attempt_number,
                    retries + 1,
                )
            result = await llm.generate(
                text, instruction, provider, model, on_progress=on_progress
            )
    return result
