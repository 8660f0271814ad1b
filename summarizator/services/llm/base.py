"""
Abstract base class for LLM clients.

The orchestrator only depends on this interface, so tests and alternative
transports can stand in for the HTTP client.
"""

from abc import ABC, abstractmethod
from collections.abc import Callable

from summarizator.services.llm.providers import LLMProvider

ProgressCallback = Callable[[float], None]


class BaseLLM(ABC):
    """Interface that every LLM client must implement."""

    @abstractmethod
    async def generate(
        self,
        text: str,
        instruction: str,
        provider: LLMProvider,
        model: str,
        on_progress: ProgressCallback | None = None,
    ) -> str:
        """Generate text from *text* under the system *instruction*.

        Args:
            text: Source text (e.g. a full transcript).
            instruction: System instruction describing the desired output.
            provider: Which provider wire protocol to speak.
            model: Provider model name.
            on_progress: Optional callback receiving coarse milestones in [0, 1].

        Returns:
            The model's text response.
        """

    async def aclose(self) -> None:
        """Release transport resources (no-op by default)."""
