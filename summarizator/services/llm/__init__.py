"""
LLM module - Language model abstraction layer.

Factory function for creating the LLM client from explicit configuration.
"""

from .base import BaseLLM
from .providers import PROVIDER_SPECS, LLMProvider, ProviderSpec, get_spec, summary_label

__all__ = [
    "PROVIDER_SPECS",
    "BaseLLM",
    "LLMProvider",
    "ProviderSpec",
    "create_llm",
    "get_spec",
    "summary_label",
]


def create_llm(settings, secrets, **kwargs) -> BaseLLM:
    """
    Factory function to create the LLM client.

    Args:
        settings: Explicit ``Settings`` instance (endpoints, timeout, concurrency)
        secrets: Secret store holding provider API keys
        **kwargs: Client-specific configuration (e.g. ``http_client``)

    Returns:
        BaseLLM implementation instance
    """
    from .client import LLMClient

    return LLMClient(settings, secrets, **kwargs)
