"""
Secrets module - API key storage abstraction.

Factory function for creating secret store instances based on configuration.
"""

from .base import BaseSecretStore

__all__ = ["BaseSecretStore", "create_secret_store"]


def create_secret_store(provider: str, **kwargs) -> BaseSecretStore:
    """
    Factory function to create a secret store.

    Args:
        provider: Store kind ("file", "memory")
        **kwargs: Store-specific configuration (``path`` for "file")

    Returns:
        BaseSecretStore implementation instance

    Raises:
        ValueError: If provider is unknown
    """
    if provider == "file":
        from .file import FileSecretStore

        return FileSecretStore(**kwargs)
    elif provider == "memory":
        from .memory import InMemorySecretStore

        return InMemorySecretStore(**kwargs)
    else:
        raise ValueError(f"Unknown secret store: {provider}")
