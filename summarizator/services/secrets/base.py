"""
Abstract base class for secret stores.

API keys are kept out of settings and the database; every store maps a
provider key (e.g. ``"openai"``) to one secret string.
"""

from abc import ABC, abstractmethod

from summarizator.core.exceptions import SecretNotFoundError


class BaseSecretStore(ABC):
    """Interface that every secret store must implement."""

    @abstractmethod
    def put(self, key: str, secret: str) -> None:
        """Store *secret* under *key*, replacing any previous value."""

    @abstractmethod
    def get(self, key: str) -> str:
        """Return the secret for *key*.

        Raises:
            SecretNotFoundError: If nothing is stored under *key*.
        """

    @abstractmethod
    def delete(self, key: str) -> None:
        """Remove the secret for *key*. Missing keys are ignored."""

    def has(self, key: str) -> bool:
        """Return True when a secret is stored under *key*."""
        try:
            self.get(key)
        except SecretNotFoundError:
            return False
        return True
