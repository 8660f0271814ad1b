"""In-process secret store, used in tests and ephemeral deployments."""

from summarizator.core.exceptions import SecretNotFoundError
from summarizator.services.secrets.base import BaseSecretStore


class InMemorySecretStore(BaseSecretStore):
    """Dictionary-backed secret store. Nothing survives a restart."""

    def __init__(self, initial: dict[str, str] | None = None) -> None:
        self._secrets: dict[str, str] = dict(initial or {})

    def put(self, key: str, secret: str) -> None:
        self._secrets[key] = secret

    def get(self, key: str) -> str:
        try:
            return self._secrets[key]
        except KeyError:
            raise SecretNotFoundError(key) from None

    def delete(self, key: str) -> None:
        self._secrets.pop(key, None)
