"""JSON-file secret store.

Secrets are kept in a single JSON object on disk, written with owner-only
permissions. Each write replaces the whole file via a temporary sibling so
a crash never leaves a half-written store behind.
"""

import json
import logging
import os
from pathlib import Path

from summarizator.core.exceptions import SecretNotFoundError, StorageError
from summarizator.services.secrets.base import BaseSecretStore

logger = logging.getLogger(__name__)


class FileSecretStore(BaseSecretStore):
    """Secret store persisted as a 0600 JSON file.

    Args:
        path: Location of the JSON file (created on first write).
    """

    def __init__(self, path: str | Path) -> None:
        self._path = Path(path)

    def _read(self) -> dict[str, str]:
        if not self._path.exists():
            return {}
        try:
            data = json.loads(self._path.read_text(encoding="utf-8"))
        except (OSError, json.JSONDecodeError) as exc:
            raise StorageError(f"Could not read secret store {self._path}: {exc}") from exc
        if not isinstance(data, dict):
            raise StorageError(f"Secret store {self._path} is not a JSON object")
        return {str(k): str(v) for k, v in data.items()}

    def _write(self, secrets: dict[str, str]) -> None:
        self._path.parent.mkdir(parents=True, exist_ok=True)
        tmp_path = self._path.with_suffix(self._path.suffix + ".tmp")
        try:
            fd = os.open(tmp_path, os.O_WRONLY | os.O_CREAT | os.O_TRUNC, 0o600)
            with os.fdopen(fd, "w", encoding="utf-8") as fh:
                json.dump(secrets, fh)
            os.replace(tmp_path, self._path)
        except OSError as exc:
            raise StorageError(f"Could not write secret store {self._path}: {exc}") from exc

    def put(self, key: str, secret: str) -> None:
        secrets = self._read()
        secrets[key] = secret
        self._write(secrets)
        logger.info("Stored secret for %s", key)

    def get(self, key: str) -> str:
        secrets = self._read()
        if key not in secrets:
            raise SecretNotFoundError(key)
        return secrets[key]

    def delete(self, key: str) -> None:
        secrets = self._read()
        if secrets.pop(key, None) is not None:
            self._write(secrets)
            logger.info("Deleted secret for %s", key)
