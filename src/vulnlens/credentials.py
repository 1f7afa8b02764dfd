"""Local persistence for user-supplied credentials.

Values are opaque strings kept in a small JSON file with owner-only
permissions. They are only ever handed to the service they belong to.
"""

from __future__ import annotations

import contextlib
import json
import logging
import os
from pathlib import Path

logger = logging.getLogger(__name__)

LLM_API_KEY = "llm_api_key"
GITHUB_TOKEN = "github_token"
KNOWN_KEYS = (LLM_API_KEY, GITHUB_TOKEN)


class CredentialStore:
    """Opaque key/value strings persisted to a JSON file."""

    def __init__(self, path: Path) -> None:
        self._path = path

    @property
    def path(self) -> Path:
        return self._path

    def _load(self) -> dict[str, str]:
        if not self._path.exists():
            return {}
        try:
            data = json.loads(self._path.read_text(encoding="utf-8"))
        except (OSError, ValueError):
            logger.warning(
                "event=credentials_unreadable path=%s", self._path
            )
            return {}
        if not isinstance(data, dict):
            return {}
        return {str(k): str(v) for k, v in data.items()}

    def _save(self, data: dict[str, str]) -> None:
        self._path.parent.mkdir(parents=True, exist_ok=True)
        tmp = self._path.with_suffix(".tmp")
        fd = os.open(tmp, os.O_WRONLY | os.O_CREAT | os.O_TRUNC, 0o600)
        with os.fdopen(fd, "w", encoding="utf-8") as fh:
            json.dump(data, fh)
        os.replace(tmp, self._path)

    def get(self, key: str) -> str | None:
        value = self._load().get(key)
        return value or None

    def set(self, key: str, value: str) -> None:
        data = self._load()
        data[key] = value
        self._save(data)

    def delete(self, key: str) -> bool:
        data = self._load()
        if key not in data:
            return False
        del data[key]
        if data:
            self._save(data)
        else:
            with contextlib.suppress(FileNotFoundError):
                self._path.unlink()
        return True

    def present(self) -> dict[str, bool]:
        """Which known credentials are set — never the values."""
        data = self._load()
        return {k: bool(data.get(k)) for k in KNOWN_KEYS}


def resolve_credential(
    store: CredentialStore, key: str, fallback: str = ""
) -> str | None:
    """Stored value first, then *fallback* (usually from Settings)."""
    return store.get(key) or fallback or None
