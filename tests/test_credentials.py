"""Tests for the local credential store."""

from __future__ import annotations

import json
import stat
from pathlib import Path

from vulnlens.credentials import (
    GITHUB_TOKEN,
    LLM_API_KEY,
    CredentialStore,
    resolve_credential,
)


def _store(tmp_path: Path) -> CredentialStore:
    return CredentialStore(tmp_path / "data" / "credentials.json")


class TestCredentialStore:
    def test_missing_file_reads_empty(self, tmp_path: Path) -> None:
        store = _store(tmp_path)
        assert store.get(LLM_API_KEY) is None
        assert store.present() == {LLM_API_KEY: False, GITHUB_TOKEN: False}

    def test_set_and_get(self, tmp_path: Path) -> None:
        store = _store(tmp_path)
        store.set(LLM_API_KEY, "sk-123")
        assert store.get(LLM_API_KEY) == "sk-123"
        assert store.present()[LLM_API_KEY] is True
        # A fresh instance sees the persisted value
        assert _store(tmp_path).get(LLM_API_KEY) == "sk-123"

    def test_file_is_owner_only(self, tmp_path: Path) -> None:
        store = _store(tmp_path)
        store.set(GITHUB_TOKEN, "ghp_x")
        mode = stat.S_IMODE(store.path.stat().st_mode)
        assert mode == 0o600

    def test_values_stored_verbatim(self, tmp_path: Path) -> None:
        store = _store(tmp_path)
        store.set(LLM_API_KEY, "  spaced key  ")
        assert json.loads(store.path.read_text()) == {
            LLM_API_KEY: "  spaced key  "
        }

    def test_delete(self, tmp_path: Path) -> None:
        store = _store(tmp_path)
        store.set(LLM_API_KEY, "a")
        store.set(GITHUB_TOKEN, "b")
        assert store.delete(LLM_API_KEY) is True
        assert store.get(LLM_API_KEY) is None
        assert store.get(GITHUB_TOKEN) == "b"
        assert store.delete(LLM_API_KEY) is False

    def test_deleting_last_key_removes_file(self, tmp_path: Path) -> None:
        store = _store(tmp_path)
        store.set(GITHUB_TOKEN, "b")
        store.delete(GITHUB_TOKEN)
        assert not store.path.exists()

    def test_corrupt_file_reads_empty(self, tmp_path: Path) -> None:
        store = _store(tmp_path)
        store.path.parent.mkdir(parents=True)
        store.path.write_text("{not json")
        assert store.get(LLM_API_KEY) is None
        store.set(LLM_API_KEY, "fresh")
        assert store.get(LLM_API_KEY) == "fresh"


class TestResolveCredential:
    def test_store_wins(self, tmp_path: Path) -> None:
        store = _store(tmp_path)
        store.set(LLM_API_KEY, "stored")
        assert resolve_credential(store, LLM_API_KEY, "env") == "stored"

    def test_fallback(self, tmp_path: Path) -> None:
        assert resolve_credential(_store(tmp_path), LLM_API_KEY, "env") == (
            "env"
        )

    def test_nothing_configured(self, tmp_path: Path) -> None:
        assert resolve_credential(_store(tmp_path), LLM_API_KEY) is None
