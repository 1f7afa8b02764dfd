"""Tests for Settings validators."""

from __future__ import annotations

import logging
from pathlib import Path

import pytest

from vulnlens.config import Settings
from vulnlens.constants import DEFAULT_BATCH_SIZE, GITHUB_SKIP_DIRECTORIES


class TestDefaults:
    def test_defaults(self) -> None:
        s = Settings()
        assert s.batch_size == DEFAULT_BATCH_SIZE
        assert s.tokenizer_quote_aware is True
        assert s.litellm_model == "gemini/gemini-2.0-flash"
        assert s.skip_directories == list(GITHUB_SKIP_DIRECTORIES)

    def test_credentials_path_under_data_dir(self, tmp_path: Path) -> None:
        s = Settings(data_dir=tmp_path)
        assert s.credentials_path == tmp_path / "credentials.json"

    def test_env_override(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("BATCH_SIZE", "3")
        monkeypatch.setenv("TOKENIZER_QUOTE_AWARE", "false")
        s = Settings()
        assert s.batch_size == 3
        assert s.tokenizer_quote_aware is False


class TestBatchSize:
    def test_zero_rejected(self) -> None:
        with pytest.raises(ValueError, match="at least 1"):
            Settings(batch_size=0)


class TestSkipDirectories:
    def test_comma_separated_string_parsed_to_list(self) -> None:
        s = Settings(skip_directories="node_modules , target")  # type: ignore[arg-type]
        assert s.skip_directories == ["node_modules", "target"]

    def test_env_comma_list(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("SKIP_DIRECTORIES", "a,b")
        assert Settings().skip_directories == ["a", "b"]

    def test_list_passthrough(self) -> None:
        s = Settings(skip_directories=["dist"])
        assert s.skip_directories == ["dist"]

    def test_duplicates_warn(self, caplog: pytest.LogCaptureFixture) -> None:
        with caplog.at_level(logging.WARNING, logger="vulnlens.config"):
            s = Settings(skip_directories=["dist", "dist", "build"])
        assert "Duplicate entries in SKIP_DIRECTORIES" in caplog.text
        assert "dist" in caplog.text
        assert s.skip_directories == ["dist", "dist", "build"]

    def test_no_warning_without_duplicates(
        self, caplog: pytest.LogCaptureFixture
    ) -> None:
        with caplog.at_level(logging.WARNING, logger="vulnlens.config"):
            Settings(skip_directories=["dist", "build"])
        assert "Duplicate" not in caplog.text
