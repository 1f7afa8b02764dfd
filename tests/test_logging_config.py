"""Tests for process-wide logging setup and level handling."""

from __future__ import annotations

import logging
import os
from collections.abc import Iterator
from pathlib import Path
from unittest.mock import patch

import pytest

from vulnlens.config import Settings
from vulnlens.logging_config import (
    NOISY_LOGGERS,
    apply_log_level,
    cleanup_third_party_handlers,
    resolve_level,
    setup_logging,
)


@pytest.fixture(autouse=True)
def _reset_flags() -> Iterator[None]:
    """Reset run-once flags and restore the root level after each test."""
    import vulnlens.logging_config as mod

    mod._configured = False
    mod._handlers_cleaned = False
    root = logging.getLogger()
    previous = root.level
    yield
    root.setLevel(previous)


def test_setup_logging_is_idempotent() -> None:
    with patch("vulnlens.logging_config.logging.basicConfig") as mock_bc:
        setup_logging()
        setup_logging()
        mock_bc.assert_called_once()


def test_setup_logging_reads_log_level_env(
    monkeypatch: pytest.MonkeyPatch,
) -> None:
    monkeypatch.setenv("LOG_LEVEL", "debug")
    with patch("vulnlens.logging_config.logging.basicConfig") as mock_bc:
        setup_logging()
    assert mock_bc.call_args.kwargs["level"] == logging.DEBUG


def test_litellm_log_env_var_set() -> None:
    os.environ.pop("LITELLM_LOG", None)
    setup_logging()
    assert os.environ.get("LITELLM_LOG") == "WARNING"


def test_litellm_log_env_var_preserves_existing() -> None:
    os.environ["LITELLM_LOG"] = "ERROR"
    try:
        setup_logging()
        assert os.environ["LITELLM_LOG"] == "ERROR"
    finally:
        os.environ["LITELLM_LOG"] = "WARNING"


class TestResolveLevel:
    def test_names_are_case_insensitive(self) -> None:
        assert resolve_level("warning") == logging.WARNING
        assert resolve_level("DEBUG") == logging.DEBUG

    def test_int_passes_through(self) -> None:
        assert resolve_level(logging.ERROR) == logging.ERROR

    def test_env_then_default(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("LOG_LEVEL", "error")
        assert resolve_level(None) == logging.ERROR
        monkeypatch.delenv("LOG_LEVEL")
        assert resolve_level(None) == logging.INFO

    def test_unknown_name_falls_back_to_info(
        self, caplog: pytest.LogCaptureFixture
    ) -> None:
        with caplog.at_level(logging.WARNING, logger="vulnlens"):
            assert resolve_level("chatty") == logging.INFO
        assert "event=unknown_log_level level=CHATTY" in caplog.text


class TestApplyLogLevel:
    def test_sets_root_level(self) -> None:
        assert apply_log_level("error") == logging.ERROR
        assert logging.getLogger().level == logging.ERROR
        apply_log_level("debug")
        assert logging.getLogger().level == logging.DEBUG

    def test_third_party_loggers_stay_at_warning_or_above(self) -> None:
        apply_log_level("debug")
        for name in NOISY_LOGGERS:
            assert logging.getLogger(name).level == logging.WARNING
        apply_log_level("error")
        for name in NOISY_LOGGERS:
            assert logging.getLogger(name).level == logging.ERROR

    async def test_lifespan_applies_configured_level(
        self, tmp_path: Path, monkeypatch: pytest.MonkeyPatch
    ) -> None:
        import vulnlens.main as main_mod

        settings = Settings(
            log_level="ERROR",
            data_dir=tmp_path / "data",
            log_dir=tmp_path / "logs",
        )
        monkeypatch.setattr(main_mod, "_settings", settings)
        async with main_mod.lifespan(main_mod.app):
            assert logging.getLogger().level == logging.ERROR


def test_cleanup_clears_litellm_handlers() -> None:
    lg = logging.getLogger("LiteLLM")
    lg.addHandler(logging.StreamHandler())
    lg.propagate = False

    cleanup_third_party_handlers()

    assert lg.handlers == []
    assert lg.propagate is True


def test_cleanup_is_idempotent() -> None:
    cleanup_third_party_handlers()
    lg = logging.getLogger("LiteLLM")
    handler = logging.StreamHandler()
    lg.addHandler(handler)
    try:
        cleanup_third_party_handlers()
        assert handler in lg.handlers
    finally:
        lg.removeHandler(handler)
