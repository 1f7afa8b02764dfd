"""Environment-based configuration."""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Annotated, Any

from pydantic import field_validator
from pydantic_settings import BaseSettings, NoDecode

from vulnlens.constants import (
    DEFAULT_BATCH_SIZE,
    GITHUB_MAX_FILE_BYTES,
    GITHUB_MAX_FILES,
    GITHUB_REQUEST_DELAY,
    GITHUB_SKIP_DIRECTORIES,
    MAX_UPLOAD_BYTES,
)

logger = logging.getLogger(__name__)


class Settings(BaseSettings):
    """Reads from .env file and environment variables."""

    # LLM Provider (overridden by the credential store when set there)
    llm_api_key: str = ""
    litellm_model: str = "gemini/gemini-2.0-flash"
    llm_timeout_seconds: int = 120

    # GitHub
    github_token: str = ""
    github_max_files: int = GITHUB_MAX_FILES
    github_max_file_bytes: int = GITHUB_MAX_FILE_BYTES
    github_request_delay_seconds: float = GITHUB_REQUEST_DELAY

    # Analysis
    batch_size: int = DEFAULT_BATCH_SIZE
    tokenizer_quote_aware: bool = True
    max_upload_bytes: int = MAX_UPLOAD_BYTES

    # Directories
    data_dir: Path = Path("data")
    log_dir: Path = Path("logs")

    # Logging
    log_level: str = "INFO"

    # API
    cors_origins: str = "http://localhost:5173"

    # Ingestion
    skip_directories: Annotated[list[str], NoDecode] = list(
        GITHUB_SKIP_DIRECTORIES
    )

    @field_validator("skip_directories", mode="before")
    @classmethod
    def _parse_dirs(cls, v: Any) -> Any:
        """Accept comma-separated string or JSON array."""
        if isinstance(v, str):
            return [s.strip() for s in v.split(",") if s.strip()]
        return v

    @field_validator("skip_directories")
    @classmethod
    def _warn_duplicate_dirs(cls, v: list[str]) -> list[str]:
        seen: set[str] = set()
        dupes: list[str] = []
        for d in v:
            if d in seen:
                dupes.append(d)
            seen.add(d)
        if dupes:
            logger.warning(
                "Duplicate entries in SKIP_DIRECTORIES: %s",
                ", ".join(dupes),
            )
        return v

    @field_validator("batch_size")
    @classmethod
    def _validate_batch_size(cls, v: int) -> int:
        if v < 1:
            raise ValueError("batch_size must be at least 1")
        return v

    @property
    def credentials_path(self) -> Path:
        """Location of the local credential store."""
        return self.data_dir / "credentials.json"

    model_config = {
        "env_file": ".env",
        "env_file_encoding": "utf-8",
        "env_prefix": "",
        "extra": "ignore",
    }
