"""Structured JSON logger for analysis runs."""

import json
import logging
from datetime import UTC, datetime
from pathlib import Path

from vulnlens.constants import ERROR_TRUNCATION_CHARS
from vulnlens.logging_config import LOG_DATEFMT, LOG_FORMAT

__all__ = ["RunLogger", "LOG_FORMAT", "LOG_DATEFMT"]


class RunLogger:
    """Structured JSON logger with run_id correlation."""

    def __init__(self, log_dir: Path, level: str = "INFO") -> None:
        self._log_dir = log_dir
        self._log_dir.mkdir(parents=True, exist_ok=True)
        self._logger = logging.getLogger("vulnlens.runs")
        self._logger.setLevel(getattr(logging, level.upper()))

        if not self._logger.handlers:
            handler = logging.FileHandler(log_dir / "analysis.log")
            handler.setFormatter(logging.Formatter("%(message)s"))
            self._logger.addHandler(handler)

    def _emit(self, level: int, payload: dict[str, object]) -> None:
        payload["timestamp"] = datetime.now(UTC).isoformat()
        self._logger.log(level, json.dumps(payload))

    def log_run_start(
        self,
        run_id: str,
        total_files: int,
        total_batches: int,
        explanation_level: str,
    ) -> None:
        self._emit(logging.INFO, {
            "type": "run_start",
            "run_id": run_id,
            "total_files": total_files,
            "total_batches": total_batches,
            "explanation_level": explanation_level,
        })

    def log_batch(
        self,
        run_id: str,
        batch: int,
        files: list[str],
        duration_ms: float,
        findings: int,
    ) -> None:
        self._emit(logging.INFO, {
            "type": "batch",
            "run_id": run_id,
            "batch": batch,
            "files": files,
            "duration_ms": duration_ms,
            "findings": findings,
        })

    def log_run_end(
        self,
        run_id: str,
        outcome: str,
        vulnerabilities: int,
        files_scanned: int,
        duration_ms: float,
    ) -> None:
        self._emit(logging.INFO, {
            "type": "run_end",
            "run_id": run_id,
            "outcome": outcome,
            "vulnerabilities": vulnerabilities,
            "files_scanned": files_scanned,
            "duration_ms": duration_ms,
        })

    def log_error(
        self,
        run_id: str,
        component: str,
        error: str,
    ) -> None:
        self._emit(logging.ERROR, {
            "type": "error",
            "run_id": run_id,
            "component": component,
            "error": error[:ERROR_TRUNCATION_CHARS],
        })
