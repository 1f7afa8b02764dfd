"""Shared test fixtures — scripted analyzer, wire helpers, app state."""

import os

# Force empty credentials for all tests: no real LLM or GitHub calls.
# Set unconditionally at import time so real keys in the shell
# environment never reach Settings().
os.environ["LLM_API_KEY"] = ""
os.environ["GITHUB_TOKEN"] = ""

import asyncio
import json
from collections.abc import Callable, Sequence
from pathlib import Path
from typing import Any

import pytest

from vulnlens.analysis.cancellation import CancellationToken
from vulnlens.analysis.llm.analyzer import ChunkCallback
from vulnlens.analysis.orchestrator import BatchOrchestrator
from vulnlens.api.app_state import AppState
from vulnlens.config import Settings
from vulnlens.constants import ExplanationLevel
from vulnlens.credentials import CredentialStore
from vulnlens.ingestion.github import GitHubFetcher
from vulnlens.main import app
from vulnlens.streaming.events import CodeFile

DEMO_KEY = "for-demo-purposes-only"


def make_files(count: int, ext: str = ".py") -> list[CodeFile]:
    """``count`` small source files named f00.py, f01.py, ..."""
    return [
        CodeFile(name=f"f{i:02d}{ext}", content=f"x = {i}\ny = x\n")
        for i in range(count)
    ]


def vuln_json(
    file: str,
    line: int = 1,
    severity: str = "high",
    **overrides: Any,
) -> str:
    """One ``vulnerability`` event as the analyzer would emit it."""
    payload: dict[str, Any] = {
        "type": "vulnerability",
        "file": file,
        "line": line,
        "severity": severity,
        "exploitLikelihood": "high",
        "title": "SQL Injection",
        "description": "User input reaches a query string.",
        "beginnerExplanation": "Someone could read your database.",
        "expertExplanation": "Unparameterized query built from input.",
        "codeSnippet": "cursor.execute(q + name)",
        "secureRefactoring": "cursor.execute(q, (name,))",
        "cweReference": "CWE-89",
    }
    payload.update(overrides)
    return json.dumps(payload)


def file_complete_json(file: str, lines: int = 10) -> str:
    return json.dumps(
        {"type": "fileComplete", "file": file, "linesScanned": lines}
    )


def complete_json(risk: str | None = "high") -> str:
    return json.dumps(
        {
            "type": "complete",
            "summary": {
                "totalFiles": 1,
                "totalVulnerabilities": 1,
                "overallRiskLevel": risk,
                "topRiskyFiles": [],
                "message": "done",
            },
        }
    )


def _complete_every_file(files: Sequence[CodeFile]) -> list[str]:
    return [file_complete_json(f.name, 2) + "\n" for f in files]


class FakeAnalyzer:
    """Scripted stand-in for the LLM analyzer.

    ``respond`` maps a batch to the text chunks it streams. ``before``
    runs at the start of each call with the 1-based call number, which
    lets a test cancel or start another run mid-flight. ``fail_on``
    raises ``error`` on that call after streaming its chunks; ``hold_on``
    blocks that call until ``release`` is set.
    """

    def __init__(
        self,
        respond: Callable[[Sequence[CodeFile]], list[str]] = (
            _complete_every_file
        ),
        *,
        before: Callable[[int], None] | None = None,
        fail_on: int | None = None,
        error: Exception | None = None,
        hold_on: int | None = None,
    ) -> None:
        self.respond = respond
        self.before = before
        self.fail_on = fail_on
        self.error = error or RuntimeError("stream broke")
        self.hold_on = hold_on
        self.release = asyncio.Event()
        self.calls: list[list[str]] = []
        self.credentials: list[str] = []
        self.levels: list[ExplanationLevel] = []

    async def analyze(
        self,
        credential: str,
        files: Sequence[CodeFile],
        explanation_level: ExplanationLevel,
        on_chunk: ChunkCallback,
        cancel: CancellationToken,
    ) -> None:
        self.calls.append([f.name for f in files])
        self.credentials.append(credential)
        self.levels.append(explanation_level)
        call = len(self.calls)
        if self.before is not None:
            self.before(call)
        for chunk in self.respond(files):
            on_chunk(chunk)
            await asyncio.sleep(0)
        if call == self.hold_on:
            await self.release.wait()
        if call == self.fail_on:
            raise self.error


def setup_test_app(
    tmp_path: Path,
    analyzer: FakeAnalyzer | None = None,
    *,
    fetcher: GitHubFetcher | None = None,
) -> AppState:
    """Install a fresh ``AppState`` on the app with a fake analyzer.

    The ASGI transport does not run the lifespan, so each API fixture
    wires state directly.
    """
    settings = Settings(
        data_dir=tmp_path / "data",
        log_dir=tmp_path / "logs",
    )
    state = AppState(
        settings=settings,
        orchestrator=BatchOrchestrator.from_settings(
            settings, analyzer=analyzer or FakeAnalyzer()
        ),
        fetcher=fetcher or GitHubFetcher(request_delay=0),
        credentials=CredentialStore(settings.credentials_path),
    )
    app.state.settings = settings
    app.state.typed = state
    return state


def parse_sse_events(
    raw: str,
) -> list[dict[str, str]]:
    """Parse raw SSE text into list of {event, data} dicts.

    Shared helper used by SSE endpoint tests.
    """
    events: list[dict[str, str]] = []
    current_event = ""
    current_data = ""

    for line in raw.replace("\r\n", "\n").split("\n"):
        line = line.strip()
        if line.startswith("event:"):
            current_event = line[6:].strip()
        elif line.startswith("data:"):
            current_data = line[5:].strip()
        elif line == "" and current_event:
            events.append(
                {"event": current_event, "data": current_data}
            )
            current_event = ""
            current_data = ""

    # Handle trailing event without final blank line
    if current_event and current_data:
        events.append(
            {"event": current_event, "data": current_data}
        )

    return events


@pytest.fixture
def fake_analyzer() -> FakeAnalyzer:
    return FakeAnalyzer()
