"""Pre-run validation of a submission.

Runs before the orchestrator touches any state. Hard problems
(no credential, nothing to analyze, oversized file) raise
``SubmissionError``; unsupported and very large files are reported
so the caller can warn about them.
"""

from __future__ import annotations

import math
from collections.abc import Sequence
from dataclasses import dataclass, field

from vulnlens.constants import (
    LANGUAGE_NAMES,
    LARGE_FILE_LINES,
    MAX_UPLOAD_BYTES,
    SECONDS_PER_100_LINES,
    file_extension,
)
from vulnlens.streaming.events import CodeFile


class SubmissionError(ValueError):
    """A submission that must be rejected before any run starts."""


@dataclass(frozen=True)
class SkippedFile:
    name: str
    extension: str


@dataclass(frozen=True)
class LargeFile:
    name: str
    lines: int


@dataclass
class SubmissionReport:
    """What will be analyzed, and what the caller should warn about."""

    credential: str = field(default="", repr=False)
    supported: list[CodeFile] = field(
        default_factory=lambda: list[CodeFile]()
    )
    unsupported: list[SkippedFile] = field(
        default_factory=lambda: list[SkippedFile]()
    )
    large_files: list[LargeFile] = field(
        default_factory=lambda: list[LargeFile]()
    )
    total_lines: int = 0

    @property
    def estimated_seconds(self) -> int:
        """Rough duration estimate: ~2 seconds per 100 lines."""
        return math.ceil(self.total_lines / 100 * SECONDS_PER_100_LINES)

    @property
    def languages(self) -> list[str]:
        """Display names of the languages present, in first-seen order."""
        seen: dict[str, None] = {}
        for f in self.supported:
            ext = file_extension(f.name)
            seen.setdefault(LANGUAGE_NAMES.get(ext, ext), None)
        return list(seen)

    @property
    def has_warnings(self) -> bool:
        return bool(self.unsupported or self.large_files)


def _line_count(content: str) -> int:
    return len(content.split("\n"))


def validate_submission(
    files: Sequence[CodeFile],
    credential: str | None,
    *,
    max_file_bytes: int = MAX_UPLOAD_BYTES,
) -> SubmissionReport:
    """Check a submission and split it into analyzable and skipped files.

    Raises:
        SubmissionError: missing credential, empty submission, a supported
            file over *max_file_bytes*, or no file with a supported extension.
    """
    if not credential or not credential.strip():
        raise SubmissionError(
            "An API key is required to run the analysis"
        )
    if not files:
        raise SubmissionError("Please provide some code to analyze")

    report = SubmissionReport(credential=credential)
    for f in files:
        ext = file_extension(f.name)
        if ext not in LANGUAGE_NAMES:
            report.unsupported.append(SkippedFile(f.name, ext))
            continue
        size = len(f.content.encode("utf-8"))
        if size > max_file_bytes:
            msg = (
                f"File {f.name} is too large "
                f"({size} > {max_file_bytes} bytes)"
            )
            raise SubmissionError(msg)
        lines = _line_count(f.content)
        report.supported.append(f)
        report.total_lines += lines
        if lines > LARGE_FILE_LINES:
            report.large_files.append(LargeFile(f.name, lines))

    if not report.supported:
        raise SubmissionError("No supported code files to analyze")
    return report
