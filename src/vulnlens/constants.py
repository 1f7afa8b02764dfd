"""Shared constants — single source of truth for cross-module values.

All magic strings and numbers that appear in 2+ files belong here.
StrEnum members are str-compatible, so downstream code (JSON, SSE
payloads, wire events) works unchanged.
"""

from __future__ import annotations

from enum import StrEnum

# ── String Enums ─────────────────────────────────────────


class Severity(StrEnum):
    """Finding severity, ordered low < medium < high < critical."""

    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    CRITICAL = "critical"


class ExploitLikelihood(StrEnum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"


class ConfidenceLevel(StrEnum):
    """Qualitative confidence labels from LLM analysis."""

    HIGH = "high"
    MEDIUM = "medium"
    LOW = "low"


class ExplanationLevel(StrEnum):
    """Audience the analyzer writes its explanations for."""

    BEGINNER = "beginner"
    EXPERT = "expert"


class FileStatus(StrEnum):
    """Per-file progress within a run."""

    QUEUED = "queued"
    ANALYZING = "analyzing"
    SKIPPED = "skipped"
    COMPLETED = "completed"


class RunOutcome(StrEnum):
    """Terminal status of an analysis run.

    Named RunOutcome (not RunStatus) because these values are only
    assigned once the run has stopped.
    """

    COMPLETED = "completed"
    CANCELLED = "cancelled"
    FAILED = "failed"
    REJECTED = "rejected"


class SSEEvent(StrEnum):
    """Server-Sent Event type names."""

    SNAPSHOT = "snapshot"
    COMPLETE = "complete"
    CANCELLED = "cancelled"
    ERROR = "error"
    REJECTED = "rejected"


# Fixed ordering used by the overall-risk watermark
SEVERITY_ORDER: tuple[Severity, ...] = (
    Severity.LOW,
    Severity.MEDIUM,
    Severity.HIGH,
    Severity.CRITICAL,
)

# ── Batching ─────────────────────────────────────────────

DEFAULT_BATCH_SIZE = 10

# ── Submission Limits ────────────────────────────────────

MAX_UPLOAD_BYTES = 1024 * 1024  # 1MB
LARGE_FILE_LINES = 1000
SECONDS_PER_100_LINES = 2

# ── GitHub Fetching ──────────────────────────────────────

GITHUB_API_URL = "https://api.github.com"
GITHUB_MAX_FILES = 100
GITHUB_MAX_FILE_BYTES = 150 * 1024  # 150KB
GITHUB_REQUEST_DELAY = 0.1
GITHUB_SKIP_DIRECTORIES: tuple[str, ...] = (
    "node_modules",
    ".git",
    "dist",
    "build",
    "vendor",
    "__pycache__",
    ".next",
    "coverage",
)

# ── Supported Languages ──────────────────────────────────

# File extension → display name. Anything else is skipped.
LANGUAGE_NAMES: dict[str, str] = {
    ".js": "JavaScript",
    ".jsx": "React JSX",
    ".ts": "TypeScript",
    ".tsx": "React TSX",
    ".py": "Python",
    ".java": "Java",
    ".go": "Go",
    ".rb": "Ruby",
    ".php": "PHP",
    ".c": "C",
    ".cpp": "C++",
    ".h": "C/C++ Header",
    ".cs": "C#",
    ".swift": "Swift",
    ".kt": "Kotlin",
    ".rs": "Rust",
    ".sql": "SQL",
    ".vue": "Vue",
    ".svelte": "Svelte",
}

SUPPORTED_EXTENSIONS = frozenset(LANGUAGE_NAMES)

# ── Misc ─────────────────────────────────────────────────

SSE_POLL_TIMEOUT = 0.5
BINARY_DETECTION_BUFFER = 8192
ERROR_TRUNCATION_CHARS = 200
LLM_MAX_OUTPUT_TOKENS = 8192


def file_extension(name: str) -> str:
    """Lower-cased extension of *name* including the dot ('' if none)."""
    base = name.rsplit("/", 1)[-1]
    if "." not in base:
        return ""
    return "." + base.rsplit(".", 1)[-1].lower()


def is_supported_file(name: str) -> bool:
    return file_extension(name) in SUPPORTED_EXTENSIONS
