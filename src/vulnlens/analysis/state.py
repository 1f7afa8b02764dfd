"""Run-scoped aggregation state and its pure transition functions.

``RunState`` is a frozen snapshot. Every transition returns a new
snapshot, so presentation code can hold on to any of them without
seeing later mutations. Only the orchestrator calls these functions.
"""

from __future__ import annotations

import math
import time
import uuid
from collections.abc import Sequence

from pydantic import Field

from vulnlens.constants import (
    SEVERITY_ORDER,
    FileStatus,
    Severity,
)
from vulnlens.streaming.events import (
    CodeFile,
    CompleteEvent,
    FileCompleteEvent,
    Finding,
    SeverityBreakdown,
    VulnerabilityEvent,
    WireModel,
)

NO_COMPLETION_REASON = "no completion reported by analyzer"
CANCELLED_REASON = "analysis cancelled"


class AnalysisStats(WireModel):
    files_scanned: int = 0
    lines_scanned: int = 0
    vulnerabilities_found: int = 0
    total_files: int = 0
    current_batch: int = 0
    total_batches: int = 0
    severity_breakdown: SeverityBreakdown = Field(
        default_factory=SeverityBreakdown
    )


class FileProgress(WireModel):
    name: str
    status: FileStatus = FileStatus.QUEUED
    lines_scanned: int | None = None
    skipped_reason: str | None = None


class RunState(WireModel):
    """Immutable snapshot of one analysis run."""

    run_id: str = ""
    stats: AnalysisStats = Field(default_factory=AnalysisStats)
    findings: tuple[Finding, ...] = ()
    overall_risk: Severity | None = None
    file_progress: tuple[FileProgress, ...] = ()
    started_at: float | None = None
    finished_at: float | None = None
    next_finding_seq: int = 0


def max_severity(
    current: Severity | None, candidate: Severity | None
) -> Severity | None:
    """Higher of two severities under low < medium < high < critical."""
    if candidate is None:
        return current
    if current is None:
        return candidate
    if SEVERITY_ORDER.index(candidate) > SEVERITY_ORDER.index(current):
        return candidate
    return current


def count_batches(file_count: int, batch_size: int) -> int:
    return math.ceil(file_count / batch_size)


def initial_state(
    files: Sequence[CodeFile],
    batch_size: int,
    *,
    run_id: str | None = None,
    now: float | None = None,
) -> RunState:
    """Fresh state for a run over *files*.

    ``total_files`` and ``total_batches`` are fixed here and never
    changed by analyzer output.
    """
    return RunState(
        run_id=run_id or uuid.uuid4().hex[:12],
        stats=AnalysisStats(
            total_files=len(files),
            total_batches=count_batches(len(files), batch_size),
        ),
        file_progress=tuple(FileProgress(name=f.name) for f in files),
        started_at=time.time() if now is None else now,
    )


def _set_file_status(
    progress: tuple[FileProgress, ...],
    names: set[str],
    status: FileStatus,
    *,
    only_from: FileStatus | None = None,
    **extra: object,
) -> tuple[FileProgress, ...]:
    updated: list[FileProgress] = []
    for fp in progress:
        if fp.name in names and (
            only_from is None or fp.status == only_from
        ):
            fp = fp.model_copy(update={"status": status, **extra})
        updated.append(fp)
    return tuple(updated)


def begin_batch(
    state: RunState,
    batch_number: int,
    files: Sequence[CodeFile],
) -> RunState:
    """Enter batch *batch_number* (1-based) covering *files*."""
    return state.model_copy(
        update={
            "stats": state.stats.model_copy(
                update={"current_batch": batch_number}
            ),
            "file_progress": _set_file_status(
                state.file_progress,
                {f.name for f in files},
                FileStatus.ANALYZING,
            ),
        }
    )


def end_batch(
    state: RunState,
    files: Sequence[CodeFile],
    *,
    reason: str = NO_COMPLETION_REASON,
) -> RunState:
    """Close a batch: files the analyzer never reported are skipped."""
    return state.model_copy(
        update={
            "file_progress": _set_file_status(
                state.file_progress,
                {f.name for f in files},
                FileStatus.SKIPPED,
                only_from=FileStatus.ANALYZING,
                skipped_reason=reason,
            ),
        }
    )


def _apply_vulnerability(
    state: RunState, event: VulnerabilityEvent, now: float
) -> RunState:
    seq = state.next_finding_seq
    data = event.model_dump()
    data["id"] = f"vuln-{seq}-{int(now * 1000)}"
    finding = Finding.model_validate(data)
    stats = state.stats
    return state.model_copy(
        update={
            "findings": (*state.findings, finding),
            "next_finding_seq": seq + 1,
            "stats": stats.model_copy(
                update={
                    "vulnerabilities_found": stats.vulnerabilities_found
                    + 1,
                    "severity_breakdown": stats.severity_breakdown.bump(
                        event.severity
                    ),
                }
            ),
        }
    )


def _apply_file_complete(
    state: RunState, event: FileCompleteEvent
) -> RunState:
    stats = state.stats
    files_scanned = min(stats.files_scanned + 1, stats.total_files)
    return state.model_copy(
        update={
            "stats": stats.model_copy(
                update={
                    "files_scanned": files_scanned,
                    "lines_scanned": stats.lines_scanned
                    + event.lines_scanned,
                }
            ),
            "file_progress": _set_file_status(
                state.file_progress,
                {event.file},
                FileStatus.COMPLETED,
                lines_scanned=event.lines_scanned,
                skipped_reason=None,
            ),
        }
    )


def apply_event(
    state: RunState,
    event: VulnerabilityEvent | FileCompleteEvent | CompleteEvent,
    *,
    now: float | None = None,
) -> RunState:
    """Fold one classified event into *state*, returning the new state."""
    if isinstance(event, VulnerabilityEvent):
        return _apply_vulnerability(
            state, event, time.time() if now is None else now
        )
    if isinstance(event, FileCompleteEvent):
        return _apply_file_complete(state, event)
    risk = max_severity(
        state.overall_risk, event.summary.overall_risk_level
    )
    if risk == state.overall_risk:
        return state
    return state.model_copy(update={"overall_risk": risk})


def finish(state: RunState, *, now: float | None = None) -> RunState:
    return state.model_copy(
        update={"finished_at": time.time() if now is None else now}
    )
